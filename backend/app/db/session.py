"""Engine and session factory for the configured database."""

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from backend.app.core.settings import get_settings

settings = get_settings()

connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
engine = create_engine(settings.database_url, connect_args=connect_args)

if settings.database_url.startswith("sqlite"):

    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        # SQLite ignores ON DELETE CASCADE unless foreign keys are enabled per connection
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def commit_or_rollback(db) -> None:
    """Commit the unit of work; roll back and surface store outages as retryable."""
    # Local import keeps db/session importable without pulling in FastAPI
    from sqlalchemy.exc import OperationalError, SQLAlchemyError

    from backend.app.core.errors import TransientStoreError

    try:
        db.commit()
    except OperationalError as exc:
        db.rollback()
        raise TransientStoreError("Store unavailable, retry the request") from exc
    except SQLAlchemyError:
        db.rollback()
        raise
