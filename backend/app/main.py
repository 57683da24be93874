# Outreach CRM backend entrypoint: lead pipeline, claims, tasks and automation sweeps.

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from backend.app.api import automation
from backend.app.api import leads
from backend.app.api import login
from backend.app.api import tasks
from backend.app.api import users
from backend.app.core.dev_seed import ensure_default_dev_users
from backend.app.core.errors import CRMError, InvalidInputError
from backend.app.core.logging import configure_logging
from backend.app.core.settings import get_settings
from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI()
settings = get_settings()

origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(login.router)
app.include_router(users.router)
app.include_router(leads.router)
app.include_router(tasks.router)
app.include_router(automation.router)


@app.exception_handler(CRMError)
async def crm_error_handler(request: Request, exc: CRMError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": exc.category},
        headers=exc.headers,
    )


def describe_validation_errors(exc: RequestValidationError) -> str:
    messages = []
    for error in exc.errors():
        # Drop the leading "body"/"query" segment from the location
        location = ".".join(str(part) for part in error.get("loc", ())[1:])
        messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg", "Invalid input"))
    return "; ".join(messages) or "Invalid input"


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={"detail": describe_validation_errors(exc), "error": InvalidInputError.category},
    )


@app.exception_handler(OperationalError)
async def store_unavailable_handler(request: Request, exc: OperationalError):
    logger.exception("Store unavailable", extra={"path": request.url.path})
    return JSONResponse(
        status_code=503,
        content={"detail": "Store unavailable, retry the request", "error": "transient"},
    )


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Store error", extra={"path": request.url.path})
    return JSONResponse(status_code=500, content={"detail": "Internal server error", "error": "internal"})


@app.get("/")
def read_root():
    return {"app": "Outreach CRM backend", "status": "ok"}


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.on_event("startup")
def init_db_and_seed():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        ensure_default_dev_users(db)
    finally:
        db.close()
