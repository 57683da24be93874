"""Endpoints that trigger the automation sweeps."""

import logging
import secrets

from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from backend.app.core.errors import UnauthenticatedError
from backend.app.core.settings import get_settings
from backend.app.core.time import utc_now
from backend.app.db.session import get_db
from backend.app.dependencies.auth import get_current_admin
from backend.app.models.user import User
from backend.app.schemas.automation import AutomationRunResult, CronAutomationResult, CronBacklogResult
from backend.app.services.automation import run_automation_rules, sync_task_backlog

logger = logging.getLogger(__name__)

router = APIRouter(tags=["automation"])


def verify_cron_secret(x_cron_secret: str | None = Header(default=None)) -> None:
    expected = get_settings().cron_secret
    if not expected:
        return
    if not x_cron_secret or not secrets.compare_digest(x_cron_secret, expected):
        logger.warning("Rejected cron call without a valid secret")
        raise UnauthenticatedError("Invalid cron secret")


@router.post("/automation/run", response_model=AutomationRunResult)
async def run_automation(db: Session = Depends(get_db), current_admin: User = Depends(get_current_admin)):
    return {
        "leads_transitioned": run_automation_rules(db),
        "tasks_moved_to_backlog": sync_task_backlog(db),
    }


@router.api_route("/cron/automation", methods=["GET", "POST"], response_model=CronAutomationResult)
async def cron_automation(db: Session = Depends(get_db), _: None = Depends(verify_cron_secret)):
    transitioned = run_automation_rules(db)
    return {"success": True, "timestamp": utc_now(), "transitioned": transitioned}


@router.api_route("/cron/tasks-backlog", methods=["GET", "POST"], response_model=CronBacklogResult)
async def cron_tasks_backlog(db: Session = Depends(get_db), _: None = Depends(verify_cron_secret)):
    moved = sync_task_backlog(db)
    return {"success": True, "timestamp": utc_now(), "tasks_moved_to_backlog": moved}
