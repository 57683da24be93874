"""Responses for automation sweeps."""

from datetime import datetime

from pydantic import BaseModel


class AutomationRunResult(BaseModel):
    leads_transitioned: int
    tasks_moved_to_backlog: int


class CronAutomationResult(BaseModel):
    success: bool
    timestamp: datetime
    transitioned: int


class CronBacklogResult(BaseModel):
    success: bool
    timestamp: datetime
    tasks_moved_to_backlog: int
