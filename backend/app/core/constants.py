"""Closed enumerations and automation thresholds."""

import enum


class Role(str, enum.Enum):
    ADMIN = "admin"
    LEAD_GEN = "lead_gen"
    OUTREACH = "outreach"


class LeadStatus(str, enum.Enum):
    NEW = "new"
    REQUESTED = "requested"
    TEXTED = "texted"
    REPLIED = "replied"
    MEETING_BOOKED = "meeting_booked"
    FIRST_FOLLOWUP = "first_followup"
    SECOND_FOLLOWUP = "second_followup"
    JUNK = "junk"
    CLOSED = "closed"
    COMMENTED = "commented"


class LeadSystem(str, enum.Enum):
    LINKEDIN_ONE = "linkedin_one"
    LINKEDIN_TWO = "linkedin_two"
    UPWORK = "upwork"


class TaskStatus(str, enum.Enum):
    UNDONE = "undone"
    DONE = "done"
    BACKLOG = "backlog"


class ActorKind(str, enum.Enum):
    HUMAN = "human"
    SYSTEM = "system"


LEAD_STATUS_VALUES = {s.value for s in LeadStatus}

# Status -> Lead column stamped on first entry into that status
FIRST_REACHED_FIELDS = {
    LeadStatus.TEXTED.value: "texted_at",
    LeadStatus.FIRST_FOLLOWUP.value: "first_followup_at",
    LeadStatus.SECOND_FOLLOWUP.value: "second_followup_at",
    LeadStatus.REPLIED.value: "replied_at",
}

FOLLOWUP_2_TO_JUNK_DAYS = 4
TEXTED_FILTER_DAYS = 4
FOLLOWUP_1_FILTER_DAYS = 4
REPLIED_FILTER_DAYS = 6

AUTOMATED_JUNK_REASON = "Automated: Second Follow-up > 4 days"
CLAIM_REASON = "Lead claimed"
UNCLAIM_REASON = "Lead unclaimed"

DEFAULT_TASK_DUE_HOURS = 24
