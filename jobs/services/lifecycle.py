"""
Cycle de vie d'un job et helpers purs partagés entre l'API, le TV et l'admin.

Deux ordres distincts, volontairement:
- STATUS_FLOW_ORDER: sens de progression (contrôle des transitions, strictement vers l'avant)
- DISPLAY_STATUS_ORDER: "le plus actionnable d'abord" (tri de l'écran TV)
"""
from datetime import datetime, timedelta
import math
from typing import Any, Optional

from django.utils import timezone
from django.utils.dateparse import parse_datetime

RECEIVED = "RECEIVED"
QUOTED = "QUOTED"
IN_PROGRESS = "IN_PROGRESS"
PAUSED = "PAUSED"
COMPLETED = "COMPLETED"

ALL_STATUSES = (RECEIVED, QUOTED, IN_PROGRESS, PAUSED, COMPLETED)

STATUS_FLOW_ORDER = [RECEIVED, QUOTED, IN_PROGRESS, COMPLETED]
DISPLAY_STATUS_ORDER = [IN_PROGRESS, PAUSED, QUOTED, RECEIVED, COMPLETED]

# PAUSED est une branche d'IN_PROGRESS: même rang de progression
_FLOW_RANK_ALIASES = {PAUSED: IN_PROGRESS}

COMPLETED_VISIBILITY_DAYS = 7


def job_field(job: Any, name: str, default=None):
    """Lecture d'un champ sur un dict (ligne JSON) ou une instance Job."""
    if isinstance(job, dict):
        return job.get(name, default)
    return getattr(job, name, default)


def as_datetime(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return parse_datetime(str(value))


def get_status_rank(status: str) -> int:
    try:
        return DISPLAY_STATUS_ORDER.index(status)
    except ValueError:
        return len(DISPLAY_STATUS_ORDER)


def get_flow_rank(status: str) -> Optional[int]:
    status = _FLOW_RANK_ALIASES.get(status, status)
    try:
        return STATUS_FLOW_ORDER.index(status)
    except ValueError:
        return None


def is_forward_status_transition(current: str, next_status: str) -> bool:
    current_rank = get_flow_rank(current)
    next_rank = get_flow_rank(next_status)
    if current_rank is None or next_rank is None:
        return False
    return next_rank >= current_rank


def calculate_percentage(pieces_completed: int, total_pieces: int) -> int:
    if total_pieces <= 0:
        return 0
    # arrondi "half up" (12.5 -> 13)
    percentage = math.floor(pieces_completed * 100 / total_pieces + 0.5)
    return max(0, min(100, percentage))


def should_hide_completed_job(job, now: Optional[datetime] = None) -> bool:
    if job_field(job, "status") != COMPLETED:
        return False
    updated_at = as_datetime(job_field(job, "updated_at"))
    if updated_at is None:
        return False
    now = now or timezone.now()
    # visibles une semaine sur le TV, puis sortis de la rotation
    return now - updated_at > timedelta(days=COMPLETED_VISIBILITY_DAYS)
