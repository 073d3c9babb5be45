"""
Pipeline de présentation: fonctions pures (pas d'I/O, pas d'état) sur une liste de jobs.
Fonctionne sur des instances Job comme sur des lignes JSON (dict).

Composition TV:
    cap_and_paginate(sort_for_display(hide_stale_completed(jobs, now)), page_size, page_index)
"""
from datetime import datetime
import math
from typing import Iterable, List, Optional

from .lifecycle import (
    COMPLETED,
    as_datetime,
    get_status_rank,
    job_field,
    should_hide_completed_job,
)

# Rotation TV limitée aux 50 jobs les plus pertinents
MAX_JOBS_SHOWN = 50

FILTER_ACTIVE = "active"
FILTER_ALL = "all"
FILTER_COMPLETED = "completed"
FILTER_MODES = (FILTER_ACTIVE, FILTER_ALL, FILTER_COMPLETED)

SORT_STATUS = "status"
SORT_RECENT = "recent"
SORT_PRIORITY = "priority"
SORT_MODES = (SORT_STATUS, SORT_RECENT, SORT_PRIORITY)

PRIORITY_ORDER = ["HIGH", "MEDIUM", "LOW"]


def _updated_ts(job) -> float:
    updated_at = as_datetime(job_field(job, "updated_at"))
    return updated_at.timestamp() if updated_at else 0.0


def _priority_rank(job) -> int:
    try:
        return PRIORITY_ORDER.index(job_field(job, "priority"))
    except ValueError:
        return len(PRIORITY_ORDER)


def hide_stale_completed(jobs: Iterable, now: Optional[datetime] = None) -> List:
    return [job for job in jobs if not should_hide_completed_job(job, now)]


def sort_by_recency(jobs: Iterable) -> List:
    return sorted(jobs, key=lambda job: -_updated_ts(job))


def sort_for_display(jobs: Iterable) -> List:
    # sorted() est stable: à rang et updated_at égaux, l'ordre d'entrée est conservé
    return sorted(jobs, key=lambda job: (get_status_rank(job_field(job, "status")), -_updated_ts(job)))


def sort_by_priority(jobs: Iterable) -> List:
    return sorted(jobs, key=lambda job: (_priority_rank(job), -_updated_ts(job)))


def sort_jobs(jobs: Iterable, mode: str = SORT_STATUS) -> List:
    if mode == SORT_RECENT:
        return sort_by_recency(jobs)
    if mode == SORT_PRIORITY:
        return sort_by_priority(jobs)
    return sort_for_display(jobs)


def filter_by_bucket(jobs: Iterable, mode: str = FILTER_ALL) -> List:
    if mode == FILTER_ACTIVE:
        return [job for job in jobs if job_field(job, "status") != COMPLETED]
    if mode == FILTER_COMPLETED:
        return [job for job in jobs if job_field(job, "status") == COMPLETED]
    return list(jobs)


def cap_and_paginate(jobs: List, page_size: int, page_index: int) -> List:
    capped = list(jobs)[:MAX_JOBS_SHOWN]
    start = page_index * page_size
    return capped[start:start + page_size]


def page_count(total: int, page_size: int) -> int:
    if page_size <= 0:
        return 1
    return max(1, math.ceil(min(total, MAX_JOBS_SHOWN) / page_size))


def prepare_jobs_for_display(jobs: Iterable, now: Optional[datetime] = None) -> List:
    return sort_for_display(hide_stale_completed(jobs, now))[:MAX_JOBS_SHOWN]


def select_jobs(jobs: Iterable, now: Optional[datetime] = None,
                filter_mode: str = FILTER_ALL, sort_mode: str = SORT_STATUS) -> List:
    """Même forme que la composition TV, prédicat et comparateur interchangeables."""
    visible = hide_stale_completed(jobs, now)
    return sort_jobs(filter_by_bucket(visible, filter_mode), sort_mode)[:MAX_JOBS_SHOWN]
