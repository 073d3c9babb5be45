"""
Board admin: liste locale des jobs + mises à jour optimistes en deux phases.

    begin()    -> applique localement, garde la valeur précédente, marque la ligne "pending"
    confirm()  -> remplace par la ligne renvoyée par le serveur
    rollback() -> restaure la valeur précédente et mémorise l'erreur

Une ligne non confirmée reste toujours distinguable (is_pending / champ "pending").
"""
from dataclasses import dataclass
import logging
from typing import Dict, List, Optional

from jobs.services.lifecycle import COMPLETED, calculate_percentage
from jobs.services.mutations import CODE_NOT_FOUND, CODE_VALIDATION, MutationResult
from jobs.services.presentation import (
    FILTER_ALL,
    SORT_RECENT,
    cap_and_paginate,
    filter_by_bucket,
    sort_jobs,
)

from .admin_api import BaseAdminApi

logger = logging.getLogger(__name__)

PIECES_NOT_INTEGER = "Pieces must be whole numbers"


@dataclass
class PendingUpdate:
    job_id: str
    prior: Optional[dict]
    changes: Optional[dict]  # None = suppression


class AdminBoard:
    def __init__(self, api: BaseAdminApi, *, auto_complete: bool = True) -> None:
        self.api = api
        self.auto_complete = auto_complete
        self.rows: Dict[str, dict] = {}
        self.pending: Dict[str, PendingUpdate] = {}
        self.errors: Dict[str, str] = {}
        self.last_error: Optional[str] = None

    def load(self) -> bool:
        result = self.api.list_jobs()
        if result.error:
            self.last_error = result.error
            return False
        self.rows = {str(row["id"]): dict(row) for row in result.jobs}
        self.pending.clear()
        self.last_error = None
        return True

    # ------------------------------------------------------------------
    # deux phases
    # ------------------------------------------------------------------
    def begin(self, job_id: str, changes: Optional[dict]) -> PendingUpdate:
        job_id = str(job_id)
        if job_id in self.pending:
            raise ValueError(f"Update already pending for job {job_id}")
        prior = self.rows.get(job_id)
        if prior is None:
            raise KeyError(job_id)

        row = None
        if changes is not None:
            row = {**prior, **changes}
            row["progress_percentage"] = calculate_percentage(row["pieces_completed"], row["total_pieces"])

        update = PendingUpdate(job_id=job_id, prior=dict(prior), changes=changes)
        self.pending[job_id] = update
        self.errors.pop(job_id, None)
        if row is None:
            del self.rows[job_id]
        else:
            self.rows[job_id] = row
        return update

    def confirm(self, job_id: str, row: Optional[dict]) -> None:
        job_id = str(job_id)
        self.pending.pop(job_id, None)
        self.errors.pop(job_id, None)
        if row is not None:
            self.rows[job_id] = dict(row)

    def rollback(self, job_id: str, error: str) -> None:
        job_id = str(job_id)
        update = self.pending.pop(job_id, None)
        if update is not None and update.prior is not None:
            self.rows[job_id] = update.prior
        self.errors[job_id] = error
        logger.info("Rolled back optimistic update on %s: %s", job_id, error)

    def is_pending(self, job_id: str) -> bool:
        return str(job_id) in self.pending

    # ------------------------------------------------------------------
    # opérations
    # ------------------------------------------------------------------
    def create(self, values: dict) -> MutationResult:
        result = self.api.create_job(values)
        if result.ok:
            self.rows[str(result.data["id"])] = dict(result.data)
        else:
            self.last_error = result.error
        return result

    def update_status(self, job_id: str, status: str) -> MutationResult:
        if str(job_id) not in self.rows:
            return MutationResult(error="Job not found", code=CODE_NOT_FOUND)
        self.begin(job_id, {"status": status})
        return self._settle(job_id, self._send(job_id, self.api.update_status, job_id, status))

    def update_progress(self, job_id: str, pieces_completed, total_pieces) -> MutationResult:
        current = self.rows.get(str(job_id))
        if current is None:
            return MutationResult(error="Job not found", code=CODE_NOT_FOUND)
        pieces_completed, total_pieces = _as_int(pieces_completed), _as_int(total_pieces)
        if pieces_completed is None or total_pieces is None:
            return MutationResult(error=PIECES_NOT_INTEGER, code=CODE_VALIDATION)
        if pieces_completed < current["pieces_completed"]:
            return MutationResult(error="Completed pieces cannot decrease", code=CODE_VALIDATION)
        if pieces_completed > total_pieces:
            return MutationResult(error="Pieces completed cannot exceed total pieces", code=CODE_VALIDATION)

        changes = {"pieces_completed": pieces_completed, "total_pieces": total_pieces}
        # 100 % atteint: passage automatique en COMPLETED (appel status séparé)
        complete = self.auto_complete and pieces_completed == total_pieces and current["status"] != COMPLETED
        if complete:
            changes["status"] = COMPLETED

        self.begin(job_id, changes)
        result = self._send(job_id, self.api.update_progress, job_id, pieces_completed, total_pieces)
        if not result.ok or not complete:
            return self._settle(job_id, result)

        status_result = self._send(job_id, self.api.update_status, job_id, COMPLETED)
        if not status_result.ok:
            # la progression est enregistrée côté serveur, seul le statut a échoué
            self.confirm(job_id, result.data)
            self.errors[str(job_id)] = status_result.error
            return status_result
        return self._settle(job_id, status_result)

    def update_details(self, job_id: str, values: dict) -> MutationResult:
        if str(job_id) not in self.rows:
            return MutationResult(error="Job not found", code=CODE_NOT_FOUND)
        values = dict(values)
        for field in ("pieces_completed", "total_pieces"):
            if field in values:
                values[field] = _as_int(values[field])
                if values[field] is None:
                    return MutationResult(error=PIECES_NOT_INTEGER, code=CODE_VALIDATION)
        self.begin(job_id, values)
        return self._settle(job_id, self._send(job_id, self.api.update_details, job_id, values))

    def delete(self, job_id: str) -> MutationResult:
        if str(job_id) not in self.rows:
            return self.api.delete_job(job_id)
        self.begin(job_id, None)
        return self._settle(job_id, self._send(job_id, self.api.delete_job, job_id))

    # ------------------------------------------------------------------
    # affichage
    # ------------------------------------------------------------------
    def view_rows(self, *, filter_mode: str = FILTER_ALL, sort_mode: str = SORT_RECENT,
                  page_size: Optional[int] = None, page_index: int = 0) -> List[dict]:
        """Liste admin: pas de masquage des COMPLETED anciens (contrairement au TV)."""
        rows = sort_jobs(filter_by_bucket(self.rows.values(), filter_mode), sort_mode)
        if page_size:
            rows = cap_and_paginate(rows, page_size, page_index)
        return [
            {**row, "pending": self.is_pending(row["id"]), "error": self.errors.get(str(row["id"]))}
            for row in rows
        ]

    def _settle(self, job_id: str, result: MutationResult) -> MutationResult:
        if result.ok:
            self.confirm(job_id, result.data)
        else:
            self.rollback(job_id, result.error)
        return result

    def _send(self, job_id: str, call, *args) -> MutationResult:
        """Appel API pendant qu'une mise à jour est en vol: toute exception annule l'état optimiste."""
        try:
            return call(*args)
        except Exception:
            self.rollback(job_id, "Unexpected error while saving")
            raise


def _as_int(value) -> Optional[int]:
    """Valeurs de formulaire ("7") acceptées comme le fait le serveur; bool et décimaux refusés."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None
