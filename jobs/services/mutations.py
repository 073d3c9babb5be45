"""
Mutations serveur des jobs: valident les règles métier avant d'écrire en base.
Les échecs attendus sont retournés (MutationResult.error), jamais levés:
l'appelant affiche le message et garde son état précédent intact.
"""
from dataclasses import dataclass
import logging
from typing import Any, Optional

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from core.broadcast import publish_job_updated
from jobs.models import Job
from jobs.serializers.jobs_serializers import (
    JobCreateSerializer,
    JobEditSerializer,
    JobOutSerializer,
    ProgressUpdateSerializer,
    StatusUpdateSerializer,
)
from .lifecycle import is_forward_status_transition

logger = logging.getLogger(__name__)

CODE_VALIDATION = "VALIDATION_ERROR"
CODE_NOT_FOUND = "NOT_FOUND"
CODE_CONFLICT = "CONFLICT"
CODE_STORE = "STORE_ERROR"

# Champs texte optionnels: "" -> NULL
_NULLABLE_TEXT_FIELDS = ("title", "description", "eta_text", "notes", "shop_area", "machine")


@dataclass
class MutationResult:
    data: Optional[Any] = None
    error: Optional[str] = None
    code: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _fail(code: str, message: str) -> MutationResult:
    return MutationResult(error=message, code=code)


def _first_error(errors, fallback: str) -> str:
    """Premier message d'erreur d'un serializer DRF (dict/list imbriqués)."""
    if isinstance(errors, dict):
        for value in errors.values():
            return _first_error(value, fallback)
    if isinstance(errors, (list, tuple)):
        for value in errors:
            return _first_error(value, fallback)
    return str(errors) if errors else fallback


def _blank_to_none(value):
    if value is None:
        return None
    value = value.strip()
    return value or None


def _get_locked(job_id) -> Optional[Job]:
    try:
        return Job.objects.select_for_update().filter(pk=job_id).first()
    except (DjangoValidationError, ValueError):
        return None


def _notify_job_updated() -> None:
    transaction.on_commit(publish_job_updated)


def _row(job: Job) -> dict:
    return dict(JobOutSerializer(job).data)


def create_job(values) -> MutationResult:
    ser = JobCreateSerializer(data=values)
    if not ser.is_valid():
        return _fail(CODE_VALIDATION, _first_error(ser.errors, "Invalid job payload"))

    payload = dict(ser.validated_data)
    for field in _NULLABLE_TEXT_FIELDS:
        if field in payload:
            payload[field] = _blank_to_none(payload[field])
    if not payload.get("date_received"):
        payload["date_received"] = timezone.localdate()

    try:
        with transaction.atomic():
            job = Job.objects.create(**payload)
    except IntegrityError:
        if Job.objects.filter(job_number=payload["job_number"]).exists():
            logger.warning("Duplicate job number %s", payload["job_number"])
            return _fail(CODE_CONFLICT, "Job number must be unique")
        logger.exception("Failed to create job")
        return _fail(CODE_STORE, "Could not create job")
    except DatabaseError:
        logger.exception("Failed to create job")
        return _fail(CODE_STORE, "Could not create job")

    logger.info("Job created: %s", job.job_number)
    _notify_job_updated()
    return MutationResult(data=_row(job))


def update_status(job_id, next_status) -> MutationResult:
    ser = StatusUpdateSerializer(data={"status": next_status})
    if not ser.is_valid():
        return _fail(CODE_VALIDATION, _first_error(ser.errors, "Invalid status"))
    next_status = ser.validated_data["status"]

    try:
        with transaction.atomic():
            job = _get_locked(job_id)
            if job is None:
                logger.warning("Status update on missing job %s", job_id)
                return _fail(CODE_NOT_FOUND, "Job not found")

            if not is_forward_status_transition(job.status, next_status):
                return _fail(
                    CODE_VALIDATION,
                    f"Status cannot move backward from {job.status} to {next_status}",
                )

            job.status = next_status
            job.save(update_fields=["status", "updated_at"])
    except DatabaseError:
        logger.exception("Failed to update job status")
        return _fail(CODE_STORE, "Could not update status")

    _notify_job_updated()
    return MutationResult(data=_row(job))


def update_progress(job_id, pieces_completed, total_pieces) -> MutationResult:
    ser = ProgressUpdateSerializer(data={"pieces_completed": pieces_completed, "total_pieces": total_pieces})
    if not ser.is_valid():
        return _fail(CODE_VALIDATION, _first_error(ser.errors, "Invalid progress update"))
    data = ser.validated_data

    try:
        with transaction.atomic():
            job = _get_locked(job_id)
            if job is None:
                logger.warning("Progress update on missing job %s", job_id)
                return _fail(CODE_NOT_FOUND, "Job not found")

            # Progression monotone: jamais de diminution des pièces terminées
            if data["pieces_completed"] < job.pieces_completed:
                return _fail(CODE_VALIDATION, "Completed pieces cannot decrease")

            job.pieces_completed = data["pieces_completed"]
            job.total_pieces = data["total_pieces"]
            job.save(update_fields=["pieces_completed", "total_pieces", "updated_at"])
    except DatabaseError:
        logger.exception("Failed to update job progress")
        return _fail(CODE_STORE, "Could not update progress")

    _notify_job_updated()
    return MutationResult(data=_row(job))


def update_details(job_id, values) -> MutationResult:
    ser = JobEditSerializer(data=values if values is not None else {})
    if not ser.is_valid():
        return _fail(CODE_VALIDATION, _first_error(ser.errors, "Invalid job update"))
    data = ser.validated_data

    try:
        with transaction.atomic():
            job = _get_locked(job_id)
            if job is None:
                logger.warning("Edit on missing job %s", job_id)
                return _fail(CODE_NOT_FOUND, "Job not found")

            updates = {}

            if "status" in data:
                if not is_forward_status_transition(job.status, data["status"]):
                    return _fail(
                        CODE_VALIDATION,
                        f"Status cannot move backward from {job.status} to {data['status']}",
                    )
                updates["status"] = data["status"]

            if "pieces_completed" in data:
                if data["pieces_completed"] < job.pieces_completed:
                    return _fail(CODE_VALIDATION, "Completed pieces cannot decrease")
                if data["pieces_completed"] > job.total_pieces:
                    return _fail(CODE_VALIDATION, "Pieces completed cannot exceed total pieces")
                updates["pieces_completed"] = data["pieces_completed"]

            for field in ("eta_text", "title", "description", "notes"):
                if field in data:
                    updates[field] = _blank_to_none(data[field])

            if not updates:
                return _fail(CODE_VALIDATION, "No changes to save")

            for field, value in updates.items():
                setattr(job, field, value)
            job.save(update_fields=[*updates.keys(), "updated_at"])
    except DatabaseError:
        logger.exception("Failed to update job details")
        return _fail(CODE_STORE, "Could not update job")

    _notify_job_updated()
    return MutationResult(data=_row(job))


def delete_job(job_id) -> MutationResult:
    """Suppression idempotente: un id absent n'est pas une erreur."""
    try:
        with transaction.atomic():
            deleted, _ = Job.objects.filter(pk=job_id).delete()
    except (DjangoValidationError, ValueError):
        return MutationResult(data={"id": str(job_id)})
    except DatabaseError:
        logger.exception("Failed to delete job")
        return _fail(CODE_STORE, "Could not delete job")

    if deleted:
        _notify_job_updated()
    return MutationResult(data={"id": str(job_id)})
