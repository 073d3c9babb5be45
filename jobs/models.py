import uuid

from django.core.validators import MaxLengthValidator, MinValueValidator, RegexValidator
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

JOB_NUMBER_PATTERN = r"^V-\d+$"
PART_NUMBER_PATTERN = r"^P-.+$"


def _today():
    return timezone.localdate()


class Job(models.Model):
    """
    Job d'atelier suivi sur l'écran TV.
    - job_number: "V-<digits>", unique (numéro de commande)
    - part_number: "P-<...>"
    - pieces_completed <= total_pieces (contrainte DB) ; jamais décroissant (services/mutations)
    - status: RECEIVED -> QUOTED -> IN_PROGRESS (<-> PAUSED) -> COMPLETED
    - updated_at: rafraîchi à chaque save (utilisé pour le tri et la purge TV des COMPLETED)
    """
    STATUS_RECEIVED = "RECEIVED"
    STATUS_QUOTED = "QUOTED"
    STATUS_IN_PROGRESS = "IN_PROGRESS"
    STATUS_PAUSED = "PAUSED"
    STATUS_COMPLETED = "COMPLETED"
    STATUS_CHOICES = [
        (STATUS_RECEIVED, "Received"),
        (STATUS_QUOTED, "Quoted"),
        (STATUS_IN_PROGRESS, "In progress"),
        (STATUS_PAUSED, "Paused"),
        (STATUS_COMPLETED, "Completed"),
    ]

    PRIORITY_HIGH = "HIGH"
    PRIORITY_MEDIUM = "MEDIUM"
    PRIORITY_LOW = "LOW"
    PRIORITY_CHOICES = [
        (PRIORITY_HIGH, "High"),
        (PRIORITY_MEDIUM, "Medium"),
        (PRIORITY_LOW, "Low"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    job_number = models.CharField(
        max_length=32, unique=True,
        validators=[RegexValidator(JOB_NUMBER_PATTERN, "Job number must use the V-### format")],
    )
    part_number = models.CharField(
        max_length=100,
        validators=[RegexValidator(PART_NUMBER_PATTERN, "Part number must start with P-")],
    )
    title = models.CharField(max_length=200, null=True, blank=True)
    description = models.TextField(null=True, blank=True)
    notes = models.TextField(null=True, blank=True, validators=[MaxLengthValidator(500)])

    total_pieces = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    pieces_completed = models.PositiveIntegerField(default=0)

    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_RECEIVED, db_index=True)
    eta_text = models.CharField(max_length=50, null=True, blank=True)
    priority = models.CharField(max_length=8, choices=PRIORITY_CHOICES, null=True, blank=True)
    shop_area = models.CharField(max_length=100, null=True, blank=True)
    machine = models.CharField(max_length=100, null=True, blank=True)

    date_received = models.DateField(default=_today)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True, db_index=True)

    class Meta:
        db_table = "jobs"
        ordering = ["-updated_at"]
        constraints = [
            models.CheckConstraint(condition=Q(total_pieces__gte=1), name="jobs_total_pieces_gte_1"),
            models.CheckConstraint(
                condition=Q(pieces_completed__lte=F("total_pieces")),
                name="jobs_completed_lte_total",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.job_number}({self.status})"

    @property
    def progress_percentage(self) -> int:
        from .services.lifecycle import calculate_percentage
        return calculate_percentage(self.pieces_completed, self.total_pieces)


class JobChange(models.Model):
    """
    Journal du change feed (append-only), alimenté par signals.py.
    - id: curseur monotone consommé par les abonnés (?after=<id>)
    - event_type: INSERT | UPDATE | DELETE
    - new_row: ligne complète après INSERT/UPDATE (null pour DELETE)
    - old_row: {"id": ...} pour DELETE
    """
    EVENT_INSERT = "INSERT"
    EVENT_UPDATE = "UPDATE"
    EVENT_DELETE = "DELETE"
    EVENT_CHOICES = [
        (EVENT_INSERT, "Insert"),
        (EVENT_UPDATE, "Update"),
        (EVENT_DELETE, "Delete"),
    ]

    event_type = models.CharField(max_length=8, choices=EVENT_CHOICES)
    job_id = models.UUIDField(db_index=True)
    new_row = models.JSONField(null=True, blank=True)
    old_row = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        db_table = "jobs_changes"
        ordering = ["id"]

    def __str__(self) -> str:
        return f"JobChange#{self.id}({self.event_type} {self.job_id})"
