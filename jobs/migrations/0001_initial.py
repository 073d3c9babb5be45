import uuid

import django.core.validators
from django.db import migrations, models

import jobs.models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Job",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "job_number",
                    models.CharField(
                        max_length=32,
                        unique=True,
                        validators=[
                            django.core.validators.RegexValidator(
                                "^V-\\d+$", "Job number must use the V-### format"
                            )
                        ],
                    ),
                ),
                (
                    "part_number",
                    models.CharField(
                        max_length=100,
                        validators=[
                            django.core.validators.RegexValidator(
                                "^P-.+$", "Part number must start with P-"
                            )
                        ],
                    ),
                ),
                ("title", models.CharField(blank=True, max_length=200, null=True)),
                ("description", models.TextField(blank=True, null=True)),
                (
                    "notes",
                    models.TextField(
                        blank=True, null=True, validators=[django.core.validators.MaxLengthValidator(500)]
                    ),
                ),
                (
                    "total_pieces",
                    models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)]),
                ),
                ("pieces_completed", models.PositiveIntegerField(default=0)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("RECEIVED", "Received"),
                            ("QUOTED", "Quoted"),
                            ("IN_PROGRESS", "In progress"),
                            ("PAUSED", "Paused"),
                            ("COMPLETED", "Completed"),
                        ],
                        db_index=True,
                        default="RECEIVED",
                        max_length=16,
                    ),
                ),
                ("eta_text", models.CharField(blank=True, max_length=50, null=True)),
                (
                    "priority",
                    models.CharField(
                        blank=True,
                        choices=[("HIGH", "High"), ("MEDIUM", "Medium"), ("LOW", "Low")],
                        max_length=8,
                        null=True,
                    ),
                ),
                ("shop_area", models.CharField(blank=True, max_length=100, null=True)),
                ("machine", models.CharField(blank=True, max_length=100, null=True)),
                ("date_received", models.DateField(default=jobs.models._today)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True, db_index=True)),
            ],
            options={
                "db_table": "jobs",
                "ordering": ["-updated_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("total_pieces__gte", 1)),
                        name="jobs_total_pieces_gte_1",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("pieces_completed__lte", models.F("total_pieces"))),
                        name="jobs_completed_lte_total",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="JobChange",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "event_type",
                    models.CharField(
                        choices=[("INSERT", "Insert"), ("UPDATE", "Update"), ("DELETE", "Delete")],
                        max_length=8,
                    ),
                ),
                ("job_id", models.UUIDField(db_index=True)),
                ("new_row", models.JSONField(blank=True, null=True)),
                ("old_row", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
            ],
            options={
                "db_table": "jobs_changes",
                "ordering": ["id"],
            },
        ),
    ]
