from rest_framework import serializers

from jobs.models import JOB_NUMBER_PATTERN, PART_NUMBER_PATTERN, Job, JobChange
from jobs.services.lifecycle import ALL_STATUSES, RECEIVED
from jobs.services.presentation import PRIORITY_ORDER


class JobOutSerializer(serializers.ModelSerializer):
    progress_percentage = serializers.IntegerField(read_only=True)

    class Meta:
        model = Job
        fields = (
            "id", "job_number", "part_number", "title", "description", "notes",
            "total_pieces", "pieces_completed", "progress_percentage",
            "status", "eta_text", "priority", "shop_area", "machine",
            "date_received", "created_at", "updated_at",
        )
        read_only_fields = fields


class JobCreateSerializer(serializers.Serializer):
    job_number = serializers.RegexField(
        JOB_NUMBER_PATTERN, max_length=32,
        error_messages={"invalid": "Job number must use the V-### format"},
    )
    part_number = serializers.RegexField(
        PART_NUMBER_PATTERN, max_length=100,
        error_messages={"invalid": "Part number must start with P-"},
    )
    title = serializers.CharField(max_length=200, required=False, allow_null=True, allow_blank=True)
    description = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    total_pieces = serializers.IntegerField(
        min_value=1, error_messages={"min_value": "Total pieces must be at least 1"},
    )
    pieces_completed = serializers.IntegerField(
        min_value=0, default=0, error_messages={"min_value": "Pieces completed cannot be negative"},
    )
    status = serializers.ChoiceField(choices=ALL_STATUSES, default=RECEIVED)
    eta_text = serializers.CharField(
        max_length=50, required=False, allow_null=True, allow_blank=True,
        error_messages={"max_length": "ETA must be 50 characters or fewer"},
    )
    date_received = serializers.DateField(required=False, allow_null=True)
    priority = serializers.ChoiceField(choices=PRIORITY_ORDER, required=False, allow_null=True)
    shop_area = serializers.CharField(max_length=100, required=False, allow_null=True, allow_blank=True)
    machine = serializers.CharField(max_length=100, required=False, allow_null=True, allow_blank=True)
    notes = serializers.CharField(
        max_length=500, required=False, allow_null=True, allow_blank=True,
        error_messages={"max_length": "Notes are limited to 500 characters"},
    )

    def validate(self, attrs):
        if attrs.get("pieces_completed", 0) > attrs["total_pieces"]:
            raise serializers.ValidationError(
                {"pieces_completed": "Pieces completed must be less than or equal to total pieces"}
            )
        return attrs


class ProgressUpdateSerializer(serializers.Serializer):
    pieces_completed = serializers.IntegerField(min_value=0)
    total_pieces = serializers.IntegerField(min_value=1)

    def validate(self, attrs):
        if attrs["pieces_completed"] > attrs["total_pieces"]:
            raise serializers.ValidationError(
                {"pieces_completed": "Pieces completed cannot exceed total pieces"}
            )
        return attrs


class StatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ALL_STATUSES)


class JobEditSerializer(serializers.Serializer):
    """Édition partielle (modal admin): seuls les champs présents sont appliqués."""
    status = serializers.ChoiceField(choices=ALL_STATUSES, required=False)
    pieces_completed = serializers.IntegerField(min_value=0, required=False)
    eta_text = serializers.CharField(
        max_length=50, required=False, allow_null=True, allow_blank=True,
        error_messages={"max_length": "ETA must be 50 characters or fewer"},
    )
    title = serializers.CharField(max_length=200, required=False, allow_null=True, allow_blank=True)
    description = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    notes = serializers.CharField(
        max_length=500, required=False, allow_null=True, allow_blank=True,
        error_messages={"max_length": "Notes are limited to 500 characters"},
    )


class JobChangeOutSerializer(serializers.ModelSerializer):
    eventType = serializers.CharField(source="event_type", read_only=True)
    new = serializers.JSONField(source="new_row", read_only=True)
    old = serializers.JSONField(source="old_row", read_only=True)
    commit_timestamp = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = JobChange
        fields = ("id", "eventType", "new", "old", "commit_timestamp")
        read_only_fields = fields
