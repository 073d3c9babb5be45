from django.contrib import admin
from .models import Job, JobChange


@admin.register(Job)
class JobAdmin(admin.ModelAdmin):
    list_display = ("job_number", "part_number", "status", "pieces_completed", "total_pieces", "priority", "eta_text", "updated_at")
    list_filter = ("status", "priority", "shop_area")
    search_fields = ("job_number", "part_number", "title", "machine")
    readonly_fields = ("id", "created_at", "updated_at")


@admin.register(JobChange)
class JobChangeAdmin(admin.ModelAdmin):
    list_display = ("id", "event_type", "job_id", "created_at")
    list_filter = ("event_type",)
    search_fields = ("job_id",)
    readonly_fields = ("event_type", "job_id", "new_row", "old_row", "created_at")
