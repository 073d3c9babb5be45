import django_filters

from .models import Job
from .services.lifecycle import COMPLETED
from .services.presentation import FILTER_ACTIVE, FILTER_ALL, FILTER_COMPLETED


class JobFilter(django_filters.FilterSet):
    bucket = django_filters.ChoiceFilter(
        method="filter_bucket",
        choices=[(FILTER_ACTIVE, "Active"), (FILTER_ALL, "All"), (FILTER_COMPLETED, "Completed")],
    )

    class Meta:
        model = Job
        fields = ["status", "priority", "shop_area", "machine"]

    def filter_bucket(self, queryset, name, value):
        if value == FILTER_ACTIVE:
            return queryset.exclude(status=COMPLETED)
        if value == FILTER_COMPLETED:
            return queryset.filter(status=COMPLETED)
        return queryset
