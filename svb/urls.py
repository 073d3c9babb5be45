from django.contrib import admin
from django.http import JsonResponse
from django.urls import include, path, re_path
from django.utils import timezone
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView, SpectacularSwaggerView
from rest_framework.permissions import AllowAny

from .routers import router as api_router
from .settings.base import API_PREFIX, API_VERSION, HEALTH_INFO


def health_view(_request):
    return JsonResponse({"status": "ok", "time": timezone.now().isoformat(), **HEALTH_INFO()})


urlpatterns = [
    path("health/", health_view, name="health"),
    path("admin/", admin.site.urls),

    # OpenAPI
    path(f"{API_PREFIX}/{API_VERSION}/schema/", SpectacularAPIView.as_view(), name="schema"),
    path(
        f"{API_PREFIX}/{API_VERSION}/docs/",
        SpectacularSwaggerView.as_view(
            url_name="schema",
            permission_classes=[AllowAny],
            authentication_classes=[],
        ),
        name="swagger-ui",
    ),
    path(
        f"{API_PREFIX}/{API_VERSION}/redoc/",
        SpectacularRedocView.as_view(
            url_name="schema",
            permission_classes=[AllowAny],
            authentication_classes=[],
        ),
        name="redoc",
    ),

    path(f"{API_PREFIX}/{API_VERSION}/", include("jobs.urls")),
    path(f"{API_PREFIX}/{API_VERSION}/auth/", include("core.urls")),
    path(f"{API_PREFIX}/{API_VERSION}/", include(api_router.urls)),
]


urlpatterns += [
    re_path(
        r"^$",
        SpectacularSwaggerView.as_view(
            url_name="schema",
            permission_classes=[AllowAny],
            authentication_classes=[],
        ),
    ),
]
