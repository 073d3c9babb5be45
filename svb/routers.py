from rest_framework.routers import DefaultRouter

from jobs.views import JobAdminViewSet, JobViewSet

router = DefaultRouter()

# Lecture publique (écran TV)
router.register(r"jobs", JobViewSet, basename="jobs")

# Admin (cookie admin_session)
router.register(r"admin/jobs", JobAdminViewSet, basename="admin-jobs")
