from django.urls import path

from jobs.views import JobChangeFeedView, TvJobsView

urlpatterns = [
    path("jobs/changes/", JobChangeFeedView.as_view(), name="jobs-changes"),
    path("tv/jobs/", TvJobsView.as_view(), name="tv-jobs"),
]
