"""
URL configuration for application and license endpoints.
"""

from django.urls import path

from api.v1.applications import views

app_name = "applications"

urlpatterns = [
    path("applications", views.ListApplicationsView.as_view(), name="list-applications"),
    path(
        "applications/approve",
        views.ApproveApplicationView.as_view(),
        name="approve-application",
    ),
    path(
        "applications/reject",
        views.RejectApplicationView.as_view(),
        name="reject-application",
    ),
    path(
        "applications/cancel",
        views.CancelApplicationView.as_view(),
        name="cancel-application",
    ),
    path(
        "applications/revoke",
        views.RevokeApplicationView.as_view(),
        name="revoke-application",
    ),
    path(
        "applications/retry-notification",
        views.RetryNotificationView.as_view(),
        name="retry-notification",
    ),
    path("applications/failures", views.FailureStatusView.as_view(), name="failure-status"),
    path(
        "applications/histories",
        views.ApplicationHistoriesView.as_view(),
        name="application-histories",
    ),
    path("licenses/decrypt", views.DecryptLicenseView.as_view(), name="decrypt-license"),
]
