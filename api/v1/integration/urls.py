"""
URL configuration for integration test endpoints.
"""

from django.urls import path

from api.v1.integration import views

app_name = "integration"

urlpatterns = [
    path(
        "integration/tests",
        views.StartIntegrationTestView.as_view(),
        name="start-integration-test",
    ),
    path(
        "integration/tests/status",
        views.IntegrationTestStatusView.as_view(),
        name="integration-test-status",
    ),
]
