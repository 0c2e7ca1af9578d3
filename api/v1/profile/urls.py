"""
URL configuration for profile endpoints.
"""

from django.urls import path

from api.v1.profile import views

app_name = "profile"

urlpatterns = [
    path("profile", views.ProfileView.as_view(), name="profile"),
    path("profile/phase", views.ProgressSetupPhaseView.as_view(), name="progress-setup-phase"),
]
