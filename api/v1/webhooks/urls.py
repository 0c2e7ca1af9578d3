"""
URL configuration for inbound webhook endpoints.
"""

from django.urls import path

from api.v1.webhooks import views

app_name = "webhooks"

urlpatterns = [
    path("webhooks/events", views.WebhookEventView.as_view(), name="webhook-events"),
]
