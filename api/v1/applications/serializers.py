"""
Serializers for application API endpoints.
"""

from rest_framework import serializers

from core.domain.value_objects import ApplicationStatus


class ApproveApplicationRequestSerializer(serializers.Serializer):
    """Serializer for approve application request."""

    userId = serializers.CharField(required=False, max_length=200)
    applicationId = serializers.CharField(max_length=500)
    eaName = serializers.CharField(max_length=200)
    accountId = serializers.CharField(max_length=100)
    email = serializers.EmailField()
    broker = serializers.CharField(max_length=100)
    expiry = serializers.DateTimeField()


class ApplicationActionRequestSerializer(serializers.Serializer):
    """Serializer for reject/cancel requests."""

    applicationId = serializers.CharField(max_length=500)
    reason = serializers.CharField(required=False, allow_blank=True, max_length=500)


class RevokeApplicationRequestSerializer(ApplicationActionRequestSerializer):
    """Serializer for revoke application request."""


class RetryNotificationRequestSerializer(ApplicationActionRequestSerializer):
    """Serializer for retry notification request."""

    force = serializers.BooleanField(required=False, default=False)


class ListApplicationsQuerySerializer(serializers.Serializer):
    """Query parameters of the application list."""

    status = serializers.ChoiceField(
        choices=[status.value for status in ApplicationStatus], required=False
    )


class ApplicationDTOSerializer(serializers.Serializer):
    """Serializer for ApplicationDTO."""

    application_id = serializers.CharField()
    user_id = serializers.CharField()
    sk = serializers.CharField()
    ea_name = serializers.CharField()
    account_number = serializers.CharField()
    broker = serializers.CharField()
    email = serializers.CharField()
    x_account = serializers.CharField(allow_blank=True)
    status = serializers.CharField()
    applied_at = serializers.DateTimeField()
    updated_at = serializers.DateTimeField()
    notification_scheduled_at = serializers.DateTimeField(allow_null=True)
    expiry_date = serializers.DateTimeField(allow_null=True)
    license_key = serializers.CharField(allow_null=True)
    integration_test_id = serializers.CharField(allow_null=True)
    delivery_failure_count = serializers.IntegerField()
    last_delivery_error = serializers.CharField(allow_null=True)
    last_delivery_failed_at = serializers.DateTimeField(allow_null=True)


class ApplicationHistoryDTOSerializer(serializers.Serializer):
    """Serializer for ApplicationHistoryDTO."""

    sk = serializers.CharField()
    application_sk = serializers.CharField()
    action = serializers.CharField()
    changed_by = serializers.CharField()
    changed_at = serializers.DateTimeField()
    previous_status = serializers.CharField(allow_null=True)
    new_status = serializers.CharField()
    reason = serializers.CharField(allow_null=True)


class FailedNotificationDTOSerializer(serializers.Serializer):
    """Serializer for FailedNotificationDTO."""

    id = serializers.CharField()
    eaName = serializers.CharField(source="ea_name")
    email = serializers.CharField()
    failureCount = serializers.IntegerField(source="failure_count")
    lastFailedAt = serializers.DateTimeField(source="last_failed_at")
    lastError = serializers.CharField(source="last_error", allow_null=True)
    isRetryable = serializers.BooleanField(source="is_retryable")
    status = serializers.CharField()


class FailureSummarySerializer(serializers.Serializer):
    """Summary counts of a failure status."""

    totalFailures = serializers.IntegerField(source="total_failures")
    retryableFailures = serializers.IntegerField(source="retryable_failures")
    maxRetryExceeded = serializers.IntegerField(source="max_retry_exceeded")
    recentFailures = serializers.IntegerField(source="recent_failures")
    maxRetryCount = serializers.IntegerField(source="max_retry_count")


class FailureStatusDTOSerializer(serializers.Serializer):
    """Serializer for FailureStatusDTO."""

    summary = FailureSummarySerializer(source="*")
    applications = FailedNotificationDTOSerializer(many=True)


class DecryptLicenseRequestSerializer(serializers.Serializer):
    """Serializer for decrypt license request."""

    licenseKey = serializers.CharField()
