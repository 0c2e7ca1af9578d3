"""
Serializers for integration test API endpoints.
"""

from rest_framework import serializers


class StartIntegrationTestRequestSerializer(serializers.Serializer):
    """Serializer for start integration test request."""

    gasWebappUrl = serializers.URLField(max_length=2000)


class StartIntegrationTestResponseSerializer(serializers.Serializer):
    """Serializer for StartIntegrationTestDTO."""

    test_id = serializers.CharField()
    status = serializers.CharField()
    next_step = serializers.CharField(allow_null=True)
    estimated_duration_seconds = serializers.IntegerField()
    error = serializers.CharField(allow_null=True)


class IntegrationTestStatusSerializer(serializers.Serializer):
    """Serializer for IntegrationTestStatusDTO."""

    active = serializers.BooleanField()
    test = serializers.DictField(allow_null=True)
    can_retry = serializers.BooleanField()
    next_step = serializers.CharField(allow_null=True)
    progress = serializers.IntegerField()
    duration_ms = serializers.IntegerField(allow_null=True)
