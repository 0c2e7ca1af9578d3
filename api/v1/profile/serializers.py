"""
Serializers for profile API endpoints.
"""

from rest_framework import serializers

from core.domain.value_objects import SetupPhase


class ProgressSetupPhaseRequestSerializer(serializers.Serializer):
    """Serializer for progress setup phase request."""

    targetPhase = serializers.ChoiceField(choices=[phase.value for phase in SetupPhase])


class UpdateProfileRequestSerializer(serializers.Serializer):
    """Serializer for profile settings update."""

    notificationEnabled = serializers.BooleanField()


class UserProfileDTOSerializer(serializers.Serializer):
    """Serializer for UserProfileDTO."""

    user_id = serializers.CharField()
    setup_phase = serializers.CharField()
    notification_enabled = serializers.BooleanField()
    created_at = serializers.DateTimeField()
    updated_at = serializers.DateTimeField()
    test_results = serializers.DictField(allow_null=True)
