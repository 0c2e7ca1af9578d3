"""
Serializers for inbound webhook payloads.

Every payload carries an ``action`` tag that selects the serializer for
the rest of the body.
"""
from rest_framework import serializers

from core.domain.value_objects import IntegrationTestStep

FORM_SUBMISSION = "form_submission"
INTEGRATION_TEST_STEP = "integration_test_step"
GAS_CONNECTION_TEST = "gas_connection_test"


class FormFieldsSerializer(serializers.Serializer):
    """Fields of a submitted application form."""

    eaName = serializers.CharField(max_length=200)
    broker = serializers.CharField(max_length=100)
    accountNumber = serializers.CharField(max_length=100)
    email = serializers.EmailField()
    xAccount = serializers.CharField(required=False, allow_blank=True, default="")
    integrationTestId = serializers.CharField(required=False, allow_null=True, default=None)


class FormSubmissionSerializer(serializers.Serializer):
    """``form_submission`` event."""

    userId = serializers.CharField(max_length=200)
    fields = FormFieldsSerializer()


class IntegrationTestStepSerializer(serializers.Serializer):
    """``integration_test_step`` event reported by the harness."""

    testId = serializers.CharField()
    step = serializers.ChoiceField(choices=[step.value for step in IntegrationTestStep])
    success = serializers.BooleanField()
    details = serializers.DictField(required=False, default=dict)


class GasTestResultSerializer(serializers.Serializer):
    """Result of a GAS connection check."""

    success = serializers.BooleanField()
    timestamp = serializers.DateTimeField()
    details = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)


class GasConnectionTestSerializer(serializers.Serializer):
    """``gas_connection_test`` event sent by a developer's WebApp."""

    userId = serializers.CharField(max_length=200)
    testResult = GasTestResultSerializer()


PAYLOAD_SERIALIZERS = {
    FORM_SUBMISSION: FormSubmissionSerializer,
    INTEGRATION_TEST_STEP: IntegrationTestStepSerializer,
    GAS_CONNECTION_TEST: GasConnectionTestSerializer,
}
