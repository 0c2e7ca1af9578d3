"""
Request helpers shared by the v1 views.
"""
from rest_framework.request import Request

from api.exceptions import MissingUserError
from core.domain.exceptions import ValidationError
from core.instrumentation import Status, StatusCode


def require_user_id(request: Request) -> str:
    """
    Return the caller's user id set by ``UserContextMiddleware``.

    Raises:
        MissingUserError: If the request carried no identity header
    """
    user_id = getattr(request, "user_id", None)
    if not user_id:
        raise MissingUserError()
    return user_id


def validated(serializer_class, data, span):
    """
    Validate request data or raise ``ValidationError``.

    Args:
        serializer_class: Request serializer
        data: Request body or query parameters
        span: Current span, tagged on failure

    Returns:
        Validated data
    """
    serializer = serializer_class(data=data)
    if not serializer.is_valid():
        span.set_attribute("error", "validation_failed")
        span.set_attribute("error.details", str(serializer.errors))
        span.set_status(Status(StatusCode.ERROR, "Validation failed"))
        raise ValidationError(
            f"Invalid request: {serializer.errors}", context={"errors": serializer.errors}
        )
    return serializer.validated_data
