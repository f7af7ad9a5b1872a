"""
Exceptions raised by blog_engine operations.

Views translate these into JSON error responses using ``status_code``.
"""


class BlogEngineError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    default_message = "Request failed"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailed(BlogEngineError):
    """
    Malformed or missing input.

    ``errors`` lists every violated field as ``{"field": ..., "message": ...}``.
    """

    status_code = 400
    default_message = "Validation failed"

    def __init__(self, errors=None, message=None):
        super().__init__(message)
        self.errors = list(errors or [])

    @classmethod
    def from_form(cls, form):
        """Build from a bound Django form, keeping every field error."""
        errors = []
        for field, messages in form.errors.get_json_data().items():
            for entry in messages:
                errors.append({"field": field, "message": entry["message"]})
        return cls(errors)


class AuthenticationRequired(BlogEngineError):
    status_code = 401
    default_message = "Authentication required"


class PermissionDenied(BlogEngineError):
    status_code = 403
    default_message = "Access denied"


class NotFound(BlogEngineError):
    status_code = 404
    default_message = "Not found"


class BusinessRuleViolation(BlogEngineError):
    """Well-formed request that the current state does not allow."""

    status_code = 400
    default_message = "Operation not allowed"


class MediaServiceError(BlogEngineError):
    """The media backend could not complete the operation."""

    status_code = 502
    default_message = "Media service unavailable"
