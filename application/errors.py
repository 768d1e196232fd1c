# application/errors.py
"""Error taxonomy shared by the verification endpoint and the client token acquirer."""


class ApiError(Exception):
    """Base for errors that are turned into a JSON response by the app error handler."""

    status_code = 500
    message = 'Server error'

    def __init__(self, message=None, **extra):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.extra = extra

    def to_dict(self):
        body = {'success': False, 'message': self.message}
        body.update({k: v for k, v in self.extra.items() if v is not None})
        return body


class ValidationError(ApiError):
    """Missing or malformed request input."""

    status_code = 422
    message = 'Invalid request'


class PolicyRejection(ApiError):
    """Upstream answered, but the token did not pass (failure flag or low score)."""

    status_code = 403
    message = 'Verification failed'


class UpstreamFailure(ApiError):
    """The verification API was unreachable or answered with something unusable."""

    status_code = 500
    message = 'Server error'


class ConfigurationError(ApiError):
    status_code = 500
    message = 'Server error'


class ClientLoadFailure(Exception):
    """Client side: script, global readiness, execution or widget failure."""
