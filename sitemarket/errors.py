# sitemarket/errors.py
"""Error taxonomy shared by services and the HTTP layer.

Every error carries the HTTP status it maps to; `main.py` renders them as
`{"error": message}`.
"""


class MarketError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(MarketError):
    status_code = 400
    default_message = "Invalid input"


class InvalidSignature(ValidationError):
    default_message = "Invalid webhook signature"


class Unauthorized(MarketError):
    status_code = 401
    default_message = "Unauthorized"


class MissingCredential(Unauthorized):
    default_message = "Access denied"


class InvalidCredential(Unauthorized):
    default_message = "Invalid credential"


class Expired(Unauthorized):
    default_message = "Credential expired"


class Forbidden(MarketError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(MarketError):
    status_code = 404
    default_message = "Not found"


class Conflict(MarketError):
    # duplicates are reported as a plain bad request to clients
    status_code = 400
    default_message = "User already registered"


class UpstreamError(MarketError):
    status_code = 502
    default_message = "Upstream service unavailable"


class InternalError(MarketError):
    status_code = 500
