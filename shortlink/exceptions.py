"""Errors raised by the shortening and redirect operations.

Every error carries the HTTP status it is answered with; the application
turns any ``ShortLinkError`` into ``{"detail": <message>}`` with that status.
"""

from fastapi import status


class ShortLinkError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail = "Internal server error"

    def __init__(self, detail: str = None):
        self.detail = detail or self.detail
        super().__init__(self.detail)


class InvalidURLError(ShortLinkError):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Invalid URL"


class InvalidAliasError(ShortLinkError):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Custom slug must be a single path segment without '/', whitespace or control characters"


class AliasConflictError(ShortLinkError):
    status_code = status.HTTP_409_CONFLICT
    detail = "Custom slug is already in use, please choose another one."


class EncodingError(ShortLinkError):
    detail = "Could not generate QR code"


class StoreError(ShortLinkError):
    detail = "Storage failure"


class LinkNotFoundError(ShortLinkError):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Link not found"


class RateLimitedError(ShortLinkError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    detail = "Too many requests, please try again later"
