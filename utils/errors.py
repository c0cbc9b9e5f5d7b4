"""
Exceptions raised inside the OAuth completion flow.

Every ``OAuthFlowError`` carries the ``FailureKind`` it is reported as;
the controller turns them into ``AuthFailure`` outcomes.
``CrossOriginReadError`` is deliberately *not* an ``OAuthFlowError``: it is the
normal state of a window that is still showing the provider's pages.
"""

from __future__ import annotations

from utils.schemas import FailureKind


class OAuthFlowError(Exception):
    kind: FailureKind = FailureKind.EXTRACTION_FAILURE

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRedirectUriError(OAuthFlowError, ValueError):
    kind = FailureKind.INVALID_REDIRECT_URI

    def __init__(self, uri: str):
        super().__init__(f"Invalid redirect URI format: {uri}")
        self.uri = uri


class CrossOriginRedirectError(OAuthFlowError, ValueError):
    kind = FailureKind.CROSS_ORIGIN_REDIRECT

    def __init__(self, expected: str, actual: str):
        super().__init__(
            "OAuth redirect URL must be same-origin. "
            f"Expected origin: {expected}, but got: {actual}"
        )
        self.expected = expected
        self.actual = actual


class SpawnBlockedError(OAuthFlowError, RuntimeError):
    kind = FailureKind.SPAWN_BLOCKED

    def __init__(self, detail: str = ""):
        message = "Failed to open popup. Please allow popups for this site."
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.detail = detail


class ExtractionError(OAuthFlowError):
    kind = FailureKind.EXTRACTION_FAILURE

    def __init__(self, cause: object):
        super().__init__(f"Failed to extract authorization result: {cause}")


class CrossOriginReadError(Exception):
    """The window's current location cannot be read (still on the provider)."""
