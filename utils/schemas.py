"""
Pydantic schemas for the OAuth completion controller.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Dict, Literal, Mapping, Optional, Union
from urllib.parse import SplitResult, urlsplit

from pydantic import BaseModel, Field, field_validator


DEFAULT_WINDOW_WIDTH = 600
DEFAULT_WINDOW_HEIGHT = 700
DEFAULT_TIMEOUT_MS = 300_000

# Receives the parsed terminal URL, returns the mapping reported to the caller.
ParamsExtractor = Callable[[SplitResult], Mapping[str, Any]]


# ═══════════════════════════════════════════════════════════════════════════════
# Enumerations
# ═══════════════════════════════════════════════════════════════════════════════


class FailureKind(str, Enum):
    """Why an invocation ended in failure."""

    INVALID_REDIRECT_URI = "invalid_redirect_uri"
    CROSS_ORIGIN_REDIRECT = "cross_origin_redirect"
    SPAWN_BLOCKED = "spawn_blocked"
    USER_CANCELLED = "user_cancelled"
    TIMEOUT = "timeout"
    PROVIDER_ERROR = "provider_error"
    EXTRACTION_FAILURE = "extraction_failure"
    MONITOR_FAILURE = "monitor_failure"


class ControllerState(str, Enum):
    """Lifecycle of a single controller invocation."""

    IDLE = "idle"
    VALIDATING = "validating"
    SPAWNING = "spawning"
    POLLING = "polling"
    RESOLVED = "resolved"  # terminal


class PollEvent(str, Enum):
    """Observations fed into the controller's transition function."""

    CLOSED = "closed"
    SAME_ORIGIN_NO_PARAMS = "same_origin_no_params"
    SAME_ORIGIN_WITH_PARAMS = "same_origin_with_params"
    READ_BLOCKED = "read_blocked"
    TIMED_OUT = "timed_out"
    MONITOR_ERROR = "monitor_error"


# ═══════════════════════════════════════════════════════════════════════════════
# Window geometry
# ═══════════════════════════════════════════════════════════════════════════════


class HostWindow(BaseModel):
    """Screen bounds of the host application's window."""

    x: int = 0
    y: int = 0
    width: int = 1280
    height: int = 800


class WindowGeometry(BaseModel):
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    left: int = 0
    top: int = 0

    @classmethod
    def centered(cls, host: HostWindow, width: int, height: int) -> "WindowGeometry":
        """Place a ``width`` x ``height`` window centered over *host*."""
        return cls(
            width=width,
            height=height,
            left=host.x + (host.width - width) // 2,
            top=host.y + (host.height - height) // 2,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Request / Outcome
# ═══════════════════════════════════════════════════════════════════════════════


class AuthRequest(BaseModel):
    """Input for one interactive authorization."""

    auth_url: str = Field(..., description="Absolute URL of the provider's authorization endpoint")
    redirect_uri: Optional[str] = Field(
        None,
        description="Where the provider sends the user back; must share the host origin",
    )
    window_width: int = Field(DEFAULT_WINDOW_WIDTH, gt=0)
    window_height: int = Field(DEFAULT_WINDOW_HEIGHT, gt=0)
    timeout_ms: int = Field(DEFAULT_TIMEOUT_MS, gt=0)
    extract_params: Optional[ParamsExtractor] = Field(
        None,
        description="Custom extraction; its return value is reported verbatim",
    )

    @field_validator("auth_url")
    @classmethod
    def _require_absolute(cls, value: str) -> str:
        parts = urlsplit(value)
        if not parts.scheme or not parts.netloc:
            raise ValueError(f"auth_url must be an absolute URL, got {value!r}")
        return value


class AuthSuccess(BaseModel):
    status: Literal["success"] = "success"
    data: Dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return True


class AuthFailure(BaseModel):
    status: Literal["failure"] = "failure"
    reason: str
    kind: FailureKind

    @property
    def ok(self) -> bool:
        return False


AuthOutcome = Union[AuthSuccess, AuthFailure]
