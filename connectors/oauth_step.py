"""
OAuth flow step — the UI-facing wrapper around the completion controller.

A connector's authentication flow declares an ``oauth`` step with an
``OAuthStepConfig``; the flow runner renders it through ``OAuthStepRenderer``:
a button that starts the authorization, a waiting label while it runs, and
an error line when it fails.  The step result (the extracted parameters) goes
to the flow's ``on_complete``; failures go to ``on_error``.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from core.completion_controller import CompletionController
from utils.schemas import (
    DEFAULT_TIMEOUT_MS,
    DEFAULT_WINDOW_HEIGHT,
    DEFAULT_WINDOW_WIDTH,
    AuthOutcome,
    AuthRequest,
    ParamsExtractor,
)

logger = logging.getLogger(__name__)

DEFAULT_BUTTON_LABEL = "Connect"
WAITING_LABEL = "Waiting for authentication..."
GENERIC_FAILURE = "Authentication failed"

# Either a fixed URL or a builder that receives the flow context
# (integration config, results of earlier steps, …).
AuthUrlSource = Union[str, Callable[[Dict[str, Any]], str]]


class OAuthStepConfig(BaseModel):
    auth_url: AuthUrlSource
    redirect_uri: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    button_label: str = DEFAULT_BUTTON_LABEL
    popup_width: int = Field(DEFAULT_WINDOW_WIDTH, gt=0)
    popup_height: int = Field(DEFAULT_WINDOW_HEIGHT, gt=0)
    timeout: int = Field(DEFAULT_TIMEOUT_MS, gt=0, description="Milliseconds")
    extract_params: Optional[ParamsExtractor] = None


class OAuthStepView(BaseModel):
    """What the step looks like right now."""

    title: Optional[str] = None
    description: Optional[str] = None
    error: Optional[str] = None
    button_label: str
    disabled: bool = False


class OAuthStepRenderer:
    def __init__(
        self,
        config: OAuthStepConfig,
        controller: CompletionController,
        on_complete: Callable[[Dict[str, Any]], None],
        on_error: Optional[Callable[[str], None]] = None,
    ):
        self.config = config
        self.controller = controller
        self.on_complete = on_complete
        self.on_error = on_error

        self.is_authenticating = False
        self.error: Optional[str] = None

    def view(self, loading: bool = False) -> OAuthStepView:
        """*loading* is the enclosing flow's own busy flag."""
        busy = self.is_authenticating or loading
        return OAuthStepView(
            title=self.config.title,
            description=self.config.description,
            error=self.error,
            button_label=WAITING_LABEL if busy else self.config.button_label or DEFAULT_BUTTON_LABEL,
            disabled=busy,
        )

    def resolve_auth_url(self, context: Dict[str, Any]) -> str:
        source = self.config.auth_url
        if not callable(source):
            return source
        try:
            return source(context)
        except Exception as exc:
            raise ValueError(f"Failed to generate auth URL: {exc}") from exc

    def build_request(self, context: Dict[str, Any]) -> AuthRequest:
        auth_url = self.resolve_auth_url(context)
        try:
            return AuthRequest(
                auth_url=auth_url,
                redirect_uri=self.config.redirect_uri,
                window_width=self.config.popup_width,
                window_height=self.config.popup_height,
                timeout_ms=self.config.timeout,
                extract_params=self.config.extract_params,
            )
        except ValidationError as exc:
            raise ValueError(f"Invalid authorization URL: {auth_url}") from exc

    async def trigger(self, context: Optional[Dict[str, Any]] = None) -> Optional[AuthOutcome]:
        """
        Run the authorization (the button's click handler).

        Returns the outcome, or None when nothing ran (already in progress,
        or the request could not be built).
        """
        if self.is_authenticating:
            logger.debug("OAuth step already in progress — ignoring trigger")
            return None

        self.is_authenticating = True
        self.error = None
        try:
            request = self.build_request(context or {})
        except ValueError as exc:
            self.is_authenticating = False
            self._fail(str(exc))
            return None

        try:
            outcome = await self.controller.authorize(request)
        except Exception as exc:
            logger.exception("OAuth step could not start authorization")
            self._fail(str(exc) or GENERIC_FAILURE)
            return None
        finally:
            self.is_authenticating = False

        if outcome.ok:
            self.on_complete(outcome.data)
        else:
            self._fail(outcome.reason or GENERIC_FAILURE)
        return outcome

    def _fail(self, message: str) -> None:
        logger.info("OAuth step failed: %s", message)
        self.error = message
        if self.on_error is not None:
            self.on_error(message)
