"""
CompletionController — runs one interactive OAuth authorization to a single
outcome.

    idle → validating → spawning → polling → resolved

Each invocation owns a ``PollState`` and two timer tasks on the running event
loop: the poll tick (``CompletionMonitor.inspect`` every ``poll_interval``)
and the deadline (``timeout_ms`` after the invocation started).  Both feed
``_on_event``; the first terminal event wins, everything after it is a no-op.
Resolution cancels the losing timer, closes the window if it is still open,
and only then delivers the outcome.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Callable, Optional, Union

from config.settings import config
from connectors.base import WindowHandle, WindowSpawner
from core.completion_monitor import CompletionMonitor
from core.result_extractor import outcome_from_url
from utils.errors import OAuthFlowError, SpawnBlockedError
from utils.schemas import (
    AuthFailure,
    AuthOutcome,
    AuthRequest,
    ControllerState,
    FailureKind,
    HostWindow,
    PollEvent,
    WindowGeometry,
)
from utils.validators import origin_of, validate_auth_request

logger = logging.getLogger(__name__)

CANCELLED_REASON = "Authentication was cancelled"
TIMEOUT_REASON = "Authentication timed out"

HostOrigin = Union[str, Callable[[], str]]
OutcomeCallback = Callable[[AuthOutcome], None]


@dataclass
class PollState:
    resolved: bool = False
    window: Optional[WindowHandle] = None
    poll_task: Optional[asyncio.Task] = None
    deadline_task: Optional[asyncio.Task] = None
    consecutive_errors: int = 0
    cancel_requested: bool = False
    window_released: bool = False


class AuthInvocation:
    """
    A running authorization.  Await it for the ``AuthOutcome``.

    Created by ``CompletionController.start``; not meant to be built directly.
    """

    def __init__(
        self,
        request: AuthRequest,
        spawner: WindowSpawner,
        host_origin: str,
        host_window: HostWindow,
        poll_interval: float,
        max_poll_errors: int,
    ):
        self.invocation_id = uuid.uuid4().hex[:8]
        self.request = request
        self.host_origin = host_origin
        self.state = ControllerState.IDLE

        self._spawner = spawner
        self._monitor = CompletionMonitor(host_origin)
        self._host_window = host_window
        self._poll_interval = poll_interval
        self._max_poll_errors = max_poll_errors

        self._future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._poll = PollState()

        # The deadline runs from invocation start, independent of spawning.
        self._poll.deadline_task = asyncio.create_task(
            self._deadline(request.timeout_ms / 1000)
        )
        self._runner = asyncio.create_task(self._run())

    # ── caller-facing API ───────────────────────────────────────────────

    def __await__(self):
        return asyncio.shield(self._future).__await__()

    def done(self) -> bool:
        return self._future.done()

    @property
    def outcome(self) -> Optional[AuthOutcome]:
        """The outcome once resolved, else None."""
        return self._future.result() if self._future.done() else None

    def add_done_callback(self, fn: OutcomeCallback) -> None:
        """Call *fn* with the outcome once it is delivered."""
        self._future.add_done_callback(lambda fut: fn(fut.result()))

    async def cancel(self) -> None:
        """
        Force the window closed.

        The monitor observes the closure on its next tick and the invocation
        resolves as cancelled, exactly as if the user had closed the window.
        A cancel before the window exists closes it as soon as it is spawned.
        """
        if self._poll.resolved:
            return
        self._poll.cancel_requested = True
        if self._poll.window is not None:
            logger.info("[OAuth %s] Cancel requested — closing window", self.invocation_id)
            await self._close_window(self._poll.window)

    # ── state machine ───────────────────────────────────────────────────

    async def _run(self) -> None:
        self.state = ControllerState.VALIDATING
        try:
            validate_auth_request(self.request, self.host_origin)
        except OAuthFlowError as exc:
            logger.warning("[OAuth %s] Rejected before spawn: %s", self.invocation_id, exc.message)
            await self._resolve(AuthFailure(reason=exc.message, kind=exc.kind))
            return

        self.state = ControllerState.SPAWNING
        geometry = WindowGeometry.centered(
            self._host_window,
            self.request.window_width,
            self.request.window_height,
        )
        try:
            window = await self._spawner.spawn(self.request.auth_url, geometry)
        except SpawnBlockedError as exc:
            logger.warning("[OAuth %s] Window blocked: %s", self.invocation_id, exc.message)
            await self._resolve(AuthFailure(reason=exc.message, kind=exc.kind))
            return
        except Exception as exc:
            logger.exception("[OAuth %s] %s backend failed to spawn", self.invocation_id,
                             self._spawner.backend_name)
            blocked = SpawnBlockedError(str(exc))
            await self._resolve(AuthFailure(reason=blocked.message, kind=blocked.kind))
            return

        if self._poll.resolved:
            # Deadline fired while the window was opening.
            await self._close_window(window)
            return

        self._poll.window = window
        if self._poll.cancel_requested:
            await self._close_window(window)

        self.state = ControllerState.POLLING
        logger.info(
            "[OAuth %s] Window open (%s), polling every %.0f ms",
            self.invocation_id, self._spawner.backend_name, self._poll_interval * 1000,
        )
        self._poll.poll_task = asyncio.create_task(self._poll_loop())

    async def _poll_loop(self) -> None:
        while not self._poll.resolved:
            await asyncio.sleep(self._poll_interval)
            if self._poll.resolved or self._poll.window is None:
                return
            try:
                event, url = await self._monitor.inspect(self._poll.window)
            except Exception as exc:
                await self._on_event(PollEvent.MONITOR_ERROR, error=exc)
                continue
            try:
                await self._on_event(event, url)
            except Exception as exc:
                logger.exception("[OAuth %s] Handling %s failed", self.invocation_id, event.value)
                await self._resolve(AuthFailure(
                    reason=f"Window monitor failed: {exc}",
                    kind=FailureKind.MONITOR_FAILURE,
                ))
                return

    async def _deadline(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
        await self._on_event(PollEvent.TIMED_OUT)

    async def _on_event(
        self,
        event: PollEvent,
        url: Optional[str] = None,
        error: Optional[Exception] = None,
    ) -> None:
        """Transition function: every timer and monitor signal lands here."""
        if self._poll.resolved:
            logger.debug("[OAuth %s] %s after resolution — ignored", self.invocation_id, event.value)
            return

        if event in (PollEvent.READ_BLOCKED, PollEvent.SAME_ORIGIN_NO_PARAMS):
            self._poll.consecutive_errors = 0
            return

        if event is PollEvent.MONITOR_ERROR:
            self._poll.consecutive_errors += 1
            count = self._poll.consecutive_errors
            logger.log(
                logging.WARNING if count == 1 else logging.DEBUG,
                "[OAuth %s] Poll tick failed (%d in a row): %s",
                self.invocation_id, count, error,
            )
            if self._max_poll_errors and count >= self._max_poll_errors:
                await self._resolve(AuthFailure(
                    reason=f"Window monitor failed: {error}",
                    kind=FailureKind.MONITOR_FAILURE,
                ))
            return

        if event is PollEvent.CLOSED:
            outcome: AuthOutcome = AuthFailure(reason=CANCELLED_REASON, kind=FailureKind.USER_CANCELLED)
        elif event is PollEvent.TIMED_OUT:
            outcome = AuthFailure(reason=TIMEOUT_REASON, kind=FailureKind.TIMEOUT)
        else:
            outcome = outcome_from_url(url or "", self.request.extract_params)

        await self._resolve(outcome)

    async def _resolve(self, outcome: AuthOutcome) -> None:
        if self._poll.resolved:
            return
        self._poll.resolved = True
        self.state = ControllerState.RESOLVED

        current = asyncio.current_task()
        for task in (self._poll.poll_task, self._poll.deadline_task):
            if task is not None and task is not current and not task.done():
                task.cancel()

        window = self._poll.window
        self._poll.window = None
        self._poll.poll_task = None
        self._poll.deadline_task = None

        try:
            if window is not None:
                await self._close_window(window)
        finally:
            if isinstance(outcome, AuthFailure):
                logger.info("[OAuth %s] Resolved: failure (%s)", self.invocation_id, outcome.kind.value)
            else:
                logger.info("[OAuth %s] Resolved: success", self.invocation_id)
            if not self._future.done():
                self._future.set_result(outcome)

    async def _close_window(self, window: WindowHandle) -> None:
        """Release *window* once, even if the user already closed it."""
        if self._poll.window_released:
            return
        self._poll.window_released = True
        try:
            if await window.is_closed():
                logger.debug("[OAuth %s] Window already closed, releasing handle", self.invocation_id)
            await window.close()
        except Exception:
            logger.warning("[OAuth %s] Failed to close window", self.invocation_id, exc_info=True)


class CompletionController:
    """
    Opens the provider's authorization page and waits for the redirect back
    to the host origin.

    Parameters
    ----------
    spawner         : backend that opens the window
    host_origin     : origin redirects must return to, or a zero-arg callable
                      read at each invocation.  Defaults to ``config.app_origin``.
    host_window     : bounds used to center the window.  Defaults to settings.
    poll_interval   : seconds between ticks.  Defaults to settings (250 ms).
    max_poll_errors : consecutive unexpected tick errors tolerated before giving
                      up; 0 waits for the deadline instead.
    """

    def __init__(
        self,
        spawner: WindowSpawner,
        host_origin: Optional[HostOrigin] = None,
        host_window: Optional[HostWindow] = None,
        poll_interval: Optional[float] = None,
        max_poll_errors: Optional[int] = None,
    ):
        self.spawner = spawner
        self._host_origin = host_origin
        self.host_window = host_window or HostWindow(**config.host_window())
        self.poll_interval = (
            poll_interval if poll_interval is not None else config.oauth_poll_interval_ms / 1000
        )
        self.max_poll_errors = (
            max_poll_errors if max_poll_errors is not None else config.oauth_max_poll_errors
        )

    def current_host_origin(self) -> str:
        source = self._host_origin if self._host_origin is not None else config.app_origin
        origin = source() if callable(source) else source
        origin_of(origin)  # raises ValueError on a malformed origin
        return origin

    def start(self, request: AuthRequest) -> AuthInvocation:
        """Begin an authorization; returns immediately.  Needs a running event loop."""
        return AuthInvocation(
            request=request,
            spawner=self.spawner,
            host_origin=self.current_host_origin(),
            host_window=self.host_window,
            poll_interval=self.poll_interval,
            max_poll_errors=self.max_poll_errors,
        )

    async def authorize(self, request: AuthRequest) -> AuthOutcome:
        return await self.start(request)
