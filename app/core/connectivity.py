"""
Connectivity Monitor

Background loop that checks the remote assistant backend and maintains the
shared online/offline indicator.

Rules:
  - a successful check always switches the mode to online
  - a failed check never switches to offline by itself; while online it
    raises a one-time, dismissible prompt offering the manual switch
  - switching to online by hand re-runs one check and is refused if it fails

The state object is created by the caller and injected into both the
monitor and the assistant sessions.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from app.core.notifications import Notifier
from app.models.schemas import ConnectivityMode, ConnectivityView

logger = logging.getLogger(__name__)

# How often the loop checks (in seconds)
CHECK_INTERVAL = 30.0

OFFLINE_REFUSAL_REASON = "Le serveur de l'assistant IA est injoignable."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ConnectivityState:
    """Process-wide online/offline indicator. Initialised optimistically online."""

    mode: ConnectivityMode = ConnectivityMode.ONLINE
    last_check_at: Optional[datetime] = None
    last_check_ok: Optional[bool] = None
    offline_prompt_pending: bool = False
    refusal_reason: Optional[str] = None

    @property
    def is_online(self) -> bool:
        return self.mode == ConnectivityMode.ONLINE

    def view(self) -> ConnectivityView:
        return ConnectivityView(
            mode=self.mode,
            last_check_at=self.last_check_at,
            last_check_ok=self.last_check_ok,
            offline_prompt_pending=self.offline_prompt_pending,
            refusal_reason=self.refusal_reason,
        )


class ConnectivityMonitor:
    """
    Periodically checks the backend health operation.

    Usage:
        monitor = ConnectivityMonitor(state, health_check=backend_client.health)
        await monitor.start()

    On teardown:
        await monitor.stop()
    """

    def __init__(
        self,
        state: ConnectivityState,
        health_check: Callable[[], Awaitable[bool]],
        notifier: Optional[Notifier] = None,
        interval: float = CHECK_INTERVAL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.state = state
        self._health_check = health_check
        self._notifier = notifier
        self._interval = interval
        self._clock = clock
        self._task: asyncio.Task | None = None
        self._running = False
        # Set once the prompt has been raised for the current failure streak
        self._prompted = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the check loop."""
        if self._running:
            logger.warning("ConnectivityMonitor already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._check_loop())
        logger.info(
            "ConnectivityMonitor started - probing every %.0fs", self._interval,
        )

    async def stop(self) -> None:
        """Stop scheduling checks and cancel the pending one."""
        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("ConnectivityMonitor stopped")

    async def check_once(self) -> bool:
        """Run one check and apply its result to the shared state."""
        ok = await self._check()

        if ok:
            self._mark_online()
            return True

        if self.state.is_online and not self._prompted:
            self._prompted = True
            self.state.offline_prompt_pending = True
            self._notify(
                "Assistant IA injoignable",
                "Le serveur ne répond pas. Vous pouvez passer en mode hors ligne.",
                "destructive",
            )
        return False

    def dismiss_prompt(self) -> None:
        """Hide the offline prompt; it is not raised again during this failure streak."""
        self.state.offline_prompt_pending = False

    async def set_mode(self, mode: ConnectivityMode) -> bool:
        """Apply a manual mode switch.

        Returns:
            True if the requested mode is now active.
        """
        mode = ConnectivityMode(mode)
        if mode == ConnectivityMode.OFFLINE:
            self.state.mode = ConnectivityMode.OFFLINE
            self.state.offline_prompt_pending = False
            self.state.refusal_reason = None
            logger.info("Assistant switched to offline mode")
            return True

        ok = await self._check()
        if ok:
            self._mark_online()
            logger.info("Assistant switched to online mode")
            return True

        self.state.refusal_reason = OFFLINE_REFUSAL_REASON
        self._notify(
            "Impossible de passer en ligne",
            OFFLINE_REFUSAL_REASON,
            "destructive",
        )
        return False

    # ── Internal ──

    def _mark_online(self) -> None:
        self.state.mode = ConnectivityMode.ONLINE
        self.state.offline_prompt_pending = False
        self.state.refusal_reason = None
        self._prompted = False

    async def _check(self) -> bool:
        try:
            ok = bool(await self._health_check())
        except Exception as exc:
            logger.warning("Health check raised: %s", exc)
            ok = False
        self.state.last_check_at = self._clock()
        self.state.last_check_ok = ok
        return ok

    def _notify(self, title: str, description: str, variant: str) -> None:
        if self._notifier is not None:
            self._notifier.notify(title, description, variant)

    async def _check_loop(self) -> None:
        """Main loop - check, then wait one interval."""
        while self._running:
            try:
                await self.check_once()
                await asyncio.sleep(self._interval)
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.error("Connectivity loop error: %s", exc, exc_info=True)
                await asyncio.sleep(self._interval)
