"""
Background Session Sweeper

Periodically abandons sessions that stayed active past the configured max
age. Runs as an asyncio task and never blocks the caller.
"""

import asyncio
import logging
from datetime import datetime
from typing import List, Optional

from adaptive_learning_tutor.session_manager import LearningSessionManager

logger = logging.getLogger(__name__)


class SessionSweeper:
    """
    Background sweep manager for expired sessions.

    Calls LearningSessionManager.cleanup_expired_sessions() every
    interval_minutes while running.
    """

    def __init__(
        self,
        session_manager: LearningSessionManager,
        interval_minutes: float = 60,
        enabled: bool = True
    ):
        """
        Initialize the sweeper.

        Args:
            session_manager: Manager whose sessions are swept
            interval_minutes: Minutes between sweeps (default: 60)
            enabled: Whether the sweep loop may start (default: True)
        """
        self.session_manager = session_manager
        self.interval_minutes = interval_minutes
        self.enabled = enabled
        self.last_sweep: Optional[datetime] = None
        self.last_abandoned: List[str] = []
        self.sweep_task: Optional[asyncio.Task] = None
        self.running = False

    async def start(self):
        """Start the background sweep task."""
        if not self.enabled:
            logger.info("🧹 [SessionSweeper] Session sweep is disabled")
            return

        if self.running:
            logger.warning("⚠️ [SessionSweeper] Sweep already running")
            return

        self.running = True
        logger.info(f"🔄 [SessionSweeper] Starting session sweep (interval: {self.interval_minutes}m)")
        self.sweep_task = asyncio.create_task(self._sweep_loop())

    async def stop(self):
        """Stop the background sweep task."""
        self.running = False
        if self.sweep_task:
            self.sweep_task.cancel()
            try:
                await self.sweep_task
            except asyncio.CancelledError:
                pass
            self.sweep_task = None
        logger.info("🛑 [SessionSweeper] Session sweep stopped")

    async def _sweep_loop(self):
        """Main sweep loop - runs until stopped."""
        while self.running:
            try:
                await self._run_sweep()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"❌ [SessionSweeper] Error in sweep loop: {e}")
            await asyncio.sleep(self.interval_minutes * 60)

    async def _run_sweep(self, now: Optional[datetime] = None) -> List[str]:
        abandoned = await self.session_manager.cleanup_expired_sessions(now)
        self.last_sweep = now or datetime.now()
        self.last_abandoned = abandoned
        if abandoned:
            logger.info(f"✅ [SessionSweeper] Abandoned {len(abandoned)} expired session(s)")
        return abandoned

    async def sweep_now(self, now: Optional[datetime] = None) -> List[str]:
        """Run one sweep immediately, regardless of the schedule."""
        logger.info("🔄 [SessionSweeper] Manual sweep triggered")
        return await self._run_sweep(now)

    def get_status(self) -> dict:
        """Get sweep status."""
        return {
            "enabled": self.enabled,
            "running": self.running,
            "last_sweep": self.last_sweep.isoformat() if self.last_sweep else None,
            "last_abandoned": len(self.last_abandoned),
            "interval_minutes": self.interval_minutes,
        }
