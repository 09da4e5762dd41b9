import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, List
from sports_arena.competition.lifecycle import StatusLifecycleManager, SweepResult
from sports_arena.config import config

logger = logging.getLogger(__name__)


@dataclass
class SchedulerConfig:
    """Configuration for the status sweep scheduler"""

    # Seconds between two sweeps
    sweep_interval: int = 300

    @classmethod
    def from_env(cls) -> 'SchedulerConfig':
        """Create configuration from environment variables"""
        return cls(sweep_interval=config.status_sweep_interval)


class StatusSweepScheduler:
    """
    Runs the competition status sweep periodically inside the API process.

    Recurring sweeps are normally triggered from outside (cron running
    scripts/run_status_sweep.py); this loop is for single-process deployments.
    Sweeps are idempotent.
    """

    def __init__(self, database, notifier=None, monitor=None, config: Optional[SchedulerConfig] = None):
        self.config = config or SchedulerConfig.from_env()
        self.database = database
        self.notifier = notifier
        self.monitor = monitor
        self.is_running = False
        self.scheduler_tasks: List[asyncio.Task] = []
        self.last_result: Optional[SweepResult] = None

    async def start(self):
        """Start the status sweep loop"""
        if self.is_running:
            logger.warning("Status sweep scheduler is already running")
            return

        self.is_running = True
        logger.info(f"Starting status sweep scheduler (every {self.config.sweep_interval}s)")
        self.scheduler_tasks.append(asyncio.create_task(self._sweep_loop()))

    async def stop(self):
        """Stop the scheduler gracefully"""
        self.is_running = False
        logger.info("Stopping status sweep scheduler")

        for task in self.scheduler_tasks:
            if not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
                except Exception as e:
                    logger.error(f"Error stopping scheduler task: {e}")

        self.scheduler_tasks.clear()
        logger.info("Status sweep scheduler stopped")

    async def run_once(self) -> SweepResult:
        async with self.database.get_session() as session:
            manager = StatusLifecycleManager(
                session,
                notifier=self.notifier,
                monitor=self.monitor,
                atomic=self.database.supports_transactions,
            )
            self.last_result = await manager.sweep()
        return self.last_result

    async def _sweep_loop(self):
        while self.is_running:
            try:
                await self.run_once()
            except Exception as e:
                # A failed sweep is retried on the next tick
                logger.error(f"Error in status sweep loop: {e}")

            await asyncio.sleep(self.config.sweep_interval)
