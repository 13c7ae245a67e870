"""Keeper Scheduler - APScheduler integration for periodic settlement.

This module runs keeper jobs on fixed intervals with:
- Task registration and ordering dependencies
- A circuit breaker that pauses jobs after critical errors
- UTC scheduling (batch windows are measured in plain seconds)
"""

from typing import Any, Callable, Dict, List, Optional

import pytz
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from yieldvault.orchestration.workflows import KeeperWorkflow
from yieldvault.utils.exceptions import ConfigurationError, UnauthorizedError
from yieldvault.utils.logging import get_logger

logger = get_logger(__name__)

# Errors that mean the deployment is misconfigured, not just busy
CRITICAL_ERRORS = (ConfigurationError, UnauthorizedError)


class KeeperScheduler:
    """APScheduler wrapper for keeper jobs.

    Example:
        >>> scheduler = KeeperScheduler({"max_instances": 1})
        >>> scheduler.register_keeper(KeeperWorkflow(router), interval_seconds=300)
        >>> scheduler.start()
    """

    def __init__(self, config: Optional[dict] = None):
        """Initialize keeper scheduler.

        Args:
            config: Configuration dictionary with scheduler settings
                - max_instances: Max concurrent job instances (default: 1)
                - coalesce: Combine missed runs (default: True)
                - misfire_grace_time: Seconds a late job may still run (default: 60)
        """
        self.config = config or {}
        self.timezone = pytz.utc

        self.scheduler = BackgroundScheduler(
            timezone=self.timezone,
            job_defaults={
                "coalesce": self.config.get("coalesce", True),
                "max_instances": self.config.get("max_instances", 1),
                "misfire_grace_time": self.config.get("misfire_grace_time", 60),
            },
        )

        self.tasks: Dict[str, dict] = {}
        self.dependencies: Dict[str, List[str]] = {}
        self.task_results: Dict[str, Any] = {}
        self.circuit_breaker_active = False

        self.scheduler.add_listener(self._on_job_executed, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

        logger.info("KeeperScheduler initialized (timezone: %s)", self.timezone)

    def register_task(
        self,
        name: str,
        func: Callable,
        trigger: str,
        trigger_args: dict,
        dependencies: Optional[List[str]] = None,
    ) -> None:
        """Register a scheduled task.

        Args:
            name: Unique task identifier
            func: Function to execute
            trigger: Trigger type ('interval', 'cron', 'date')
            trigger_args: Arguments for the trigger
            dependencies: Tasks that must have completed at least once first
        """
        if name in self.tasks:
            logger.warning("Task '%s' already registered, replacing", name)

        self.tasks[name] = {
            "func": func,
            "trigger": trigger,
            "trigger_args": trigger_args,
        }
        if dependencies:
            self.dependencies[name] = dependencies

        self.scheduler.add_job(
            func=self.wrap_task(name, func),
            trigger=self._create_trigger(trigger, trigger_args),
            id=name,
            name=name,
            replace_existing=True,
        )
        logger.info("Registered task '%s' with trigger %s %s", name, trigger, trigger_args)

    def register_keeper(
        self,
        workflow: KeeperWorkflow,
        interval_seconds: int,
        name: str = "keeper_cycle",
    ) -> None:
        """Run ``workflow.run_cycle`` every ``interval_seconds``."""
        if interval_seconds <= 0:
            raise ConfigurationError(f"keeper interval must be positive, got {interval_seconds}")
        self.register_task(
            name=name,
            func=workflow.run_cycle,
            trigger="interval",
            trigger_args={"seconds": interval_seconds},
        )

    def register_keeper_jobs(
        self,
        workflow: KeeperWorkflow,
        settle_seconds: int,
        compound_seconds: Optional[int] = None,
        rebalance_seconds: Optional[int] = None,
    ) -> None:
        """Schedule settlement, compounding and rebalancing as separate jobs.

        Compound and rebalance jobs depend on ``settle``, so neither runs
        before the first settlement pass has completed. A step whose
        interval is None is not scheduled.

        Raises:
            ConfigurationError: If any given interval is not positive
        """
        intervals = {
            "settle": settle_seconds,
            "compound": compound_seconds,
            "rebalance": rebalance_seconds,
        }
        for name, seconds in intervals.items():
            if seconds is not None and seconds <= 0:
                raise ConfigurationError(f"{name} interval must be positive, got {seconds}")

        self.register_task("settle", workflow.settle_all, "interval", {"seconds": settle_seconds})
        if compound_seconds is not None:
            self.register_task(
                "compound", workflow.compound_all, "interval",
                {"seconds": compound_seconds}, dependencies=["settle"],
            )
        if rebalance_seconds is not None:
            self.register_task(
                "rebalance", workflow.rebalance_all, "interval",
                {"seconds": rebalance_seconds}, dependencies=["settle"],
            )

    def _create_trigger(self, trigger_type: str, args: dict):
        if trigger_type == "cron":
            return CronTrigger(timezone=self.timezone, **args)
        elif trigger_type == "interval":
            return IntervalTrigger(timezone=self.timezone, **args)
        elif trigger_type == "date":
            return DateTrigger(timezone=self.timezone, **args)
        else:
            raise ValueError(f"Unknown trigger type: {trigger_type}")

    def wrap_task(self, task_name: str, func: Callable) -> Callable:
        """Wrap ``func`` with circuit breaker and dependency checks.

        Returns:
            Callable returning the task result, or None when skipped
        """

        def wrapped():
            if self.circuit_breaker_active:
                logger.warning("Circuit breaker active, skipping task '%s'", task_name)
                return None

            for dep in self.dependencies.get(task_name, []):
                if dep not in self.task_results:
                    logger.warning(
                        "Dependency '%s' not completed, skipping '%s'", dep, task_name
                    )
                    return None

            try:
                logger.info("Executing task '%s'", task_name)
                result = func()
            except Exception as e:
                logger.error("Task '%s' failed: %s", task_name, e, exc_info=True)
                if isinstance(e, CRITICAL_ERRORS):
                    self.activate_circuit_breaker()
                raise

            self.task_results[task_name] = result
            logger.info("Task '%s' completed", task_name)
            return result

        return wrapped

    def activate_circuit_breaker(self) -> None:
        """Pause every job until an operator intervenes."""
        logger.error("CIRCUIT BREAKER ACTIVATED - pausing all keeper jobs")
        self.circuit_breaker_active = True
        for job in self.scheduler.get_jobs():
            job.pause()
            logger.info("Paused job '%s'", job.id)

    def deactivate_circuit_breaker(self) -> None:
        logger.info("Circuit breaker deactivated - resuming keeper jobs")
        self.circuit_breaker_active = False
        for job in self.scheduler.get_jobs():
            job.resume()

    def _on_job_executed(self, event) -> None:
        if event.exception:
            logger.error("Job '%s' raised exception: %s", event.job_id, event.exception)
        else:
            logger.debug("Job '%s' executed successfully", event.job_id)

    def start(self) -> None:
        """Start the scheduler (non-blocking)."""
        if self.scheduler.running:
            logger.warning("Scheduler already running")
            return
        self.scheduler.start()
        logger.info("Scheduler started with %d jobs", len(self.scheduler.get_jobs()))

    def stop(self) -> None:
        """Stop the scheduler, waiting for running jobs to finish."""
        if not self.scheduler.running:
            logger.warning("Scheduler not running")
            return
        self.scheduler.shutdown(wait=True)
        logger.info("Scheduler stopped")

    def is_running(self) -> bool:
        return self.scheduler.running

    def get_jobs(self) -> list:
        return self.scheduler.get_jobs()

    def clear_task_results(self) -> None:
        """Forget completed tasks, so dependents wait for a fresh run."""
        self.task_results.clear()

    def remove_job(self, job_id: str) -> None:
        self.scheduler.remove_job(job_id)
        self.tasks.pop(job_id, None)
        logger.info("Removed job '%s'", job_id)
