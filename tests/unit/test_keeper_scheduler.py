"""Unit tests for KeeperScheduler.

Tests the APScheduler integration with mocked jobs.
"""

import time
from datetime import datetime
from unittest.mock import Mock

import pytest
import pytz

from yieldvault.orchestration.scheduler import KeeperScheduler
from yieldvault.utils.exceptions import (
    ConfigurationError,
    InsufficientLiquidityError,
    UnauthorizedError,
)


@pytest.fixture
def scheduler_config():
    """Create scheduler configuration."""
    return {
        "coalesce": True,
        "max_instances": 1,
        "misfire_grace_time": 60,
    }


@pytest.fixture
def scheduler(scheduler_config):
    """Create KeeperScheduler instance."""
    scheduler = KeeperScheduler(scheduler_config)
    yield scheduler
    if scheduler.is_running():
        scheduler.stop()


class TestKeeperSchedulerInit:
    """Test KeeperScheduler initialization."""

    def test_init(self, scheduler) -> None:
        """Test scheduler initialization."""
        assert scheduler.scheduler is not None
        assert scheduler.circuit_breaker_active is False
        assert len(scheduler.tasks) == 0
        assert str(scheduler.timezone) == "UTC"


class TestKeeperSchedulerRegistration:
    """Test task registration."""

    def test_register_interval_task(self, scheduler) -> None:
        """Test registering task with interval trigger."""
        func = Mock()
        scheduler.register_task(
            name="compound", func=func, trigger="interval", trigger_args={"minutes": 5}
        )

        assert scheduler.tasks["compound"]["func"] is func
        assert len(scheduler.get_jobs()) == 1

    def test_register_cron_and_date_tasks(self, scheduler) -> None:
        """Test cron and date triggers are accepted."""
        scheduler.register_task(
            name="daily_report", func=Mock(), trigger="cron", trigger_args={"hour": 0}
        )
        scheduler.register_task(
            name="one_off",
            func=Mock(),
            trigger="date",
            trigger_args={"run_date": datetime(2030, 1, 1, 0, 0)},
        )

        assert {job.id for job in scheduler.get_jobs()} == {"daily_report", "one_off"}

    def test_register_replaces_existing(self, scheduler) -> None:
        """Test registering under the same name replaces the task."""
        first, second = Mock(), Mock()
        scheduler.register_task("settle", first, "interval", {"seconds": 60})
        scheduler.register_task("settle", second, "interval", {"seconds": 60})

        assert scheduler.tasks["settle"]["func"] is second

    def test_unknown_trigger(self, scheduler) -> None:
        """Test unknown trigger types are rejected."""
        with pytest.raises(ValueError, match="Unknown trigger type"):
            scheduler.register_task("bad", Mock(), "lunar", {})

    def test_register_keeper(self, scheduler) -> None:
        """Test the keeper cycle is registered on an interval."""
        workflow = Mock()
        scheduler.register_keeper(workflow, interval_seconds=300)

        assert scheduler.tasks["keeper_cycle"]["func"] is workflow.run_cycle
        assert scheduler.tasks["keeper_cycle"]["trigger_args"] == {"seconds": 300}

    def test_register_keeper_invalid_interval(self, scheduler) -> None:
        """Test a non-positive keeper interval is a configuration error."""
        with pytest.raises(ConfigurationError, match="must be positive"):
            scheduler.register_keeper(Mock(), interval_seconds=0)

    def test_register_keeper_jobs(self, scheduler) -> None:
        """Test split jobs wait for the first settlement."""
        workflow = Mock()
        scheduler.register_keeper_jobs(
            workflow, settle_seconds=60, compound_seconds=3600, rebalance_seconds=None
        )

        assert set(scheduler.tasks) == {"settle", "compound"}
        assert scheduler.tasks["settle"]["func"] is workflow.settle_all
        assert scheduler.dependencies["compound"] == ["settle"]
        assert "rebalance" not in scheduler.dependencies

    def test_register_keeper_jobs_invalid_interval(self, scheduler) -> None:
        """Test every given interval is validated before anything is registered."""
        with pytest.raises(ConfigurationError, match="rebalance interval"):
            scheduler.register_keeper_jobs(Mock(), settle_seconds=60, rebalance_seconds=-1)
        assert scheduler.tasks == {}


class TestKeeperSchedulerWrappedTasks:
    """Test the task wrapper without running the scheduler."""

    def test_result_recorded(self, scheduler) -> None:
        """Test successful results are stored."""
        wrapped = scheduler.wrap_task("cycle", Mock(return_value="report"))

        assert wrapped() == "report"
        assert scheduler.task_results["cycle"] == "report"

    def test_dependency_not_met(self, scheduler) -> None:
        """Test tasks wait for their dependencies."""
        func = Mock()
        scheduler.dependencies["report"] = ["cycle"]

        assert scheduler.wrap_task("report", func)() is None
        func.assert_not_called()

        scheduler.task_results["cycle"] = "done"
        scheduler.wrap_task("report", func)()
        func.assert_called_once()

    def test_critical_error_trips_circuit_breaker(self, scheduler) -> None:
        """Test authorization failures pause every job."""
        wrapped = scheduler.wrap_task("cycle", Mock(side_effect=UnauthorizedError("not owner")))

        with pytest.raises(UnauthorizedError):
            wrapped()
        assert scheduler.circuit_breaker_active is True

    def test_routine_error_does_not_trip(self, scheduler) -> None:
        """Test liquidity failures propagate without pausing jobs."""
        wrapped = scheduler.wrap_task(
            "cycle", Mock(side_effect=InsufficientLiquidityError("locked"))
        )

        with pytest.raises(InsufficientLiquidityError):
            wrapped()
        assert scheduler.circuit_breaker_active is False
        assert "cycle" not in scheduler.task_results

    def test_circuit_breaker_skips_tasks(self, scheduler) -> None:
        """Test an active breaker prevents execution."""
        func = Mock()
        scheduler.circuit_breaker_active = True

        assert scheduler.wrap_task("cycle", func)() is None
        func.assert_not_called()

    def test_clear_task_results(self, scheduler) -> None:
        """Test clearing task results."""
        scheduler.task_results["cycle"] = "value"
        scheduler.clear_task_results()
        assert scheduler.task_results == {}


class TestKeeperSchedulerControl:
    """Test scheduler control methods."""

    def test_start_stop(self, scheduler) -> None:
        """Test starting and stopping scheduler."""
        assert not scheduler.is_running()

        scheduler.start()
        assert scheduler.is_running()

        scheduler.stop()
        assert not scheduler.is_running()

    def test_stop_when_not_running(self, scheduler) -> None:
        """Test stopping scheduler when not running."""
        scheduler.stop()

    def test_task_execution(self, scheduler) -> None:
        """Test that a due task runs in the background."""
        func = Mock(return_value="success")
        scheduler.register_task(
            name="now", func=func, trigger="date", trigger_args={"run_date": datetime.now(pytz.utc)}
        )

        scheduler.start()
        time.sleep(0.5)
        scheduler.stop()

        assert scheduler.task_results["now"] == "success"

    def test_activate_circuit_breaker_pauses_jobs(self, scheduler) -> None:
        """Test activating the breaker pauses and deactivating resumes."""
        scheduler.register_task("cycle", Mock(), "interval", {"seconds": 60})
        scheduler.start()

        scheduler.activate_circuit_breaker()
        assert all(job.next_run_time is None for job in scheduler.get_jobs())

        scheduler.deactivate_circuit_breaker()
        assert scheduler.circuit_breaker_active is False
        assert all(job.next_run_time is not None for job in scheduler.get_jobs())

    def test_remove_job(self, scheduler) -> None:
        """Test removing a job."""
        scheduler.register_task("cycle", Mock(), "interval", {"seconds": 60})
        scheduler.remove_job("cycle")

        assert scheduler.get_jobs() == []
        assert "cycle" not in scheduler.tasks
