"""Structured event logging for settlement and allocation activity.

This module extends the basic logging with vault-specific event types,
log rotation and JSON-line output, so every batch settlement, rebalance
and fee mint can be replayed from the logs.
"""

import json
import logging
import logging.handlers
from enum import Enum
from pathlib import Path
from typing import Any, Optional


class VaultEventType(Enum):
    """Types of engine events to log."""

    # Settlement events
    DEPOSIT_QUEUED = "deposit_queued"
    WITHDRAW_QUEUED = "withdraw_queued"
    DEPOSIT_BATCH_EXECUTED = "deposit_batch_executed"
    WITHDRAW_BATCH_EXECUTED = "withdraw_batch_executed"
    SHARES_CLAIMED = "shares_claimed"
    ASSETS_CLAIMED = "assets_claimed"

    # Allocation events
    VAULT_DEPOSIT = "vault_deposit"
    VAULT_REDEEM = "vault_redeem"
    REBALANCED = "rebalanced"
    IDLE_DEPLOYED = "idle_deployed"
    COMPOUNDED = "compounded"
    STRATEGY_ADDED = "strategy_added"
    STRATEGY_REMOVED = "strategy_removed"
    EMERGENCY_EXIT = "emergency_exit"

    # Error events
    BATCH_FAILED = "batch_failed"
    KEEPER_ERROR = "keeper_error"


_SETTLEMENT_EVENTS = {
    VaultEventType.DEPOSIT_QUEUED,
    VaultEventType.WITHDRAW_QUEUED,
    VaultEventType.DEPOSIT_BATCH_EXECUTED,
    VaultEventType.WITHDRAW_BATCH_EXECUTED,
    VaultEventType.SHARES_CLAIMED,
    VaultEventType.ASSETS_CLAIMED,
}


class VaultEventLogger:
    """JSON-line event logger with rotation.

    Features:
    - Separate files for settlement, allocation and error events
    - Size-based rotation
    - Event timestamps taken from the engine clock, not wall time

    Example:
        >>> events = VaultEventLogger(log_dir="logs", clock=clock)
        >>> events.log_event(
        ...     VaultEventType.DEPOSIT_BATCH_EXECUTED,
        ...     tier="low", aggregate=5000, shares=5000, entries=5,
        ... )
    """

    def __init__(
        self,
        log_dir: str | Path = "logs",
        clock=None,
        max_bytes: int = 10 * 1024 * 1024,
        backup_count: int = 10,
        enable_console: bool = False,
    ):
        """Initialize event logger.

        Args:
            log_dir: Directory for log files
            clock: Object with ``now() -> int``; events get no timestamp if None
            max_bytes: Maximum size per log file (default 10 MB)
            backup_count: Number of rotated files to keep
            enable_console: Also log to console (default False)
        """
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.clock = clock
        self.max_bytes = max_bytes
        self.backup_count = backup_count
        self.enable_console = enable_console

        self.settlement_logger = self._create_rotating_logger("settlement")
        self.allocation_logger = self._create_rotating_logger("allocation")
        self.error_logger = self._create_rotating_logger("errors", level=logging.ERROR)

        # In-memory tail, handy for simulations and tests
        self.events: list[dict[str, Any]] = []

    def _create_rotating_logger(
        self,
        name: str,
        level: int = logging.INFO,
    ) -> logging.Logger:
        logger = logging.getLogger(f"yieldvault.events.{name}.{id(self)}")
        logger.setLevel(level)
        logger.propagate = False
        logger.handlers = []

        file_handler = logging.handlers.RotatingFileHandler(
            filename=self.log_dir / f"{name}.log",
            maxBytes=self.max_bytes,
            backupCount=self.backup_count,
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(file_handler)

        if self.enable_console:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(level)
            console_handler.setFormatter(
                logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            )
            logger.addHandler(console_handler)

        return logger

    def log_event(self, event_type: VaultEventType, **data: Any) -> dict[str, Any]:
        """Log a settlement or allocation event.

        Args:
            event_type: Type of event
            **data: Event data fields (must be JSON serializable)

        Returns:
            The event as written
        """
        logger = (
            self.settlement_logger
            if event_type in _SETTLEMENT_EVENTS
            else self.allocation_logger
        )
        return self._write(logger, "info", event_type, data)

    def log_error(self, event_type: VaultEventType, error: str, **data: Any) -> dict[str, Any]:
        """Log a failed operation.

        Args:
            event_type: Type of error event
            error: Error message or description
            **data: Additional event data
        """
        return self._write(self.error_logger, "error", event_type, {"error": error, **data})

    def close(self) -> None:
        for logger in (self.settlement_logger, self.allocation_logger, self.error_logger):
            for handler in logger.handlers:
                handler.close()
            logger.handlers = []

    def _write(
        self,
        logger: logging.Logger,
        level: str,
        event_type: VaultEventType,
        data: dict[str, Any],
    ) -> dict[str, Any]:
        event: dict[str, Any] = {"event_type": event_type.value}
        if self.clock is not None:
            event["timestamp"] = self.clock.now()
        event.update(data)

        self.events.append(event)
        getattr(logger, level)(json.dumps(event, default=str))
        return event


def emit(events: Optional[VaultEventLogger], event_type: VaultEventType, **data: Any) -> None:
    """Log ``event_type`` when an event logger is attached."""
    if events is not None:
        events.log_event(event_type, **data)
