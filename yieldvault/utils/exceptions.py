"""Custom exceptions for YieldVault.

This module defines the exception hierarchy for the settlement engine.
Every mutating operation validates before it mutates, so any of these
errors leaves ledgers, queues and bridge positions exactly as they were.
"""


class YieldVaultError(Exception):
    """Base exception for all YieldVault errors.

    All custom exceptions in the engine inherit from this class.
    """

    pass


class ConfigurationError(YieldVaultError):
    """Raised when configuration is invalid or missing.

    Examples:
        - Unknown venue type in a tier definition
        - Performance fee above 10000 bps
        - Configuration file not found
    """

    pass


class LedgerError(YieldVaultError):
    """Base exception for asset and share ledger errors."""

    pass


class InsufficientBalanceError(LedgerError):
    """Raised when an account does not hold the amount it tries to move."""

    pass


class InsufficientAllowanceError(LedgerError):
    """Raised when a spender pulls more than the owner approved."""

    pass


class VaultError(YieldVaultError):
    """Base exception for vault, bridge and venue errors."""

    pass


class InsufficientLiquidityError(VaultError):
    """Raised when a withdrawal cannot raise the requested amount.

    Examples:
        - Venue holds fewer tokens than the requested withdrawal
        - Redeem shortfall larger than idle plus bridge liquidity
        - Strategy removal while the position is locked
    """

    pass


class InvalidAmountError(VaultError):
    """Raised for zero, negative or over-limit amounts.

    Examples:
        - Deposit of zero assets
        - Deposit so small it would mint zero shares
        - Batch execution of an empty queue
    """

    pass


class DuplicateOrUnknownStrategyError(VaultError):
    """Raised on structural misuse of strategy management.

    Examples:
        - Adding a bridge that is already registered
        - Adding a bridge owned by another vault
        - Removing an index that does not exist
    """

    pass


class UnauthorizedError(YieldVaultError):
    """Raised when an owner-gated operation is called by someone else."""

    pass


class RouterError(YieldVaultError):
    """Base exception for batching router errors."""

    pass


class BatchNotReadyError(RouterError):
    """Raised when a batch is executed before its interval has elapsed."""

    pass


class UnknownTierError(RouterError):
    """Raised when a tier has no vault registered."""

    pass
