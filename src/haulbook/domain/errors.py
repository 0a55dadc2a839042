"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested account, trip, transaction or fusion backup does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class InvalidOperationError(DomainError):
    """Operation is not allowed for the given arguments (e.g. fusing an account into itself)."""


class AlreadyRevertedError(DomainError):
    """A fusion backup has already been reverted."""


class StaleBalanceDetectedError(DomainError):
    """A cached balance disagrees with a fresh computation beyond tolerance."""


class DataLayerUnavailableError(DomainError):
    """The database could not be reached. Not retried by the core."""


def account_not_found(account_type: str, account_id: int) -> str:
    """Return message for missing account."""
    return f"{account_type.replace('_', ' ').capitalize()} {account_id} not found"


def trip_not_found(trip_id: str) -> str:
    """Return message for missing trip."""
    return f"Trip '{trip_id}' not found"


def transaction_not_found(transaction_id: int) -> str:
    """Return message for missing transaction."""
    return f"Transaction {transaction_id} not found"


def fusion_backup_not_found(backup_id: int) -> str:
    """Return message for missing fusion backup."""
    return f"Fusion backup {backup_id} not found"


def fusion_already_reverted(backup_id: int) -> str:
    """Return message for a fusion that was already reverted."""
    return f"Fusion {backup_id} has already been reverted"


def duplicate_account_name(account_type: str, name: str) -> str:
    """Return message for duplicate account name within a type."""
    return f"{account_type.replace('_', ' ').capitalize()} with name '{name}' already exists"


def stale_balance_detected(account_id: int, cached, computed) -> str:
    """Return message for a cached balance that drifted from the computed one."""
    return (
        f"Cached balance for account {account_id} is {cached} but a fresh "
        f"computation gives {computed}"
    )
