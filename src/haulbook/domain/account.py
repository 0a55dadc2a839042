"""Account domain service."""

from typing import Optional

from haulbook.database.base import Database
from haulbook.domain.balance_cache import BalanceCache
from haulbook.domain.entities import Account as AccountEntity, AccountType
from haulbook.domain.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    account_not_found,
    duplicate_account_name,
)
from haulbook.domain.events import ChangeNotifier, ChangeType
from haulbook.utils.driver_names import normalize_driver_name


class AccountService:
    """Service for managing mines, buyers, truckers and third parties."""

    def __init__(
        self,
        db: Database,
        cache: Optional[BalanceCache] = None,
        notifier: Optional[ChangeNotifier] = None,
    ):
        """Initialize account service.

        Args:
            db: Database instance
            cache: Balance cache refreshed when an alias changes what a trucker owns
            notifier: Receives change events after writes
        """
        self.db = db
        self.cache = cache or BalanceCache(db)
        self.notifier = notifier or ChangeNotifier()

    def create_account(
        self,
        account_type: AccountType,
        name: str,
        plate: Optional[str] = None,
        owner_user_id: Optional[str] = None,
    ) -> int:
        """Create a new account.

        Truckers also get their own name registered as a driver alias. The
        account starts with a stale cache entry.

        Args:
            account_type: Type of account
            name: Display name, unique within the type
            plate: Vehicle plate (truckers)
            owner_user_id: Optional owning user

        Returns:
            Account ID

        Raises:
            ValidationError: If the name is empty
            ConflictError: If the name (or, for truckers, the driver alias) is taken
        """
        account_type = AccountType(account_type)
        name = (name or "").strip()
        if not name:
            raise ValidationError("Account name cannot be empty")

        if self.db.get_account_by_name(account_type, name) is not None:
            raise ConflictError(duplicate_account_name(account_type.value, name))

        driver_key = normalize_driver_name(name)
        if account_type == AccountType.TRUCKER and self.db.resolve_driver_key(driver_key) is not None:
            raise ConflictError(f"Driver name '{name}' already belongs to another trucker")

        with self.db.atomic():
            account_id = self.db.create_account(
                account_type=account_type, name=name, plate=plate, owner_user_id=owner_user_id
            )
            if account_type == AccountType.TRUCKER:
                self.db.add_driver_alias(driver_key, account_id)
            self.db.mark_balance_stale(account_id)

        if account_type == AccountType.TRUCKER:
            # Existing trips with this driver name now belong to the new trucker.
            self.cache.recompute(account_id)
        self.notifier.notify(ChangeType.CREATED, [(account_type, account_id)])
        return account_id

    def get_account(self, account_id: int, account_type: Optional[AccountType] = None) -> Optional[AccountEntity]:
        """Get account by ID.

        Args:
            account_id: Account ID
            account_type: Require the account to be of this type

        Returns:
            Account entity or None if not found
        """
        return self.db.get_account(account_id, account_type)

    def require_account(self, account_id: int, account_type: Optional[AccountType] = None) -> AccountEntity:
        """Get account by ID, raising NotFoundError if missing."""
        account = self.db.get_account(account_id, account_type)
        if account is None:
            label = AccountType(account_type).value if account_type is not None else "account"
            raise NotFoundError(account_not_found(label, account_id))
        return account

    def list_accounts(self, account_type: Optional[AccountType] = None) -> list[AccountEntity]:
        """List accounts, optionally of one type."""
        return self.db.list_accounts(account_type)

    def find_or_create(self, account_type: AccountType, name: str, owner_user_id: Optional[str] = None) -> int:
        """Return the ID of the account with this name, creating it if needed.

        Truckers are looked up through their driver aliases, so any spelling
        that normalizes to a known alias finds the trucker.
        """
        account_type = AccountType(account_type)
        name = (name or "").strip()
        if not name:
            raise ValidationError("Account name cannot be empty")

        if account_type == AccountType.TRUCKER:
            trucker_id = self.db.resolve_driver_key(normalize_driver_name(name))
            if trucker_id is not None:
                return trucker_id

        account = self.db.get_account_by_name(account_type, name)
        if account is not None:
            return account.id
        return self.create_account(account_type, name, owner_user_id=owner_user_id)

    def rename_account(self, account_id: int, name: str) -> None:
        """Rename an account.

        A renamed trucker keeps its old aliases and gains the new name as one.

        Raises:
            NotFoundError: If account not found
            ValidationError: If the name is empty
            ConflictError: If another account of the type has the name
        """
        account = self.require_account(account_id)
        name = (name or "").strip()
        if not name:
            raise ValidationError("Account name cannot be empty")

        existing = self.db.get_account_by_name(account.account_type, name)
        if existing is not None and existing.id != account_id:
            raise ConflictError(duplicate_account_name(account.account_type.value, name))

        if account.account_type == AccountType.TRUCKER:
            owner = self.db.resolve_driver_key(normalize_driver_name(name))
            if owner is not None and owner != account_id:
                raise ConflictError(f"Driver name '{name}' already belongs to another trucker")

        with self.db.atomic():
            self.db.update_account_name(account_id, name)
            if account.account_type == AccountType.TRUCKER:
                self.db.add_driver_alias(normalize_driver_name(name), account_id)

        if account.account_type == AccountType.TRUCKER:
            self.cache.refresh([account_id])
        self.notifier.notify(ChangeType.UPDATED, [(account.account_type, account_id)])

    def add_driver_alias(self, trucker_id: int, driver_name: str) -> str:
        """Register another spelling of a driver's name for a trucker.

        Trips recorded under that name count toward the trucker from now on.

        Returns:
            The normalized driver key

        Raises:
            NotFoundError: If the trucker does not exist
            ValidationError: If the name is empty
            ConflictError: If the name already belongs to another trucker
        """
        self.require_account(trucker_id, AccountType.TRUCKER)
        driver_key = normalize_driver_name(driver_name)
        if not driver_key:
            raise ValidationError("Driver name cannot be empty")

        owner = self.db.resolve_driver_key(driver_key)
        if owner is not None and owner != trucker_id:
            raise ConflictError(f"Driver name '{driver_name}' already belongs to trucker {owner}")

        self.db.add_driver_alias(driver_key, trucker_id)
        self.cache.refresh([trucker_id])
        self.notifier.notify(ChangeType.UPDATED, [(AccountType.TRUCKER, trucker_id)])
        return driver_key

    def list_driver_aliases(self, trucker_id: int) -> list[str]:
        """List the normalized driver names of a trucker."""
        self.require_account(trucker_id, AccountType.TRUCKER)
        return self.db.list_driver_aliases(trucker_id)

    def resolve_driver(self, driver_name: str) -> Optional[AccountEntity]:
        """Return the trucker a driver name belongs to, or None if unresolved."""
        trucker_id = self.db.resolve_driver_key(normalize_driver_name(driver_name))
        if trucker_id is None:
            return None
        return self.db.get_account(trucker_id, AccountType.TRUCKER)
