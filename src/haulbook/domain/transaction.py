"""Transaction domain service."""

from datetime import date
from decimal import Decimal
from typing import Any, Optional

from haulbook.database.base import Database
from haulbook.domain.balance_cache import BalanceCache
from haulbook.domain.entities import (
    AccountType,
    PartyType,
    Transaction as TransactionEntity,
    TransactionStatus,
    TransactionView,
)
from haulbook.domain.errors import (
    NotFoundError,
    ValidationError,
    account_not_found,
    transaction_not_found,
)
from haulbook.domain.events import ChangeNotifier, ChangeType

_UPDATABLE_FIELDS = frozenset(
    {
        "from_party_type",
        "from_party_id",
        "to_party_type",
        "to_party_id",
        "concept",
        "amount",
        "date",
        "payment_method",
        "comment",
        "status",
        "is_system_generated",
    }
)

_VIEW_FLAGS = {
    TransactionView.GLOBAL: "hidden",
    TransactionView.BUYER: "hidden_in_buyer_view",
    TransactionView.MINE: "hidden_in_mine_view",
    TransactionView.TRUCKER: "hidden_in_trucker_view",
}


def looks_system_generated(concept: str) -> bool:
    """Legacy convention: concepts mentioning "trip" were written by the trip importer."""
    return "trip" in (concept or "").lower()


def transaction_accounts(txn: TransactionEntity) -> list[tuple[AccountType, int]]:
    """Accounts on either side of a transaction; virtual parties are skipped."""
    touched = []
    for party_type, party_id in (
        (txn.from_party_type, txn.from_party_id),
        (txn.to_party_type, txn.to_party_id),
    ):
        if party_type.is_account:
            touched.append((AccountType(party_type.value), int(party_id)))
    return touched


class TransactionService:
    """Service for manual money movements between parties."""

    def __init__(
        self,
        db: Database,
        cache: Optional[BalanceCache] = None,
        notifier: Optional[ChangeNotifier] = None,
    ):
        """Initialize transaction service.

        Args:
            db: Database instance
            cache: Balance cache to refresh after writes
            notifier: Receives change events after writes
        """
        self.db = db
        self.cache = cache or BalanceCache(db)
        self.notifier = notifier or ChangeNotifier()

    def create_transaction(
        self,
        from_party_type: PartyType,
        from_party_id: int | str,
        to_party_type: PartyType,
        to_party_id: int | str,
        concept: str,
        amount: Decimal,
        date: date,
        payment_method: str = "cash",
        comment: Optional[str] = None,
        status: TransactionStatus = TransactionStatus.COMPLETED,
        is_system_generated: Optional[bool] = None,
        owner_user_id: Optional[str] = None,
    ) -> int:
        """Record money moving from one party to another.

        Args:
            from_party_type: Type of the party sending the money
            from_party_id: Account ID, or a free token for virtual parties
            to_party_type: Type of the party receiving the money
            to_party_id: Account ID, or a free token for virtual parties
            concept: What the payment is for
            amount: Positive amount
            date: Transaction date
            payment_method: How it was paid
            comment: Optional comment
            status: Pending transactions do not affect balances
            is_system_generated: Whether the row mirrors a trip; when omitted it
                is set from the concept text, once, at creation
            owner_user_id: Optional owning user

        Returns:
            Transaction ID

        Raises:
            ValidationError: If the amount or concept is invalid, or both sides are the same party
            NotFoundError: If an account party does not exist
        """
        from_party_type = PartyType(from_party_type)
        to_party_type = PartyType(to_party_type)
        from_party_id = self._validate_party(from_party_type, from_party_id)
        to_party_id = self._validate_party(to_party_type, to_party_id)
        self._validate_sides(from_party_type, from_party_id, to_party_type, to_party_id)
        amount = self._validate_amount(amount)
        if not (concept or "").strip():
            raise ValidationError("Concept cannot be empty")
        if is_system_generated is None:
            is_system_generated = looks_system_generated(concept)

        transaction_id = self.db.create_transaction(
            from_party_type=from_party_type,
            from_party_id=from_party_id,
            to_party_type=to_party_type,
            to_party_id=to_party_id,
            concept=concept.strip(),
            amount=amount,
            date=date,
            payment_method=payment_method,
            status=TransactionStatus(status).value,
            is_system_generated=is_system_generated,
            comment=comment,
            owner_user_id=owner_user_id,
        )

        touched = self._touched_accounts(self.db.get_transaction(transaction_id))
        self._refresh(touched)
        self.notifier.notify(ChangeType.CREATED, touched)
        return transaction_id

    def get_transaction(self, transaction_id: int) -> Optional[TransactionEntity]:
        """Get transaction by ID.

        Args:
            transaction_id: Transaction ID

        Returns:
            Transaction entity or None if not found
        """
        return self.db.get_transaction(transaction_id)

    def list_transactions_for_party(
        self, party_type: PartyType, party_id: int | str, view: Optional[TransactionView] = None
    ) -> list[TransactionEntity]:
        """List transactions where the party is on either side.

        With a view, rows hidden globally or in that view are left out.
        """
        transactions = self.db.list_transactions_for_party(PartyType(party_type), str(party_id))
        if view is None:
            return transactions
        view_flag = _VIEW_FLAGS[TransactionView(view)]
        return [
            txn for txn in transactions if not txn.hidden and not getattr(txn, view_flag)
        ]

    def update_transaction(self, transaction_id: int, **changes: Any) -> None:
        """Update transaction fields.

        The system-generated flag is only changed when passed explicitly; a new
        concept does not re-infer it.

        Raises:
            NotFoundError: If the transaction or a new account party does not exist
            ValidationError: If a field is unknown or a value is invalid
        """
        before = self._require_transaction(transaction_id)
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update transaction field(s): {', '.join(sorted(unknown))}")

        from_party_type = PartyType(changes.get("from_party_type", before.from_party_type))
        to_party_type = PartyType(changes.get("to_party_type", before.to_party_type))
        from_party_id = self._validate_party(from_party_type, changes.get("from_party_id", before.from_party_id))
        to_party_id = self._validate_party(to_party_type, changes.get("to_party_id", before.to_party_id))
        self._validate_sides(from_party_type, from_party_id, to_party_type, to_party_id)
        if "amount" in changes:
            changes["amount"] = self._validate_amount(changes["amount"])
        if "concept" in changes:
            if not (changes["concept"] or "").strip():
                raise ValidationError("Concept cannot be empty")
            changes["concept"] = changes["concept"].strip()
        if "status" in changes:
            changes["status"] = TransactionStatus(changes["status"]).value

        touched_before = self._touched_accounts(before)
        self.db.update_transaction(transaction_id, **changes)
        touched = list(
            dict.fromkeys(touched_before + self._touched_accounts(self.db.get_transaction(transaction_id)))
        )
        self._refresh(touched)
        self.notifier.notify(ChangeType.UPDATED, touched)

    def delete_transaction(self, transaction_id: int) -> None:
        """Delete a transaction.

        Raises:
            NotFoundError: If transaction not found
        """
        txn = self._require_transaction(transaction_id)
        touched = self._touched_accounts(txn)
        self.db.delete_transaction(transaction_id)
        self._refresh(touched)
        self.notifier.notify(ChangeType.DELETED, touched)

    def hide_in_view(self, transaction_id: int, view: TransactionView, hidden: bool = True) -> None:
        """Hide (or show) a transaction in one view. Balances are unaffected."""
        txn = self._require_transaction(transaction_id)
        self.db.update_transaction(transaction_id, **{_VIEW_FLAGS[TransactionView(view)]: hidden})
        self.notifier.notify(ChangeType.UPDATED, self._touched_accounts(txn))

    def show_all_hidden(self, party_type: PartyType, party_id: int | str) -> int:
        """Clear every visibility flag on a party's transactions.

        Returns:
            Number of transactions that were hidden somewhere
        """
        party_type = PartyType(party_type)
        cleared = 0
        for txn in self.db.list_transactions_for_party(party_type, str(party_id)):
            flags = {flag: False for flag in _VIEW_FLAGS.values() if getattr(txn, flag)}
            if flags:
                self.db.update_transaction(txn.id, **flags)
                cleared += 1
        if cleared and party_type.is_account:
            self.notifier.notify(ChangeType.UPDATED, [(AccountType(party_type.value), int(party_id))])
        return cleared

    def _require_transaction(self, transaction_id: int) -> TransactionEntity:
        txn = self.db.get_transaction(transaction_id)
        if txn is None:
            raise NotFoundError(transaction_not_found(transaction_id))
        return txn

    def _validate_party(self, party_type: PartyType, party_id: int | str) -> str:
        """Check an account party exists; return the party id as stored."""
        party_id = str(party_id).strip() if party_id is not None else ""
        if not party_id:
            raise ValidationError(f"Missing id for {party_type.value} party")
        if not party_type.is_account:
            return party_id
        try:
            account_id = int(party_id)
        except ValueError:
            raise ValidationError(f"Invalid {party_type.value} id '{party_id}'")
        if self.db.get_account(account_id, AccountType(party_type.value)) is None:
            raise NotFoundError(account_not_found(party_type.value, account_id))
        return str(account_id)

    @staticmethod
    def _validate_sides(
        from_party_type: PartyType, from_party_id: str, to_party_type: PartyType, to_party_id: str
    ) -> None:
        if from_party_type == to_party_type and from_party_id == to_party_id:
            raise ValidationError("A transaction cannot have the same party on both sides")

    @staticmethod
    def _validate_amount(amount: Any) -> Decimal:
        try:
            amount = Decimal(str(amount))
        except ArithmeticError:
            raise ValidationError(f"Invalid amount '{amount}'")
        if not amount.is_finite() or amount <= 0:
            raise ValidationError("Amount must be a positive number")
        return amount

    @staticmethod
    def _touched_accounts(txn: TransactionEntity) -> list[tuple[AccountType, int]]:
        return transaction_accounts(txn)

    def _refresh(self, touched: list[tuple[AccountType, int]]) -> None:
        self.cache.refresh(account_id for _, account_id in touched)
