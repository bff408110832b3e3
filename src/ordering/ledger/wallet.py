"""Wallet aggregate (CQRS) — append-only transaction log plus cached balance.

One wallet exists per (user, kind): the customer cashback wallet and the
affiliate commission wallet. Every balance change and its transaction row are
mutated together inside ``atomic_change`` so the invariants only see
consistent states:

    balance == completed credits - (completed debits + held pending debits)
    balance >= 0

Transaction lifecycle:
    pending → completed | failed            (cashback, commission)
    pending → completed | rejected          (withdrawal)
    completed                               (redeem, redemption)
"""

from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String

from ordering.domain import ordering
from ordering.ledger.events import (
    ObligationRecorded,
    TransactionSettled,
    TransactionVoided,
    WalletDebited,
    WithdrawalRequested,
    WithdrawalResolved,
)
from ordering.shared.money import two_places


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class WalletKind(Enum):
    CASHBACK = "cashback"
    COMMISSION = "commission"


class TransactionType(Enum):
    CREDIT = "credit"
    PENDING = "pending"
    COMMISSION = "commission"
    REDEEM = "redeem"
    REDEMPTION = "redemption"
    WITHDRAWAL = "withdrawal"


class TransactionStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REJECTED = "rejected"


CREDIT_TYPES = {TransactionType.CREDIT.value, TransactionType.PENDING.value, TransactionType.COMMISSION.value}
DEBIT_TYPES = {TransactionType.REDEEM.value, TransactionType.REDEMPTION.value, TransactionType.WITHDRAWAL.value}


class InsufficientBalance(ValidationError):
    """Raised when a debit would take the wallet below zero."""


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Wallet")
class WalletTransaction:
    sequence = Integer(required=True, min_value=1)
    order_id = Identifier()
    type = String(required=True, max_length=20, choices=TransactionType)
    amount = Float(required=True, min_value=0.0)
    status = String(max_length=20, choices=TransactionStatus, default=TransactionStatus.PENDING.value)
    description = String(max_length=500)
    balance_before = Float()
    balance_after = Float()
    is_held = Boolean(default=False)
    eligible_at = DateTime()
    created_at = DateTime()
    processed_at = DateTime()

    @property
    def is_credit(self) -> bool:
        return self.type in CREDIT_TYPES

    @property
    def is_pending(self) -> bool:
        return self.status == TransactionStatus.PENDING.value


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@ordering.aggregate
class Wallet:
    user_id = Identifier(required=True)
    kind = String(required=True, max_length=20, choices=WalletKind)
    balance = Float(default=0.0)
    total_earned = Float(default=0.0)
    total_spent = Float(default=0.0)  # redeemed for cashback, withdrawn for commission
    transactions = HasMany(WalletTransaction)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------
    @invariant.post
    def balance_matches_ledger(self):
        expected = 0.0
        for txn in self.transactions or []:
            if txn.status == TransactionStatus.COMPLETED.value:
                expected += txn.amount if txn.is_credit else -txn.amount
            elif txn.is_pending and txn.is_held:
                expected -= txn.amount
        if abs(two_places(expected) - two_places(self.balance or 0.0)) >= 0.01:
            raise ValidationError({"balance": ["Balance does not match the transaction ledger"]})

    @invariant.post
    def balance_cannot_be_negative(self):
        if (self.balance or 0.0) < 0:
            raise ValidationError({"balance": ["Balance cannot be negative"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def open(cls, user_id: str, kind: WalletKind):
        now = datetime.now(UTC)
        return cls(
            user_id=str(user_id),
            kind=kind.value,
            balance=0.0,
            total_earned=0.0,
            total_spent=0.0,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def find_transaction(self, transaction_id: str) -> WalletTransaction:
        txn = next((t for t in (self.transactions or []) if str(t.id) == str(transaction_id)), None)
        if txn is None:
            raise ValidationError({"transaction_id": [f"Transaction {transaction_id} not found in this wallet"]})
        return txn

    def pending_for_order(self, order_id: str) -> list[WalletTransaction]:
        """Pending credit obligations for ``order_id`` in insertion order."""
        return sorted(
            (
                t
                for t in (self.transactions or [])
                if t.is_pending and t.is_credit and str(t.order_id) == str(order_id)
            ),
            key=lambda t: t.sequence,
        )

    def _next_sequence(self) -> int:
        return max((t.sequence for t in (self.transactions or [])), default=0) + 1

    def _append(self, **fields) -> WalletTransaction:
        txn = WalletTransaction(sequence=self._next_sequence(), created_at=datetime.now(UTC), **fields)
        self.add_transactions(txn)
        return txn

    # -------------------------------------------------------------------
    # Pending obligations
    # -------------------------------------------------------------------
    def record_pending_obligation(
        self,
        order_id: str | None,
        amount: float,
        description: str,
        eligible_at: datetime | None = None,
        sale_amount: float | None = None,
        commission_rate: float | None = None,
    ) -> WalletTransaction:
        """Record a pending credit, or return the existing one for the same key.

        The de-duplication key is (order, amount, description) among
        transactions that have not failed.
        """
        amount = two_places(amount)
        if amount <= 0:
            raise ValidationError({"amount": ["Obligation amount must be positive"]})

        for txn in self.transactions or []:
            if (
                txn.status != TransactionStatus.FAILED.value
                and str(txn.order_id) == str(order_id)
                and two_places(txn.amount) == amount
                and (txn.description or "") == (description or "")
            ):
                return txn

        txn_type = TransactionType.COMMISSION if self.kind == WalletKind.COMMISSION.value else TransactionType.PENDING
        txn = self._append(
            order_id=order_id,
            type=txn_type.value,
            amount=amount,
            status=TransactionStatus.PENDING.value,
            description=description,
            eligible_at=eligible_at,
        )
        self.updated_at = datetime.now(UTC)
        self.raise_(
            ObligationRecorded(
                wallet_id=str(self.id),
                user_id=str(self.user_id),
                kind=self.kind,
                transaction_id=str(txn.id),
                order_id=order_id,
                amount=amount,
                description=description,
                sale_amount=sale_amount,
                commission_rate=commission_rate,
                recorded_at=txn.created_at,
            )
        )
        return txn

    def settle(self, transaction_id: str) -> WalletTransaction | None:
        """Apply a pending credit to the balance. Returns None if it is no longer pending."""
        txn = self.find_transaction(transaction_id)
        if not txn.is_pending:
            return None
        if not txn.is_credit:
            raise ValidationError({"transaction_id": ["Only credit obligations can be settled"]})

        now = datetime.now(UTC)
        before = two_places(self.balance)
        after = two_places(before + txn.amount)
        with atomic_change(self):
            txn.balance_before = before
            txn.balance_after = after
            txn.status = TransactionStatus.COMPLETED.value
            txn.processed_at = now
            if txn.type == TransactionType.PENDING.value:
                txn.type = TransactionType.CREDIT.value
            self.balance = after
            self.total_earned = two_places((self.total_earned or 0.0) + txn.amount)
            self.updated_at = now

        self.raise_(
            TransactionSettled(
                wallet_id=str(self.id),
                user_id=str(self.user_id),
                kind=self.kind,
                transaction_id=str(txn.id),
                order_id=txn.order_id,
                amount=txn.amount,
                balance_before=before,
                balance_after=after,
                settled_at=now,
            )
        )
        return txn

    def void(self, transaction_id: str, reason: str = "") -> WalletTransaction | None:
        """Fail a pending credit. The balance is untouched."""
        txn = self.find_transaction(transaction_id)
        if not txn.is_pending or not txn.is_credit:
            return None

        now = datetime.now(UTC)
        txn.status = TransactionStatus.FAILED.value
        txn.processed_at = now
        self.updated_at = now
        self.raise_(
            TransactionVoided(
                wallet_id=str(self.id),
                user_id=str(self.user_id),
                kind=self.kind,
                transaction_id=str(txn.id),
                order_id=txn.order_id,
                amount=txn.amount,
                reason=reason,
                voided_at=now,
            )
        )
        return txn

    def settle_order(self, order_id: str) -> list[WalletTransaction]:
        """Settle every delivery-released credit tied to ``order_id`` in ascending order.

        Credits carrying ``eligible_at`` belong to the release schedule and are
        left for ``release_eligible``.
        """
        settled = []
        for txn in self.pending_for_order(order_id):
            if txn.eligible_at is not None:
                continue
            if self.settle(txn.id) is not None:
                settled.append(txn)
        return settled

    def void_order(self, order_id: str, reason: str) -> list[WalletTransaction]:
        return [txn for txn in self.pending_for_order(order_id) if self.void(txn.id, reason) is not None]

    def release_eligible(self, as_of: datetime) -> tuple[int, int]:
        """Release scheduler-managed cashback whose ``eligible_at`` has passed.

        Returns (released, failed). Transactions without an order are failed.
        """
        released = failed = 0
        due = sorted(
            (
                t
                for t in (self.transactions or [])
                if t.is_pending and t.is_credit and t.eligible_at is not None and _as_aware(t.eligible_at) <= as_of
            ),
            key=lambda t: t.sequence,
        )
        for txn in due:
            if not txn.order_id:
                self.void(txn.id, reason="No order attached")
                failed += 1
            else:
                self.settle(txn.id)
                released += 1
        return released, failed

    # -------------------------------------------------------------------
    # Debits
    # -------------------------------------------------------------------
    def _assert_covers(self, amount: float) -> None:
        if amount > two_places(self.balance):
            raise InsufficientBalance(
                {"amount": [f"Insufficient {self.kind} balance: requested {amount:.2f}, available {self.balance:.2f}"]}
            )

    def debit(
        self,
        amount: float,
        transaction_type: TransactionType,
        description: str,
        order_id: str | None = None,
    ) -> WalletTransaction:
        """Take ``amount`` out of the wallet as a completed debit."""
        amount = two_places(amount)
        if amount <= 0:
            raise ValidationError({"amount": ["Debit amount must be positive"]})
        if transaction_type.value not in DEBIT_TYPES:
            raise ValidationError({"type": [f"{transaction_type.value} is not a debit type"]})
        self._assert_covers(amount)

        now = datetime.now(UTC)
        before = two_places(self.balance)
        after = two_places(before - amount)
        with atomic_change(self):
            txn = self._append(
                order_id=order_id,
                type=transaction_type.value,
                amount=amount,
                status=TransactionStatus.COMPLETED.value,
                description=description,
                balance_before=before,
                balance_after=after,
                processed_at=now,
            )
            self.balance = after
            self.total_spent = two_places((self.total_spent or 0.0) + amount)
            self.updated_at = now

        self.raise_(
            WalletDebited(
                wallet_id=str(self.id),
                user_id=str(self.user_id),
                kind=self.kind,
                transaction_id=str(txn.id),
                order_id=order_id,
                transaction_type=transaction_type.value,
                amount=amount,
                balance_after=after,
                debited_at=now,
            )
        )
        return txn

    # -------------------------------------------------------------------
    # Withdrawals
    # -------------------------------------------------------------------
    def request_withdrawal(self, amount: float, hold: bool = True, description: str = "") -> WalletTransaction:
        """Open a withdrawal request.

        Held requests deduct the funds now; deferred requests only check the
        balance and deduct at approval.
        """
        amount = two_places(amount)
        if amount <= 0:
            raise ValidationError({"amount": ["Withdrawal amount must be positive"]})
        self._assert_covers(amount)

        now = datetime.now(UTC)
        before = two_places(self.balance)
        with atomic_change(self):
            txn = self._append(
                type=TransactionType.WITHDRAWAL.value,
                amount=amount,
                status=TransactionStatus.PENDING.value,
                description=description or "Withdrawal request",
                is_held=hold,
                balance_before=before,
                balance_after=two_places(before - amount) if hold else before,
            )
            if hold:
                self.balance = two_places(before - amount)
            self.updated_at = now

        self.raise_(
            WithdrawalRequested(
                wallet_id=str(self.id),
                user_id=str(self.user_id),
                transaction_id=str(txn.id),
                amount=amount,
                is_held=hold,
                requested_at=now,
            )
        )
        return txn

    def _pending_withdrawal(self, transaction_id: str) -> WalletTransaction:
        txn = self.find_transaction(transaction_id)
        if txn.type != TransactionType.WITHDRAWAL.value:
            raise ValidationError({"transaction_id": ["Transaction is not a withdrawal"]})
        if not txn.is_pending:
            raise ValidationError({"transaction_id": [f"Withdrawal is already {txn.status}"]})
        return txn

    def approve_withdrawal(self, transaction_id: str) -> WalletTransaction:
        txn = self._pending_withdrawal(transaction_id)
        if not txn.is_held:
            self._assert_covers(txn.amount)

        now = datetime.now(UTC)
        with atomic_change(self):
            if not txn.is_held:
                txn.balance_before = two_places(self.balance)
                txn.balance_after = two_places(self.balance - txn.amount)
                self.balance = txn.balance_after
            txn.status = TransactionStatus.COMPLETED.value
            txn.processed_at = now
            self.total_spent = two_places((self.total_spent or 0.0) + txn.amount)
            self.updated_at = now

        self.raise_(
            WithdrawalResolved(
                wallet_id=str(self.id),
                user_id=str(self.user_id),
                transaction_id=str(txn.id),
                amount=txn.amount,
                status=TransactionStatus.COMPLETED.value,
                resolved_at=now,
            )
        )
        return txn

    def reject_withdrawal(self, transaction_id: str, reason: str = "") -> WalletTransaction:
        txn = self._pending_withdrawal(transaction_id)

        now = datetime.now(UTC)
        with atomic_change(self):
            if txn.is_held:
                self.balance = two_places(self.balance + txn.amount)
            txn.status = TransactionStatus.REJECTED.value
            txn.processed_at = now
            self.updated_at = now

        self.raise_(
            WithdrawalResolved(
                wallet_id=str(self.id),
                user_id=str(self.user_id),
                transaction_id=str(txn.id),
                amount=txn.amount,
                status=TransactionStatus.REJECTED.value,
                reason=reason,
                resolved_at=now,
            )
        )
        return txn


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@ordering.repository(part_of=Wallet)
class WalletRepository:
    def find_for(self, user_id: str, kind: WalletKind) -> Wallet | None:
        wallets = self._dao.query.filter(user_id=str(user_id), kind=kind.value).all().items
        return wallets[0] if wallets else None

    def get_or_create(self, user_id: str, kind: WalletKind) -> Wallet:
        """Return the user's wallet of ``kind``, opening an empty one on first access."""
        wallet = self.find_for(user_id, kind)
        if wallet is None:
            wallet = Wallet.open(user_id, kind)
            self.add(wallet)
        return wallet

    def of_kind(self, kind: WalletKind) -> list[Wallet]:
        return self._dao.query.filter(kind=kind.value).all().items
