"""Wallet ledger commands and handlers.

Each handler runs inside one Unit of Work, so a balance change and its
transaction row are persisted together or not at all.
"""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.fields import Boolean, DateTime, Float, Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.ledger.wallet import TransactionType, Wallet, WalletKind

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Wallet")
class RecordPendingObligation:
    user_id = Identifier(required=True)
    kind = String(required=True, choices=WalletKind)
    order_id = Identifier()
    amount = Float(required=True)
    description = String(required=True, max_length=500)
    eligible_at = DateTime()


@ordering.command(part_of="Wallet")
class SettleTransaction:
    user_id = Identifier(required=True)
    kind = String(required=True, choices=WalletKind)
    transaction_id = Identifier(required=True)


@ordering.command(part_of="Wallet")
class VoidTransaction:
    user_id = Identifier(required=True)
    kind = String(required=True, choices=WalletKind)
    transaction_id = Identifier(required=True)
    reason = String(max_length=500)


@ordering.command(part_of="Wallet")
class DebitWallet:
    user_id = Identifier(required=True)
    kind = String(required=True, choices=WalletKind)
    amount = Float(required=True)
    transaction_type = String(required=True, choices=TransactionType)
    description = String(max_length=500)
    order_id = Identifier()


@ordering.command(part_of="Wallet")
class RequestWithdrawal:
    user_id = Identifier(required=True)
    amount = Float(required=True)
    hold = Boolean(default=True)
    description = String(max_length=500)


@ordering.command(part_of="Wallet")
class ApproveWithdrawal:
    user_id = Identifier(required=True)
    transaction_id = Identifier(required=True)


@ordering.command(part_of="Wallet")
class RejectWithdrawal:
    user_id = Identifier(required=True)
    transaction_id = Identifier(required=True)
    reason = String(max_length=500)


@ordering.command(part_of="Wallet")
class ReleaseEligibleCashback:
    """Release scheduler-managed cashback whose eligibility time has passed."""

    as_of = DateTime()


def _wallet(user_id, kind) -> Wallet:
    return current_domain.repository_for(Wallet).get_or_create(str(user_id), WalletKind(kind))


@ordering.command_handler(part_of=Wallet)
class WalletCommandHandler:
    @handle(RecordPendingObligation)
    def record_pending_obligation(self, command):
        wallet = _wallet(command.user_id, command.kind)
        txn = wallet.record_pending_obligation(
            order_id=command.order_id,
            amount=command.amount,
            description=command.description,
            eligible_at=command.eligible_at,
        )
        current_domain.repository_for(Wallet).add(wallet)
        return str(txn.id)

    @handle(SettleTransaction)
    def settle_transaction(self, command):
        wallet = _wallet(command.user_id, command.kind)
        txn = wallet.settle(command.transaction_id)
        current_domain.repository_for(Wallet).add(wallet)
        return txn is not None

    @handle(VoidTransaction)
    def void_transaction(self, command):
        wallet = _wallet(command.user_id, command.kind)
        txn = wallet.void(command.transaction_id, reason=command.reason or "")
        current_domain.repository_for(Wallet).add(wallet)
        return txn is not None

    @handle(DebitWallet)
    def debit_wallet(self, command):
        wallet = _wallet(command.user_id, command.kind)
        txn = wallet.debit(
            amount=command.amount,
            transaction_type=TransactionType(command.transaction_type),
            description=command.description or "",
            order_id=command.order_id,
        )
        current_domain.repository_for(Wallet).add(wallet)
        return str(txn.id)

    @handle(RequestWithdrawal)
    def request_withdrawal(self, command):
        wallet = _wallet(command.user_id, WalletKind.COMMISSION.value)
        txn = wallet.request_withdrawal(
            amount=command.amount,
            hold=command.hold if command.hold is not None else True,
            description=command.description or "",
        )
        current_domain.repository_for(Wallet).add(wallet)
        logger.info("Withdrawal requested", user_id=str(command.user_id), amount=txn.amount, held=txn.is_held)
        return str(txn.id)

    @handle(ApproveWithdrawal)
    def approve_withdrawal(self, command):
        wallet = _wallet(command.user_id, WalletKind.COMMISSION.value)
        wallet.approve_withdrawal(command.transaction_id)
        current_domain.repository_for(Wallet).add(wallet)

    @handle(RejectWithdrawal)
    def reject_withdrawal(self, command):
        wallet = _wallet(command.user_id, WalletKind.COMMISSION.value)
        wallet.reject_withdrawal(command.transaction_id, reason=command.reason or "")
        current_domain.repository_for(Wallet).add(wallet)

    @handle(ReleaseEligibleCashback)
    def release_eligible_cashback(self, command):
        as_of = command.as_of or datetime.now(UTC)
        if as_of.tzinfo is None:
            as_of = as_of.replace(tzinfo=UTC)

        repo = current_domain.repository_for(Wallet)
        released = failed = 0
        for wallet in repo.of_kind(WalletKind.CASHBACK):
            wallet_released, wallet_failed = wallet.release_eligible(as_of)
            if wallet_released or wallet_failed:
                repo.add(wallet)
            released += wallet_released
            failed += wallet_failed

        logger.info("Eligible cashback released", released=released, failed=failed, as_of=str(as_of))
        return {"released": released, "failed": failed}
