"""Affiliate sales — denormalized record of each sale attributed to an affiliate.

Mirrors the lifecycle of the underlying commission transaction:
pending → paid (settled on delivery) or failed (voided on cancel/return/refund).
"""

from enum import Enum

from protean.core.projector import on
from protean.fields import DateTime, Float, Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.ledger.events import ObligationRecorded, TransactionSettled, TransactionVoided
from ordering.ledger.wallet import Wallet, WalletKind


class AffiliateSaleStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


@ordering.projection
class AffiliateSale:
    transaction_id = Identifier(identifier=True, required=True)
    order_id = Identifier(required=True)
    affiliate_user_id = Identifier(required=True)
    sale_amount = Float(default=0.0)
    commission_amount = Float(required=True)
    commission_rate = Float(default=0.0)
    status = String(required=True, choices=AffiliateSaleStatus)
    created_at = DateTime()
    updated_at = DateTime()


@ordering.projector(projector_for=AffiliateSale, aggregates=[Wallet])
class AffiliateSaleProjector:
    @on(ObligationRecorded)
    def on_obligation_recorded(self, event):
        if event.kind != WalletKind.COMMISSION.value or not event.order_id:
            return
        current_domain.repository_for(AffiliateSale).add(
            AffiliateSale(
                transaction_id=event.transaction_id,
                order_id=event.order_id,
                affiliate_user_id=event.user_id,
                sale_amount=event.sale_amount or 0.0,
                commission_amount=event.amount,
                commission_rate=event.commission_rate or 0.0,
                status=AffiliateSaleStatus.PENDING.value,
                created_at=event.recorded_at,
                updated_at=event.recorded_at,
            )
        )

    def _update_status(self, transaction_id, status, updated_at):
        repo = current_domain.repository_for(AffiliateSale)
        records = repo._dao.query.filter(transaction_id=transaction_id).all().items
        if not records:
            return
        record = records[0]
        record.status = status
        record.updated_at = updated_at
        repo.add(record)

    @on(TransactionSettled)
    def on_transaction_settled(self, event):
        if event.kind == WalletKind.COMMISSION.value:
            self._update_status(event.transaction_id, AffiliateSaleStatus.PAID.value, event.settled_at)

    @on(TransactionVoided)
    def on_transaction_voided(self, event):
        if event.kind == WalletKind.COMMISSION.value:
            self._update_status(event.transaction_id, AffiliateSaleStatus.FAILED.value, event.voided_at)
