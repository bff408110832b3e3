"""Settlement engine — turns an order's pending obligations into balances, or voids them.

Only ``pending`` transactions are ever acted upon, which makes both operations
idempotent: a second ``delivered`` event finds nothing left to settle, and a
stray ``delivered`` after a cancellation finds only failed rows.

These functions mutate wallets through the repository and are meant to run
inside the Unit of Work of the command that changed the order status.
"""

from dataclasses import dataclass, field

import structlog
from protean.utils.globals import current_domain

from ordering.ledger.affiliate import Affiliate
from ordering.ledger.wallet import Wallet, WalletKind
from ordering.order.order import Order
from ordering.shared.money import two_places

logger = structlog.get_logger(__name__)


@dataclass
class SettlementOutcome:
    order_id: str
    settled: list[str] = field(default_factory=list)
    voided: list[str] = field(default_factory=list)
    cashback_credited: float = 0.0
    commission_credited: float = 0.0

    def as_dict(self) -> dict:
        return {
            "settled": len(self.settled),
            "voided": len(self.voided),
            "cashback_credited": self.cashback_credited,
            "commission_credited": self.commission_credited,
        }


def _wallets_for(order: Order) -> list[Wallet]:
    repo = current_domain.repository_for(Wallet)
    wallets = []
    cashback = repo.find_for(order.user_id, WalletKind.CASHBACK)
    if cashback is not None:
        wallets.append(cashback)

    affiliate = current_domain.repository_for(Affiliate).find_by_code(order.affiliate_code)
    if affiliate is not None:
        commission = repo.find_for(affiliate.user_id, WalletKind.COMMISSION)
        if commission is not None:
            wallets.append(commission)
    return wallets


def settle_order_obligations(order: Order) -> SettlementOutcome:
    """Credit the pending cashback and commission of a delivered order; scheduled credits wait for release."""
    order_id = str(order.id)
    outcome = SettlementOutcome(order_id=order_id)
    repo = current_domain.repository_for(Wallet)

    for wallet in _wallets_for(order):
        settled = wallet.settle_order(order_id)
        if not settled:
            continue
        credited = two_places(sum(txn.amount for txn in settled))
        if wallet.kind == WalletKind.CASHBACK.value:
            outcome.cashback_credited = credited
        else:
            outcome.commission_credited = credited
        outcome.settled.extend(str(txn.id) for txn in settled)
        repo.add(wallet)

    logger.info(
        "Order obligations settled",
        order_id=order_id,
        settled=len(outcome.settled),
        cashback=outcome.cashback_credited,
        commission=outcome.commission_credited,
    )
    return outcome


def reverse_order_obligations(order: Order, reason: str) -> SettlementOutcome:
    """Fail every still-pending cashback and commission transaction of the order."""
    order_id = str(order.id)
    outcome = SettlementOutcome(order_id=order_id)
    repo = current_domain.repository_for(Wallet)

    for wallet in _wallets_for(order):
        voided = wallet.void_order(order_id, reason)
        if voided:
            outcome.voided.extend(str(txn.id) for txn in voided)
            repo.add(wallet)

    logger.info("Order obligations voided", order_id=order_id, voided=len(outcome.voided), reason=reason)
    return outcome
