"""Ordering bounded context — Checkout, Settlement, and the Wallet Ledger.

Owns the order lifecycle (CQRS), the cashback and affiliate-commission
wallets, and the settlement engine that turns pending obligations into
real balances once an order is delivered.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
