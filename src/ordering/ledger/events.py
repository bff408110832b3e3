"""Domain events for the Wallet aggregate."""

from protean.fields import Boolean, DateTime, Float, Identifier, String

from ordering.domain import ordering


@ordering.event(part_of="Wallet")
class ObligationRecorded:
    """A pending cashback or commission was recorded against an order."""

    __version__ = 1

    wallet_id = Identifier(required=True)
    user_id = Identifier(required=True)
    kind = String(required=True)
    transaction_id = Identifier(required=True)
    order_id = Identifier()
    amount = Float(required=True)
    description = String()
    sale_amount = Float()
    commission_rate = Float()
    recorded_at = DateTime(required=True)


@ordering.event(part_of="Wallet")
class TransactionSettled:
    """A pending credit was applied to the wallet balance."""

    __version__ = 1

    wallet_id = Identifier(required=True)
    user_id = Identifier(required=True)
    kind = String(required=True)
    transaction_id = Identifier(required=True)
    order_id = Identifier()
    amount = Float(required=True)
    balance_before = Float(required=True)
    balance_after = Float(required=True)
    settled_at = DateTime(required=True)


@ordering.event(part_of="Wallet")
class TransactionVoided:
    """A pending credit was failed without touching the balance."""

    __version__ = 1

    wallet_id = Identifier(required=True)
    user_id = Identifier(required=True)
    kind = String(required=True)
    transaction_id = Identifier(required=True)
    order_id = Identifier()
    amount = Float(required=True)
    reason = String()
    voided_at = DateTime(required=True)


@ordering.event(part_of="Wallet")
class WalletDebited:
    """Funds were taken out of the wallet (redeem at checkout, redemption)."""

    __version__ = 1

    wallet_id = Identifier(required=True)
    user_id = Identifier(required=True)
    kind = String(required=True)
    transaction_id = Identifier(required=True)
    order_id = Identifier()
    transaction_type = String(required=True)
    amount = Float(required=True)
    balance_after = Float(required=True)
    debited_at = DateTime(required=True)


@ordering.event(part_of="Wallet")
class WithdrawalRequested:
    """An affiliate asked to withdraw commission."""

    __version__ = 1

    wallet_id = Identifier(required=True)
    user_id = Identifier(required=True)
    transaction_id = Identifier(required=True)
    amount = Float(required=True)
    is_held = Boolean(required=True)
    requested_at = DateTime(required=True)


@ordering.event(part_of="Wallet")
class WithdrawalResolved:
    """A withdrawal request was approved or rejected."""

    __version__ = 1

    wallet_id = Identifier(required=True)
    user_id = Identifier(required=True)
    transaction_id = Identifier(required=True)
    amount = Float(required=True)
    status = String(required=True)
    reason = String()
    resolved_at = DateTime(required=True)
