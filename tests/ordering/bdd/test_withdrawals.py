"""BDD tests for affiliate withdrawals."""

from ordering.ledger.operations import (
    ApproveWithdrawal,
    RecordPendingObligation,
    RejectWithdrawal,
    RequestWithdrawal,
    SettleTransaction,
)
from ordering.ledger.wallet import InsufficientBalance, Wallet, WalletKind
from protean import current_domain
from pytest_bdd import given, parsers, scenarios, then, when

scenarios("features/withdrawals.feature")


@given(parsers.cfparse('affiliate "{user_id}" has earned {amount:f} in commission'), target_fixture="affiliate")
def _(user_id, amount):
    txn_id = current_domain.process(
        RecordPendingObligation(
            user_id=user_id,
            kind=WalletKind.COMMISSION.value,
            order_id="ord-earned-001",
            amount=amount,
            description="Commission for order ORD-earned-001",
        ),
        asynchronous=False,
    )
    current_domain.process(
        SettleTransaction(user_id=user_id, kind=WalletKind.COMMISSION.value, transaction_id=txn_id),
        asynchronous=False,
    )
    return user_id


@when(
    parsers.cfparse('affiliate "{user_id}" requests a withdrawal of {amount:f}'),
    target_fixture="withdrawal",
)
def _(user_id, amount, error):
    try:
        return current_domain.process(RequestWithdrawal(user_id=user_id, amount=amount), asynchronous=False)
    except InsufficientBalance as exc:
        error["exc"] = exc
        return None


@when("the withdrawal is approved")
def _(affiliate, withdrawal):
    current_domain.process(ApproveWithdrawal(user_id=affiliate, transaction_id=withdrawal), asynchronous=False)


@when("the withdrawal is rejected")
def _(affiliate, withdrawal):
    current_domain.process(
        RejectWithdrawal(user_id=affiliate, transaction_id=withdrawal, reason="Bank details missing"),
        asynchronous=False,
    )


@then(parsers.cfparse('the withdrawal is "{status}"'))
def _(affiliate, withdrawal, status):
    wallet = current_domain.repository_for(Wallet).find_for(affiliate, WalletKind.COMMISSION)
    assert wallet.find_transaction(withdrawal).status == status


@then("the withdrawal is refused")
def _(withdrawal, error):
    assert withdrawal is None
    assert isinstance(error["exc"], InsufficientBalance)
