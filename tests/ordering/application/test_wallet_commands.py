"""Application tests for wallet ledger commands: obligations, debits, withdrawals and cashback release."""

from datetime import UTC, datetime, timedelta

import pytest
from ordering.ledger.operations import (
    ApproveWithdrawal,
    DebitWallet,
    RecordPendingObligation,
    RejectWithdrawal,
    ReleaseEligibleCashback,
    RequestWithdrawal,
    SettleTransaction,
    VoidTransaction,
)
from ordering.ledger.wallet import InsufficientBalance, TransactionStatus, Wallet, WalletKind
from protean import current_domain
from protean.exceptions import ValidationError


def _record(user_id="user-001", kind="cashback", order_id="ord-001", amount=50.0, description="Cashback", **extra):
    return current_domain.process(
        RecordPendingObligation(
            user_id=user_id,
            kind=kind,
            order_id=order_id,
            amount=amount,
            description=description,
            **extra,
        ),
        asynchronous=False,
    )


def _settle(transaction_id, user_id="user-001", kind="cashback"):
    return current_domain.process(
        SettleTransaction(user_id=user_id, kind=kind, transaction_id=transaction_id), asynchronous=False
    )


def _wallet(user_id="user-001", kind=WalletKind.CASHBACK):
    return current_domain.repository_for(Wallet).find_for(user_id, kind)


def _funded_commission_wallet(amount=500.0):
    _settle(_record(user_id="aff-001", kind="commission", amount=amount), user_id="aff-001", kind="commission")


class TestObligations:
    def test_record_opens_wallet_on_first_use(self):
        assert _wallet() is None
        txn_id = _record()
        wallet = _wallet()
        assert wallet.find_transaction(txn_id).status == TransactionStatus.PENDING.value
        assert wallet.balance == 0.0

    def test_same_obligation_recorded_once(self):
        first = _record()
        second = _record()
        assert first == second
        assert len(_wallet().transactions) == 1

    def test_settle_then_settle_again(self):
        txn_id = _record()
        assert _settle(txn_id) is True
        assert _settle(txn_id) is False
        assert _wallet().balance == 50.0

    def test_void_leaves_balance_alone(self):
        txn_id = _record()
        voided = current_domain.process(
            VoidTransaction(user_id="user-001", kind="cashback", transaction_id=txn_id, reason="Order cancelled"),
            asynchronous=False,
        )
        assert voided is True
        assert _settle(txn_id) is False
        assert _wallet().balance == 0.0

    def test_unknown_transaction_rejected(self):
        _record()
        with pytest.raises(ValidationError) as exc:
            _settle("txn-missing")
        assert "transaction_id" in exc.value.messages


class TestDebits:
    def test_debit_within_balance(self):
        _settle(_record(amount=200.0))
        current_domain.process(
            DebitWallet(user_id="user-001", kind="cashback", amount=120.0, transaction_type="redeem", order_id="ord-9"),
            asynchronous=False,
        )
        wallet = _wallet()
        assert wallet.balance == 80.0
        assert wallet.total_spent == 120.0

    def test_overdraft_rejected_and_nothing_written(self):
        _settle(_record(amount=100.0))
        with pytest.raises(InsufficientBalance):
            current_domain.process(
                DebitWallet(user_id="user-001", kind="cashback", amount=150.0, transaction_type="redeem"),
                asynchronous=False,
            )
        wallet = _wallet()
        assert wallet.balance == 100.0
        assert len(wallet.transactions) == 1

    def test_credit_type_cannot_debit(self):
        _settle(_record(amount=100.0))
        with pytest.raises(ValidationError):
            current_domain.process(
                DebitWallet(user_id="user-001", kind="cashback", amount=10.0, transaction_type="credit"),
                asynchronous=False,
            )


class TestWithdrawals:
    def test_held_withdrawal_deducts_immediately(self):
        _funded_commission_wallet()
        txn_id = current_domain.process(RequestWithdrawal(user_id="aff-001", amount=200.0), asynchronous=False)
        wallet = _wallet("aff-001", WalletKind.COMMISSION)
        assert wallet.balance == 300.0
        assert wallet.find_transaction(txn_id).is_held is True

    def test_approve_held_withdrawal(self):
        _funded_commission_wallet()
        txn_id = current_domain.process(RequestWithdrawal(user_id="aff-001", amount=200.0), asynchronous=False)
        current_domain.process(ApproveWithdrawal(user_id="aff-001", transaction_id=txn_id), asynchronous=False)
        wallet = _wallet("aff-001", WalletKind.COMMISSION)
        assert wallet.balance == 300.0
        assert wallet.total_spent == 200.0
        assert wallet.find_transaction(txn_id).status == TransactionStatus.COMPLETED.value

    def test_reject_held_withdrawal_restores_funds(self):
        _funded_commission_wallet()
        txn_id = current_domain.process(RequestWithdrawal(user_id="aff-001", amount=200.0), asynchronous=False)
        current_domain.process(
            RejectWithdrawal(user_id="aff-001", transaction_id=txn_id, reason="KYC incomplete"),
            asynchronous=False,
        )
        wallet = _wallet("aff-001", WalletKind.COMMISSION)
        assert wallet.balance == 500.0
        assert wallet.find_transaction(txn_id).status == TransactionStatus.REJECTED.value

    def test_deferred_withdrawal_deducts_on_approval(self):
        _funded_commission_wallet()
        txn_id = current_domain.process(
            RequestWithdrawal(user_id="aff-001", amount=200.0, hold=False), asynchronous=False
        )
        assert _wallet("aff-001", WalletKind.COMMISSION).balance == 500.0
        current_domain.process(ApproveWithdrawal(user_id="aff-001", transaction_id=txn_id), asynchronous=False)
        assert _wallet("aff-001", WalletKind.COMMISSION).balance == 300.0

    def test_withdrawal_above_balance_rejected(self):
        _funded_commission_wallet(100.0)
        with pytest.raises(InsufficientBalance):
            current_domain.process(RequestWithdrawal(user_id="aff-001", amount=150.0), asynchronous=False)

    def test_withdrawal_resolved_only_once(self):
        _funded_commission_wallet()
        txn_id = current_domain.process(RequestWithdrawal(user_id="aff-001", amount=100.0), asynchronous=False)
        current_domain.process(ApproveWithdrawal(user_id="aff-001", transaction_id=txn_id), asynchronous=False)
        with pytest.raises(ValidationError):
            current_domain.process(RejectWithdrawal(user_id="aff-001", transaction_id=txn_id), asynchronous=False)


class TestReleaseEligibleCashback:
    def test_due_cashback_released(self):
        now = datetime.now(UTC)
        due = _record(order_id="ord-001", eligible_at=now - timedelta(days=1))
        later = _record(order_id="ord-002", eligible_at=now + timedelta(days=7))
        unscheduled = _record(order_id="ord-003")

        result = current_domain.process(ReleaseEligibleCashback(as_of=now), asynchronous=False)

        assert result == {"released": 1, "failed": 0}
        wallet = _wallet()
        assert wallet.balance == 50.0
        assert wallet.find_transaction(due).status == TransactionStatus.COMPLETED.value
        assert wallet.find_transaction(later).is_pending
        assert wallet.find_transaction(unscheduled).is_pending

    def test_cashback_without_order_fails(self):
        now = datetime.now(UTC)
        orphan = _record(order_id=None, eligible_at=now - timedelta(hours=1))

        result = current_domain.process(ReleaseEligibleCashback(as_of=now), asynchronous=False)

        assert result == {"released": 0, "failed": 1}
        assert _wallet().find_transaction(orphan).status == TransactionStatus.FAILED.value
        assert _wallet().balance == 0.0

    def test_commission_wallets_untouched(self):
        now = datetime.now(UTC)
        _record(user_id="aff-001", kind="commission", eligible_at=now - timedelta(days=1))
        result = current_domain.process(ReleaseEligibleCashback(as_of=now), asynchronous=False)
        assert result == {"released": 0, "failed": 0}

    def test_release_is_repeatable(self):
        now = datetime.now(UTC)
        _record(eligible_at=now - timedelta(days=1))
        current_domain.process(ReleaseEligibleCashback(as_of=now), asynchronous=False)
        result = current_domain.process(ReleaseEligibleCashback(as_of=now), asynchronous=False)
        assert result == {"released": 0, "failed": 0}
        assert _wallet().balance == 50.0
