"""Shared BDD fixtures and step definitions for settlement and the wallet ledger."""

import asyncio

import pytest
from ordering.checkout.assembler import OrderAssembler
from ordering.ledger.wallet import Wallet, WalletKind
from ordering.order.order import Order
from ordering.order.status import ChangeOrderStatus
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then, when


@pytest.fixture()
def error():
    """Container for a captured validation error."""
    return {"exc": None}


def _order_payload(user_id, affiliate_code=None):
    return {
        "user_id": user_id,
        "total_amount": 800.0,
        "payment_method": "Prepaid",
        "affiliate_code": affiliate_code,
        "shipping_address": {"name": "Asha Rao", "address": "12 MG Road", "pincode": "560001"},
        "items": [
            {"product_id": "prod-001", "name": "Lipstick", "quantity": 1, "price": 500.0},
            {"product_id": "prod-002", "name": "Kajal", "quantity": 1, "price": 300.0},
        ],
    }


def _change_status(order_id, status, error):
    try:
        current_domain.process(ChangeOrderStatus(order_id=order_id, status=status), asynchronous=False)
    except ValidationError as exc:
        error["exc"] = exc


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("the catalogue is loaded")
def _(catalogue):
    pass


@given(
    parsers.cfparse('customer "{user_id}" ordered a Lipstick and a Kajal through affiliate "{code}"'),
    target_fixture="placed",
)
def _(user_id, code):
    return asyncio.run(OrderAssembler().place_order(_order_payload(user_id, affiliate_code=code)))


@given(parsers.cfparse('customer "{user_id}" ordered a Lipstick and a Kajal'), target_fixture="placed")
def _(user_id):
    return asyncio.run(OrderAssembler().place_order(_order_payload(user_id)))


@given(parsers.cfparse('the order was marked "{status}"'))
def _(placed, status, error):
    _change_status(placed["order_id"], status, error)
    assert error["exc"] is None


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the order is marked "{status}"'))
def _(placed, status, error):
    _change_status(placed["order_id"], status, error)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the {kind} wallet of "{user_id}" has a balance of {amount:f}'))
def _(kind, user_id, amount):
    wallet = current_domain.repository_for(Wallet).find_for(user_id, WalletKind(kind))
    balance = wallet.balance if wallet else 0.0
    assert balance == pytest.approx(amount)


@then(parsers.cfparse('the order status is "{status}"'))
def _(placed, status):
    assert current_domain.repository_for(Order).get(placed["order_id"]).status == status


@then("the status change is rejected")
def _(error):
    assert isinstance(error["exc"], ValidationError)
    assert "status" in error["exc"].messages
