"""BDD tests for order settlement and courier-driven status changes."""

import asyncio

from fulfillment.dispatcher import ShippingDispatcher
from ordering.projections.affiliate_sales import AffiliateSale
from protean import current_domain
from pytest_bdd import parsers, scenarios, then, when

scenarios("features/settlement.feature")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the courier reports "{courier_status}"'))
def _(placed, courier, courier_status):
    courier.configure(tracking_status=courier_status)
    asyncio.run(ShippingDispatcher().refresh_tracking(placed["order_id"]))


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the affiliate sale is "{status}"'))
def _(placed, status):
    [sale] = current_domain.repository_for(AffiliateSale)._dao.query.filter(order_id=placed["order_id"]).all().items
    assert sale.status == status
