import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield


@pytest.fixture()
def courier():
    from fulfillment.courier import get_courier

    return get_courier()


@pytest.fixture()
def mailbox():
    from notifications.channel import get_email_channel

    return get_email_channel()


@pytest.fixture()
def gateway():
    from payments.gateway import get_gateway

    return get_gateway()


@pytest.fixture()
def catalogue():
    """Seed the catalogue terms checkout reads, plus one active affiliate (ASHA10)."""
    import json

    from ordering.catalogue.catalogue import Combo, Offer, Product
    from ordering.ledger.affiliate import Affiliate
    from protean import current_domain

    products = current_domain.repository_for(Product)
    products.add(
        Product(
            id="prod-001",
            name="Lipstick",
            sku="LIP-001",
            price=500.0,
            cashback_percentage=5.0,
            affiliate_commission=10.0,
        )
    )
    products.add(
        Product(id="prod-002", name="Kajal", sku="KAJ-001", price=300.0, cashback_price=20.0, affiliate_commission=7.5)
    )
    products.add(Product(id="prod-003", name="Eyeliner", sku="EYE-001", price=250.0))

    combos = current_domain.repository_for(Combo)
    combos.add(
        Combo(
            id="combo-001",
            name="Bridal Kit",
            price=1299.0,
            product_ids=json.dumps(["prod-001", "prod-002"]),
            cashback_percentage=2.0,
            affiliate_commission=12.0,
        )
    )
    combos.add(Combo(id="combo-002", name="Pick Any Two", price=699.0))

    offer = Offer(id="offer-001", title="Festive Offer", price=199.0, cashback_price=10.0)
    current_domain.repository_for(Offer).add(offer)
    current_domain.repository_for(Affiliate).add(Affiliate(user_id="aff-user-001", code="ASHA10"))


@pytest.fixture()
def milestone():
    from ordering.catalogue.catalogue import GiftMilestone
    from protean import current_domain

    current_domain.repository_for(GiftMilestone).add(
        GiftMilestone(min_amount=500.0, max_amount=None, cashback_percentage=2.0)
    )
