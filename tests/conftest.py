import os
from pathlib import Path

import httpx
import pytest

# Pincodes the offline postal lookup reports as non-existent
UNKNOWN_PINCODES = {"999999"}


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests.

    Fetch and activate the domain by pushing the associated domain_context. The activated domain can then be referred to elsewhere as `current_domain`
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env

    from ordering.domain import ordering

    ordering.init()
    ordering.domain_context().push()


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        # Get the test file path relative to the tests directory
        test_path = Path(item.fspath)

        # Mark tests based on their directory
        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/bdd/" in str(test_path):
            item.add_marker(pytest.mark.bdd)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session", autouse=True)
def setup_db(request):
    from ordering.domain import ordering
    from ordering.utils.db import drop_db, setup_db

    setup_db(ordering)

    yield

    drop_db(ordering)


def postal_lookup(request: httpx.Request) -> httpx.Response:
    """Offline stand-in for the public postal pincode API."""
    pincode = request.url.path.rstrip("/").rsplit("/", 1)[-1]
    if pincode in UNKNOWN_PINCODES:
        return httpx.Response(200, json=[{"Status": "Error", "PostOffice": None}])
    return httpx.Response(200, json=[{"Status": "Success", "PostOffice": [{"Name": "Head Office"}]}])


@pytest.fixture(autouse=True)
def offline_collaborators():
    """Fresh fake adapters for every test, and no real network lookups."""
    from fulfillment.courier import reset_courier
    from notifications.channel import reset_channels
    from notifications.outbox import reset_outbox
    from payments.gateway import reset_gateway
    from serviceability import reset_checker, set_checker
    from serviceability.pincode import PincodeChecker

    set_checker(PincodeChecker(transport=httpx.MockTransport(postal_lookup)))

    yield

    reset_courier()
    reset_gateway()
    reset_checker()
    reset_channels()
    reset_outbox()


@pytest.fixture(autouse=True)
def run_around_tests():
    """Fixture to automatically cleanup infrastructure after every test"""
    yield

    from protean import current_domain

    # Clear all databases
    for _, provider in current_domain.providers.items():
        provider._data_reset()

    # Drain event stores
    current_domain.event_store.store._data_reset()
