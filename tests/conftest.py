"""Test fixtures for the order relay tests."""

import pytest
from loguru import logger

from order_relay.config import Settings
from order_relay.schemas import Order

STORE_URL = "http://store.test/rest/v1/orders"


@pytest.fixture
def settings():
    """Create settings pointing at a local broker and a fake store.

    Returns:
        Settings: Settings built without reading any .env file.
    """
    return Settings(store_apikey="test-key", table_url=STORE_URL, _env_file=None)


@pytest.fixture
def order_payload():
    """Create the JSON body of a complete order.

    Returns:
        dict: A valid order as a client would post it.
    """
    return {
        "orderid": "Ord-1",
        "resellerid": "Rs-1",
        "payment_status": "paid",
        "payment_amount": "10000",
        "details": {
            "clothingtype": "Shirt",
            "quantity": "18",
            "measurement": {"length": 32, "breadth": 28},
        },
        "timestamp": "1646337578",
    }


@pytest.fixture
def test_order(order_payload):
    """Create a test order fixture.

    Returns:
        Order: The parsed sample order.
    """
    return Order.model_validate(order_payload)


@pytest.fixture
def log_records():
    """Collect loguru records emitted while the test runs."""
    records = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(handler_id)
