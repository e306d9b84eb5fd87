"""Tests for the persistence sink and the store client."""

import queue
import threading
from unittest.mock import Mock

import pytest
import requests

from order_relay.sink import PersistenceSink
from order_relay.store import StoreClient

STORED_ROW = '[{"orderid": "Ord-1"}]'


def make_response(status_code=201, text=STORED_ROW):
    response = Mock(spec=requests.Response)
    response.status_code = status_code
    response.ok = status_code < 400
    response.text = text
    response.content = text.encode("utf-8")
    return response


@pytest.fixture
def store():
    store = Mock(spec=StoreClient)
    store.upsert.return_value = make_response()
    return store


@pytest.fixture
def orders():
    return queue.Queue()


@pytest.fixture
def sink(store, orders):
    return PersistenceSink(store, orders)


def test_persist_upserts_flat_record(sink, store, test_order, log_records):
    response = sink.persist(test_order)

    store.upsert.assert_called_once_with(test_order.to_record())
    assert response is store.upsert.return_value
    assert any(r["level"].name == "INFO" and STORED_ROW in r["message"] for r in log_records)


def test_rejected_upsert_is_logged_not_raised(sink, store, test_order, log_records):
    store.upsert.return_value = make_response(409, '{"message": "duplicate key"}')

    response = sink.persist(test_order)

    assert response.status_code == 409
    assert any(r["level"].name == "ERROR" and "duplicate key" in r["message"] for r in log_records)


def test_transport_failure_is_logged_not_raised(sink, store, test_order, log_records):
    store.upsert.side_effect = requests.ConnectionError("connection refused")

    assert sink.persist(test_order) is None
    assert any(r["level"].name == "ERROR" and "connection refused" in r["message"] for r in log_records)


def test_run_processes_in_fifo_order_and_keeps_going(sink, store, orders, test_order):
    second = test_order.model_copy(update={"orderid": "Ord-2"})
    store.upsert.side_effect = [requests.Timeout("slow store"), make_response()]
    orders.put(test_order)
    orders.put(second)
    orders.put(None)

    sink.run()

    upserted = [call.args[0]["orderid"] for call in store.upsert.call_args_list]
    assert upserted == ["Ord-1", "Ord-2"]
    store.close.assert_called_once()
    assert orders.empty()


def test_duplicate_orders_are_upserted_twice(sink, store, orders, test_order):
    orders.put(test_order)
    orders.put(test_order)
    orders.put(None)

    sink.run()

    assert store.upsert.call_count == 2


@pytest.fixture
def session(mocker):
    session = requests.Session()
    mocker.patch.object(session, "get")
    mocker.patch.object(session, "post")
    return session


def test_store_client_sets_auth_headers(settings, session):
    client = StoreClient(settings, session_factory=lambda: session)

    assert client.session is session
    assert session.headers["apikey"] == "test-key"
    assert session.headers["Authorization"] == "Bearer test-key"


def test_fetch_all_returns_raw_body(settings, session):
    session.get.return_value = make_response(200, '[{"orderid": "Ord-1", "quantity": "18"}]')
    client = StoreClient(settings, session_factory=lambda: session)

    body = client.fetch_all()

    assert body == b'[{"orderid": "Ord-1", "quantity": "18"}]'
    session.get.assert_called_once_with(settings.table_url, params={"select": "*"}, timeout=None)
    session.get.return_value.raise_for_status.assert_called_once()


def test_fetch_all_raises_on_error_status(settings, session):
    session.get.return_value = make_response(401, '{"message": "Invalid API key"}')
    session.get.return_value.raise_for_status.side_effect = requests.HTTPError("401 Client Error")
    client = StoreClient(settings, session_factory=lambda: session)

    with pytest.raises(requests.HTTPError):
        client.fetch_all()


def test_upsert_posts_record_with_representation_preference(settings, session, test_order):
    client = StoreClient(settings, session_factory=lambda: session)

    client.upsert(test_order.to_record())

    session.post.assert_called_once_with(
        settings.table_url,
        json=test_order.to_record(),
        headers={"Prefer": "return=representation"},
        timeout=None,
    )


def test_each_thread_gets_its_own_session(settings):
    client = StoreClient(settings)
    seen = []

    worker = threading.Thread(target=lambda: seen.append(client.session))
    worker.start()
    worker.join()

    assert seen[0] is not client.session
    assert client.session is client.session
    assert seen[0].headers["apikey"] == "test-key"


def test_close_closes_every_thread_session(settings):
    sessions = [Mock(spec=requests.Session, headers={}), Mock(spec=requests.Session, headers={})]
    client = StoreClient(settings, session_factory=lambda: sessions.pop(0))
    opened = [client.session]
    worker = threading.Thread(target=lambda: opened.append(client.session))
    worker.start()
    worker.join()

    client.close()

    assert len(opened) == 2
    for session in opened:
        session.close.assert_called_once_with()

