"""Persistence sink draining relayed orders into the store."""

import queue
from typing import Optional

import requests
from loguru import logger

from .schemas import Order
from .store import StoreClient


class PersistenceSink:
    """Drains the in-process order queue and upserts each order into the store.

    Every order gets exactly one upsert attempt. The outcome is only logged:
    nothing is retried and a failed order is dropped.
    """

    def __init__(self, store: StoreClient, orders: "queue.Queue[Optional[Order]]"):
        """Initialize the sink.

        Args:
            store: Client for the store's REST resource
            orders: Queue fed by the relay listener; ``None`` stops the sink
        """
        self.store = store
        self.orders = orders

    def persist(self, order: Order) -> Optional[requests.Response]:
        """Upsert a single order and log the store's raw answer.

        Args:
            order: The order to write

        Returns:
            The store response, or None if the request never completed
        """
        record = order.to_record()
        try:
            response = self.store.upsert(record)
        except requests.RequestException as e:
            logger.error(f"Upsert failed | order_id={order.orderid} | error={e}")
            return None

        if response.ok:
            logger.info(f"Order stored | order_id={order.orderid} | status={response.status_code} | body={response.text}")
        else:
            logger.error(
                f"Store rejected order | order_id={order.orderid} | status={response.status_code} | body={response.text}"
            )
        return response

    def run(self) -> None:
        """Process orders until a ``None`` sentinel arrives."""
        logger.info("Starting persistence sink")
        try:
            while True:
                order = self.orders.get()
                try:
                    if order is None:
                        break
                    self.persist(order)
                finally:
                    self.orders.task_done()
        finally:
            self.store.close()
        logger.info("Persistence sink stopped")
