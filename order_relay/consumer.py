"""Kafka consumer relaying placed orders into the persistence queue."""

import queue
import threading
from typing import Optional

from confluent_kafka import Consumer, KafkaError, KafkaException
from logging_utils.config import get_kafka_logger

from .config import Settings
from .schemas import Order

logger = get_kafka_logger("order-relay")


class OrderListener:
    """Relay listener: subscribes to the orders topic and forwards each order.

    Offsets are auto-committed by the client, so an order that was polled but
    not yet persisted is lost if the process dies (at-most-once).

    Any broker error or undecodable payload is raised out of ``run``; the
    listener never skips a message.
    """

    def __init__(
        self,
        settings: Settings,
        orders: "queue.Queue[Optional[Order]]",
        poll_timeout: float = 1.0,
    ) -> None:
        """Initialize the listener and its consumer."""
        logger.info(
            f"Initializing consumer | bootstrap_servers={settings.kafka_bootstrap_servers} | "
            f"group_id={settings.consumer_group}"
        )
        self.topic = settings.orders_topic
        self.orders = orders
        self.poll_timeout = poll_timeout
        self._stopped = threading.Event()
        self.consumer = Consumer(
            {
                **settings.kafka_config(),
                "group.id": settings.consumer_group,
                "auto.offset.reset": settings.consumer_offset_reset,
                "enable.auto.commit": True,
            }
        )

    def subscribe(self) -> None:
        """Subscribe to the orders topic."""
        logger.info(f"Subscribing to topics: {[self.topic]}")
        self.consumer.subscribe([self.topic])
        logger.info("Successfully subscribed to topics")

    def relay(self, msg) -> Order:
        """Decode one message and hand the order to the sink.

        Raises:
            pydantic.ValidationError: If the payload is not a complete order.
        """
        key = msg.key()
        order = Order.from_message(msg.value())
        logger.debug(
            f"Relaying order | key={key.decode('utf-8', errors='replace') if key else None} | "
            f"partition={msg.partition()} | offset={msg.offset()}"
        )
        self.orders.put(order)
        return order

    def run(self) -> None:
        """Poll the topic until stopped, relaying every message in order.

        Raises:
            KafkaException: On subscribe or broker errors.
            pydantic.ValidationError: On a malformed order payload.
        """
        logger.info("Starting listener")
        try:
            self.subscribe()
            while not self._stopped.is_set():
                msg = self.consumer.poll(timeout=self.poll_timeout)
                if msg is None:
                    continue

                if msg.error():
                    if msg.error().code() == KafkaError._PARTITION_EOF:
                        logger.debug("Reached end of partition")
                        continue
                    logger.error(f"Kafka error: {msg.error()}")
                    raise KafkaException(msg.error())

                self.relay(msg)
        finally:
            self.close()

    def stop(self) -> None:
        """Ask the poll loop to exit after the current poll returns."""
        self._stopped.set()

    def close(self) -> None:
        """Close the consumer connection."""
        self.consumer.close()
        logger.info("Consumer closed")
