"""Kafka producer for publishing placed orders."""

import threading

from confluent_kafka import Producer
from logging_utils.config import get_kafka_logger

from .config import Settings
from .schemas import Order

logger = get_kafka_logger("order-relay")


class OrderProducer:
    """Kafka producer for publishing placed orders.

    One instance is created at startup and shared by every request; the
    underlying client is thread safe. ``produce`` only queues the message in the
    client's local buffer, so the real outcome is known only to the delivery
    callback. A background thread polls the client so delivery reports are
    logged as they arrive, outside any request.

    Attributes:
        _producer: The underlying Kafka producer instance.
        _topic: Topic every order is published to.
        _poll_thread: Thread serving delivery callbacks.
    """

    def __init__(self, settings: Settings, poll_interval: float = 0.1):
        """Initialize the Kafka producer from the service settings.

        Args:
            settings (Settings): Broker address, topic and delivery timeout.
            poll_interval (float): Seconds each background poll waits for events.

        Raises:
            KafkaException: If the client configuration is rejected.
        """
        self._topic = settings.orders_topic
        self._producer = Producer(
            {
                **settings.kafka_config(),
                "message.timeout.ms": settings.producer_message_timeout_ms,
            }
        )
        self._poll_interval = poll_interval
        self._polling = threading.Event()
        self._polling.set()
        self._poll_thread = threading.Thread(target=self._poll_loop, name="producer-poll", daemon=True)
        self._poll_thread.start()

    @property
    def producer(self):
        """Get the underlying Kafka producer instance.

        Returns:
            Producer: The Kafka producer instance.
        """
        return self._producer

    def _delivery_callback(self, err, msg):
        """Log the delivery report for a single message.

        Called exactly once per message from the poll thread or ``flush``,
        never from the request that produced it.

        Args:
            err: Error that occurred during message delivery, if any.
            msg: Message that was delivered or failed.
        """
        key = _decode_key(msg.key())
        if err:
            logger.error(f"failed to produce message with key {key} - {err}")
        else:
            logger.info(
                f"produced message with key {key} in offset {msg.offset()} "
                f"of partition {msg.partition()} | topic={msg.topic()}"
            )

    def publish_order(self, order: Order) -> None:
        """Queue an order for publication on the orders topic.

        Args:
            order (Order): The order to publish.

        Raises:
            BufferError: If the producer's internal buffer is full.
        """
        try:
            self._producer.produce(
                topic=self._topic,
                key=order.message_key.encode("utf-8"),
                value=order.to_message().encode("utf-8"),
                on_delivery=self._delivery_callback,
            )
        except BufferError:
            logger.error(f"Producer buffer full, rejecting order {order.orderid}")
            raise

    def _poll_loop(self) -> None:
        while self._polling.is_set():
            self._producer.poll(self._poll_interval)

    def stop_polling(self, timeout: float = 5.0) -> None:
        """Stop the background poll thread and wait for it to exit."""
        self._polling.clear()
        self._poll_thread.join(timeout)

    def flush(self, timeout: float = 10.0) -> int:
        """Wait for outstanding messages to be delivered.

        Args:
            timeout: Maximum time to wait in seconds

        Returns:
            int: Number of messages still awaiting delivery.
        """
        remaining = self._producer.flush(timeout)
        if remaining > 0:
            logger.warning(f"{remaining} messages still pending delivery")
        return remaining

    def close(self, timeout: float = 10.0) -> int:
        """Stop polling, then deliver what is still buffered.

        Returns:
            int: Number of messages that could not be delivered in time.
        """
        self.stop_polling()
        return self.flush(timeout)


def _decode_key(key) -> str:
    if key is None:
        return "<none>"
    if isinstance(key, bytes):
        return key.decode("utf-8", errors="replace")
    return str(key)
