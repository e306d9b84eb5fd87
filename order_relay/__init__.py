"""Order relay: HTTP ingress, Kafka transport and store persistence for orders."""

__version__ = "0.1.0"
