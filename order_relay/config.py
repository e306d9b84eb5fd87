"""
Configuration settings for the order relay service.

Settings are read once at startup from the environment (and an optional .env
file) and handed to each component, which never reads the environment itself.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Broker
    kafka_bootstrap_servers: str = Field("localhost:9092", alias="KAFKA_BOOTSTRAP_SERVERS")
    orders_topic: str = Field("orders", alias="ORDERS_TOPIC")
    consumer_group: str = Field("my_consumer_group", alias="KAFKA_CONSUMER_GROUP")
    consumer_offset_reset: str = Field("latest", alias="KAFKA_AUTO_OFFSET_RESET")
    producer_message_timeout_ms: int = Field(300_000, alias="KAFKA_MESSAGE_TIMEOUT_MS")
    kafka_security_protocol: Optional[str] = Field(None, alias="KAFKA_SECURITY_PROTOCOL")
    kafka_sasl_mechanism: str = Field("PLAIN", alias="KAFKA_SASL_MECHANISM")
    kafka_sasl_username: Optional[str] = Field(None, alias="KAFKA_SASL_USERNAME")
    kafka_sasl_password: Optional[str] = Field(None, alias="KAFKA_SASL_PASSWORD")

    # Store
    store_apikey: str = Field(..., alias="SUPABASE_APIKEY")
    table_url: str = Field(..., alias="TABLE_URL")
    store_timeout_seconds: Optional[float] = Field(None, alias="STORE_TIMEOUT_SECONDS")

    # Relay stages
    stage_failure_policy: Literal["halt", "restart", "exit"] = Field("halt", alias="STAGE_FAILURE_POLICY")
    stage_restart_delay_seconds: float = Field(1.0, ge=0, alias="STAGE_RESTART_DELAY_SECONDS")
    stage_restart_max_delay_seconds: float = Field(30.0, ge=0, alias="STAGE_RESTART_MAX_DELAY_SECONDS")

    # HTTP
    host: str = Field("127.0.0.1", alias="HOST")
    port: int = Field(8080, alias="PORT")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    def kafka_config(self) -> dict[str, str]:
        """Base librdkafka configuration shared by every broker client."""
        config = {"bootstrap.servers": self.kafka_bootstrap_servers}
        if self.kafka_security_protocol:
            config["security.protocol"] = self.kafka_security_protocol
            config["sasl.mechanisms"] = self.kafka_sasl_mechanism
            if self.kafka_sasl_username is not None:
                config["sasl.username"] = self.kafka_sasl_username
            if self.kafka_sasl_password is not None:
                config["sasl.password"] = self.kafka_sasl_password
        return config

    def store_headers(self) -> dict[str, str]:
        """Authentication headers expected by the store's REST interface."""
        return {
            "apikey": self.store_apikey,
            "Authorization": f"Bearer {self.store_apikey}",
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
