"""Pydantic models for the orders relayed through the broker."""

from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictStr


class Measurements(BaseModel):
    """Garment measurements, whole units only."""

    length: int = Field(..., ge=0, strict=True)
    breadth: int = Field(..., ge=0, strict=True)


class OrderDetails(BaseModel):
    """What is being ordered.

    Attributes:
        clothingtype (str): Kind of garment, e.g. "Shirt".
        quantity (str): Number of pieces, carried as text.
        measurement (Measurements): Length and breadth of the garment.
    """

    clothingtype: StrictStr
    quantity: StrictStr
    measurement: Measurements


class Order(BaseModel):
    """A complete order as accepted at ingress and carried on the orders topic.

    Every field is mandatory. Amounts and quantities stay text because nothing
    in the pipeline computes with them, and the timestamp is opaque.

    Attributes:
        orderid (str): Caller supplied identifier, also the message key suffix.
        resellerid (str): Reseller placing the order.
        payment_status (str): Payment state as reported by the caller.
        payment_amount (str): Amount, carried as text.
        details (OrderDetails): The ordered garment.
        timestamp (str): Caller supplied timestamp.
    """

    orderid: StrictStr = Field(..., min_length=1)
    resellerid: StrictStr
    payment_status: StrictStr
    payment_amount: StrictStr
    details: OrderDetails
    timestamp: StrictStr

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
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
        },
    )

    @property
    def message_key(self) -> str:
        """Broker message key for this order."""
        return f"key-{self.orderid}"

    def to_message(self) -> str:
        """Serialize the order as the pretty-printed JSON payload sent to the broker."""
        return self.model_dump_json(indent=2)

    @classmethod
    def from_message(cls, payload: bytes | str) -> "Order":
        """Rebuild an order from a broker payload.

        Raises:
            pydantic.ValidationError: If the payload is not a complete order.
        """
        return cls.model_validate_json(payload)

    def to_record(self) -> dict[str, str]:
        """Flatten the order into the single-level row written to the store.

        Nested fields are renamed and measurements are converted to text.
        """
        return {
            "orderid": self.orderid,
            "resellerid": self.resellerid,
            "payment_status": self.payment_status,
            "payment_amount": self.payment_amount,
            "clothing_type": self.details.clothingtype,
            "quantity": self.details.quantity,
            "measure_length": str(self.details.measurement.length),
            "measure_breadth": str(self.details.measurement.breadth),
            "timestamp": self.timestamp,
        }


def describe_validation_error(errors: Sequence[dict[str, Any]]) -> str:
    """Build the client facing message for a rejected order body.

    Only the first error is reported. Pydantic lists errors in field declaration
    order, so for an empty body this names ``orderid``.

    Args:
        errors: Error dicts as returned by ``ValidationError.errors()``.

    Returns:
        str: A one line description naming the offending field.
    """
    if not errors:
        return "Json deserialize error: invalid order"

    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")

    if first.get("type") == "json_invalid" or not field:
        if first.get("type") == "missing":
            return "Json deserialize error: missing request body"
        return f"Json deserialize error: {first.get('msg', 'malformed JSON')}"
    if first.get("type") == "missing":
        return f"Json deserialize error: missing field `{field}`"
    return f"Json deserialize error: invalid value for field `{field}`: {first.get('msg')}"
