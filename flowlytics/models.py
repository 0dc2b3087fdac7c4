"""Input model for loosely-typed order records."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class OrderRecord(BaseModel):
    """Represents one externally supplied order record.

    Every field is optional and deliberately typed ``Any``: upstream exports
    send numbers as strings, omit columns, or carry extra columns such as
    ``order_id`` and ``product_category``. Coercion happens in the normalizer,
    not here. The model only guarantees that the record is an object.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    revenue: Any = Field(None, description="Gross order value in INR.")
    profit: Any = Field(None, description="Order profit in INR; defaults to 20% of revenue.")
    status: Any = Field(None, description="Free-text fulfilment status, e.g. 'Delivered'.")
    quantity: Any = Field(None, description="Units in the order.")
    payment_method: Any = Field(None, description="Payment method label, e.g. 'COD' or 'UPI'.")
    city: Any = Field(None, description="Delivery city.")
    product_name: Any = Field(None, description="Product display name.")
    customer_id: Any = Field(None, description="Stable customer identifier.")

    def identity_fields(self) -> dict[str, Any]:
        """Return every field except ``customer_id``, extras included."""
        payload = self.model_dump()
        payload.pop("customer_id", None)
        return payload
