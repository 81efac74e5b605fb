"""Invoice line item schemas."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class InvoiceLineItemBase(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    description: str = ""
    quantity: int = 0
    price: float = 0.0


class InvoiceLineItemCreate(InvoiceLineItemBase):
    """Line item as submitted by a client."""


class InvoiceLineItemRead(InvoiceLineItemBase):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )

    id: int
    total: float
