"""Invoice schemas.

Wire names are camelCase (``invoiceNumber``, ``customerEmail``...) to match the
browser client; snake_case names are accepted on input as well. Only the
invoice-to-items direction is serialized, so line items never carry a
reference back to their invoice.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .line_item import InvoiceLineItemCreate, InvoiceLineItemRead


class InvoiceBase(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    invoice_number: str | None = None
    invoice_date: str | None = None
    due_date: str | None = None
    customer_name: str | None = None
    customer_address: str | None = None
    customer_email: str | None = None
    notes: str | None = None


class InvoiceCreate(InvoiceBase):
    """Payload used for both creating and replacing an invoice."""

    items: list[InvoiceLineItemCreate] = Field(default_factory=list)


class InvoiceRead(InvoiceBase):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )

    id: int
    has_logo: bool = False
    items: list[InvoiceLineItemRead] = Field(default_factory=list)
