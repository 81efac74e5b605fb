"""Persistence helpers for invoices and their line items."""

from __future__ import annotations

from collections.abc import Iterable

import structlog
from sqlalchemy.orm import Session, selectinload

from app.backend.src.models import Invoice, InvoiceLineItem
from app.backend.src.schemas.invoice import InvoiceCreate
from app.backend.src.schemas.line_item import InvoiceLineItemCreate
from app.backend.src.services.metrics import invoice_saves_total

LOGGER = structlog.get_logger(__name__)

_HEADER_FIELDS = (
    "invoice_number",
    "invoice_date",
    "due_date",
    "customer_name",
    "customer_address",
    "customer_email",
    "notes",
)


class InvoiceNotFoundError(LookupError):
    """Raised when no invoice exists for the requested identifier."""

    def __init__(self, invoice_id: int) -> None:
        super().__init__(f"Invoice {invoice_id} not found")
        self.invoice_id = invoice_id


def _build_items(items: Iterable[InvoiceLineItemCreate]) -> list[InvoiceLineItem]:
    return [
        InvoiceLineItem(
            description=item.description,
            quantity=item.quantity,
            price=item.price,
        )
        for item in items
    ]


def _attach_items(invoice: Invoice, items: list[InvoiceLineItem]) -> None:
    """Number the items in list order and hand them to ``invoice``.

    Assigning the collection sets each item's parent through
    ``back_populates``; items dropped from the collection become orphans.
    """

    for position, item in enumerate(items):
        item.position = position
    invoice.items = items


def build_invoice(data: InvoiceCreate, logo: bytes | None = None) -> Invoice:
    """Return an unsaved :class:`Invoice` populated from ``data``."""

    invoice = Invoice(**{field: getattr(data, field) for field in _HEADER_FIELDS})
    if logo:
        invoice.logo = logo
    _attach_items(invoice, _build_items(data.items))
    return invoice


def save_invoice(session: Session, invoice: Invoice) -> Invoice:
    """Persist ``invoice`` together with its items and return it with an id."""

    _attach_items(invoice, list(invoice.items or []))
    session.add(invoice)
    session.commit()
    session.refresh(invoice)
    invoice_saves_total.labels(operation="create").inc()
    LOGGER.info(
        "invoice_saved",
        invoice_id=invoice.id,
        invoice_number=invoice.invoice_number,
        item_count=len(invoice.items),
    )
    return invoice


def get_invoice(session: Session, invoice_id: int) -> Invoice:
    """Return the invoice with its items loaded, or raise :class:`InvoiceNotFoundError`."""

    invoice = (
        session.query(Invoice)
        .options(selectinload(Invoice.items))
        .filter(Invoice.id == invoice_id)
        .one_or_none()
    )
    if invoice is None:
        raise InvoiceNotFoundError(invoice_id)
    return invoice


def update_invoice(
    session: Session,
    invoice_id: int,
    data: InvoiceCreate,
    logo: bytes | None = None,
) -> Invoice:
    """Overwrite header fields and replace the item collection wholesale.

    Items missing from ``data`` are deleted through the relationship's
    ``delete-orphan`` cascade. The stored logo is kept unless a new one is
    supplied.
    """

    invoice = get_invoice(session, invoice_id)
    for field in _HEADER_FIELDS:
        setattr(invoice, field, getattr(data, field))
    if logo:
        invoice.logo = logo

    previous_count = len(invoice.items)
    _attach_items(invoice, _build_items(data.items))
    session.add(invoice)
    session.commit()
    session.refresh(invoice)
    invoice_saves_total.labels(operation="update").inc()
    LOGGER.info(
        "invoice_updated",
        invoice_id=invoice.id,
        previous_item_count=previous_count,
        item_count=len(invoice.items),
    )
    return invoice


__all__ = [
    "InvoiceNotFoundError",
    "build_invoice",
    "get_invoice",
    "save_invoice",
    "update_invoice",
]
