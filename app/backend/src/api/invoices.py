"""Invoice related endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile

from app.backend.src.db import get_session_dependency
from app.backend.src.models import Invoice
from app.backend.src.schemas.invoice import InvoiceCreate, InvoiceRead
from app.backend.src.services import invoice_store
from app.backend.src.services.invoice_store import InvoiceNotFoundError
from app.backend.src.services.pdf_generation import RenderingError, generate_invoice_pdf

LOGGER = structlog.get_logger(__name__)

router = APIRouter(prefix="/invoices", tags=["invoices"])


async def _read_invoice_payload(request: Request) -> tuple[InvoiceCreate, bytes | None]:
    """Parse a JSON body, or a multipart body with ``invoice`` and optional ``logo`` parts."""

    content_type = request.headers.get("content-type", "")
    logo: bytes | None = None
    try:
        if content_type.startswith("multipart/form-data"):
            form = await request.form()
            raw_invoice = form.get("invoice")
            if raw_invoice is None:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail="Missing 'invoice' part",
                )
            if isinstance(raw_invoice, UploadFile):
                raw_invoice = await raw_invoice.read()
            data = InvoiceCreate.model_validate_json(raw_invoice)

            logo_part = form.get("logo")
            if isinstance(logo_part, UploadFile):
                logo = await logo_part.read() or None
        else:
            data = InvoiceCreate.model_validate_json(await request.body())
    except ValidationError as exc:
        raise RequestValidationError(exc.errors()) from exc

    return data, logo


def _load_invoice_or_404(session: Session, invoice_id: int) -> Invoice:
    try:
        return invoice_store.get_invoice(session, invoice_id)
    except InvoiceNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Invoice not found",
        ) from exc


# --------------------------------------------------------------------------
# POST /invoices
# --------------------------------------------------------------------------
@router.post("", response_model=InvoiceRead)
async def create_invoice(
    request: Request,
    session: Session = Depends(get_session_dependency),
) -> Invoice:
    """Save a new invoice, attaching the uploaded logo when one is supplied."""

    data, logo = await _read_invoice_payload(request)
    LOGGER.info(
        "invoice_create_received",
        invoice_number=data.invoice_number,
        item_count=len(data.items),
        logo_size=len(logo) if logo else 0,
    )
    invoice = invoice_store.build_invoice(data, logo=logo)
    return await run_in_threadpool(invoice_store.save_invoice, session, invoice)


# --------------------------------------------------------------------------
# PUT /invoices/{invoice_id}
# --------------------------------------------------------------------------
@router.put("/{invoice_id}", response_model=InvoiceRead)
async def update_invoice(
    invoice_id: int,
    request: Request,
    session: Session = Depends(get_session_dependency),
) -> Invoice:
    """Replace an invoice's header fields and line items."""

    data, logo = await _read_invoice_payload(request)
    try:
        return await run_in_threadpool(
            invoice_store.update_invoice, session, invoice_id, data, logo
        )
    except InvoiceNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Invoice not found",
        ) from exc


# --------------------------------------------------------------------------
# GET /invoices/{invoice_id}
# --------------------------------------------------------------------------
@router.get("/{invoice_id}", response_model=InvoiceRead)
def read_invoice(
    invoice_id: int,
    session: Session = Depends(get_session_dependency),
) -> Invoice:
    return _load_invoice_or_404(session, invoice_id)


# --------------------------------------------------------------------------
# GET /invoices/{invoice_id}/pdf
# --------------------------------------------------------------------------
@router.get("/{invoice_id}/pdf")
def download_invoice_pdf(
    invoice_id: int,
    session: Session = Depends(get_session_dependency),
) -> Response:
    """Render the invoice and return it as a PDF attachment."""

    invoice = _load_invoice_or_404(session, invoice_id)
    try:
        pdf = generate_invoice_pdf(invoice)
    except RenderingError as exc:
        LOGGER.error("invoice_pdf_download_failed", invoice_id=invoice_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc

    LOGGER.info("invoice_pdf_served", invoice_id=invoice_id, size=len(pdf.content))
    return Response(
        content=pdf.content,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={pdf.filename}"},
    )
