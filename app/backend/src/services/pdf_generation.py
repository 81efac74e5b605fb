"""Utilities for generating invoice PDFs.

The layout is a single fixed template rendered top to bottom with reportlab's
platypus flowables: header band, customer details, line items, summary, notes
and footer. Everything that is fixed (colors, fonts, company text, the tax
rate) lives in the module constants below; everything else comes from the
invoice.
"""

from __future__ import annotations

import html
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from io import BytesIO
from time import perf_counter
from typing import Any

import structlog
from reportlab.lib import colors
from reportlab.lib.colors import Color, HexColor
from reportlab.lib.enums import TA_CENTER, TA_LEFT, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.utils import ImageReader
from reportlab.platypus import Flowable, Image, Paragraph, SimpleDocTemplate, Table, TableStyle

from app.backend.src.services.metrics import invoice_renders_total, pdf_generation_seconds

LOGGER = structlog.get_logger(__name__)

PAGE_SIZE = A4
MARGIN_LEFT = 40
MARGIN_RIGHT = 40
MARGIN_TOP = 50
MARGIN_BOTTOM = 50
CONTENT_WIDTH = PAGE_SIZE[0] - MARGIN_LEFT - MARGIN_RIGHT

COMPANY_NAME = "Stoic And Salamandar"
COMPANY_TAGLINE = "The Global Corporation"
TITLE_TEXT = "INVOICE"
FOOTER_LINES = ("Thank you for your business!", "Payment due within 15 days.")

CURRENCY_SYMBOL = "$"
TAX_RATE = 0.10
LOGO_BOX = 80

HEADER_COLUMN_RATIOS = (1, 3, 2)
CUSTOMER_COLUMN_RATIOS = (1, 2)
LINE_ITEM_HEADERS = ("Description", "Qty", "Price", "Total")
LINE_ITEM_COLUMN_RATIOS = (4, 1, 2, 2)
SUMMARY_WIDTH_FRACTION = 0.4

TABLE_HEADER_COLOR = HexColor("#3F51B5")
ROW_COLOR = colors.white
ALT_ROW_COLOR = HexColor("#F5F5F5")
TITLE_COLOR = colors.blue
TAGLINE_COLOR = HexColor("#404040")
FOOTER_COLOR = HexColor("#808080")
GRID_COLOR = HexColor("#000000")

_COMPANY_NAME_STYLE = ParagraphStyle(
    "CompanyName", fontName="Helvetica-Bold", fontSize=16, leading=20, alignment=TA_LEFT
)
_COMPANY_TAGLINE_STYLE = ParagraphStyle(
    "CompanyTagline",
    fontName="Helvetica",
    fontSize=12,
    leading=15,
    textColor=TAGLINE_COLOR,
    alignment=TA_LEFT,
)
_TITLE_STYLE = ParagraphStyle(
    "InvoiceTitle",
    fontName="Helvetica-Bold",
    fontSize=24,
    leading=28,
    textColor=TITLE_COLOR,
    alignment=TA_RIGHT,
)
_LABEL_STYLE = ParagraphStyle("Label", fontName="Helvetica-Bold", fontSize=12, leading=15)
_VALUE_STYLE = ParagraphStyle("Value", fontName="Helvetica", fontSize=12, leading=15)
_CELL_STYLE = ParagraphStyle("Cell", fontName="Helvetica", fontSize=11, leading=14)
_NOTES_STYLE = ParagraphStyle(
    "Notes", fontName="Helvetica", fontSize=12, leading=15, spaceBefore=15
)
_FOOTER_STYLE = ParagraphStyle(
    "Footer",
    fontName="Helvetica-Oblique",
    fontSize=11,
    leading=14,
    textColor=FOOTER_COLOR,
    alignment=TA_CENTER,
    spaceBefore=30,
)


class RenderingError(RuntimeError):
    """Raised when an invoice PDF cannot be produced."""


@dataclass(frozen=True, slots=True)
class InvoiceTotals:
    """Subtotal, tax and grand total for a list of line items."""

    subtotal: float
    tax: float
    grand_total: float


@dataclass(frozen=True, slots=True)
class InvoicePdf:
    """A rendered invoice ready to be served as a download."""

    filename: str
    content: bytes


def format_currency(value: float) -> str:
    return f"{CURRENCY_SYMBOL}{value:.2f}"


def line_total(item: Any) -> float:
    return item.quantity * item.price


def summarize_items(items: Iterable[Any] | None) -> InvoiceTotals:
    """Accumulate row totals in list order and derive tax and grand total."""

    subtotal = 0.0
    for item in items or ():
        subtotal += line_total(item)
    tax = subtotal * TAX_RATE
    return InvoiceTotals(subtotal=subtotal, tax=tax, grand_total=subtotal + tax)


def _text(value: object | None) -> str:
    return "" if value is None else str(value)


def customer_rows(invoice: Any) -> list[tuple[str, str]]:
    """Return the customer detail block as ``(label, value)`` pairs in display order."""

    return [
        ("Invoice No:", _text(invoice.invoice_number)),
        ("Invoice Date:", _text(invoice.invoice_date)),
        ("Due Date:", _text(invoice.due_date)),
        ("Customer Name:", _text(invoice.customer_name)),
        ("Email:", _text(invoice.customer_email)),
        ("Address:", _text(invoice.customer_address)),
    ]


def line_item_rows(items: Sequence[Any] | None) -> list[list[str]]:
    """Return the line-item table as text, header row first, one row per item."""

    rows = [list(LINE_ITEM_HEADERS)]
    for item in items or ():
        rows.append(
            [
                _text(item.description),
                str(item.quantity),
                format_currency(item.price),
                format_currency(line_total(item)),
            ]
        )
    return rows


def summary_rows(totals: InvoiceTotals) -> list[tuple[str, str]]:
    return [
        ("Subtotal", format_currency(totals.subtotal)),
        (f"Tax ({TAX_RATE:.0%})", format_currency(totals.tax)),
        ("Grand Total", format_currency(totals.grand_total)),
    ]


def row_background(index: int) -> Color:
    """Return the background for zero-based body row ``index``."""

    return ROW_COLOR if index % 2 == 0 else ALT_ROW_COLOR


def notes_text(invoice: Any) -> str | None:
    notes = invoice.notes
    if not notes:
        return None
    return f"Notes: {notes}"


def invoice_filename(invoice_id: object) -> str:
    return f"invoice_{invoice_id}.pdf"


def _markup(text: str) -> str:
    return html.escape(text, quote=False).replace("\n", "<br/>")


def _column_widths(ratios: Sequence[int], total_width: float = CONTENT_WIDTH) -> list[float]:
    scale = total_width / sum(ratios)
    return [ratio * scale for ratio in ratios]


def _logo_flowable(logo: bytes) -> Image:
    """Decode ``logo`` and scale it to fit the logo box, keeping its aspect ratio."""

    width, height = ImageReader(BytesIO(logo)).getSize()
    scale = min(LOGO_BOX / width, LOGO_BOX / height)
    image = Image(BytesIO(logo), width=width * scale, height=height * scale)
    image.hAlign = "LEFT"
    return image


def _header_band(invoice: Any) -> Table:
    logo_cell: Flowable | str = _logo_flowable(invoice.logo) if invoice.logo else ""
    company_cell = [
        Paragraph(_markup(COMPANY_NAME), _COMPANY_NAME_STYLE),
        Paragraph(_markup(COMPANY_TAGLINE), _COMPANY_TAGLINE_STYLE),
    ]
    title_cell = Paragraph(TITLE_TEXT, _TITLE_STYLE)

    table = Table(
        [[logo_cell, company_cell, title_cell]],
        colWidths=_column_widths(HEADER_COLUMN_RATIOS),
    )
    table.setStyle(
        TableStyle(
            [
                ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
                ("ALIGN", (0, 0), (0, 0), "LEFT"),
                ("ALIGN", (2, 0), (2, 0), "RIGHT"),
            ]
        )
    )
    return table


def _customer_table(invoice: Any) -> Table:
    data = [
        [[Paragraph(_markup(label), _LABEL_STYLE)], [Paragraph(_markup(value), _VALUE_STYLE)]]
        for label, value in customer_rows(invoice)
    ]
    table = Table(
        data,
        colWidths=_column_widths(CUSTOMER_COLUMN_RATIOS),
        splitInRow=1,
        spaceBefore=10,
        spaceAfter=20,
    )
    table.setStyle(
        TableStyle(
            [
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("LEFTPADDING", (0, 0), (-1, -1), 8),
                ("RIGHTPADDING", (0, 0), (-1, -1), 8),
                ("TOPPADDING", (0, 0), (-1, -1), 8),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 8),
            ]
        )
    )
    return table


def _line_item_table(items: Sequence[Any]) -> Table:
    rows = line_item_rows(items)
    data: list[list[list[Flowable] | str]] = [rows[0]]
    # Flowable cells are wrapped in lists; reportlab only splits a row through list or string cells.
    for row in rows[1:]:
        data.append([[Paragraph(_markup(row[0]), _CELL_STYLE)], *row[1:]])

    commands: list[tuple] = [
        ("BACKGROUND", (0, 0), (-1, 0), TABLE_HEADER_COLOR),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, 0), 12),
        ("ALIGN", (0, 0), (-1, 0), "CENTER"),
        ("TOPPADDING", (0, 0), (-1, 0), 10),
        ("BOTTOMPADDING", (0, 0), (-1, 0), 10),
        ("FONTNAME", (0, 1), (-1, -1), "Helvetica"),
        ("FONTSIZE", (0, 1), (-1, -1), 11),
        ("TOPPADDING", (0, 1), (-1, -1), 8),
        ("BOTTOMPADDING", (0, 1), (-1, -1), 8),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("GRID", (0, 0), (-1, -1), 0.5, GRID_COLOR),
    ]
    for index in range(len(rows) - 1):
        commands.append(("BACKGROUND", (0, index + 1), (-1, index + 1), row_background(index)))

    table = Table(
        data,
        colWidths=_column_widths(LINE_ITEM_COLUMN_RATIOS),
        repeatRows=1,
        splitInRow=1,
        spaceBefore=10,
    )
    table.setStyle(TableStyle(commands))
    return table


def _summary_table(totals: InvoiceTotals) -> Table:
    table = Table(
        [list(row) for row in summary_rows(totals)],
        colWidths=_column_widths((1, 1), CONTENT_WIDTH * SUMMARY_WIDTH_FRACTION),
        hAlign="RIGHT",
        spaceBefore=15,
    )
    table.setStyle(
        TableStyle(
            [
                ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
                ("FONTNAME", (1, 0), (1, -1), "Helvetica"),
                ("FONTSIZE", (0, 0), (-1, -1), 12),
                ("ALIGN", (0, 0), (-1, -1), "RIGHT"),
            ]
        )
    )
    return table


def build_invoice_story(invoice: Any) -> list[Flowable]:
    """Return the flowables for ``invoice`` in page order."""

    items = list(invoice.items or [])
    story: list[Flowable] = [
        _header_band(invoice),
        _customer_table(invoice),
        _line_item_table(items),
        _summary_table(summarize_items(items)),
    ]

    notes = notes_text(invoice)
    if notes:
        story.append(Paragraph(_markup(notes), _NOTES_STYLE))

    story.append(Paragraph("<br/>".join(_markup(line) for line in FOOTER_LINES), _FOOTER_STYLE))
    return story


def render_invoice_pdf(invoice: Any) -> bytes:
    """Render ``invoice`` to PDF bytes.

    Raises :class:`RenderingError` if the logo cannot be decoded or the document
    cannot be laid out or written; no partial output is returned. The document
    is built in reportlab's invariant mode, so rendering the same invoice twice
    yields identical bytes.
    """

    start = perf_counter()
    with BytesIO() as buffer:
        try:
            document = SimpleDocTemplate(
                buffer,
                pagesize=PAGE_SIZE,
                leftMargin=MARGIN_LEFT,
                rightMargin=MARGIN_RIGHT,
                topMargin=MARGIN_TOP,
                bottomMargin=MARGIN_BOTTOM,
                title=f"Invoice {_text(invoice.invoice_number)}".strip(),
                author=COMPANY_NAME,
                invariant=1,
            )
            document.build(build_invoice_story(invoice))
        except Exception as exc:
            invoice_renders_total.labels(status="failure").inc()
            LOGGER.warning(
                "invoice_render_failed",
                invoice_id=getattr(invoice, "id", None),
                error=str(exc),
            )
            raise RenderingError("Error generating PDF") from exc
        pdf_bytes = buffer.getvalue()

    pdf_generation_seconds.observe(perf_counter() - start)
    invoice_renders_total.labels(status="success").inc()
    return pdf_bytes


def generate_invoice_pdf(invoice: Any) -> InvoicePdf:
    """Render ``invoice`` and pair the bytes with its download filename."""

    return InvoicePdf(filename=invoice_filename(invoice.id), content=render_invoice_pdf(invoice))


__all__ = [
    "InvoicePdf",
    "InvoiceTotals",
    "RenderingError",
    "build_invoice_story",
    "customer_rows",
    "format_currency",
    "generate_invoice_pdf",
    "invoice_filename",
    "line_item_rows",
    "line_total",
    "notes_text",
    "render_invoice_pdf",
    "row_background",
    "summarize_items",
    "summary_rows",
]
