"""Unit tests for the invoice PDF renderer."""

from __future__ import annotations

import os
import re
import sys
from io import BytesIO
from pathlib import Path
from types import SimpleNamespace

sys.path.append(str(Path(__file__).resolve().parents[4]))

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_invoice.db")

import pytest
from PIL import Image as PILImage
from reportlab.lib import colors
from reportlab.platypus import Image, Paragraph

from app.backend.src.services import pdf_generation
from app.backend.src.services.pdf_generation import (
    ALT_ROW_COLOR,
    ROW_COLOR,
    RenderingError,
    build_invoice_story,
    customer_rows,
    format_currency,
    generate_invoice_pdf,
    line_item_rows,
    notes_text,
    render_invoice_pdf,
    row_background,
    summarize_items,
    summary_rows,
)


def _item(description: str, quantity: int, price: float) -> SimpleNamespace:
    return SimpleNamespace(description=description, quantity=quantity, price=price)


def _invoice(**overrides: object) -> SimpleNamespace:
    fields = {
        "id": 7,
        "invoice_number": "INV-1001",
        "invoice_date": "2024-05-01",
        "due_date": "2024-05-16",
        "customer_name": "Ada Lovelace",
        "customer_email": "ada@example.com",
        "customer_address": "12 Analytical Row\nLondon",
        "notes": None,
        "logo": None,
        "items": [_item("Widget", 2, 9.99), _item("Gadget", 1, 25.00)],
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


def _png_bytes(size: tuple[int, int] = (200, 100)) -> bytes:
    buffer = BytesIO()
    PILImage.new("RGB", size, color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


def _page_count(pdf: bytes) -> int:
    return len(re.findall(rb"/Type /Page\b", pdf))


def test_format_currency_uses_two_decimals_and_symbol() -> None:
    assert format_currency(19.98) == "$19.98"
    assert format_currency(0) == "$0.00"
    assert format_currency(4.498) == "$4.50"


def test_line_item_rows_keep_input_order() -> None:
    items = [_item("First", 1, 1.0), _item("Second", 3, 2.5), _item("Third", 0, 99.0)]

    rows = line_item_rows(items)

    assert rows[0] == ["Description", "Qty", "Price", "Total"]
    assert len(rows) == len(items) + 1
    assert [row[0] for row in rows[1:]] == ["First", "Second", "Third"]
    assert rows[2] == ["Second", "3", "$2.50", "$7.50"]
    assert rows[3][3] == "$0.00"


def test_row_background_alternates_by_index_parity() -> None:
    assert [row_background(index) for index in range(4)] == [
        ROW_COLOR,
        ALT_ROW_COLOR,
        ROW_COLOR,
        ALT_ROW_COLOR,
    ]


def test_totals_for_widget_and_gadget() -> None:
    invoice = _invoice()

    rows = line_item_rows(invoice.items)
    totals = summarize_items(invoice.items)

    assert [row[3] for row in rows[1:]] == ["$19.98", "$25.00"]
    assert totals.subtotal == pytest.approx(44.98)
    assert totals.tax == pytest.approx(4.498)
    assert totals.grand_total == pytest.approx(49.478)
    assert summary_rows(totals) == [
        ("Subtotal", "$44.98"),
        ("Tax (10%)", "$4.50"),
        ("Grand Total", "$49.48"),
    ]


def test_zero_items_produce_header_only_and_zero_totals() -> None:
    invoice = _invoice(items=[])

    story = build_invoice_story(invoice)
    item_table = story[2]

    assert len(item_table._cellvalues) == 1
    assert [value for _, value in summary_rows(summarize_items(invoice.items))] == [
        "$0.00",
        "$0.00",
        "$0.00",
    ]
    assert render_invoice_pdf(invoice).startswith(b"%PDF")


def test_customer_rows_use_stored_strings_verbatim() -> None:
    invoice = _invoice(invoice_date="05/01/2024", due_date="soon", customer_email=None)

    assert customer_rows(invoice) == [
        ("Invoice No:", "INV-1001"),
        ("Invoice Date:", "05/01/2024"),
        ("Due Date:", "soon"),
        ("Customer Name:", "Ada Lovelace"),
        ("Email:", ""),
        ("Address:", "12 Analytical Row\nLondon"),
    ]


def test_notes_paragraph_only_when_notes_present() -> None:
    with_notes = _invoice(notes="Deliver to the back door")
    empty_notes = _invoice(notes="")

    assert notes_text(with_notes) == "Notes: Deliver to the back door"
    assert notes_text(empty_notes) is None
    assert notes_text(_invoice()) is None

    def paragraphs(invoice: SimpleNamespace) -> list[str]:
        return [
            flowable.getPlainText()
            for flowable in build_invoice_story(invoice)
            if isinstance(flowable, Paragraph)
        ]

    assert any(text.startswith("Notes: ") for text in paragraphs(with_notes))
    assert not any(text.startswith("Notes: ") for text in paragraphs(empty_notes))


def test_missing_logo_leaves_header_cell_empty() -> None:
    header = build_invoice_story(_invoice())[0]

    assert header._cellvalues[0][0] == ""


def test_logo_is_scaled_into_box() -> None:
    header = build_invoice_story(_invoice(logo=_png_bytes((200, 100))))[0]

    logo = header._cellvalues[0][0]
    assert isinstance(logo, Image)
    assert logo.drawWidth == pytest.approx(80)
    assert logo.drawHeight == pytest.approx(40)


def test_render_with_logo_produces_pdf() -> None:
    pdf = render_invoice_pdf(_invoice(logo=_png_bytes(), notes="Thanks"))

    assert pdf.startswith(b"%PDF")
    assert _page_count(pdf) == 1


def test_malformed_logo_raises_rendering_error() -> None:
    with pytest.raises(RenderingError) as exc_info:
        render_invoice_pdf(_invoice(logo=b"definitely not an image"))

    assert exc_info.value.__cause__ is not None


def test_rendering_is_byte_identical_across_calls() -> None:
    invoice = _invoice(logo=_png_bytes(), notes="Same every time")

    assert render_invoice_pdf(invoice) == render_invoice_pdf(invoice)


def test_rendering_does_not_mutate_invoice() -> None:
    logo = _png_bytes()
    invoice = _invoice(logo=logo, notes="n")
    items_before = list(invoice.items)

    render_invoice_pdf(invoice)

    assert invoice.items == items_before
    assert invoice.logo is logo
    assert invoice.notes == "n"


def test_long_invoices_span_multiple_pages() -> None:
    items = [_item(f"Line {index}", index, 1.5) for index in range(120)]

    pdf = render_invoice_pdf(_invoice(items=items))

    assert _page_count(pdf) >= 2


def test_markup_characters_in_fields_are_escaped() -> None:
    invoice = _invoice(customer_name="Smith & Sons <Ltd>", items=[_item("A & B", 1, 1.0)])

    assert render_invoice_pdf(invoice).startswith(b"%PDF")


def test_stream_failures_surface_as_rendering_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken_build(self: object, story: list) -> None:
        raise OSError("disk full")

    monkeypatch.setattr(pdf_generation.SimpleDocTemplate, "build", broken_build)

    with pytest.raises(RenderingError, match="Error generating PDF"):
        render_invoice_pdf(_invoice())


def test_generate_invoice_pdf_names_file_after_id() -> None:
    pdf = generate_invoice_pdf(_invoice(id=42))

    assert pdf.filename == "invoice_42.pdf"
    assert pdf.content.startswith(b"%PDF")


def test_line_item_table_applies_header_style_and_row_stripes() -> None:
    items = [_item("One", 1, 1.0), _item("Two", 2, 2.0), _item("Three", 3, 3.0)]

    table = build_invoice_story(_invoice(items=items))[2]

    backgrounds = {
        (cmd[1], cmd[2]): cmd[3] for cmd in table._bkgrndcmds if cmd[0] == "BACKGROUND"
    }
    assert backgrounds[((0, 0), (-1, 0))] is pdf_generation.TABLE_HEADER_COLOR
    assert backgrounds[((0, 1), (-1, 1))] is ROW_COLOR
    assert backgrounds[((0, 2), (-1, 2))] is ALT_ROW_COLOR
    assert backgrounds[((0, 3), (-1, 3))] is ROW_COLOR

    header_cells = table._cellStyles[0]
    assert all(cell.fontname == "Helvetica-Bold" for cell in header_cells)
    assert all(cell.color.hexval() == colors.white.hexval() for cell in header_cells)
    assert table._cellStyles[1][1].fontname == "Helvetica"


def test_description_taller_than_a_page_splits_across_pages() -> None:
    description = "\n".join(f"Deliverable line {index}" for index in range(80))

    pdf = render_invoice_pdf(_invoice(items=[_item(description, 1, 10.0)]))

    assert pdf.startswith(b"%PDF")
    assert _page_count(pdf) >= 2


def test_address_taller_than_a_page_splits_across_pages() -> None:
    address = "\n".join(f"Building {index}" for index in range(80))

    pdf = render_invoice_pdf(_invoice(customer_address=address))

    assert pdf.startswith(b"%PDF")
    assert _page_count(pdf) >= 2


def test_tall_line_item_row_keeps_content_on_both_sides_of_split() -> None:
    description = "\n".join(f"Deliverable line {index}" for index in range(80))
    table = build_invoice_story(_invoice(items=[_item(description, 1, 10.0)]))[2]
    width = pdf_generation.CONTENT_WIDTH

    table.wrap(width, 400)
    top, bottom = table.split(width, 400)

    assert top._cellvalues[1][0]
    assert bottom._cellvalues[0] == ["Description", "Qty", "Price", "Total"]
    assert bottom._cellvalues[1][0]
