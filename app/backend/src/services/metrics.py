"""Prometheus metric definitions for invoice storage and rendering."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

invoice_saves_total = Counter(
    "invoice_saves_total",
    "Total invoices persisted, by operation.",
    labelnames=["operation"],
)

invoice_renders_total = Counter(
    "invoice_renders_total",
    "Total invoice PDF renders by outcome.",
    labelnames=["status"],
)

pdf_generation_seconds = Histogram(
    "pdf_generation_seconds",
    "Time spent rendering a single invoice PDF.",
)

__all__ = [
    "invoice_renders_total",
    "invoice_saves_total",
    "pdf_generation_seconds",
]
