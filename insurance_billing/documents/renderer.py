"""
PDF rendering for insurance invoices.

Lays out a single-page invoice with reportlab platypus: title, invoice
identifiers and dates, bill-to block, coverage period, payment details and
notes.
"""

import io
from datetime import date, datetime
from decimal import Decimal
from typing import Dict
from xml.sax.saxutils import escape

import structlog
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from insurance_billing.domain.billing import InvoiceCreate
from insurance_billing.domain.policy import Customer
from insurance_billing.errors import PermanentError

logger = structlog.get_logger()

TEXT_COLOR = colors.HexColor("#1F2937")
MUTED_COLOR = colors.HexColor("#6B7280")
RULE_COLOR = colors.HexColor("#D1D5DB")


def format_amount(amount: Decimal, currency_symbol: str = "$") -> str:
    """Format money as e.g. $1,234.50."""
    return f"{currency_symbol}{amount:,.2f}"


def _fmt_date(value: date | datetime) -> str:
    return value.strftime("%m/%d/%Y")


def _build_styles() -> Dict[str, ParagraphStyle]:
    base = getSampleStyleSheet()
    return {
        "title": ParagraphStyle(
            "InvoiceTitle", parent=base["Normal"],
            fontSize=20, fontName="Helvetica-Bold",
            textColor=TEXT_COLOR, alignment=TA_CENTER, spaceAfter=12,
        ),
        "section_head": ParagraphStyle(
            "SectionHead", parent=base["Normal"],
            fontSize=12, fontName="Helvetica-Bold",
            textColor=TEXT_COLOR, spaceBefore=10, spaceAfter=4,
        ),
        "label": ParagraphStyle(
            "Label", parent=base["Normal"],
            fontSize=10, fontName="Helvetica-Bold", textColor=MUTED_COLOR,
        ),
        "body": ParagraphStyle(
            "Body", parent=base["Normal"],
            fontSize=10, fontName="Helvetica", textColor=TEXT_COLOR, leading=14,
        ),
        "total": ParagraphStyle(
            "Total", parent=base["Normal"],
            fontSize=12, fontName="Helvetica-Bold", textColor=TEXT_COLOR,
        ),
    }


def _key_value_table(rows: list[tuple[str, str]], s: dict) -> Table:
    table = Table(
        [[Paragraph(escape(k), s["label"]), Paragraph(escape(v), s["body"])] for k, v in rows],
        colWidths=[1.6 * inch, 5.0 * inch],
    )
    table.setStyle(TableStyle([
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("LEFTPADDING", (0, 0), (-1, -1), 0),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
    ]))
    return table


def _rule() -> Table:
    rule = Table([[""]], colWidths=[6.6 * inch], rowHeights=[4])
    rule.setStyle(TableStyle([("LINEBELOW", (0, 0), (-1, -1), 0.5, RULE_COLOR)]))
    return rule


def render_invoice_pdf(
    invoice: InvoiceCreate,
    customer: Customer,
    currency_symbol: str = "$",
) -> bytes:
    """
    Render an invoice as a PDF document.

    Args:
        invoice: Invoice to render (document_url is not shown)
        customer: Bill-to customer
        currency_symbol: Symbol prefixed to the total

    Returns:
        PDF bytes

    Raises:
        PermanentError: If the document cannot be laid out
    """
    s = _build_styles()
    story = [
        Paragraph("INSURANCE INVOICE", s["title"]),
        _key_value_table([
            ("Invoice Number:", invoice.invoice_number),
            ("Invoice ID:", str(invoice.invoice_id)),
            ("Issue Date:", _fmt_date(invoice.issued_date)),
            ("Due Date:", _fmt_date(invoice.due_date)),
        ], s),
        _rule(),
        Paragraph("Bill To:", s["section_head"]),
        _key_value_table([
            ("Name:", customer.name),
            ("Email:", customer.email),
            ("Phone:", customer.phone_number),
            ("Address:", customer.address),
        ], s),
        Paragraph("Coverage Period:", s["section_head"]),
        _key_value_table([
            ("From:", _fmt_date(invoice.period_start)),
            ("To:", _fmt_date(invoice.period_end)),
        ], s),
        _rule(),
        Paragraph("Payment Details:", s["section_head"]),
        Paragraph(
            f"Total Amount: {escape(format_amount(invoice.amount, currency_symbol))}",
            s["total"],
        ),
        Spacer(1, 12),
    ]
    if invoice.notes:
        story.append(Paragraph("Notes:", s["section_head"]))
        story.append(Paragraph(escape(invoice.notes), s["body"]))

    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=letter,
        topMargin=0.75 * inch,
        bottomMargin=0.75 * inch,
        leftMargin=0.9 * inch,
        rightMargin=0.9 * inch,
        title=f"Invoice {invoice.invoice_number}",
        author="Insurance Billing",
    )
    try:
        doc.build(story)
    except Exception as e:
        logger.error("invoice_render_failed", invoice_id=str(invoice.invoice_id), error=str(e))
        raise PermanentError(
            "Invoice document could not be rendered",
            invoice_id=str(invoice.invoice_id),
        ) from e
    return buf.getvalue()
