"""
Notification message builder.

Turns a persisted invoice into the message a downstream e-mail service
delivers to the customer.
"""

from html import escape

from insurance_billing.documents.renderer import format_amount
from insurance_billing.domain.billing import InvoiceCreate
from insurance_billing.domain.messages import InvoiceNotification
from insurance_billing.domain.policy import Customer

BATCH_MESSAGE_SUBJECT = "Invoice Notification for Insurance"


def message_subject(policy_id: object | None = None) -> str:
    """Broker-visible subject for notification messages."""
    if policy_id is None:
        return BATCH_MESSAGE_SUBJECT
    return f"{BATCH_MESSAGE_SUBJECT} {policy_id}"


def email_subject(invoice: InvoiceCreate) -> str:
    """e.g. "Your Insurance Invoice #INV-20250610-3FA85F64 - Due Jul 10, 2025"."""
    return f"Your Insurance Invoice #{invoice.invoice_number} - Due {invoice.due_date:%b %d, %Y}"


def email_html_body(
    customer: Customer,
    invoice: InvoiceCreate,
    currency_symbol: str = "$",
    sender_name: str = "Insurance Management Team",
) -> str:
    period = f"{invoice.period_start:%m/%d/%Y} to {invoice.period_end:%m/%d/%Y}"
    return (
        "<html><body>"
        "<h2>Insurance Invoice</h2>"
        f"<p>Dear {escape(customer.name)},</p>"
        f"<p>Your insurance invoice for the period {period} is now available.</p>"
        "<ul>"
        f"<li>Invoice Number: {escape(invoice.invoice_number)}</li>"
        f"<li>Amount Due: {escape(format_amount(invoice.amount, currency_symbol))}</li>"
        f"<li>Due Date: {invoice.due_date:%m/%d/%Y}</li>"
        "</ul>"
        "<p>Please ensure payment is made by the due date to avoid any service interruption.</p>"
        "<p>Thank you for choosing our insurance services.</p>"
        f"<p>Best regards,<br/>{escape(sender_name)}</p>"
        "</body></html>"
    )


def build_invoice_notification(
    customer: Customer,
    invoice: InvoiceCreate,
    document_url: str,
    currency_symbol: str = "$",
    sender_name: str = "Insurance Management Team",
) -> InvoiceNotification:
    """
    Build the notification for an invoice.

    Args:
        customer: Recipient
        invoice: Persisted invoice
        document_url: Location of the invoice PDF
        currency_symbol: Symbol used in the body
        sender_name: Signature used in the body

    Returns:
        InvoiceNotification
    """
    return InvoiceNotification(
        recipient_email=customer.email,
        recipient_name=customer.name,
        invoice_id=invoice.invoice_id,
        invoice_number=invoice.invoice_number,
        amount=invoice.amount,
        due_date=invoice.due_date,
        document_url=document_url,
        subject=email_subject(invoice),
        html_body=email_html_body(customer, invoice, currency_symbol, sender_name),
    )
