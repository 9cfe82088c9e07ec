"""
Email subjects and bodies keyed by template name.
"""

from html import escape
from typing import Any, Mapping

BRAND = "BD TicketPro"


def _money(value: Any) -> str:
    try:
        return f"৳{float(value):,.0f}"
    except (TypeError, ValueError):
        return "৳0"


def _invoice(data: Mapping[str, Any]) -> tuple[str, str]:
    ref = escape(str(data.get("booking_reference", "")))
    rows = [
        ("Booking Reference", ref),
        ("Passenger Name", escape(str(data.get("passenger_name", "")))),
        ("Flight", escape(f"{data.get('airline', 'N/A')} - {data.get('flight_number', 'N/A')}")),
        ("Route", escape(f"{data.get('departure_city', 'N/A')} -> {data.get('arrival_city', 'N/A')}")),
        ("Departure", escape(str(data.get("departure_at", "N/A")))),
        ("Passengers", f"{int(data.get('pax_count', 1))} passenger(s)"),
        ("Payment Status", escape(str(data.get("payment_status", "pending")).upper())),
    ]
    body = "".join(f"<tr><td><strong>{label}:</strong></td><td>{value}</td></tr>" for label, value in rows)
    html = (
        f"<html><body><h1>{BRAND}</h1><h2>Booking Invoice</h2>"
        f"<table>{body}</table>"
        f"<h3>Total Amount: {_money(data.get('total_amount'))}</h3>"
        f"<p>Thank you for choosing {BRAND}. Please keep this invoice for your records.</p>"
        "</body></html>"
    )
    return f"{BRAND} - Invoice for Booking {data.get('booking_reference', '')}", html


def _expiry_warning(data: Mapping[str, Any]) -> tuple[str, str]:
    ref = escape(str(data.get("booking_reference", "")))
    html = (
        f"<html><body><h1>{BRAND}</h1>"
        f"<p>Booking <strong>{ref}</strong> for {escape(str(data.get('passenger_name', '')))} "
        f"expires at {escape(str(data.get('expires_at', '')))}.</p>"
        "<p>Confirm it before then or the ticket will be released.</p>"
        "</body></html>"
    )
    return f"{BRAND} - Booking {data.get('booking_reference', '')} expires soon", html


TEMPLATES = {
    "booking_invoice": _invoice,
    "booking_expiry_warning": _expiry_warning,
}


def render(template: str, data: Mapping[str, Any]) -> tuple[str, str]:
    """Returns (subject, html). Raises KeyError for unknown templates."""
    return TEMPLATES[template](data)
