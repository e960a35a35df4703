# wholesale_pos/modules/sales/invoice.py
"""
Invoice and customer-statement documents.

build_*_document() turn stored records into plain dicts with every amount
already resolved, render_html() fills a Jinja2 template, and
PdfInvoiceRenderer prints that HTML to a PDF file through Qt.
"""
from __future__ import annotations

import logging
from pathlib import Path
import re
from typing import Any, Dict

from jinja2 import DictLoader, Environment, select_autoescape

from ...constants import COMPANY_NAME, COMPANY_TAGLINE
from ...database.repositories.customers_repo import CustomerStatement
from ...database.repositories.sales_repo import Sale
from ...errors import DocumentGenerationError
from ...utils.helpers import fmt_money, now_str, parse_timestamp
from ...utils.units import describe_sale_mode

_log = logging.getLogger(__name__)

_INVOICE_TEMPLATE = """\
<html><head><meta charset="utf-8"><title>{{ invoice_id }}</title></head>
<body>
  <h2>{{ company.name }}</h2>
  <p>{{ company.tagline }}</p>
  <h3>Invoice {{ invoice_id }}</h3>
  <p>Date: {{ date }}<br>Customer: {{ customer_name }}</p>
  <table border="1" cellspacing="0" cellpadding="4" width="100%">
    <thead><tr><th>#</th><th>Product</th><th>Sale Mode</th><th>Qty</th><th>Unit Price</th><th>Line Total</th></tr></thead>
    <tbody>
    {% for it in items %}
      <tr>
        <td>{{ loop.index }}</td><td>{{ it.name }}</td><td>{{ it.sale_mode }}</td>
        <td align="right">{{ it.qty }}</td>
        <td align="right">{{ it.unit_price|money }}</td>
        <td align="right">{{ it.line_total|money }}</td>
      </tr>
    {% endfor %}
    </tbody>
  </table>
  <p align="right">
    Total: <b>{{ total|money }}</b><br>
    Paid: {{ paid|money }}<br>
    Balance: <b>{{ balance|money }}</b>
  </p>
</body></html>
"""

_STATEMENT_TEMPLATE = """\
<html><head><meta charset="utf-8"><title>Statement - {{ customer.name }}</title></head>
<body>
  <h2>{{ company.name }}</h2>
  <h3>Customer Statement: {{ customer.name }}</h3>
  <p>{% if customer.phone %}Phone: {{ customer.phone }}<br>{% endif %}Generated: {{ generated_at }}</p>
  <table border="1" cellspacing="0" cellpadding="4" width="100%">
    <thead><tr><th>Date</th><th>Type</th><th>Reference</th><th>Debit</th><th>Credit</th><th>Balance</th></tr></thead>
    <tbody>
    {% for e in entries %}
      <tr>
        <td>{{ e.date }}</td><td>{{ e.kind|title }}</td><td>{{ e.reference }}</td>
        <td align="right">{{ e.debit|money }}</td>
        <td align="right">{{ e.credit|money }}</td>
        <td align="right">{{ e.balance|money }}</td>
      </tr>
    {% endfor %}
    </tbody>
  </table>
  <p align="right">
    Total purchases: {{ total_purchases|money }}<br>
    Total paid: {{ total_paid|money }}<br>
    Balance due: <b>{{ closing_balance|money }}</b>
  </p>
</body></html>
"""

_env = Environment(
    loader=DictLoader({"invoice.html": _INVOICE_TEMPLATE, "statement.html": _STATEMENT_TEMPLATE}),
    autoescape=select_autoescape(["html"]),
)
_env.filters["money"] = fmt_money


def _iso(value: Any) -> str | None:
    ts = parse_timestamp(value)
    return ts.isoformat() if ts else value


def _company() -> Dict[str, str]:
    return {"name": COMPANY_NAME, "tagline": COMPANY_TAGLINE}


def build_invoice_document(sale: Sale) -> Dict[str, Any]:
    items = [
        {
            "product_id": it.product_id,
            "name": it.name,
            "sale_mode": describe_sale_mode(it.sale_mode_name, it.multiplier),
            "qty": f"{it.qty:g}",
            "unit_price": it.price,
            "line_total": it.line_total,
        }
        for it in sale.items
    ]
    return {
        "template": "invoice.html",
        "company": _company(),
        "invoice_id": sale.invoice_id,
        "date": _iso(sale.date),
        "customer_id": sale.customer_id,
        "customer_name": sale.customer_name,
        "items": items,
        "total": sale.total,
        "paid": sale.paid,
        "balance": sale.balance,
    }


def build_statement_document(statement: CustomerStatement, generated_at: str | None = None) -> Dict[str, Any]:
    c = statement.customer
    return {
        "template": "statement.html",
        "company": _company(),
        "customer": {"customer_id": c.customer_id, "name": c.name, "phone": c.phone, "email": c.email},
        "generated_at": generated_at or _iso(now_str()),
        "entries": [
            {
                "date": _iso(e.date),
                "kind": e.kind,
                "reference": e.reference,
                "debit": e.debit,
                "credit": e.credit,
                "balance": e.balance,
            }
            for e in statement.entries
        ],
        "total_purchases": statement.total_purchases,
        "total_paid": statement.total_paid,
        "closing_balance": statement.closing_balance,
    }


def render_html(document: Dict[str, Any]) -> str:
    try:
        template = _env.get_template(document.get("template", "invoice.html"))
        return template.render(**document)
    except Exception as e:
        raise DocumentGenerationError(f"Could not render document: {e}", original=e) from e


def _safe_filename(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]+", "_", name).strip("_") or "document"


class PdfInvoiceRenderer:
    """
    Writes documents to `<output_dir>/<invoice id or customer>.pdf`.

    Needs a running QGuiApplication/QApplication (fonts and layout).
    """

    def __init__(self, output_dir: Path | str):
        self.output_dir = Path(output_dir)

    def path_for(self, document: Dict[str, Any]) -> Path:
        if document.get("invoice_id"):
            stem = document["invoice_id"]
        else:
            stem = f"statement_{(document.get('customer') or {}).get('name', '')}"
        return self.output_dir / f"{_safe_filename(stem)}.pdf"

    def render(self, document: Dict[str, Any]) -> Path:
        html = render_html(document)
        try:
            from PySide6.QtGui import QGuiApplication, QPageSize, QPdfWriter, QTextDocument

            if QGuiApplication.instance() is None:
                raise RuntimeError("no Qt application is running")

            self.output_dir.mkdir(parents=True, exist_ok=True)
            path = self.path_for(document)
            writer = QPdfWriter(str(path))
            writer.setPageSize(QPageSize(QPageSize.PageSizeId.A4))
            writer.setResolution(96)
            doc = QTextDocument()
            doc.setHtml(html)
            doc.print_(writer)
            del writer  # flushes the file
        except Exception as e:
            raise DocumentGenerationError(f"PDF generation failed: {e}", original=e) from e
        _log.info("document written to %s", path)
        return path
