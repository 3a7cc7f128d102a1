"""
List-view helpers: searching, sorting and grouping of records, and the CSV export.

These work on already-loaded rows (or any objects with the same attributes),
so they are shared by the routes and easy to test in isolation.
"""

from __future__ import annotations

import csv
import io
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Sequence

from .models import PENDING_PROTOCOL_STATES

CSV_HEADERS = [
    "Data Recebido",
    "Prefixo",
    "Secretaria",
    "Descrição",
    "Nº Pedido Oficina",
    "Oficina Própria/Terceirizada",
    "Data Lançamento Volus",
    "Nº Orç Volus Peças",
    "Nº Orç Volus Serv",
    "Data Aprovação Volus",
    "Nº Orç Aprovado",
    "Valor Total",
    "Nota Fiscal",
    "Fornecedor",
    "Responsável Lançamento",
    "Status",
    "Entregue Relatório",
    "Observação",
]

REPORT_SEARCH_FIELDS = ("supplier", "prefix", "department", "approved_quote_number")
PROTOCOL_SEARCH_FIELDS = ("prefix", "supplier", "department")


def _matches(record: Any, term: str, fields: Sequence[str]) -> bool:
    for field in fields:
        value = getattr(record, field, None) or ""
        if term in str(value).lower():
            return True
    return False


def search(records: Iterable[Any], term: str | None, fields: Sequence[str]) -> list:
    """Case-insensitive substring match on any of `fields`. Blank term keeps everything."""
    needle = (term or "").strip().lower()
    if not needle:
        return list(records)
    return [r for r in records if _matches(r, needle, fields)]


def newest_first(records: Iterable[Any]) -> list:
    return sorted(records, key=lambda r: r.created_at, reverse=True)


def oldest_first(records: Iterable[Any]) -> list:
    return sorted(records, key=lambda r: r.created_at)


def filter_report_records(records: Iterable[Any], term: str | None) -> list:
    """Report list: search supplier/prefix/department/approved number, newest first."""
    return newest_first(search(records, term, REPORT_SEARCH_FIELDS))


def is_pending_protocol(record: Any) -> bool:
    return (getattr(record, "report_delivery", None) or "").strip().upper() in PENDING_PROTOCOL_STATES


def pending_protocol_records(records: Iterable[Any], term: str | None = None) -> list:
    """Protocol queue: records awaiting physical confirmation, oldest first."""
    pending = [r for r in records if is_pending_protocol(r)]
    return oldest_first(search(pending, term, PROTOCOL_SEARCH_FIELDS))


def group_quotes_by_supplier(quotes: Iterable[Any]) -> list[tuple[str, list]]:
    """
    History view: [(supplier name, quotes newest first)], suppliers alphabetically.
    """
    groups: dict[str, list] = {}
    for quote in quotes:
        groups.setdefault(quote.supplier_name, []).append(quote)
    return [
        (name, newest_first(items))
        for name, items in sorted(groups.items(), key=lambda kv: (kv[0].casefold(), kv[0]))
    ]


def search_suppliers(suppliers: Iterable[Any], term: str | None) -> list:
    """Name contains the term (case-insensitive) or the phone contains it verbatim."""
    raw = (term or "").strip()
    if not raw:
        return list(suppliers)
    needle = raw.lower()
    return [s for s in suppliers if needle in (s.name or "").lower() or raw in (s.phone or "")]


# ---------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------
def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return f"{value:.2f}".replace(".", ",")
    return str(value)


def _no_semicolons(value: Any) -> str:
    return _cell(value).replace(";", ",")


def report_row(record: Any) -> list[str]:
    return [
        _cell(record.received_date),
        _cell(record.prefix),
        _cell(record.department),
        _no_semicolons(record.description),
        _cell(record.workshop_order_number),
        _cell(record.workshop_type),
        _cell(record.volus_entry_date),
        _cell(record.volus_parts_quote_number),
        _cell(record.volus_services_quote_number),
        _cell(record.volus_approval_date),
        _cell(record.approved_quote_number),
        _cell(record.total_value),
        _cell(record.invoice_number),
        _cell(record.supplier),
        _cell(record.responsible),
        _cell(record.status),
        _cell(record.report_delivery),
        _no_semicolons(record.notes),
    ]


def render_reports_csv(records: Iterable[Any]) -> str:
    """Semicolon-separated spreadsheet with a UTF-8 BOM (opens directly in Excel pt-BR)."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=";", lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for record in records:
        writer.writerow(report_row(record))
    return "\ufeff" + buffer.getvalue()


def csv_filename(today: date) -> str:
    return f"relatorio_compras_{today.isoformat()}.csv"
