"""
XLSX export of the inventory report.

Writes two sheets:
  - "Inventory Report": one row per top seller, slow mover and active alert,
    under a shared header.
  - "Summary": label/value pairs for the report totals.

Numbers are written as numbers (Decimal money included) so the workbook
can be summed and filtered; the only text columns are names and labels.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

import openpyxl
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from inventory_kernel.logging_config import get_logger
from inventory_kernel.selectors.inventory_selector import ListedAlert
from inventory_kernel.selectors.report_selector import InventoryReport

logger = get_logger("reporting.export")

REPORT_TITLE = "Inventory Management Report"
REPORT_SHEET = "Inventory Report"
SUMMARY_SHEET = "Summary"

REPORT_HEADERS = (
    "Product ID",
    "Product Name",
    "Section",
    "Current Stock",
    "Quantity Sold",
    "Revenue",
    "Status",
    "Vendor",
    "Days in Stock",
)


def _report_rows(report: InventoryReport, alerts: list[ListedAlert]) -> list[tuple]:
    rows: list[tuple] = []
    for seller in report.top_selling_products:
        rows.append((
            seller.product_id,
            seller.product_name,
            "Top Selling",
            None,
            seller.quantity_sold,
            seller.revenue,
            "Active",
            None,
            None,
        ))
    for mover in report.slow_moving_products:
        rows.append((
            mover.product_id,
            mover.product_name,
            "Slow Moving",
            mover.current_stock,
            None,
            None,
            "Active",
            None,
            mover.days_in_stock,
        ))
    for item in alerts:
        rows.append((
            item.alert.product_id,
            item.product_name,
            "Alert",
            item.alert.current_stock,
            None,
            None,
            item.alert.alert_type.value,
            item.vendor_id,
            None,
        ))
    return rows


def _summary_rows(
    report: InventoryReport, alerts: list[ListedAlert], generated_at: datetime
) -> list[tuple]:
    return [
        ("Total Products", report.total_products),
        ("Total Value", report.total_value),
        ("Low Stock Products", report.low_stock_products),
        ("Out of Stock Products", report.out_of_stock_products),
        ("Reorder Needed", report.reorder_needed),
        ("Active Alerts", len(alerts)),
        ("Vendor", report.vendor_id or "All vendors"),
        # Excel has no timezone-aware datetimes
        ("Generated On", generated_at.isoformat()),
    ]


def _fit_columns(sheet) -> None:
    widths: dict[int, int] = {}
    for row in sheet.iter_rows():
        for cell in row:
            if cell.value is None:
                continue
            widths[cell.column] = max(widths.get(cell.column, 0), len(str(cell.value)))
    for column, width in widths.items():
        sheet.column_dimensions[get_column_letter(column)].width = min(width + 2, 60)


def export_report_xlsx(
    report: InventoryReport,
    alerts: Iterable[ListedAlert],
    path: Path | str,
    generated_at: datetime | None = None,
) -> Path:
    """
    Write ``report`` and ``alerts`` to an .xlsx workbook at ``path``.

    Parent directories must exist.  Returns the written path.
    """
    path = Path(path)
    alerts = list(alerts)
    generated_at = generated_at or datetime.now().astimezone()

    wb = openpyxl.Workbook()
    sheet = wb.active
    sheet.title = REPORT_SHEET
    sheet.append((REPORT_TITLE,))
    sheet["A1"].font = Font(bold=True, size=14)
    sheet.append(())
    sheet.append(REPORT_HEADERS)
    for cell in sheet[3]:
        cell.font = Font(bold=True)
    rows = _report_rows(report, alerts)
    for row in rows:
        sheet.append(row)
    _fit_columns(sheet)

    summary = wb.create_sheet(SUMMARY_SHEET)
    summary.append(("Metric", "Value"))
    for cell in summary[1]:
        cell.font = Font(bold=True)
    for row in _summary_rows(report, alerts, generated_at):
        summary.append(row)
    _fit_columns(summary)

    wb.save(path)
    logger.info(
        "inventory_report_exported",
        extra={
            "path": str(path),
            "row_count": len(rows),
            "alert_count": len(alerts),
            "vendor_id": report.vendor_id,
        },
    )
    return path
