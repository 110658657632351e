"""Report exports for the inventory kernel."""

from inventory_kernel.reporting.export import export_report_xlsx

__all__ = ["export_report_xlsx"]
