"""
Export of extracted leads.

Projects the DONE items of a QueueStore onto fixed-column rows and
serializes them as Excel or CSV. Projection is pure: it reads a snapshot
and never touches the store.
"""

import io
from dataclasses import asdict, dataclass
from typing import Iterable

import pandas as pd
from openpyxl.styles import Alignment, Font, PatternFill

from .work_queue import ItemStatus, QueueStore, WorkItem

# Fixed export contract
EXPORT_FILENAME = "influencer_leads.xlsx"
CSV_FILENAME = "influencer_leads.csv"
SHEET_NAME = "Influencers"
EXPORT_COLUMNS = ["Username", "Email", "Source_File", "Confidence", "Profile_URL"]
EMAIL_SEPARATOR = ", "
NO_EMAIL = "N/A"
PROFILE_BASE_URL = "https://instagram.com/"

EXCEL_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@dataclass(frozen=True)
class ExportRow:
    """One spreadsheet row for a successfully extracted screenshot."""
    Username: str
    Email: str
    Source_File: str
    Confidence: str
    Profile_URL: str


def item_to_row(item: WorkItem) -> ExportRow:
    """
    Map a DONE item to its export row.

    Emails are joined in extraction order without deduplication; an item
    with no email gets the "N/A" placeholder.
    """
    record = item.result
    username = record.username or ""
    return ExportRow(
        Username=username,
        Email=EMAIL_SEPARATOR.join(record.emails) if record.emails else NO_EMAIL,
        Source_File=item.source_label,
        Confidence=record.confidence.value if record.confidence else "",
        Profile_URL=f"{PROFILE_BASE_URL}{username}" if username else "",
    )


def project_rows(store: QueueStore) -> list[ExportRow]:
    """
    Build export rows for every DONE item, in queue order.

    Pending, in-flight and failed items are left out.
    """
    return [item_to_row(item) for item in store.select_by_status(ItemStatus.DONE)]


def rows_to_dataframe(rows: Iterable[ExportRow]) -> pd.DataFrame:
    """Convert export rows to a DataFrame with the fixed column order."""
    return pd.DataFrame([asdict(row) for row in rows], columns=EXPORT_COLUMNS)


def export_to_csv(rows: Iterable[ExportRow]) -> bytes:
    """
    Export rows to CSV format.

    Returns:
        CSV data as bytes (header only when there are no rows)
    """
    df = rows_to_dataframe(rows)

    csv_buffer = io.StringIO()
    df.to_csv(csv_buffer, index=False, encoding="utf-8")
    return csv_buffer.getvalue().encode("utf-8")


def export_to_excel(
    rows: Iterable[ExportRow],
    sheet_name: str = SHEET_NAME,
) -> bytes:
    """
    Export rows to an Excel workbook with formatting.

    Args:
        rows: Rows from project_rows
        sheet_name: Name of the Excel sheet

    Returns:
        Excel data as bytes
    """
    df = rows_to_dataframe(rows)

    # Create Excel file in memory
    excel_buffer = io.BytesIO()

    with pd.ExcelWriter(excel_buffer, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=sheet_name, index=False)
        worksheet = writer.sheets[sheet_name]

        # Auto-adjust column widths
        for column in worksheet.columns:
            max_length = max(len(str(cell.value or "")) for cell in column)
            worksheet.column_dimensions[column[0].column_letter].width = min(max_length + 2, 60)

        # Format header row
        header_fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
        header_font = Font(color="FFFFFF", bold=True)

        for cell in worksheet[1]:
            cell.fill = header_fill
            cell.font = header_font
            cell.alignment = Alignment(horizontal="center")

    return excel_buffer.getvalue()
