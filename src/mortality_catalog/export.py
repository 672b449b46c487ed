"""
mortality_catalog/export.py - JSON / CSV / Zip / Excel Export

Exports go through an ExportSink (accepts a named byte payload and persists
it for the user), so nothing here assumes a UI toolkit.

SINGLE EXPORTS:
- JSON: raw document bytes, saved as {identifier}.json (unnamed without one)
- CSV: one file per payload, {identifier|"table"}_{index+1}.csv
- Excel: one workbook per document (Classification + one sheet per payload)

BULK EXPORTS (zip, built fully in memory before saving):
- tables-json.zip: {identifier|tableIdentity}.json
- tables-csv.zip:  {identifier|tableIdentity}_table-{index+1}.csv

CSV FORMAT:
    # Identifier: <identifier>        (when known)
    # Version: <version>              (when known)
    "tableIndex","age","duration","rate"
    "0","30","1","0.001"
Every field is wrapped in double quotes without escaping; missing duration
and rate values are empty; the file ends with a newline.

Bulk export fails fast: one failed fetch aborts the archive.

License: MIT
"""

import io
import logging
import re
import zipfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Union
from urllib.parse import unquote

import numpy as np
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from .errors import CatalogError
from .matrix import build_rate_matrix, format_number, table_has_duration
from .models import ConvertedTable, TablePayload, TableSummary
from .presentation import classification_rows
from .provider import DataProvider

logger = logging.getLogger(__name__)


CSV_HEADER = ('tableIndex', 'age', 'duration', 'rate')

JSON_MEDIA_TYPE = "application/json"
CSV_MEDIA_TYPE = "text/csv;charset=utf-8"
ZIP_MEDIA_TYPE = "application/zip"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class BulkKind(Enum):
    """Bulk archive flavours."""
    JSON = "json"
    CSV = "csv"

    @property
    def archive_name(self) -> str:
        return f"tables-{self.value}.zip"


# =============================================================================
# EXPORT SINKS
# =============================================================================

@dataclass
class ExportedFile:
    """A payload handed to a sink."""
    name: Optional[str]
    data: bytes
    media_type: str
    default_name: Optional[str] = None


class ExportSink(ABC):
    """Persists a named byte payload for the user."""

    @abstractmethod
    def save(self, name: Optional[str], data: bytes, media_type: str,
             default_name: Optional[str] = None) -> str:
        """
        Persist a payload.

        Args:
            name: Requested file name (None for an unnamed download)
            data: File contents
            media_type: MIME type of the payload
            default_name: Name to fall back on for unnamed downloads

        Returns:
            Where the payload ended up
        """
        pass


class MemorySink(ExportSink):
    """Keeps exports in memory, in save order."""

    def __init__(self):
        self.files: List[ExportedFile] = []

    def save(self, name: Optional[str], data: bytes, media_type: str,
             default_name: Optional[str] = None) -> str:
        self.files.append(ExportedFile(name, data, media_type, default_name))
        return name or default_name or ""

    @property
    def names(self) -> List[Optional[str]]:
        return [f.name for f in self.files]


_UNSAFE_FILENAME = re.compile(r'[\\/:*?"<>|\x00-\x1f]')


def safe_filename(name: str) -> str:
    cleaned = _UNSAFE_FILENAME.sub('_', name).strip(' .')
    return cleaned or "download"


class DirectorySink(ExportSink):
    """Writes exports into a directory."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def save(self, name: Optional[str], data: bytes, media_type: str,
             default_name: Optional[str] = None) -> str:
        self.directory.mkdir(parents=True, exist_ok=True)
        target = self.directory / safe_filename(name or default_name or "download")
        target.write_bytes(data)
        logger.info(f"Saved {target} ({len(data):,} bytes)")
        return str(target)


# =============================================================================
# CSV SYNTHESIS
# =============================================================================

def _quote_row(values: Iterable[str]) -> str:
    return ','.join(f'"{value}"' for value in values)


def build_csv(detail: ConvertedTable, table_index: int) -> str:
    """
    CSV text for one payload.

    Returns:
        "" when the payload does not exist or has no rates
    """
    table = detail.get_table(table_index)
    if table is None or not table.rates:
        return ""

    number = format_number(table.number(table_index))
    lines = [_quote_row(CSV_HEADER)]
    for entry in table.rates:
        lines.append(_quote_row((
            number,
            format_number(entry.age),
            format_number(entry.duration) if entry.duration is not None else '',
            format_number(entry.rate) if entry.rate is not None else '',
        )))

    notes = ""
    if detail.identifier:
        notes += f"# Identifier: {detail.identifier}\n"
    if detail.version:
        notes += f"# Version: {detail.version}\n"
    return notes + "\n".join(lines) + "\n"


def csv_filename(detail: ConvertedTable, table_index: int) -> str:
    table = detail.get_table(table_index)
    number = table.number(table_index) if table is not None else table_index
    return f"{detail.identifier or 'table'}_{number + 1}.csv"


def bulk_csv_entry_name(detail: ConvertedTable, summary: TableSummary, table_index: int) -> str:
    table = detail.get_table(table_index)
    number = table.number(table_index) if table is not None else table_index
    return f"{detail.identifier or summary.table_identity}_table-{number + 1}.csv"


def bulk_json_entry_name(summary: TableSummary) -> str:
    return f"{summary.identifier or summary.table_identity}.json"


# =============================================================================
# EXCEL WORKBOOK
# =============================================================================

_HEADER_FONT = Font(bold=True, size=11, color="FFFFFF")
_HEADER_FILL = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
_RATE_FORMAT = '0.000000'


def _write_header(sheet, row: int, headers: Sequence[str]) -> None:
    for col, header in enumerate(headers, start=1):
        cell = sheet.cell(row=row, column=col, value=header)
        cell.font = _HEADER_FONT
        cell.fill = _HEADER_FILL
        cell.alignment = Alignment(horizontal='center')


def _write_payload_sheet(sheet, table: TablePayload) -> None:
    matrix = build_rate_matrix(table)
    if matrix is not None:
        _write_header(sheet, 1, ["Age"] + [f"Dur {format_number(d)}" for d in matrix.durations])
        grid = matrix.to_array()
        for r_idx, age in enumerate(matrix.ages, start=2):
            sheet.cell(row=r_idx, column=1, value=age)
            for c_idx, value in enumerate(grid[r_idx - 2], start=2):
                if not np.isnan(value):
                    sheet.cell(row=r_idx, column=c_idx, value=float(value)).number_format = _RATE_FORMAT
        sheet.freeze_panes = 'B2'
        return

    include_duration = table_has_duration(table)
    headers = ["Age", "Duration", "Rate"] if include_duration else ["Age", "Rate"]
    _write_header(sheet, 1, headers)
    for r_idx, entry in enumerate(table.rates or [], start=2):
        values = [entry.age, entry.duration, entry.rate] if include_duration else [entry.age, entry.rate]
        for c_idx, value in enumerate(values, start=1):
            cell = sheet.cell(row=r_idx, column=c_idx, value=value)
            if c_idx == len(values) and value is not None:
                cell.number_format = _RATE_FORMAT
    sheet.freeze_panes = 'A2'


def build_workbook(detail: ConvertedTable) -> bytes:
    """
    Excel workbook for one document.

    Sheets:
    - Classification: key/value rows (identifier and version first)
    - Table N: age × duration matrix, or the age/rate list without durations
    """
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Classification"

    rows = [("Identifier", detail.identifier or ""), ("Version", detail.version or "")]
    rows.extend(classification_rows(detail) or [])
    _write_header(sheet, 1, ["Field", "Value"])
    for r_idx, (key, value) in enumerate(rows, start=2):
        sheet.cell(row=r_idx, column=1, value=key).font = Font(bold=True)
        sheet.cell(row=r_idx, column=2, value=value)
    sheet.column_dimensions['A'].width = 18
    sheet.column_dimensions['B'].width = 80

    for position, table in enumerate(detail.tables or []):
        payload_sheet = workbook.create_sheet(f"Table {table.number(position) + 1}")
        _write_payload_sheet(payload_sheet, table)
        for col in range(1, payload_sheet.max_column + 1):
            payload_sheet.column_dimensions[get_column_letter(col)].width = 12

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


# =============================================================================
# EXPORT SERVICE
# =============================================================================

class Exporter:
    """
    Runs exports against a provider and a sink.

    Busy markers mirror the toolbar state:
        csv_downloading: detail path of the per-row CSV export in flight
        bulk_loading: BulkKind of the bulk export in flight
    """

    def __init__(self, provider: DataProvider, sink: ExportSink):
        self.provider = provider
        self.sink = sink
        self.csv_downloading: Optional[str] = None
        self.bulk_loading: Optional[BulkKind] = None

    # -------------------------------------------------------------------------
    # Single-document exports
    # -------------------------------------------------------------------------

    def export_json(self, detail_path: str, identifier: Optional[str] = None) -> str:
        """Save the raw document at detail_path."""
        data = self.provider.fetch_raw(detail_path)
        name = f"{identifier}.json" if identifier else None
        default_name = unquote(detail_path.rsplit('/', 1)[-1])
        return self.sink.save(name, data, JSON_MEDIA_TYPE, default_name=default_name)

    def export_csv(self, detail: ConvertedTable, indexes: Union[str, Sequence[int]] = 'all') -> List[str]:
        """
        Save one CSV per requested payload.

        Args:
            detail: Loaded document
            indexes: 'all' or payload positions; out-of-range positions and
                payloads without rates are skipped
        """
        if indexes == 'all':
            positions = list(range(detail.table_count))
        else:
            positions = [idx for idx in indexes if 0 <= idx < detail.table_count]

        saved = []
        for idx in positions:
            text = build_csv(detail, idx)
            if not text:
                continue
            saved.append(self.sink.save(csv_filename(detail, idx), text.encode('utf-8'), CSV_MEDIA_TYPE))
        return saved

    def export_detail_csv(self, detail: ConvertedTable, table_index: int) -> List[str]:
        """Modal CSV button: every payload when there are several, else the active one."""
        if detail.table_count > 1:
            return self.export_csv(detail, 'all')
        return self.export_csv(detail, [table_index])

    def export_summary_csv(self, summary: TableSummary) -> List[str]:
        """
        Row CSV button: fetch the document, then export like the modal does.

        Fetch and sink failures are logged and the busy marker is reset;
        nothing is raised.
        """
        self.csv_downloading = summary.detail_path
        try:
            detail = self.provider.fetch_detail(summary.detail_path)
            return self.export_detail_csv(detail, 0)
        except (CatalogError, OSError) as e:
            logger.error(f"CSV download failed for {summary.detail_path}: {e}")
            return []
        finally:
            self.csv_downloading = None

    def export_workbook(self, detail: ConvertedTable) -> str:
        name = f"{detail.identifier or 'table'}.xlsx"
        return self.sink.save(name, build_workbook(detail), XLSX_MEDIA_TYPE)

    # -------------------------------------------------------------------------
    # Bulk exports
    # -------------------------------------------------------------------------

    def build_archive(self, kind: BulkKind, summaries: Sequence[TableSummary]) -> bytes:
        """
        Zip the selected documents in order.

        Entry names are unique: a later document or payload with the same
        name replaces the earlier content and keeps its position.

        Raises:
            FetchError / ParseError: on the first document that fails
        """
        entries: Dict[str, Union[bytes, str]] = {}

        def add(name: str, data: Union[bytes, str]) -> None:
            if name in entries:
                logger.warning(f"Duplicate archive entry {name}; keeping the later content")
            entries[name] = data

        for summary in summaries:
            if kind is BulkKind.JSON:
                add(bulk_json_entry_name(summary), self.provider.fetch_raw(summary.detail_path))
                continue

            detail = self.provider.fetch_detail(summary.detail_path)
            for idx in range(detail.table_count):
                text = build_csv(detail, idx)
                if text:
                    add(bulk_csv_entry_name(detail, summary, idx), text)

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, 'w', compression=zipfile.ZIP_DEFLATED) as archive:
            for name, data in entries.items():
                archive.writestr(name, data)
        return buffer.getvalue()

    def bulk_export(self, kind: BulkKind, summaries: Sequence[TableSummary]) -> Optional[str]:
        """
        Bundle the selection into one archive and save it.

        Ignored while another bulk export is running or when nothing is
        selected. Any fetch failure aborts without saving an archive; fetch
        and sink failures are logged, not raised.

        Returns:
            Saved location, or None when nothing was saved
        """
        if self.bulk_loading is not None or not summaries:
            return None

        self.bulk_loading = kind
        try:
            data = self.build_archive(kind, summaries)
            location = self.sink.save(kind.archive_name, data, ZIP_MEDIA_TYPE)
            logger.info(f"Bulk {kind.value} export: {len(summaries)} tables -> {location}")
            return location
        except (CatalogError, OSError) as e:
            logger.error(f"Bulk download failed: {e}")
            return None
        finally:
            self.bulk_loading = None
