"""
mortality_catalog/presentation.py - Detail View Model & Text Rendering

The detail modal has three tabs:
- Classification: provider, content type, description, keywords
- Metadata: scaling factor, data type, nation, axes of the active payload
- Rates: List or Matrix view of the active payload

plus a payload pager (Prev/Next) for documents with several rate tables.

DetailView holds the modal's view state; every transition takes the loaded
document so the view can never point past its payloads or show a matrix for
a payload without a duration axis.

The text renderers are toolkit-neutral; the CLI prints them and a GUI can
use the row/section builders directly.

License: MIT
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional, Tuple

from .matrix import PLACEHOLDER, build_rate_matrix, rate_list_frame, table_has_duration
from .models import AxisDefinition, ClassifiedValue, ConvertedTable, TableSummary

Row = Tuple[str, str]


class DetailTab(Enum):
    """Modal tabs, in display order."""
    CLASSIFICATION = "classification"
    METADATA = "metadata"
    RATES = "rates"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class RateView(Enum):
    LIST = "list"
    MATRIX = "matrix"


TAB_ORDER = [DetailTab.CLASSIFICATION, DetailTab.METADATA, DetailTab.RATES]

NO_CLASSIFICATION = "No classification data."
NO_METADATA = "No metadata attached to this table."
NO_RATES = "No rates found for this table."
MATRIX_UNAVAILABLE = "Matrix view is available only when durations are present."
NO_RATE_TABLES = "No rate tables"


def _or_placeholder(value: Optional[str]) -> str:
    return value if value is not None else PLACEHOLDER


def _classified(value: Optional[ClassifiedValue]) -> str:
    return value.describe() if value is not None else PLACEHOLDER


# =============================================================================
# SECTION BUILDERS
# =============================================================================

def classification_rows(detail: ConvertedTable) -> Optional[List[Row]]:
    """Key/value rows of the Classification tab; None without classification."""
    c = detail.classification
    if c is None:
        return None

    rows = [
        ("Table Identity", c.table_identity or ""),
        ("Provider", c.provider_name if c.provider_name is not None else "Unknown"),
        ("Domain", _or_placeholder(c.provider_domain)),
        ("Reference", _or_placeholder(c.table_reference)),
        ("Content Type", _classified(c.content_type)),
        ("Description", _or_placeholder(c.table_description)),
    ]
    if c.comments:
        rows.append(("Comments", c.comments))
    if c.keywords:
        rows.append(("Keywords", ", ".join(c.keywords)))
    return rows


def describe_axis(axis: AxisDefinition) -> str:
    return (f"{axis.axis_name} ({axis.id}) — {axis.min_value} to {axis.max_value} "
            f"step {axis.increment} ({axis.scale_type.label})")


def metadata_rows(detail: ConvertedTable, table_index: int) -> Optional[List[Row]]:
    """Key/value rows of the Metadata tab; None when the payload has none."""
    table = detail.get_table(table_index)
    if table is None or table.metadata is None:
        return None

    meta = table.metadata
    rows = [
        ("Scaling Factor", _or_placeholder(meta.scaling_factor)),
        ("Data Type", _classified(meta.data_type)),
        ("Nation", _classified(meta.nation)),
        ("Description", _or_placeholder(meta.table_description)),
    ]
    for axis in meta.axes or []:
        rows.append(("Axis", describe_axis(axis)))
    return rows


def pager_label(detail: ConvertedTable, table_index: int) -> str:
    if detail.table_count == 0:
        return NO_RATE_TABLES
    return f"Table {table_index + 1} of {detail.table_count}"


# =============================================================================
# VIEW STATE
# =============================================================================

@dataclass(frozen=True)
class DetailView:
    """
    View state of the open modal.

    Attributes:
        tab: Active tab
        table_index: Active payload position
        rate_view: List or Matrix
    """
    tab: DetailTab = DetailTab.CLASSIFICATION
    table_index: int = 0
    rate_view: RateView = RateView.LIST

    def select_tab(self, tab: DetailTab) -> 'DetailView':
        return replace(self, tab=tab)

    def next_table(self, detail: Optional[ConvertedTable]) -> 'DetailView':
        if detail is None or detail.table_count == 0:
            return self
        index = min(detail.table_count - 1, self.table_index + 1)
        return replace(self, table_index=index).normalized(detail)

    def prev_table(self, detail: Optional[ConvertedTable]) -> 'DetailView':
        if detail is None or detail.table_count == 0:
            return self
        return replace(self, table_index=max(0, self.table_index - 1)).normalized(detail)

    def can_use_matrix(self, detail: Optional[ConvertedTable]) -> bool:
        if detail is None:
            return False
        return table_has_duration(detail.get_table(self.table_index))

    def set_rate_view(self, view: RateView, detail: Optional[ConvertedTable]) -> 'DetailView':
        """Switch List/Matrix; Matrix is refused when no duration axis exists."""
        if view is RateView.MATRIX and not self.can_use_matrix(detail):
            return self
        return replace(self, rate_view=view)

    def normalized(self, detail: Optional[ConvertedTable]) -> 'DetailView':
        """Fall back to the list view whenever the matrix is not available."""
        if self.rate_view is RateView.MATRIX and not self.can_use_matrix(detail):
            return replace(self, rate_view=RateView.LIST)
        return self

    def has_prev(self) -> bool:
        return self.table_index > 0

    def has_next(self, detail: Optional[ConvertedTable]) -> bool:
        return detail is not None and self.table_index < detail.table_count - 1


# =============================================================================
# TEXT RENDERING
# =============================================================================

def _render_rows(rows: List[Row]) -> str:
    width = max(len(key) for key, _ in rows)
    return "\n".join(f"{key:<{width}}  {value}" for key, value in rows)


def render_classification(detail: ConvertedTable) -> str:
    rows = classification_rows(detail)
    return _render_rows(rows) if rows else NO_CLASSIFICATION


def render_metadata(detail: ConvertedTable, table_index: int) -> str:
    rows = metadata_rows(detail, table_index)
    return _render_rows(rows) if rows else NO_METADATA


def render_rates(detail: ConvertedTable, table_index: int, view: RateView) -> str:
    table = detail.get_table(table_index)
    if table is None or not table.rates:
        return NO_RATES

    if view is RateView.MATRIX:
        matrix = build_rate_matrix(table)
        if matrix is None:
            return MATRIX_UNAVAILABLE + "\n" + rate_list_frame(table).to_string(index=False)
        return matrix.to_display_frame().to_string()

    return rate_list_frame(table).to_string(index=False)


def render_tab_bar(active: DetailTab) -> str:
    return "  ".join(f"[{tab.label}]" if tab is active else f" {tab.label} " for tab in TAB_ORDER)


def render_detail(summary: TableSummary, detail: ConvertedTable, view: DetailView) -> str:
    """Full plain-text rendering of the modal."""
    provider = summary.provider
    if detail.classification and detail.classification.provider_name is not None:
        provider = detail.classification.provider_name

    view = view.normalized(detail)
    if view.tab is DetailTab.CLASSIFICATION:
        body = render_classification(detail)
    elif view.tab is DetailTab.METADATA:
        body = render_metadata(detail, view.table_index)
    else:
        body = render_rates(detail, view.table_index, view.rate_view)

    lines = [
        f"Table {summary.table_identity}",
        summary.name,
        provider,
        "",
        render_tab_bar(view.tab),
        "",
        body,
        "",
        pager_label(detail, view.table_index),
    ]
    return "\n".join(lines)
