"""
mortality_catalog/selection.py - Multi-Select State

Selection is a set of detail paths plus an anchor: the position, in the
current filtered list, of the most recent single-row toggle.

RULES:
- Toggle without shift (or without anchor): apply to that row only
- Toggle with shift and an anchor: apply to every filtered row between the
  anchor and the clicked row, inclusive, in either direction
- Every toggle moves the anchor to the clicked row
- Select-all works on the filtered rows only: deselect them when all are
  selected, otherwise select them
- Selections survive query changes; the anchor does not

License: MIT
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Sequence

from .models import TableSummary


class HeaderCheckState(Enum):
    """Tri-state of the select-all checkbox."""
    UNCHECKED = "unchecked"
    INDETERMINATE = "indeterminate"
    CHECKED = "checked"


def _index_of(filtered: Sequence[TableSummary], detail_path: str) -> int:
    for idx, summary in enumerate(filtered):
        if summary.detail_path == detail_path:
            return idx
    return -1


@dataclass(frozen=True)
class SelectionState:
    """
    Immutable selection.

    Attributes:
        keys: Selected detail paths
        anchor: Filtered-list position of the last toggle (None when unset)
    """
    keys: FrozenSet[str] = field(default_factory=frozenset)
    anchor: Optional[int] = None

    def __contains__(self, detail_path: str) -> bool:
        return detail_path in self.keys

    def __len__(self) -> int:
        return len(self.keys)

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def toggle(self, filtered: Sequence[TableSummary], detail_path: str,
               shift: bool, checked: bool) -> 'SelectionState':
        """
        Apply a checkbox click.

        Args:
            filtered: Current filtered list (anchor positions refer to it)
            detail_path: Row that was clicked
            shift: Shift key held
            checked: Checkbox state after the click

        Returns:
            New state; unchanged when the row is not in the filtered list
        """
        current = _index_of(filtered, detail_path)
        if current == -1:
            return self

        if shift and self.anchor is not None:
            start = min(current, self.anchor)
            end = max(current, self.anchor)
            paths = [s.detail_path for s in filtered[start:end + 1]]
        else:
            paths = [detail_path]

        keys = set(self.keys)
        if checked:
            keys.update(paths)
        else:
            keys.difference_update(paths)

        return SelectionState(keys=frozenset(keys), anchor=current)

    def toggle_all(self, filtered: Sequence[TableSummary]) -> 'SelectionState':
        """Select every filtered row, or deselect them all when already selected."""
        paths = {s.detail_path for s in filtered}
        all_selected = bool(paths) and paths <= self.keys
        if all_selected:
            keys = self.keys - paths
        else:
            keys = self.keys | paths
        return replace(self, keys=frozenset(keys))

    def clear(self) -> 'SelectionState':
        return replace(self, keys=frozenset())

    def reset_anchor(self) -> 'SelectionState':
        """The filtered list changed; positional anchors are meaningless now."""
        if self.anchor is None:
            return self
        return replace(self, anchor=None)

    # -------------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------------

    def count_in(self, rows: Iterable[TableSummary]) -> int:
        return sum(1 for s in rows if s.detail_path in self.keys)

    def header_state(self, filtered: Sequence[TableSummary]) -> HeaderCheckState:
        total = len(filtered)
        selected = self.count_in(filtered)
        if total > 0 and selected == total:
            return HeaderCheckState.CHECKED
        if selected > 0:
            return HeaderCheckState.INDETERMINATE
        return HeaderCheckState.UNCHECKED

    def selected_summaries(self, catalog: Sequence[TableSummary]) -> List[TableSummary]:
        """Selected rows in catalog order (the bulk export order)."""
        return [s for s in catalog if s.detail_path in self.keys]
