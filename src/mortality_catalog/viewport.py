"""
mortality_catalog/viewport.py - Incremental List Reveal

Only a growing prefix of the filtered catalog is materialized:
- start at one batch (40 rows)
- grow by one batch when the list is scrolled within 48 px of its bottom
- never exceed the filtered length

A query change resets the prefix to one batch and scrolls to the top; a
shrinking filtered list clamps the prefix without moving the scroll.

License: MIT
"""

from dataclasses import dataclass, replace
from typing import List, Sequence, TypeVar

T = TypeVar('T')

LOAD_BATCH = 40
SCROLL_THRESHOLD_PX = 48


@dataclass(frozen=True)
class ListViewport:
    """
    Immutable reveal state of the results list.

    Attributes:
        revealed: Number of filtered rows materialized
        scroll_top: Scroll offset of the list frame in pixels
        batch: Rows revealed per step
        threshold_px: Distance from the bottom that triggers the next step
    """
    revealed: int = LOAD_BATCH
    scroll_top: float = 0.0
    batch: int = LOAD_BATCH
    threshold_px: float = SCROLL_THRESHOLD_PX

    def reset(self, filtered_len: int) -> 'ListViewport':
        """New query: one batch, back to the top."""
        return replace(self, revealed=min(self.batch, filtered_len), scroll_top=0.0)

    def clamp(self, filtered_len: int) -> 'ListViewport':
        """Filtered list shrank: keep scroll, drop rows past the end."""
        if self.revealed <= filtered_len:
            return self
        return replace(self, revealed=filtered_len)

    def scrolled(self, scroll_top: float, client_height: float,
                 scroll_height: float, filtered_len: int) -> 'ListViewport':
        """Record a scroll event and reveal another batch near the bottom."""
        revealed = self.revealed
        if scroll_top + client_height >= scroll_height - self.threshold_px:
            revealed = min(filtered_len, revealed + self.batch)
        return replace(self, revealed=revealed, scroll_top=scroll_top)

    def has_more(self, filtered_len: int) -> bool:
        return self.revealed < filtered_len

    def visible(self, filtered: Sequence[T]) -> List[T]:
        return list(filtered[:self.revealed])


def create_viewport(filtered_len: int, batch: int = LOAD_BATCH,
                    threshold_px: float = SCROLL_THRESHOLD_PX) -> ListViewport:
    """Initial viewport for a freshly loaded list."""
    if batch < 1:
        raise ValueError(f"Batch size must be positive: {batch}")
    return ListViewport(revealed=min(batch, filtered_len), batch=batch,
                        threshold_px=threshold_px)
