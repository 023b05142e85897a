"""
Citation/cover page selection.
"""
from typing import List, Optional, Set


class SelectionState:
  """Distinct citation pages plus at most one cover page."""

  def __init__(self, page_count: int):
    self.page_count = page_count
    self._citations: Set[int] = set()
    self.cover: Optional[int] = None

  def _check(self, page_index: int) -> None:
    if not 0 <= page_index < self.page_count:
      raise IndexError(
        f"Page {page_index} is outside document with {self.page_count} pages")

  @property
  def citations(self) -> List[int]:
    """Citation pages in ascending order."""
    return sorted(self._citations)

  def toggle_citation(self, page_index: int) -> bool:
    """Returns True when the page is selected after the toggle."""
    self._check(page_index)
    if page_index in self._citations:
      self._citations.discard(page_index)
      return False
    self._citations.add(page_index)
    return True

  def toggle_cover(self, page_index: int) -> Optional[int]:
    """Select a new cover or deselect the current one; returns the cover."""
    self._check(page_index)
    self.cover = None if self.cover == page_index else page_index
    return self.cover

  def clear(self) -> None:
    self._citations.clear()
    self.cover = None

  @property
  def background_page(self) -> Optional[int]:
    citations = self.citations
    return citations[0] if citations else None

  def to_dict(self) -> dict:
    return {"citations": self.citations, "cover": self.cover}
