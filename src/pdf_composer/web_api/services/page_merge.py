"""
Page merge service - builds an output PDF from selected source pages plus an
optional cover page.
"""
from pathlib import Path
from typing import Iterable, List, Optional, Union
import logging

import fitz  # PyMuPDF

log = logging.getLogger(__name__)

COVER_PLACEMENTS = {
  "top": "top",
  "topLeft": "top",
  "topRight": "top",
  "center": "center",
  "left": "center",
  "right": "center",
  "bottom": "bottom",
  "bottomLeft": "bottom",
  "bottomRight": "bottom",
}


class MergeError(Exception):
  """The source document could not be read; no partial output is returned."""


def get_cover_insert_index(placement: Optional[str], page_count: int) -> int:
  """
  Position of the cover among `page_count` copied pages.

  top* -> 0, center/left/right -> page_count // 2, bottom* -> page_count.
  Unknown placements behave like top.
  """
  group = COVER_PLACEMENTS.get(placement or "top", "top")
  if group == "center":
    return page_count // 2
  if group == "bottom":
    return page_count
  return 0


def normalize_page_selection(selected_pages: Iterable[int],
                             page_count: int) -> List[int]:
  """Distinct, ascending, in-range page indices."""
  pages = sorted({int(page) for page in selected_pages})
  kept = [page for page in pages if 0 <= page < page_count]
  skipped = [page for page in pages if page not in kept]
  if skipped:
    log.info("Skipping pages outside the %s-page source: %s", page_count,
             skipped)
  return kept


def _open_source(source: Union[Path, str, bytes]) -> fitz.Document:
  try:
    if isinstance(source, (bytes, bytearray)):
      document = fitz.open("pdf", bytes(source))
    else:
      document = fitz.open(str(source))
  except Exception as e:
    raise MergeError(f"PDF composition failed: {e}") from e
  if not document.is_pdf or document.page_count == 0:
    document.close()
    raise MergeError("PDF composition failed: source has no readable pages")
  return document


def merge(source: Union[Path, str, bytes],
          selected_pages: Iterable[int],
          cover_page: Optional[int] = None,
          placement: Optional[str] = "top") -> bytes:
  """
  Copy `selected_pages` (ascending) into a new PDF and insert `cover_page`
  at the index implied by `placement`.

  Out-of-range pages are skipped; a page that fails to copy is logged and
  skipped without disturbing pages already copied.
  """
  source_document = _open_source(source)
  output = fitz.open()
  try:
    pages = normalize_page_selection(selected_pages,
                                     source_document.page_count)
    copied = 0
    for page_index in pages:
      try:
        output.insert_pdf(source_document,
                          from_page=page_index,
                          to_page=page_index)
        copied += 1
      except Exception as e:
        log.error(f"Failed to copy page {page_index + 1}: {e}")
        continue

    if cover_page is not None:
      if 0 <= cover_page < source_document.page_count:
        insert_at = get_cover_insert_index(placement, copied)
        try:
          output.insert_pdf(source_document,
                            from_page=cover_page,
                            to_page=cover_page,
                            start_at=insert_at)
          log.info(f"Inserted cover page {cover_page + 1} at index {insert_at}"
                   f" (placement={placement})")
        except Exception as e:
          log.error(f"Failed to insert cover page {cover_page + 1}: {e}")
      else:
        log.info(f"Skipping cover page {cover_page} outside "
                 f"{source_document.page_count}-page source")

    if output.page_count == 0:
      raise MergeError("PDF composition failed: no pages could be copied")

    log.info(f"Merged {output.page_count} pages from "
             f"{source_document.page_count}-page source")
    return output.tobytes(garbage=3, deflate=True)
  finally:
    output.close()
    source_document.close()
