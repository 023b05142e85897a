"""
Page rasterization backed by PyMuPDF.

The compositor only depends on the `PageRasterizer` protocol
(`render(page_index, scale) -> PIL.Image`), so any renderer with the same
shape can be substituted.
"""
from pathlib import Path
from threading import Lock
from typing import List, Protocol, Tuple, Union
import logging

import fitz  # PyMuPDF
from PIL import Image

from .geometry import Size

log = logging.getLogger(__name__)

# Guard against pathological scale requests (roughly 20k x 20k pixels)
MAX_RENDER_PIXELS = 400_000_000


class DocumentLoadError(Exception):
  """The source PDF could not be opened or has no pages."""


class RasterizationError(Exception):
  """A single page could not be rendered."""

  def __init__(self, page_index: int, message: str):
    super().__init__(f"Page {page_index + 1}: {message}")
    self.page_index = page_index


class PageRasterizer(Protocol):

  @property
  def page_count(self) -> int:
    ...

  def page_size(self, page_index: int) -> Size:
    ...

  def render(self, page_index: int, scale: float) -> Image.Image:
    ...


class SourceDocument:
  """
  Loaded, paginated source PDF.

  Page sizes are captured once at load time in PDF points (scale 1). The
  underlying fitz document is not thread-safe, so every render holds a lock.
  """

  def __init__(self, document: fitz.Document, name: str = ""):
    if document.page_count == 0:
      document.close()
      raise DocumentLoadError(f"PDF '{name}' has no pages")
    self.name = name
    self._document = document
    self._lock = Lock()
    self._page_sizes: List[Tuple[float, float]] = [
      (page.rect.width, page.rect.height) for page in document
    ]

  @classmethod
  def open(cls, source: Union[Path, str, bytes], name: str = "") -> "SourceDocument":
    try:
      if isinstance(source, (bytes, bytearray)):
        document = fitz.open("pdf", bytes(source))
      else:
        document = fitz.open(str(source))
        name = name or Path(source).name
    except Exception as e:
      raise DocumentLoadError(f"Failed to load PDF '{name}': {e}") from e
    if not document.is_pdf:
      document.close()
      raise DocumentLoadError(f"'{name}' is not a PDF document")
    return cls(document, name=name)

  @property
  def page_count(self) -> int:
    return len(self._page_sizes)

  def page_size(self, page_index: int) -> Size:
    if not 0 <= page_index < self.page_count:
      raise IndexError(
        f"Page {page_index} is outside document with {self.page_count} pages")
    width, height = self._page_sizes[page_index]
    return Size(width, height)

  def page_sizes(self) -> List[Size]:
    return [Size(w, h) for w, h in self._page_sizes]

  def render(self, page_index: int, scale: float) -> Image.Image:
    """Render one page at `scale` (1.0 = one pixel per PDF point)."""
    if not 0 <= page_index < self.page_count:
      raise RasterizationError(
        page_index, f"outside document with {self.page_count} pages")
    if not scale > 0:
      raise RasterizationError(page_index, f"invalid scale {scale}")

    width, height = self._page_sizes[page_index]
    if width * height * scale * scale > MAX_RENDER_PIXELS:
      raise RasterizationError(page_index,
                               f"scale {scale:.2f} exceeds render budget")

    with self._lock:
      if self._document.is_closed:
        raise RasterizationError(page_index, "document is closed")
      try:
        page = self._document[page_index]
        pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
        image = Image.frombytes("RGB", (pix.width, pix.height), pix.samples)
      except Exception as e:
        raise RasterizationError(page_index, str(e)) from e

    log.debug("Rendered page %s at scale %.3f -> %sx%s", page_index + 1, scale,
              image.width, image.height)
    return image

  def close(self) -> None:
    with self._lock:
      if not self._document.is_closed:
        self._document.close()
