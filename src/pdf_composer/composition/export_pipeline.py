"""
Export pipeline - renders the current composition at export resolution and
serializes it as PNG, JPEG or a one-page PDF.
"""
from dataclasses import dataclass, replace
from enum import Enum
from threading import Lock
from typing import Callable, Optional
import io
import logging

import fitz  # PyMuPDF
from PIL import Image

from .compositor import (CompositionMode, CompositionRequest, Compositor,
                         parse_composition_mode, side_by_side_size)
from .geometry import PageLayoutBox
from .rasterizer import PageRasterizer
from .transform import TransformState

log = logging.getLogger(__name__)

# Export size used when the preview layout has not been measured yet
FALLBACK_TARGET_WIDTH = 800
FALLBACK_TARGET_HEIGHT = 1000
JPEG_QUALITY = 95
PNG_COMPRESS_LEVEL = 6


class ExportKind(str, Enum):
  PNG = "png"
  JPEG = "jpeg"
  PDF = "pdf"


DEFAULT_QUALITY_SCALES = {
  ExportKind.PNG: 4.0,
  ExportKind.JPEG: 3.0,
  ExportKind.PDF: 4.0,
}

MEDIA_TYPES = {
  ExportKind.PNG: "image/png",
  ExportKind.JPEG: "image/jpeg",
  ExportKind.PDF: "application/pdf",
}

FILE_EXTENSIONS = {
  ExportKind.PNG: "png",
  ExportKind.JPEG: "jpg",
  ExportKind.PDF: "pdf",
}


class UnsupportedExportKind(ValueError):
  pass


class ExportInProgressError(RuntimeError):
  """Another export is still writing into this pipeline's target."""


class NothingToExportError(ValueError):
  """No background page is selected."""


@dataclass(frozen=True)
class CompositionSnapshot:
  """Selection and transform captured at export time."""
  background_page_index: Optional[int]
  overlay_page_index: Optional[int]
  transform: Optional[TransformState]
  layout_box: Optional[PageLayoutBox] = None
  mode: CompositionMode = CompositionMode.CUSTOM

  @property
  def effective_layout_box(self) -> Optional[PageLayoutBox]:
    if self.transform is not None and self.transform.layout_box is not None:
      return self.transform.layout_box
    return self.layout_box


@dataclass(frozen=True)
class ExportArtifact:
  kind: ExportKind
  data: bytes
  image: Image.Image
  width: int
  height: int
  quality_scale: float

  @property
  def media_type(self) -> str:
    return MEDIA_TYPES[self.kind]

  @property
  def extension(self) -> str:
    return FILE_EXTENSIONS[self.kind]


def parse_export_kind(kind) -> ExportKind:
  if isinstance(kind, ExportKind):
    return kind
  normalized = str(kind or "").strip().lower()
  if normalized == "jpg":
    normalized = "jpeg"
  try:
    return ExportKind(normalized)
  except ValueError:
    raise UnsupportedExportKind(f"Unsupported export format '{kind}'") from None


def build_export_request(snapshot: CompositionSnapshot,
                         quality_scale: float,
                         rasterizer: Optional[PageRasterizer] = None) -> CompositionRequest:
  """
  Target = displayed background size times the quality scale.

  Side-by-side compositions keep the displayed height and widen the target to
  fit both pages, which needs `rasterizer` for the page sizes.
  """
  if snapshot.background_page_index is None:
    raise NothingToExportError("No citation page selected")
  if not quality_scale > 0:
    raise ValueError(f"Quality scale must be positive, got {quality_scale}")

  layout_box = snapshot.effective_layout_box
  if layout_box is None or layout_box.is_degenerate:
    log.info("Layout box unavailable, exporting at fallback size %sx%s",
             FALLBACK_TARGET_WIDTH, FALLBACK_TARGET_HEIGHT)
    base_width, base_height = FALLBACK_TARGET_WIDTH, FALLBACK_TARGET_HEIGHT
  else:
    base_width, base_height = layout_box.width, layout_box.height

  side_by_side = (snapshot.mode == CompositionMode.SIDE_BY_SIDE
                  and snapshot.overlay_page_index is not None)
  if side_by_side:
    if rasterizer is None:
      raise ValueError("Side-by-side export needs page sizes")
    base_width = side_by_side_size(
      rasterizer.page_size(snapshot.background_page_index),
      rasterizer.page_size(snapshot.overlay_page_index),
      base_height).width

  return CompositionRequest(
    background_page_index=snapshot.background_page_index,
    overlay_page_index=snapshot.overlay_page_index,
    transform=snapshot.transform,
    target_width=max(1, int(round(base_width * quality_scale))),
    target_height=max(1, int(round(base_height * quality_scale))),
    quality_scale=quality_scale,
    mode=snapshot.mode)


def encode_image(image: Image.Image, kind: ExportKind) -> bytes:
  buffer = io.BytesIO()
  if kind == ExportKind.JPEG:
    image.convert("RGB").save(buffer, format="JPEG", quality=JPEG_QUALITY)
  else:
    image.save(buffer, format="PNG", compress_level=PNG_COMPRESS_LEVEL)
  return buffer.getvalue()


def image_to_pdf(png_bytes: bytes, width: int, height: int) -> bytes:
  """Embed one raster as the single page of a new PDF sized to the raster."""
  document = fitz.open()
  try:
    page = document.new_page(width=width, height=height)
    page.insert_image(page.rect, stream=png_bytes)
    return document.tobytes(garbage=3, deflate=True)
  finally:
    document.close()


class ExportPipeline:
  """
  One-shot exports of a composition.

  Exports share the pipeline's render target, so a second export issued
  while one is running is rejected instead of interleaved.
  """

  def __init__(self, compositor: Compositor,
               snapshot_provider: Callable[[], CompositionSnapshot]):
    self.compositor = compositor
    self.snapshot_provider = snapshot_provider
    self._busy = Lock()

  @property
  def is_busy(self) -> bool:
    return self._busy.locked()

  def export_as(self, kind, quality_scale: Optional[float] = None,
                mode=None) -> ExportArtifact:
    """`mode`, when given, overrides the mode captured in the snapshot."""
    export_kind = parse_export_kind(kind)
    scale = quality_scale or DEFAULT_QUALITY_SCALES[export_kind]

    if not self._busy.acquire(blocking=False):
      raise ExportInProgressError("An export is already running")
    try:
      snapshot = self.snapshot_provider()
      if mode is not None:
        snapshot = replace(snapshot, mode=parse_composition_mode(mode))
      request = build_export_request(snapshot, scale, self.compositor.rasterizer)
      log.info("Exporting %s (%s) at quality scale %.2f (%sx%s)",
               export_kind.value, request.mode.value, scale,
               request.target_width, request.target_height)
      image = self.compositor.compose(request)

      if export_kind == ExportKind.JPEG:
        data = encode_image(image, ExportKind.JPEG)
      else:
        png_bytes = encode_image(image, ExportKind.PNG)
        if export_kind == ExportKind.PNG:
          data = png_bytes
        else:
          data = image_to_pdf(png_bytes, image.width, image.height)

      return ExportArtifact(kind=export_kind,
                            data=data,
                            image=image,
                            width=image.width,
                            height=image.height,
                            quality_scale=scale)
    finally:
      self._busy.release()
