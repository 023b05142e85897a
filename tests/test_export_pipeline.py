"""
Tests for PNG, JPEG and PDF exports of a composition.
"""
from concurrent.futures import ThreadPoolExecutor
import threading

import fitz  # PyMuPDF
import pytest
from PIL import Image

from pdf_composer.composition import export_pipeline
from pdf_composer.composition.compositor import (Compositor,
                                                 UnsupportedCompositionMode)
from pdf_composer.composition.export_pipeline import (CompositionSnapshot,
                                                      ExportInProgressError,
                                                      ExportKind,
                                                      ExportPipeline,
                                                      NothingToExportError,
                                                      UnsupportedExportKind,
                                                      parse_export_kind)
from pdf_composer.composition.geometry import Rect, Size
from pdf_composer.composition.rasterizer import SourceDocument
from pdf_composer.composition.transform import OverlayTransform

LAYOUT = Rect(0, 0, 200, 280)


@pytest.fixture
def document(sample_pdf):
  source = SourceDocument.open(sample_pdf, name="sample.pdf")
  yield source
  source.close()


def make_snapshot(layout_box=LAYOUT, background=0, cover=1):
  transform = None
  if cover is not None:
    transform = OverlayTransform(Size(200, 280), layout_box=layout_box).snapshot()
  return CompositionSnapshot(background_page_index=background,
                             overlay_page_index=cover,
                             transform=transform,
                             layout_box=layout_box)


def test_png_export_uses_default_quality_scale(document):
  pipeline = ExportPipeline(Compositor(document), make_snapshot)
  artifact = pipeline.export_as("png")

  assert artifact.kind == ExportKind.PNG
  assert artifact.quality_scale == 4.0
  assert (artifact.width, artifact.height) == (800, 1120)
  assert artifact.data.startswith(b"\x89PNG")
  assert artifact.media_type == "image/png"


def test_jpeg_export(document):
  pipeline = ExportPipeline(Compositor(document), make_snapshot)
  artifact = pipeline.export_as("jpg")

  assert artifact.kind == ExportKind.JPEG
  assert (artifact.width, artifact.height) == (600, 840)
  assert artifact.data.startswith(b"\xff\xd8")
  assert artifact.extension == "jpg"


def test_pdf_export_embeds_single_raster_page(document):
  pipeline = ExportPipeline(Compositor(document), make_snapshot)
  artifact = pipeline.export_as(ExportKind.PDF, quality_scale=2.0)

  exported = fitz.open("pdf", artifact.data)
  try:
    assert exported.page_count == 1
    assert exported[0].rect.width == pytest.approx(400)
    assert exported[0].rect.height == pytest.approx(560)
    assert len(exported[0].get_images()) == 1
  finally:
    exported.close()


def test_unsupported_kind_is_rejected(document):
  pipeline = ExportPipeline(Compositor(document), make_snapshot)

  with pytest.raises(UnsupportedExportKind):
    pipeline.export_as("gif")
  assert parse_export_kind("JPEG") == ExportKind.JPEG


def test_missing_layout_uses_fallback_target(document):
  pipeline = ExportPipeline(Compositor(document),
                            lambda: make_snapshot(layout_box=None))
  artifact = pipeline.export_as("png", quality_scale=1.0)

  assert (artifact.width, artifact.height) == (800, 1000)


def test_export_without_cover_still_uses_layout(document):
  pipeline = ExportPipeline(Compositor(document),
                            lambda: make_snapshot(cover=None))
  artifact = pipeline.export_as("png", quality_scale=1.0)

  assert (artifact.width, artifact.height) == (200, 280)


def test_repeated_exports_are_bit_identical(document):
  pipeline = ExportPipeline(Compositor(document), make_snapshot)

  first = pipeline.export_as("png", quality_scale=1.5)
  second = pipeline.export_as("png", quality_scale=1.5)

  assert first.data == second.data
  assert first.image.tobytes() == second.image.tobytes()


def test_jpeg_export_skips_png_encoding(document, monkeypatch):
  encoded = []
  original = export_pipeline.encode_image

  def recording_encode(image, kind):
    encoded.append(kind)
    return original(image, kind)

  monkeypatch.setattr(export_pipeline, "encode_image", recording_encode)
  pipeline = ExportPipeline(Compositor(document), make_snapshot)
  pipeline.export_as("jpeg", quality_scale=1.0)

  assert encoded == [ExportKind.JPEG]


def test_side_by_side_export_widens_target(document):
  pipeline = ExportPipeline(Compositor(document), make_snapshot)
  artifact = pipeline.export_as("png", quality_scale=2.0, mode="sidebyside")

  assert (artifact.width, artifact.height) == (800, 560)
  left = artifact.image.getpixel((100, 400))
  right = artifact.image.getpixel((500, 400))
  assert left[0] > 200 and left[1] < 60
  assert right[1] > 120 and right[0] < 60


def test_unknown_mode_is_rejected(document):
  pipeline = ExportPipeline(Compositor(document), make_snapshot)

  with pytest.raises(UnsupportedCompositionMode):
    pipeline.export_as("png", mode="stacked")
  assert not pipeline.is_busy


def test_export_without_background_fails(document):
  pipeline = ExportPipeline(Compositor(document),
                            lambda: make_snapshot(background=None))

  with pytest.raises(NothingToExportError):
    pipeline.export_as("png")


class BlockingCompositor:
  rasterizer = None

  def __init__(self):
    self.started = threading.Event()
    self.release = threading.Event()

  def compose(self, request):
    self.started.set()
    self.release.wait(timeout=5)
    return Image.new("RGB", (request.target_width, request.target_height),
                     "white")


def test_concurrent_export_is_rejected():
  compositor = BlockingCompositor()
  pipeline = ExportPipeline(compositor, make_snapshot)

  with ThreadPoolExecutor(max_workers=1) as executor:
    first = executor.submit(pipeline.export_as, "png", 1.0)
    assert compositor.started.wait(timeout=5)
    assert pipeline.is_busy
    with pytest.raises(ExportInProgressError):
      pipeline.export_as("png", 1.0)
    compositor.release.set()
    assert first.result(timeout=5).width == 200

  assert not pipeline.is_busy
