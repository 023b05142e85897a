"""
Composition engine: overlay transform, coordinate mapping, rasterization,
compositing and export.
"""
from .geometry import Point, Size, Rect, PageLayoutBox
from .transform import OverlayTransform, TransformState
from .selection import SelectionState
from .rasterizer import (SourceDocument, PageRasterizer, RasterizationError,
                         DocumentLoadError)
from .compositor import Compositor, CompositionRequest, ShadowStyle
from .export_pipeline import (ExportPipeline, ExportKind, ExportArtifact,
                              CompositionSnapshot, ExportInProgressError,
                              UnsupportedExportKind, NothingToExportError)
from .redraw import RedrawCoordinator

__all__ = [
  "Point", "Size", "Rect", "PageLayoutBox",
  "OverlayTransform", "TransformState",
  "SelectionState",
  "SourceDocument", "PageRasterizer", "RasterizationError", "DocumentLoadError",
  "Compositor", "CompositionRequest", "ShadowStyle",
  "ExportPipeline", "ExportKind", "ExportArtifact", "CompositionSnapshot",
  "ExportInProgressError", "UnsupportedExportKind", "NothingToExportError",
  "RedrawCoordinator",
]
