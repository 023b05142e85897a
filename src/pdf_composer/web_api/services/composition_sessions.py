"""
In-memory composition sessions.

A session owns one loaded source document and everything interactive around
it: page selection, the overlay transform, the last reported layout box, and
the compositor with its redraw coordinator and export pipeline.
"""
from dataclasses import dataclass, replace
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional
import base64
import io
import logging
import uuid

from PIL import Image

from ...composition import gestures
from ...composition.compositor import (Compositor, CompositionMode,
                                       CompositionRequest, parse_composition_mode)
from ...composition.export_pipeline import (CompositionSnapshot, ExportArtifact,
                                            ExportPipeline, NothingToExportError,
                                            build_export_request)
from ...composition.geometry import PageLayoutBox, Point, Size
from ...composition.rasterizer import SourceDocument
from ...composition.redraw import RedrawCoordinator
from ...composition.selection import SelectionState
from ...composition.transform import OverlayTransform

log = logging.getLogger(__name__)

BATCH_PREVIEW_WIDTH = 200
BATCH_PREVIEW_HEIGHT = 280


class SessionNotFoundError(KeyError):
  pass


class NoOverlayError(RuntimeError):
  """A transform operation was issued with no cover page selected."""


@dataclass
class BatchPreviewItem:
  page: int
  role: str
  image: Image.Image

  def to_dict(self) -> dict:
    buffer = io.BytesIO()
    self.image.save(buffer, format="PNG")
    encoded = base64.b64encode(buffer.getvalue()).decode("utf-8")
    return {
      "page": self.page,
      "role": self.role,
      "width": self.image.width,
      "height": self.image.height,
      "buffer": f"data:image/png;base64,{encoded}",
    }


class CompositionSession:

  def __init__(self, session_id: str, file_id: str, document: SourceDocument):
    self.session_id = session_id
    self.file_id = file_id
    self.document = document
    self.selection = SelectionState(document.page_count)
    self.transform: Optional[OverlayTransform] = None
    self.layout_box: Optional[PageLayoutBox] = None
    self.container_size: Optional[Size] = None
    self.compositor = Compositor(document)
    self.redraw = RedrawCoordinator(self.compositor)
    self.export_pipeline = ExportPipeline(self.compositor, self.snapshot)
    self._drag: Optional[gestures.DragGesture] = None
    self._lock = Lock()

  # Selection

  def toggle_citation(self, page_index: int) -> bool:
    with self._lock:
      background = self.selection.background_page
      selected = self.selection.toggle_citation(page_index)
      if self.selection.background_page != background:
        self._refresh_overlay_size()
      return selected

  def _refresh_overlay_size(self) -> None:
    """Re-derive the overlay size from the current background and layout."""
    cover = self.selection.cover
    if self.transform is None or cover is None:
      return
    self.transform.set_intrinsic_size(self._overlay_intrinsic_size(cover))

  def toggle_cover(self, page_index: int) -> Optional[int]:
    """Choosing a cover starts a fresh transform; clearing it drops the transform."""
    with self._lock:
      cover = self.selection.toggle_cover(page_index)
      self._drag = None
      if cover is None:
        self.transform = None
      else:
        self.transform = OverlayTransform(self._overlay_intrinsic_size(cover),
                                          layout_box=self.layout_box,
                                          container_size=self.container_size)
      return cover

  def _overlay_intrinsic_size(self, cover: int) -> Size:
    """
    Cover page size at preview scale, i.e. the scale at which the background
    page fills the layout box width.
    """
    cover_size = self.document.page_size(cover)
    background = self.selection.background_page
    layout_box = self.layout_box
    if background is None or layout_box is None or layout_box.is_degenerate:
      return cover_size
    preview_scale = layout_box.width / self.document.page_size(background).width
    return cover_size.scaled(preview_scale)

  # Layout

  def update_layout(self, layout_box: PageLayoutBox,
                    container_size: Optional[Size] = None) -> None:
    with self._lock:
      had_layout = self.layout_box is not None and not self.layout_box.is_degenerate
      self.layout_box = layout_box
      if container_size is not None:
        self.container_size = container_size
      if self.transform is None:
        return
      if not had_layout and self.selection.cover is not None:
        # First real measurement: size the overlay against it
        self.transform = OverlayTransform(
          self._overlay_intrinsic_size(self.selection.cover),
          layout_box=layout_box,
          container_size=self.container_size)
      else:
        self.transform.update_layout(layout_box, container_size)
        self._refresh_overlay_size()

  # Transform operations

  def _require_transform(self) -> OverlayTransform:
    if self.transform is None:
      raise NoOverlayError("No cover page selected")
    return self.transform

  def set_position(self, x: float, y: float) -> None:
    with self._lock:
      self._require_transform().set_position(x, y)

  def move_by(self, dx: float, dy: float) -> None:
    with self._lock:
      self._require_transform().move_by(dx, dy)

  def set_scale(self, scale: float) -> None:
    with self._lock:
      self._require_transform().set_scale(scale)

  def reset_transform(self) -> None:
    with self._lock:
      self._require_transform().reset(self.layout_box)

  def wheel(self, delta_y: float) -> None:
    with self._lock:
      gestures.apply_wheel(self._require_transform(), delta_y)

  def pinch(self, start_scale: float, initial_distance: float,
            current_distance: float) -> None:
    with self._lock:
      gestures.apply_pinch(self._require_transform(), start_scale,
                           initial_distance, current_distance)

  def resize(self, start_scale: float, delta_x: float) -> None:
    with self._lock:
      gestures.apply_resize_handle(self._require_transform(), start_scale,
                                   delta_x)

  def drag(self, phase: str, x: float, y: float) -> None:
    with self._lock:
      transform = self._require_transform()
      pointer = Point(x, y)
      if phase == "start":
        self._drag = gestures.DragGesture.begin(transform, pointer)
      elif phase == "move":
        if self._drag is None:
          self._drag = gestures.DragGesture.begin(transform, pointer)
        self._drag.move_to(pointer)
      elif phase == "end":
        if self._drag is not None:
          self._drag.move_to(pointer)
        self._drag = None
      else:
        raise ValueError(f"Unknown drag phase '{phase}'")

  # Rendering

  def snapshot(self) -> CompositionSnapshot:
    with self._lock:
      return CompositionSnapshot(
        background_page_index=self.selection.background_page,
        overlay_page_index=self.selection.cover,
        transform=self.transform.snapshot() if self.transform else None,
        layout_box=self.layout_box)

  def _resolve_mode(self, mode) -> CompositionMode:
    composition_mode = parse_composition_mode(mode)
    if (composition_mode == CompositionMode.SIDE_BY_SIDE
        and self.selection.cover is None):
      raise NoOverlayError("Side-by-side composition needs a cover page")
    return composition_mode

  def preview_request(self, mode=CompositionMode.CUSTOM) -> CompositionRequest:
    snapshot = replace(self.snapshot(), mode=self._resolve_mode(mode))
    return build_export_request(snapshot, 1.0, self.document)

  async def preview(self, mode=CompositionMode.CUSTOM) -> Optional[Image.Image]:
    """Latest-wins preview render; None when a newer preview superseded it."""
    return await self.redraw.request(self.preview_request(mode))

  def batch_preview(self) -> List[BatchPreviewItem]:
    snapshot = self.snapshot()
    items = [
      BatchPreviewItem(page, "citation",
                       self.compositor.render_page_fit(page, BATCH_PREVIEW_WIDTH,
                                                       BATCH_PREVIEW_HEIGHT))
      for page in self.selection.citations
    ]
    if snapshot.overlay_page_index is not None:
      cover = snapshot.overlay_page_index
      items.append(BatchPreviewItem(
        cover, "cover",
        self.compositor.render_page_fit(cover, BATCH_PREVIEW_WIDTH,
                                        BATCH_PREVIEW_HEIGHT)))
    return items

  def export(self, kind, quality_scale: Optional[float] = None,
             mode=CompositionMode.CUSTOM) -> ExportArtifact:
    if self.selection.background_page is None:
      raise NothingToExportError("No citation page selected")
    return self.export_pipeline.export_as(kind, quality_scale,
                                          self._resolve_mode(mode))

  def to_dict(self) -> dict:
    transform = None
    if self.transform is not None:
      display = self.transform.display_size
      transform = {
        "x": self.transform.position.x,
        "y": self.transform.position.y,
        "scale": self.transform.scale,
        "width": display.width,
        "height": display.height,
      }
    return {
      "sessionId": self.session_id,
      "fileId": self.file_id,
      "pageCount": self.document.page_count,
      "pageSizes": [{"width": s.width, "height": s.height}
                    for s in self.document.page_sizes()],
      "citations": self.selection.citations,
      "cover": self.selection.cover,
      "transform": transform,
    }

  def close(self) -> None:
    with self._lock:
      self.selection.clear()
      self.transform = None
      self._drag = None
    self.document.close()


class CompositionSessionStore:
  """Thread-safe registry of open sessions."""

  def __init__(self):
    self._lock = Lock()
    self._sessions: Dict[str, CompositionSession] = {}

  def create(self, file_id: str, path: Path) -> CompositionSession:
    document = SourceDocument.open(path, name=file_id)
    session = CompositionSession(uuid.uuid4().hex, file_id, document)
    with self._lock:
      self._sessions[session.session_id] = session
    log.info("Opened composition session %s for %s (%s pages)",
             session.session_id, file_id, document.page_count)
    return session

  def get(self, session_id: str) -> CompositionSession:
    with self._lock:
      session = self._sessions.get(session_id)
    if session is None:
      raise SessionNotFoundError(session_id)
    return session

  def remove(self, session_id: str) -> None:
    with self._lock:
      session = self._sessions.pop(session_id, None)
    if session is None:
      raise SessionNotFoundError(session_id)
    session.close()
    log.info("Closed composition session %s", session_id)

  def close_all(self) -> None:
    with self._lock:
      sessions = list(self._sessions.values())
      self._sessions.clear()
    for session in sessions:
      session.close()

  def __len__(self) -> int:
    with self._lock:
      return len(self._sessions)


session_store = CompositionSessionStore()
