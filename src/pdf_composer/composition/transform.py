"""
Overlay transform model.

The transform is the single source of truth for where the cover sits over the
background page. Position is stored in container pixels; every write passes
through `clamp_to_background` so the overlay never leaves the padded layout
box.
"""
from dataclasses import dataclass
from typing import Optional
import logging
import math

from .coordinate_mapper import clamp_to_background
from .geometry import Point, Size, PageLayoutBox

log = logging.getLogger(__name__)

DEFAULT_SCALE = 0.25
DEFAULT_MIN_SCALE = 0.1
DEFAULT_MAX_SCALE = 2.0
CLAMP_PADDING = 8.0
RESET_PADDING = 20.0
# Position used by reset() before any layout box is known
UNSETTLED_POSITION = Point(20.0, 20.0)


@dataclass(frozen=True)
class TransformState:
  """Immutable snapshot of the overlay transform plus the layout it was captured against."""
  position: Point
  scale: float
  intrinsic_size: Size
  layout_box: Optional[PageLayoutBox]
  container_size: Optional[Size] = None

  @property
  def display_size(self) -> Size:
    return self.intrinsic_size.scaled(self.scale)


class OverlayTransform:
  """Movable, scalable overlay in container coordinates."""

  def __init__(self,
               intrinsic_size: Size,
               layout_box: Optional[PageLayoutBox] = None,
               container_size: Optional[Size] = None,
               min_scale: float = DEFAULT_MIN_SCALE,
               max_scale: float = DEFAULT_MAX_SCALE,
               padding: float = CLAMP_PADDING):
    if min_scale <= 0 or max_scale < min_scale:
      raise ValueError(
        f"Invalid scale bounds [{min_scale}, {max_scale}]")
    self.intrinsic_size = intrinsic_size
    self.min_scale = min_scale
    self.max_scale = max_scale
    self.padding = padding
    self._layout_box = layout_box
    self._container_size = container_size
    self._scale = DEFAULT_SCALE
    self._position = UNSETTLED_POSITION
    self.reset(layout_box)

  @property
  def position(self) -> Point:
    return self._position

  @property
  def scale(self) -> float:
    return self._scale

  @property
  def display_size(self) -> Size:
    return self.intrinsic_size.scaled(self._scale)

  @property
  def layout_box(self) -> Optional[PageLayoutBox]:
    return self._layout_box

  @property
  def container_size(self) -> Optional[Size]:
    return self._container_size

  def _clamped(self, point: Point, layout_box: Optional[PageLayoutBox]) -> Point:
    if layout_box is None or layout_box.is_degenerate:
      return point
    return clamp_to_background(point, self.display_size, layout_box,
                               self.padding)

  def set_position(self, x: float, y: float) -> Point:
    """Store a new position, clamped into the padded layout box."""
    if not (math.isfinite(x) and math.isfinite(y)):
      log.debug("Ignoring non-finite overlay position (%s, %s)", x, y)
      return self._position
    layout_box = self._layout_box
    self._position = self._clamped(Point(x, y), layout_box)
    return self._position

  def move_by(self, dx: float, dy: float) -> Point:
    return self.set_position(self._position.x + dx, self._position.y + dy)

  def set_scale(self, new_scale: float) -> float:
    """
    Clamp the scale into [min_scale, max_scale], then re-clamp the position
    because a larger overlay may now cross the layout box edge.
    """
    if not math.isfinite(new_scale):
      log.debug("Ignoring non-finite overlay scale %s", new_scale)
      return self._scale
    self._scale = max(self.min_scale, min(self.max_scale, new_scale))
    self._position = self._clamped(self._position, self._layout_box)
    return self._scale

  def update_layout(self, layout_box: Optional[PageLayoutBox],
                    container_size: Optional[Size] = None) -> None:
    """Adopt a recomputed layout box (resize/relayout) and re-clamp against it."""
    self._layout_box = layout_box
    if container_size is not None:
      self._container_size = container_size
    self._position = self._clamped(self._position, layout_box)

  def set_intrinsic_size(self, intrinsic_size: Size) -> Size:
    """Swap the unscaled overlay size, keeping scale and re-clamping position."""
    self.intrinsic_size = intrinsic_size
    self._position = self._clamped(self._position, self._layout_box)
    return self.display_size

  def reset(self, layout_box: Optional[PageLayoutBox] = None) -> Point:
    """
    Place the overlay at the top-right of the layout box, inset by
    RESET_PADDING, at the default scale.
    """
    if layout_box is not None:
      self._layout_box = layout_box
    layout_box = self._layout_box
    self._scale = DEFAULT_SCALE

    if layout_box is None or layout_box.is_degenerate:
      self._position = UNSETTLED_POSITION
      log.debug("Layout not settled, overlay reset to %s", self._position)
      return self._position

    display = self.display_size
    default_x = layout_box.right - display.width - RESET_PADDING
    default_y = layout_box.y + RESET_PADDING
    max_x = layout_box.right - display.width - RESET_PADDING
    max_y = layout_box.bottom - display.height - RESET_PADDING
    x = max(layout_box.x + RESET_PADDING, min(default_x, max_x))
    y = max(layout_box.y + RESET_PADDING, min(default_y, max_y))
    self._position = self._clamped(Point(x, y), layout_box)
    return self._position

  def snapshot(self) -> TransformState:
    return TransformState(position=self._position,
                          scale=self._scale,
                          intrinsic_size=self.intrinsic_size,
                          layout_box=self._layout_box,
                          container_size=self._container_size)
