"""
Gesture arithmetic for the overlay: drag, wheel, pinch and resize handle.

These helpers only compute target values; the transform applies them through
its clamping setters.
"""
from dataclasses import dataclass
import math

from .geometry import Point
from .transform import OverlayTransform

WHEEL_STEP = 0.1
RESIZE_SENSITIVITY = 0.005


@dataclass
class DragGesture:
  """Keeps the grab offset so the overlay follows the pointer without jumping."""
  transform: OverlayTransform
  grab_offset: Point

  @classmethod
  def begin(cls, transform: OverlayTransform, pointer: Point) -> "DragGesture":
    offset = Point(pointer.x - transform.position.x,
                   pointer.y - transform.position.y)
    return cls(transform=transform, grab_offset=offset)

  def move_to(self, pointer: Point) -> Point:
    return self.transform.set_position(pointer.x - self.grab_offset.x,
                                       pointer.y - self.grab_offset.y)


def apply_wheel(transform: OverlayTransform, delta_y: float) -> float:
  """Scrolling down shrinks the overlay, scrolling up grows it."""
  if delta_y == 0:
    return transform.scale
  step = -WHEEL_STEP if delta_y > 0 else WHEEL_STEP
  return transform.set_scale(transform.scale + step)


def apply_pinch(transform: OverlayTransform, start_scale: float,
                initial_distance: float, current_distance: float) -> float:
  if initial_distance <= 0 or not math.isfinite(current_distance):
    return transform.scale
  return transform.set_scale(start_scale * (current_distance / initial_distance))


def apply_resize_handle(transform: OverlayTransform, start_scale: float,
                        delta_x: float) -> float:
  return transform.set_scale(start_scale + delta_x * RESIZE_SENSITIVITY)


def pinch_distance(first: Point, second: Point) -> float:
  return math.hypot(second.x - first.x, second.y - first.y)
