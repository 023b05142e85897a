"""
Coordinate mapping between the canonical container space and render targets.

The overlay position is stored in container pixels. A render target (preview
canvas, export canvas, thumbnail) only knows the rectangle the background page
occupies inside it, so every conversion first expresses a point relative to the
background page's displayed rectangle (the layout box), normalizes it to
fractions of that rectangle and only then rescales it into the target.
Scaling container pixels directly by target/container size is wrong whenever
the page is letterboxed inside its container.
"""
from typing import Optional
import logging

from .geometry import Point, Rect, Size, PageLayoutBox

log = logging.getLogger(__name__)

# Overlay placement used when the layout box has not settled yet
FALLBACK_FRACTION = 0.25
FALLBACK_MARGIN = 20.0


def clamp_to_background(point: Point, overlay_size: Size,
                        layout_box: PageLayoutBox, padding: float) -> Point:
  """
  Constrain the overlay's top-left corner so the whole overlay stays inside
  the layout box inset by `padding`.

  When the overlay does not fit in the padded area the maximum collapses onto
  the minimum, which pins the overlay to the padded top-left corner.
  """
  min_x = layout_box.x + padding
  min_y = layout_box.y + padding
  max_x = max(min_x, layout_box.right - overlay_size.width - padding)
  max_y = max(min_y, layout_box.bottom - overlay_size.height - padding)

  return Point(
    max(min_x, min(max_x, point.x)),
    max(min_y, min(max_y, point.y)),
  )


def fallback_overlay_rect(export_width: float, export_height: float) -> Rect:
  """Fixed top-right placement at a quarter of the target size."""
  width = export_width * FALLBACK_FRACTION
  height = export_height * FALLBACK_FRACTION
  return Rect(export_width - width - FALLBACK_MARGIN, FALLBACK_MARGIN, width,
              height)


def to_export_space(container_point: Point, container_size: Optional[Size],
                    layout_box: PageLayoutBox, export_width: float,
                    export_height: float) -> Point:
  """
  Map a container-space point into a target of the given size.

  The target is assumed to hold exactly the background page, so its
  (0, 0) corresponds to the layout box origin.
  """
  if layout_box.is_degenerate:
    log.debug("Layout box %s is degenerate, using fallback placement",
              layout_box)
    return fallback_overlay_rect(export_width, export_height).origin

  if container_size is not None and not container_size.is_degenerate:
    letterboxed = (layout_box.width < container_size.width
                   or layout_box.height < container_size.height)
    log.debug("Mapping %s from container %sx%s (letterboxed=%s)",
              container_point, container_size.width, container_size.height,
              letterboxed)

  relative_x = container_point.x - layout_box.x
  relative_y = container_point.y - layout_box.y
  fraction_x = relative_x / layout_box.width
  fraction_y = relative_y / layout_box.height
  return Point(fraction_x * export_width, fraction_y * export_height)


def from_export_space(export_point: Point, layout_box: PageLayoutBox,
                      export_width: float, export_height: float) -> Point:
  """Inverse of `to_export_space`: target pixels back to container pixels."""
  if layout_box.is_degenerate or export_width <= 0 or export_height <= 0:
    return Point(layout_box.x, layout_box.y)
  fraction_x = export_point.x / export_width
  fraction_y = export_point.y / export_height
  return Point(layout_box.x + fraction_x * layout_box.width,
               layout_box.y + fraction_y * layout_box.height)


def scale_overlay_size(intrinsic_size: Size, scale: float,
                       export_background_width: float,
                       layout_box: PageLayoutBox) -> Size:
  """Overlay size in a target whose background is `export_background_width` wide."""
  if layout_box.is_degenerate:
    return Size(0.0, 0.0)
  ratio = export_background_width / layout_box.width
  return Size(intrinsic_size.width * scale * ratio,
              intrinsic_size.height * scale * ratio)


def map_overlay(position: Point,
                intrinsic_size: Size,
                scale: float,
                layout_box: PageLayoutBox,
                container_size: Optional[Size],
                background_rect: Rect) -> Rect:
  """
  Project the overlay into a target where the background page is drawn at
  `background_rect` (target pixels).

  Returns the overlay rectangle in target pixels. Degenerate inputs produce
  the fallback placement inside the background rectangle.
  """
  if layout_box.is_degenerate or intrinsic_size.is_degenerate or scale <= 0:
    fallback = fallback_overlay_rect(background_rect.width,
                                     background_rect.height)
    return Rect(background_rect.x + fallback.x, background_rect.y + fallback.y,
                fallback.width, fallback.height)

  mapped = to_export_space(position, container_size, layout_box,
                           background_rect.width, background_rect.height)
  size = scale_overlay_size(intrinsic_size, scale, background_rect.width,
                            layout_box)
  return Rect(background_rect.x + mapped.x, background_rect.y + mapped.y,
              size.width, size.height)


def target_scale_factor(layout_box: PageLayoutBox, background_width: float,
                        default: float = 1.0) -> float:
  """How many target pixels correspond to one container pixel."""
  if layout_box.is_degenerate or background_width <= 0:
    return default
  return background_width / layout_box.width
