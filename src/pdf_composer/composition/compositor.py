"""
Compositor - layers a rasterized cover page over a rasterized background page.

Preview, export and batch thumbnails all go through `Compositor.compose` with
a `CompositionRequest`; the only thing that differs between them is the target
resolution. Pages are always re-rasterized at the resolution they are drawn at,
never upscaled from a smaller render.

A request in side-by-side mode skips the overlay transform and lays the two
pages out next to each other instead.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple
import logging
import math

from PIL import Image, ImageDraw, ImageFilter, ImageFont

from .coordinate_mapper import map_overlay, target_scale_factor
from .geometry import Rect, Size, PageLayoutBox
from .rasterizer import PageRasterizer
from .transform import TransformState

log = logging.getLogger(__name__)

PLACEHOLDER_FILL = "#f0f0f0"
PLACEHOLDER_OUTLINE = "#cccccc"
PLACEHOLDER_TEXT = "#666666"


@dataclass(frozen=True)
class ShadowStyle:
  """Drop shadow at preview scale; every length is multiplied by the target scale factor."""
  color: Tuple[int, int, int] = (0, 0, 0)
  opacity: float = 0.3
  blur: float = 8.0
  offset_x: float = 4.0
  offset_y: float = 4.0


DEFAULT_SHADOW = ShadowStyle()


class CompositionMode(str, Enum):
  """CUSTOM layers the cover over the background; SIDE_BY_SIDE places them next to each other."""
  CUSTOM = "custom"
  SIDE_BY_SIDE = "sidebyside"


class UnsupportedCompositionMode(ValueError):
  pass


def parse_composition_mode(mode) -> CompositionMode:
  if isinstance(mode, CompositionMode):
    return mode
  normalized = str(mode or CompositionMode.CUSTOM.value).strip().lower()
  try:
    return CompositionMode(normalized)
  except ValueError:
    raise UnsupportedCompositionMode(f"Unsupported composition mode '{mode}'") from None


def side_by_side_size(background: Size, overlay: Size, height: float) -> Size:
  """
  Canvas for two pages next to each other at a shared scale, `height` tall.

  The width keeps the pair's aspect ratio: combined width over the taller
  page's height.
  """
  aspect = (background.width + overlay.width) / max(background.height,
                                                    overlay.height)
  return Size(height * aspect, height)


@dataclass(frozen=True)
class CompositionRequest:
  """Everything needed to render one composite; equal requests render equal pixels."""
  background_page_index: int
  overlay_page_index: Optional[int]
  transform: Optional[TransformState]
  target_width: int
  target_height: int
  quality_scale: float = 1.0
  mode: CompositionMode = CompositionMode.CUSTOM

  @property
  def layout_box(self) -> Optional[PageLayoutBox]:
    return self.transform.layout_box if self.transform else None


def draw_placeholder(canvas: Image.Image, box: Tuple[int, int, int, int],
                     page_index: int) -> None:
  """Labeled stand-in for a page that failed to render."""
  left, top, right, bottom = box
  draw = ImageDraw.Draw(canvas)
  draw.rectangle([left, top, max(left, right - 1), max(top, bottom - 1)],
                 fill=PLACEHOLDER_FILL,
                 outline=PLACEHOLDER_OUTLINE)
  label = f"Page {page_index + 1}"
  font = ImageFont.load_default()
  text_left, text_top, text_right, text_bottom = draw.textbbox((0, 0), label,
                                                               font=font)
  text_x = left + ((right - left) - (text_right - text_left)) / 2
  text_y = top + ((bottom - top) - (text_bottom - text_top)) / 2
  draw.text((text_x, text_y), label, fill=PLACEHOLDER_TEXT, font=font)


class Compositor:
  """Renders `CompositionRequest`s with a page rasterizer."""

  def __init__(self, rasterizer: PageRasterizer,
               shadow: ShadowStyle = DEFAULT_SHADOW):
    self.rasterizer = rasterizer
    self.shadow = shadow

  def compose(self, request: CompositionRequest) -> Image.Image:
    width, height = int(request.target_width), int(request.target_height)
    if width <= 0 or height <= 0:
      raise ValueError(f"Invalid composition target {width}x{height}")

    canvas = Image.new("RGB", (width, height), "white")
    if (request.mode == CompositionMode.SIDE_BY_SIDE
        and request.overlay_page_index is not None):
      self._draw_side_by_side(canvas, request.background_page_index,
                              request.overlay_page_index)
      return canvas

    background_rect = self._draw_background(canvas,
                                            request.background_page_index)

    if request.overlay_page_index is None:
      return canvas

    overlay_rect = self._map_overlay(request, background_rect)
    factor = target_scale_factor(request.layout_box or Rect(0, 0, 0, 0),
                                 background_rect.width,
                                 default=request.quality_scale)
    self._draw_overlay(canvas, request.overlay_page_index, overlay_rect,
                       factor)

    log.debug(
      "Composed background=%s overlay=%s target=%sx%s overlay_rect=%s factor=%.3f",
      request.background_page_index + 1,
      request.overlay_page_index + 1,
      width,
      height,
      overlay_rect,
      factor)
    return canvas

  def render_page_fit(self, page_index: int, width: int,
                      height: int) -> Image.Image:
    """Render one page fitted and centered into a width x height box."""
    canvas = Image.new("RGB", (width, height), "white")
    try:
      page_size = self.rasterizer.page_size(page_index)
      scale = min(width / page_size.width, height / page_size.height)
      image = self.rasterizer.render(page_index, scale)
    except Exception as e:
      log.warning("Falling back to placeholder for page %s: %s",
                  page_index + 1, e)
      draw_placeholder(canvas, (0, 0, width, height), page_index)
      return canvas

    final_width = min(width, image.width)
    final_height = min(height, image.height)
    if image.size != (final_width, final_height):
      image = image.crop((0, 0, final_width, final_height))
    canvas.paste(image, ((width - final_width) // 2,
                         (height - final_height) // 2))
    return canvas

  def _draw_background(self, canvas: Image.Image, page_index: int) -> Rect:
    """
    Render the background to fill the target width, centered vertically.

    Returns where the page landed in target pixels; the overlay is mapped
    relative to this rectangle.
    """
    width, height = canvas.size
    try:
      page_size = self.rasterizer.page_size(page_index)
      image = self.rasterizer.render(page_index, width / page_size.width)
    except Exception as e:
      log.warning("Background page %s failed to render: %s", page_index + 1, e)
      draw_placeholder(canvas, (0, 0, width, height), page_index)
      return Rect(0, 0, width, height)

    offset_x = (width - image.width) // 2
    offset_y = (height - image.height) // 2
    canvas.paste(image, (offset_x, offset_y))
    return Rect(offset_x, offset_y, image.width, image.height)

  def _draw_side_by_side(self, canvas: Image.Image, background_index: int,
                         overlay_index: int) -> None:
    """
    Background page on the left, overlay page on the right, both at the scale
    that makes their combined width fill the canvas, each centered vertically.
    """
    width, height = canvas.size
    pages = [(background_index, self.rasterizer.page_size(background_index)),
             (overlay_index, self.rasterizer.page_size(overlay_index))]
    scale = width / sum(size.width for _, size in pages)

    left = 0
    for position, (page_index, page_size) in enumerate(pages):
      if position == len(pages) - 1:
        slot_width = width - left
      else:
        slot_width = int(round(page_size.width * scale))
      slot_height = min(height, int(round(page_size.height * scale)))
      top = (height - slot_height) // 2
      try:
        image = self.rasterizer.render(page_index, scale)
        if image.size != (slot_width, slot_height):
          image = image.resize((slot_width, slot_height),
                               Image.Resampling.LANCZOS)
        canvas.paste(image, (left, top))
      except Exception as e:
        log.warning("Side-by-side page %s failed to render: %s",
                    page_index + 1, e)
        draw_placeholder(canvas, (left, top, left + slot_width, top + slot_height),
                         page_index)
      left += slot_width

    log.debug("Composed side by side background=%s overlay=%s target=%sx%s scale=%.3f",
              background_index + 1, overlay_index + 1, width, height, scale)

  def _map_overlay(self, request: CompositionRequest,
                   background_rect: Rect) -> Rect:
    state = request.transform
    if state is None:
      return map_overlay(position=background_rect.origin,
                         intrinsic_size=Size(0, 0),
                         scale=0,
                         layout_box=Rect(0, 0, 0, 0),
                         container_size=None,
                         background_rect=background_rect)
    return map_overlay(position=state.position,
                       intrinsic_size=state.intrinsic_size,
                       scale=state.scale,
                       layout_box=state.layout_box or Rect(0, 0, 0, 0),
                       container_size=state.container_size,
                       background_rect=background_rect)

  def _render_overlay(self, page_index: int, width: int,
                      height: int) -> Image.Image:
    page_size = self.rasterizer.page_size(page_index)
    scale = min(width / page_size.width, height / page_size.height)
    image = self.rasterizer.render(page_index, scale)
    if image.size != (width, height):
      # Absorb sub-pixel rounding from the renderer
      image = image.resize((width, height), Image.Resampling.LANCZOS)
    return image

  def _draw_overlay(self, canvas: Image.Image, page_index: int, rect: Rect,
                    factor: float) -> None:
    left = int(round(rect.x))
    top = int(round(rect.y))
    width = max(1, int(round(rect.width)))
    height = max(1, int(round(rect.height)))

    try:
      overlay = self._render_overlay(page_index, width, height)
    except Exception as e:
      log.warning("Overlay page %s failed to render: %s", page_index + 1, e)
      overlay = Image.new("RGB", (width, height), "white")
      draw_placeholder(overlay, (0, 0, width, height), page_index)

    self._draw_shadow(canvas, left, top, width, height, factor)
    canvas.paste(overlay, (left, top))

  def _draw_shadow(self, canvas: Image.Image, left: int, top: int, width: int,
                   height: int, factor: float) -> None:
    shadow = self.shadow
    # Canvas-style blur is roughly twice the gaussian standard deviation
    radius = max(0.0, shadow.blur * factor / 2.0)
    pad = int(math.ceil(radius * 3)) + 1
    alpha = int(round(255 * shadow.opacity))

    mask = Image.new("L", (width + 2 * pad, height + 2 * pad), 0)
    ImageDraw.Draw(mask).rectangle([pad, pad, pad + width - 1, pad + height - 1],
                                   fill=alpha)
    if radius > 0:
      mask = mask.filter(ImageFilter.GaussianBlur(radius))

    shadow_x = left + int(round(shadow.offset_x * factor)) - pad
    shadow_y = top + int(round(shadow.offset_y * factor)) - pad
    fill = Image.new("RGB", mask.size, shadow.color)
    canvas.paste(fill, (shadow_x, shadow_y), mask)
