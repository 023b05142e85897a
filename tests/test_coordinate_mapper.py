"""
Tests for container-to-target coordinate mapping.
"""
import pytest

from pdf_composer.composition import coordinate_mapper as mapper
from pdf_composer.composition.geometry import Point, Rect, Size

LAYOUT = Rect(50, 0, 400, 560)
CONTAINER = Size(500, 600)


def test_letterboxed_layout_maps_relative_to_background():
  point = mapper.to_export_space(Point(410, 10), CONTAINER, LAYOUT, 1600, 2240)
  size = mapper.scale_overlay_size(Size(300, 420), 0.25, 1600, LAYOUT)

  assert point.x == pytest.approx(1440)
  assert point.y == pytest.approx(40)
  assert size.width == pytest.approx(300)
  assert size.height == pytest.approx(420)


def test_mapping_is_scale_invariant():
  position = Point(170, 123)
  first = mapper.to_export_space(position, CONTAINER, LAYOUT, 400, 560)
  second = mapper.to_export_space(position, CONTAINER, LAYOUT, 1600, 2240)

  assert (first.x / 400, first.y / 560) == pytest.approx(
    (second.x / 1600, second.y / 2240))


def test_from_export_space_inverts_mapping():
  position = Point(222.5, 310.25)
  mapped = mapper.to_export_space(position, CONTAINER, LAYOUT, 1200, 1680)
  restored = mapper.from_export_space(mapped, LAYOUT, 1200, 1680)

  assert restored.x == pytest.approx(position.x)
  assert restored.y == pytest.approx(position.y)


def test_clamp_pins_oversized_overlay_to_padded_top_left():
  clamped = mapper.clamp_to_background(Point(300, 300), Size(900, 900), LAYOUT, 8)

  assert clamped == Point(58, 8)


def test_clamp_keeps_point_already_inside():
  clamped = mapper.clamp_to_background(Point(100, 100), Size(50, 50), LAYOUT, 8)

  assert clamped == Point(100, 100)


def test_degenerate_layout_uses_fallback_rect():
  rect = mapper.map_overlay(position=Point(410, 10),
                            intrinsic_size=Size(300, 420),
                            scale=0.25,
                            layout_box=Rect(0, 0, 0, 560),
                            container_size=CONTAINER,
                            background_rect=Rect(0, 0, 800, 1000))

  assert rect == Rect(800 - 200 - 20, 20, 200, 250)


def test_zero_intrinsic_size_uses_fallback_rect_inside_background():
  rect = mapper.map_overlay(position=Point(410, 10),
                            intrinsic_size=Size(0, 0),
                            scale=0.25,
                            layout_box=LAYOUT,
                            container_size=CONTAINER,
                            background_rect=Rect(0, 100, 400, 400))

  assert rect == Rect(400 - 100 - 20, 100 + 20, 100, 100)


def test_map_overlay_offsets_into_drawn_background():
  rect = mapper.map_overlay(position=Point(250, 280),
                            intrinsic_size=Size(100, 100),
                            scale=0.5,
                            layout_box=LAYOUT,
                            container_size=CONTAINER,
                            background_rect=Rect(0, 20, 800, 1120))

  assert rect.x == pytest.approx(400)
  assert rect.y == pytest.approx(20 + 560)
  assert rect.width == pytest.approx(100)
  assert rect.height == pytest.approx(100)


def test_target_scale_factor():
  assert mapper.target_scale_factor(LAYOUT, 1600) == pytest.approx(4.0)
  assert mapper.target_scale_factor(Rect(0, 0, 0, 0), 1600, default=3.0) == 3.0
