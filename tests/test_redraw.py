"""
Tests for latest-wins redraw coalescing.
"""
import asyncio
import threading

from PIL import Image

from pdf_composer.composition.compositor import CompositionRequest
from pdf_composer.composition.redraw import RedrawCoordinator


class GatedCompositor:
  """Blocks every render until `gate` is set."""

  def __init__(self):
    self.gate = threading.Event()
    self.started = threading.Event()
    self.calls = []

  def compose(self, request):
    self.calls.append(request)
    self.started.set()
    self.gate.wait(timeout=5)
    return Image.new("RGB", (request.target_width, request.target_height),
                     "white")


def make_request(page: int) -> CompositionRequest:
  return CompositionRequest(background_page_index=page,
                            overlay_page_index=None,
                            transform=None,
                            target_width=10,
                            target_height=10)


def test_single_request_is_rendered_and_applied():
  compositor = GatedCompositor()
  compositor.gate.set()
  applied = []
  coordinator = RedrawCoordinator(compositor,
                                  on_applied=lambda r, img: applied.append(r))

  image = asyncio.run(coordinator.request(make_request(0)))

  assert image is not None
  assert applied == [make_request(0)]
  assert coordinator.latest_request == make_request(0)


def test_requests_during_render_coalesce_to_latest():
  compositor = GatedCompositor()
  applied = []
  coordinator = RedrawCoordinator(compositor,
                                  on_applied=lambda r, img: applied.append(r))

  async def scenario():
    first = asyncio.create_task(coordinator.request(make_request(1)))
    while not compositor.started.is_set():
      await asyncio.sleep(0.01)
    second = asyncio.create_task(coordinator.request(make_request(2)))
    third = asyncio.create_task(coordinator.request(make_request(3)))
    await asyncio.sleep(0.05)
    compositor.gate.set()
    return await asyncio.gather(first, second, third)

  first, second, third = asyncio.run(scenario())

  assert first is None
  assert second is None
  assert third is not None
  assert [r.background_page_index for r in compositor.calls] == [1, 3]
  assert applied == [make_request(3)]
  assert coordinator.latest_request == make_request(3)
