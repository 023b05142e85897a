"""
Coalescing redraw scheduler.

Only one composition renders at a time. Requests that arrive while a render
is running wait for it; when several are waiting only the newest one renders.
A result whose request has been superseded is dropped instead of applied.
"""
from typing import Callable, Optional
import asyncio
import logging

from PIL import Image

from .compositor import CompositionRequest, Compositor

log = logging.getLogger(__name__)


class RedrawCoordinator:

  def __init__(self, compositor: Compositor,
               on_applied: Optional[Callable[[CompositionRequest, Image.Image], None]] = None):
    self.compositor = compositor
    self.on_applied = on_applied
    self._generation = 0
    self._lock: Optional[asyncio.Lock] = None
    self.latest: Optional[Image.Image] = None
    self.latest_request: Optional[CompositionRequest] = None

  def _get_lock(self) -> asyncio.Lock:
    # Created lazily so the lock binds to the running loop
    if self._lock is None:
      self._lock = asyncio.Lock()
    return self._lock

  @property
  def generation(self) -> int:
    return self._generation

  async def request(self, request: CompositionRequest) -> Optional[Image.Image]:
    """
    Render `request` unless a newer request arrives first.

    Returns the rendered image, or None when this request was superseded.
    """
    self._generation += 1
    generation = self._generation

    async with self._get_lock():
      if generation != self._generation:
        log.debug("Redraw %s coalesced into %s", generation, self._generation)
        return None

      image = await asyncio.to_thread(self.compositor.compose, request)

      if generation != self._generation:
        log.debug("Discarding stale redraw %s (latest is %s)", generation,
                  self._generation)
        return None

      self.latest = image
      self.latest_request = request
      if self.on_applied:
        self.on_applied(request, image)
      return image
