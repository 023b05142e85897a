"""
Small value types shared by the transform model, mapper and compositor.
"""
from dataclasses import dataclass
import math


@dataclass(frozen=True)
class Point:
  x: float
  y: float


@dataclass(frozen=True)
class Size:
  width: float
  height: float

  def scaled(self, factor: float) -> "Size":
    return Size(self.width * factor, self.height * factor)

  @property
  def is_degenerate(self) -> bool:
    return not (self.width > 0 and self.height > 0
                and math.isfinite(self.width) and math.isfinite(self.height))


@dataclass(frozen=True)
class Rect:
  """Axis-aligned rectangle given by its top-left origin and size."""
  x: float
  y: float
  width: float
  height: float

  @property
  def origin(self) -> Point:
    return Point(self.x, self.y)

  @property
  def size(self) -> Size:
    return Size(self.width, self.height)

  @property
  def right(self) -> float:
    return self.x + self.width

  @property
  def bottom(self) -> float:
    return self.y + self.height

  @property
  def is_degenerate(self) -> bool:
    return self.size.is_degenerate

  def contains_rect(self, other: "Rect", tolerance: float = 1e-6) -> bool:
    return (other.x >= self.x - tolerance
            and other.y >= self.y - tolerance
            and other.right <= self.right + tolerance
            and other.bottom <= self.bottom + tolerance)

  def inset(self, amount: float) -> "Rect":
    return Rect(self.x + amount, self.y + amount,
                self.width - 2 * amount, self.height - 2 * amount)


# Where the background page is displayed inside its container, in
# container coordinates.
PageLayoutBox = Rect
