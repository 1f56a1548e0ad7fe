from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class TrimBounds:
    """Inclusive content rectangle in source-image coordinates."""
    x: int
    y: int
    width: int   # >= 1
    height: int  # >= 1

    @property
    def right(self) -> int:
        """Exclusive right edge."""
        return self.x + self.width

    @property
    def bottom(self) -> int:
        """Exclusive bottom edge."""
        return self.y + self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    def as_box(self) -> Tuple[int, int, int, int]:
        """(left, top, right, bottom), the box convention Pillow uses."""
        return self.x, self.y, self.right, self.bottom

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}
