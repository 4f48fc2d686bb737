"""
Clock Face Layout
=================

Immutable drawing tables for the clock face.

Everything here is computed once per surface size and passed into the
renderer; no drawing state is shared or mutated between calls.

Layout (for N palette bands of width B = width // N):
    - Background: N vertical colour bands
    - Gradient strip: black to white, (N - 1) * B wide, B / 2 tall,
      starting at B / 2 and sitting one strip height above the bottom
    - Clock box: (N - 3) * B wide, B / 1.25 tall, starting at 1.5 * B,
      vertically centered
"""

from dataclasses import dataclass
from typing import Tuple


Color = Tuple[int, int, int]


# BGR, OpenCV channel order
WHITE: Color = (255, 255, 255)
YELLOW: Color = (0, 255, 255)
CYAN: Color = (255, 255, 0)
GREEN: Color = (0, 255, 0)
MAGENTA: Color = (255, 0, 255)
RED: Color = (0, 0, 255)
BLUE: Color = (255, 0, 0)
BLACK: Color = (0, 0, 0)

PALETTE: Tuple[Color, ...] = (WHITE, YELLOW, CYAN, GREEN, MAGENTA, RED, BLUE, BLACK)


@dataclass(frozen=True, slots=True)
class Rect:
    """Axis-aligned rectangle in pixel coordinates."""

    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def center_x(self) -> float:
        return self.left + self.width / 2

    @property
    def center_y(self) -> float:
        return self.top + self.height / 2

    def inset(self, factor: float) -> "Rect":
        """Scale the rectangle about its center."""
        w = self.width * factor
        h = self.height * factor
        return Rect(self.center_x - w / 2, self.center_y - h / 2, w, h)

    def to_pixels(self) -> Tuple[int, int, int, int]:
        """Integer (x0, y0, x1, y1) with exclusive end, clamped at zero."""
        return (
            max(0, int(round(self.left))),
            max(0, int(round(self.top))),
            max(0, int(round(self.right))),
            max(0, int(round(self.bottom))),
        )


@dataclass(frozen=True, slots=True)
class ClockLayout:
    """
    Geometry of every element on the clock face.

    Attributes:
        width: Surface width in pixels
        height: Surface height in pixels
        palette: Background band colours, left to right
        band_width: Width of one background band
        gradient: Gradient strip rectangle
        clock_box: Box the time is drawn into
        text_area_factor: Share of the box width the text may use
    """

    width: int
    height: int
    palette: Tuple[Color, ...]
    band_width: float
    gradient: Rect
    clock_box: Rect
    text_area_factor: float = 0.90

    @classmethod
    def for_size(
        cls,
        width: int,
        height: int,
        palette: Tuple[Color, ...] = PALETTE,
    ) -> "ClockLayout":
        """
        Compute the layout for a surface size.

        Args:
            width: Surface width in pixels
            height: Surface height in pixels
            palette: Background band colours

        Returns:
            Layout for the given size
        """
        if width < len(palette) or height < 1:
            raise ValueError(
                f"Surface {width}x{height} too small for {len(palette)} bands"
            )

        band = float(width // len(palette))

        gradient_h = band / 2
        gradient = Rect(
            left=band / 2,
            top=height - gradient_h * 2,
            width=band * (len(palette) - 1),
            height=gradient_h,
        )

        box_h = band / 1.25
        clock_box = Rect(
            left=band + band / 2,
            top=height / 2 - box_h / 2,
            width=band * (len(palette) - 3),
            height=box_h,
        )

        return cls(
            width=width,
            height=height,
            palette=tuple(palette),
            band_width=band,
            gradient=gradient,
            clock_box=clock_box,
        )

    @property
    def text_area(self) -> Rect:
        """Area the fitted text must not exceed horizontally."""
        return self.clock_box.inset(self.text_area_factor)
