"""
Text Fitting
============

Bisection search for the largest font size at which a string fits a box.

The fit is computed once per run for a representative timestamp and
reused for every frame. Digit widths of a fixed-format timestamp are
visually stable, so this is an approximation rather than a guarantee:
fonts or formats with variable glyph widths may overflow by a few pixels.

Design Rules:
    - Deterministic for a fixed rectangle, font and string
    - Monotonic: a wider rectangle never yields a smaller size
    - Font access goes through the MeasurableFont protocol only
"""

import logging
from dataclasses import dataclass
from typing import Protocol, Tuple

import cv2
import numpy as np

from dash_wallclock.render.layout import Color, Rect


logger = logging.getLogger(__name__)


MIN_FONT_SIZE = 1.0
MAX_FONT_SIZE = 240.0
FIT_TOLERANCE = 1.0

# Enough halvings to converge from any range in [MIN, MAX]
_MAX_BISECTION_STEPS = 64


@dataclass(frozen=True, slots=True)
class TextBounds:
    """Horizontal extent of a measured string."""

    left: float
    width: float


@dataclass(frozen=True, slots=True)
class FontMetrics:
    """Vertical font metrics, both as positive distances from the baseline."""

    ascent: float
    descent: float


@dataclass(frozen=True, slots=True)
class FittedText:
    """
    Result of a text fit.

    Attributes:
        size: Chosen font size
        bounds: String bounds measured at that size
        origin: Baseline-left draw point centering the string in the rect
    """

    size: float
    bounds: TextBounds
    origin: Tuple[float, float]


class MeasurableFont(Protocol):
    """Font able to measure a string at an arbitrary size."""

    def measure(self, text: str, size: float) -> TextBounds:
        ...

    def metrics(self, size: float) -> FontMetrics:
        ...


def fit_text(
    rect: Rect,
    font: MeasurableFont,
    text: str,
    min_size: float = MIN_FONT_SIZE,
    max_size: float = MAX_FONT_SIZE,
    tolerance: float = FIT_TOLERANCE,
) -> FittedText:
    """
    Find the largest size at which `text` fits the width of `rect`.

    Bisects [min_size, max_size]: an overflowing midpoint becomes the new
    ceiling, a fitting one the new floor. The search ends on a fitting
    midpoint within `tolerance` of the previous candidate. If the string
    does not fit even at `min_size`, `min_size` is returned.

    Args:
        rect: Bounding rectangle
        font: Font to measure with
        text: Representative string
        min_size: Smallest size considered
        max_size: Largest size considered
        tolerance: Convergence distance between successive candidates

    Returns:
        Fitted size and the centered draw origin
    """
    if min_size <= 0 or max_size < min_size:
        raise ValueError(f"Invalid size range [{min_size}, {max_size}]")

    low, high = min_size, max_size
    last = -1.0
    best = min_size

    for _ in range(_MAX_BISECTION_STEPS):
        value = low + (high - low) / 2
        bounds = font.measure(text, value)
        if bounds.width > rect.width:
            last = value
            high = value
        else:
            low = value
            best = value
            if abs(last - value) <= tolerance:
                break
            last = value

    bounds = font.measure(text, best)
    metrics = font.metrics(best)
    x = rect.center_x - bounds.width / 2 - bounds.left
    y = rect.center_y + (metrics.ascent - metrics.descent) / 2

    logger.debug(
        f"Fitted {text!r} into {rect.width:.0f}px: size={best:.2f}, "
        f"width={bounds.width:.0f}px"
    )
    return FittedText(size=best, bounds=bounds, origin=(x, y))


class HersheyFont:
    """
    OpenCV Hershey font exposed through the MeasurableFont protocol.

    Sizes are nominal pixel heights; the OpenCV font scale is derived as
    size / 22, the cap height of the simplex face at scale 1.
    """

    UNIT_HEIGHT = 22.0

    def __init__(
        self,
        face: int = cv2.FONT_HERSHEY_SIMPLEX,
        weight: float = 1.5,
    ) -> None:
        """
        Args:
            face: OpenCV Hershey font face constant
            weight: Stroke thickness per unit of font scale
        """
        self.face = face
        self.weight = weight

    def scale(self, size: float) -> float:
        return size / self.UNIT_HEIGHT

    def thickness(self, size: float) -> int:
        return max(1, int(self.scale(size) * self.weight))

    def measure(self, text: str, size: float) -> TextBounds:
        (width, _), _ = cv2.getTextSize(
            text, self.face, self.scale(size), self.thickness(size)
        )
        return TextBounds(left=0.0, width=float(width))

    def metrics(self, size: float) -> FontMetrics:
        # Cap height stands in for the ascent of the whole face
        (_, height), baseline = cv2.getTextSize(
            "0", self.face, self.scale(size), self.thickness(size)
        )
        return FontMetrics(ascent=float(height), descent=float(baseline))

    def draw(
        self,
        surface: np.ndarray,
        text: str,
        fitted: FittedText,
        color: Color,
    ) -> None:
        """Draw `text` onto a BGR surface at a fitted origin and size."""
        x, y = fitted.origin
        cv2.putText(
            surface,
            text,
            (int(round(x)), int(round(y))),
            self.face,
            self.scale(fitted.size),
            color,
            self.thickness(fitted.size),
            cv2.LINE_AA,
        )
