"""
Render Module
=============

Clock face rendering components.

This module provides the input side of the wall clock pipeline:
    - ClockLayout / PALETTE: Immutable geometry and colour tables
    - fit_text / HersheyFont: Bisection font fitting over OpenCV fonts
    - FrameProducer: Free-running renderer publishing JPEG frames

Example:
    from dash_wallclock.render import ClockLayout, FrameProducer
    
    layout = ClockLayout.for_size(1920, 1080)
    producer = FrameProducer(slot, alive, layout, jpeg_quality=90)
    producer.start()
"""

from dash_wallclock.render.layout import PALETTE, ClockLayout, Rect
from dash_wallclock.render.text_fit import (
    FittedText,
    FontMetrics,
    HersheyFont,
    MeasurableFont,
    TextBounds,
    fit_text,
)
from dash_wallclock.render.producer import FrameProducer, format_wall_clock


__all__ = [
    "PALETTE",
    "ClockLayout",
    "Rect",
    "FittedText",
    "FontMetrics",
    "HersheyFont",
    "MeasurableFont",
    "TextBounds",
    "fit_text",
    "FrameProducer",
    "format_wall_clock",
]
