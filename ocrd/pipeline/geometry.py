from __future__ import annotations

from ocrd.ocr.base_ocr import RawObservation
from ocrd.pipeline.models import Box, TextObservation


def _pixels(value: float) -> int:
    # Truncates toward zero after clamping, so 19.8 -> 19
    return int(max(value, 0.0))


def to_pixel_box(observation: RawObservation, width: int, height: int) -> Box:
    """Map normalized corners (origin bottom-left, y up) to a top-left-origin pixel box."""
    tl = observation.top_left
    br = observation.bottom_right
    sx = width - 1
    sy = height - 1
    return Box(
        x=_pixels(tl.x * sx),
        y=_pixels((1.0 - tl.y) * sy),
        width=_pixels((br.x - tl.x) * sx),
        height=_pixels((tl.y - br.y) * sy),
    )


def to_text_observation(observation: RawObservation, width: int, height: int) -> TextObservation:
    top = observation.candidates[0] if observation.candidates else None
    return TextObservation(
        box=to_pixel_box(observation, width, height),
        content=top.text if top else "",
        confidence=top.confidence if top else observation.confidence,
    )
