"""Value types flowing through the recognition pipeline.

``ImageSource`` and ``Outcome`` are closed unions of frozen dataclasses;
consumers dispatch on the concrete class and treat anything else as a bug.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from ocrd.pipeline.errors import ErrorReason


# ---------------------------------------------------------------------------
# Image sources
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class UrlSource:
    url: str


@dataclass(frozen=True)
class Base64Source:
    data: str


@dataclass(frozen=True)
class BytesSource:
    data: bytes


ImageSource = Union[UrlSource, Base64Source, BytesSource]


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Box:
    x: int
    y: int
    width: int
    height: int


@dataclass(frozen=True)
class TextObservation:
    box: Box
    content: str
    confidence: float


@dataclass(frozen=True)
class ImageResult:
    width: int
    height: int
    content: str
    observations: list[TextObservation] = field(default_factory=list)

    @classmethod
    def from_observations(cls, width: int, height: int, observations: list[TextObservation]) -> ImageResult:
        return cls(
            width=width,
            height=height,
            content="\n".join(o.content for o in observations),
            observations=observations,
        )


@dataclass(frozen=True)
class Ok:
    value: ImageResult


@dataclass(frozen=True)
class Error:
    reason: ErrorReason


Outcome = Union[Ok, Error]
