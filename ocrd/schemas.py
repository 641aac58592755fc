from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from ocrd.pipeline.models import (
    Base64Source,
    BytesSource,
    Error,
    ImageResult,
    ImageSource,
    Ok,
    Outcome,
    UrlSource,
)

Byte = Annotated[int, Field(ge=0, le=255)]


class ImageSourceIn(BaseModel):
    """Wire form of an image source: exactly one of ``url``, ``bytes``, ``base64``."""

    url: str | None = None
    bytes: list[Byte] | None = None
    base64: str | None = None

    def to_source(self) -> ImageSource:
        # Precedence when a client sends several keys: url, bytes, base64
        if self.url is not None:
            return UrlSource(self.url)
        if self.bytes is not None:
            return BytesSource(bytes(self.bytes))
        if self.base64 is not None:
            return Base64Source(self.base64)
        raise ValueError("Invalid Image Source")


_source_list = TypeAdapter(list[ImageSourceIn])


def parse_image_source(raw: bytes) -> ImageSource:
    """Parse a JSON image source; raises ``ValueError`` if *raw* is not one."""
    try:
        parsed = ImageSourceIn.model_validate_json(raw)
    except ValidationError as exc:
        raise ValueError(str(exc)) from exc
    return parsed.to_source()


def parse_image_sources(raw: bytes) -> list[ImageSource]:
    try:
        parsed = _source_list.validate_json(raw)
    except ValidationError as exc:
        raise ValueError(str(exc)) from exc
    return [item.to_source() for item in parsed]


class BoxOut(BaseModel):
    x: int
    y: int
    width: int
    height: int


class TextObservationOut(BaseModel):
    box: BoxOut
    content: str
    confidence: float


class ImageResultOut(BaseModel):
    width: int
    height: int
    content: str
    observations: list[TextObservationOut]

    @classmethod
    def from_result(cls, result: ImageResult) -> ImageResultOut:
        return cls(
            width=result.width,
            height=result.height,
            content=result.content,
            observations=[
                TextObservationOut(
                    box=BoxOut(x=o.box.x, y=o.box.y, width=o.box.width, height=o.box.height),
                    content=o.content,
                    confidence=o.confidence,
                )
                for o in result.observations
            ],
        )


class ErrorOut(BaseModel):
    error: bool = True
    reason: str


def outcome_to_json(outcome: Outcome) -> dict[str, Any]:
    if isinstance(outcome, Ok):
        return ImageResultOut.from_result(outcome.value).model_dump()
    if isinstance(outcome, Error):
        return ErrorOut(reason=outcome.reason.value).model_dump()
    raise TypeError(f"Unsupported outcome {type(outcome).__name__}")
