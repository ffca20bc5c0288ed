"""Reference images supplied with a request."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from enum import Enum
from io import BytesIO
from pathlib import Path
from typing import Iterable

from PIL import Image, UnidentifiedImageError

from .config import ReferenceLimits
from .errors import ReferenceImageError


class ReferenceCategory(str, Enum):
    FACE = "face"
    BODY = "body"
    STYLE = "style"
    INPUT = "input"


@dataclass(frozen=True)
class ReferenceImage:
    mime_type: str
    data: str
    name: str | None = None

    @classmethod
    def from_bytes(cls, raw: bytes, *, mime_type: str | None = None, name: str | None = None) -> "ReferenceImage":
        detected = mime_type or _detect_mime(raw)
        return cls(mime_type=detected, data=base64.b64encode(raw).decode("ascii"), name=name)

    @classmethod
    def from_path(cls, path: str | Path) -> "ReferenceImage":
        resolved = Path(path).expanduser()
        try:
            raw = resolved.read_bytes()
        except OSError as exc:
            raise ReferenceImageError(f"Cannot read image {resolved}: {exc}") from exc
        return cls.from_bytes(raw, name=resolved.name)

    @classmethod
    def from_data_url(cls, value: str, *, name: str | None = None) -> "ReferenceImage":
        header, sep, payload = value.partition(",")
        if not sep or not header.startswith("data:") or ";base64" not in header:
            raise ReferenceImageError("Expected a base64 data URL.")
        mime_type = header[len("data:"):].split(";", 1)[0] or "image/png"
        return cls(mime_type=mime_type, data=payload, name=name)

    def raw_bytes(self) -> bytes:
        try:
            return base64.b64decode(self.data, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ReferenceImageError(f"Invalid base64 payload for {self.name or 'image'}.") from exc

    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


def _detect_mime(raw: bytes) -> str:
    try:
        with Image.open(BytesIO(raw)) as image:
            image_format = image.format
    except (UnidentifiedImageError, OSError) as exc:
        raise ReferenceImageError("File is not a recognised image.") from exc
    mime = Image.MIME.get(image_format or "")
    if not mime:
        raise ReferenceImageError(f"Unsupported image format: {image_format}.")
    return mime


@dataclass
class ReferenceImageSet:
    limits: ReferenceLimits = field(default_factory=ReferenceLimits)
    face: list[ReferenceImage] = field(default_factory=list)
    body: list[ReferenceImage] = field(default_factory=list)
    style: list[ReferenceImage] = field(default_factory=list)
    input_image: ReferenceImage | None = None

    def add(self, category: ReferenceCategory | str, images: Iterable[ReferenceImage]) -> int:
        """Append images up to the category limit; returns how many were kept."""
        category = ReferenceCategory(category)
        incoming = list(images)
        if category is ReferenceCategory.INPUT:
            if self.limits.input_image < 1 or not incoming or self.input_image is not None:
                return 0
            self.input_image = incoming[0]
            return 1
        bucket = self._bucket(category)
        remaining = max(0, self._limit(category) - len(bucket))
        accepted = incoming[:remaining]
        bucket.extend(accepted)
        return len(accepted)

    def add_paths(self, category: ReferenceCategory | str, paths: Iterable[str | Path]) -> int:
        return self.add(category, [ReferenceImage.from_path(path) for path in paths])

    def set_input_image(self, image: ReferenceImage | None) -> None:
        self.input_image = image

    def references(self) -> list[ReferenceImage]:
        return [*self.face, *self.body, *self.style]

    def count(self) -> int:
        return len(self.references()) + (1 if self.input_image is not None else 0)

    def clear(self) -> None:
        self.face.clear()
        self.body.clear()
        self.style.clear()
        self.input_image = None

    def _bucket(self, category: ReferenceCategory) -> list[ReferenceImage]:
        if category is ReferenceCategory.FACE:
            return self.face
        if category is ReferenceCategory.BODY:
            return self.body
        return self.style

    def _limit(self, category: ReferenceCategory) -> int:
        if category is ReferenceCategory.FACE:
            return self.limits.face
        if category is ReferenceCategory.BODY:
            return self.limits.body
        return self.limits.style
