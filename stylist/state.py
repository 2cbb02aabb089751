from __future__ import annotations

import base64
import mimetypes
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import List, Optional


# Marks a generation that settled without an image.
FAILED = "ERROR"

MAX_UPLOAD_BYTES = 5 * 1024 * 1024


class AppStatus(str, Enum):
    IDLE = "IDLE"
    PROCESSING = "PROCESSING"


@dataclass(frozen=True)
class StyleDefinition:
    name: str
    prompt: str


@dataclass(frozen=True)
class SourceImage:
    """An uploaded photo, base64-encoded once and reused by every request."""

    data: bytes
    mime_type: str
    encoded: str = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.data:
            raise ValueError("Uploaded image is empty")
        if not self.mime_type.startswith("image/"):
            raise ValueError(f"Unsupported file type: {self.mime_type or 'unknown'}")
        if len(self.data) > MAX_UPLOAD_BYTES:
            raise ValueError(f"Image is too large ({len(self.data)} bytes, max 5MB)")
        object.__setattr__(self, "encoded", base64.b64encode(self.data).decode("ascii"))

    @classmethod
    def from_path(cls, path: str | Path, mime_type: str = "") -> "SourceImage":
        p = Path(path)
        if not mime_type:
            mime_type = mimetypes.guess_type(p.name)[0] or ""
        return cls(data=p.read_bytes(), mime_type=mime_type)

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.encoded}"


@dataclass(frozen=True)
class GenerationResult:
    id: str
    style: str
    url: str = ""
    is_loading: bool = True

    @property
    def failed(self) -> bool:
        return not self.is_loading and self.url == FAILED

    @property
    def succeeded(self) -> bool:
        return not self.is_loading and bool(self.url) and self.url != FAILED

    def succeed(self, url: str) -> "GenerationResult":
        if not self.is_loading:
            raise ValueError(f"result {self.id} has already settled")
        if not url or url == FAILED:
            raise ValueError("a succeeded result needs a usable image reference")
        return replace(self, url=url, is_loading=False)

    def fail(self) -> "GenerationResult":
        if not self.is_loading:
            raise ValueError(f"result {self.id} has already settled")
        return replace(self, url=FAILED, is_loading=False)


@dataclass
class AppState:
    source_image: Optional[SourceImage] = None
    results: List[GenerationResult] = field(default_factory=list)
    custom_prompt: str = ""
    status: AppStatus = AppStatus.IDLE
    error: Optional[str] = None

    def snapshot(self) -> "AppState":
        return replace(self, results=list(self.results))
