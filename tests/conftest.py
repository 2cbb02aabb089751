"""
Shared fixtures: a tiny real PNG and a scriptable stand-in for the Gemini call.
"""

import asyncio
import base64
import io
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

import pytest
from PIL import Image

from stylist.state import SourceImage


def make_png(color=(200, 30, 30), size=(8, 8)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


def png_data_url(color=(30, 200, 30)) -> str:
    return "data:image/png;base64," + base64.b64encode(make_png(color)).decode("ascii")


Behavior = Callable[[], Awaitable[Optional[str]]]


class FakeCapability:
    """Callable with the signature of process_image_style.

    Each instruction can be scripted to succeed, fail, return nothing, or
    block until a gate is opened. Unscripted instructions succeed.
    """

    def __init__(self) -> None:
        self.behaviors: Dict[str, Behavior] = {}
        self.calls: List[Tuple[str, str, str]] = []
        self.settled: List[str] = []

    def succeed(self, prompt: str, url: Optional[str] = None) -> None:
        async def _ok():
            return url or png_data_url()
        self.behaviors[prompt] = _ok

    def fail(self, prompt: str, exc: Exception = None) -> None:
        async def _fail():
            raise exc or RuntimeError("quota exceeded")
        self.behaviors[prompt] = _fail

    def empty(self, prompt: str) -> None:
        async def _none():
            return None
        self.behaviors[prompt] = _none

    def gate(self, prompt: str, url: Optional[str] = None) -> asyncio.Event:
        event = asyncio.Event()

        async def _gated():
            await event.wait()
            return url or png_data_url()
        self.behaviors[prompt] = _gated
        return event

    async def __call__(self, base64_data: str, mime_type: str, prompt: str) -> Optional[str]:
        self.calls.append((base64_data, mime_type, prompt))
        behavior = self.behaviors.get(prompt)
        try:
            if behavior is None:
                return png_data_url()
            return await behavior()
        finally:
            self.settled.append(prompt)


async def drain(rounds: int = 20) -> None:
    """Let every ready task on the loop run to its next suspension point."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def source(png_bytes):
    return SourceImage(data=png_bytes, mime_type="image/png")


@pytest.fixture
def fake():
    return FakeCapability()
