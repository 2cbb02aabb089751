from __future__ import annotations

import base64
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

try:
    # optional local credentials file
    from . import credentials  # type: ignore
except ImportError:
    credentials = None  # type: ignore

# searches for .env in CWD/parents
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image"


class GenerationError(RuntimeError):
    """The image model answered without an image."""


def _get_api_key() -> Optional[str]:
    # API_KEY is the variable the hosted web app reads
    key = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")
    if key:
        return key
    if credentials and getattr(credentials, "GEMINI_API_KEY", None):
        return credentials.GEMINI_API_KEY  # type: ignore
    cfg_path = Path.home() / ".config" / "gemini" / "api_key"
    try:
        if cfg_path.exists():
            return cfg_path.read_text().strip() or None
    except OSError:
        logger.warning("Could not read %s", cfg_path)
    return None


def _model_name() -> str:
    return os.getenv("GEMINI_IMAGE_MODEL") or DEFAULT_IMAGE_MODEL


def _timeout() -> float:
    return float(os.getenv("GEMINI_TIMEOUT", "120"))


async def process_image_style(base64_data: str, mime_type: str, prompt: str) -> Optional[str]:
    """Restyle one image with one instruction.

    base64_data: the source image, base64-encoded
    mime_type: MIME type of the source image
    prompt: free-text instruction for the image model

    Returns a ``data:`` URL for the first image in the response, or None when the
    model answered without one. Transport, auth and policy errors propagate.

    Without an API key the call is answered by a local placeholder renderer so
    the app stays usable offline.
    """
    api_key = _get_api_key()
    if not api_key:
        return _local_placeholder(base64_data, mime_type, prompt)

    try:
        return await _real_gemini(base64_data, mime_type, prompt, api_key=api_key)
    except Exception:
        logger.exception("Error generating image style (model=%s)", _model_name())
        raise


async def _real_gemini(base64_data: str, mime_type: str, prompt: str, *, api_key: str) -> Optional[str]:
    import google.generativeai as genai

    genai.configure(api_key=api_key)
    model = genai.GenerativeModel(model_name=_model_name())
    parts: List[Any] = [
        {"mime_type": mime_type, "data": base64.b64decode(base64_data)},
        {"text": prompt},
    ]
    resp = await model.generate_content_async(parts, request_options={"timeout": _timeout()})
    img_bytes, mime = _first_image_bytes(resp)
    if not img_bytes:
        logger.warning("Image model returned no image for prompt %r", prompt[:60])
        return None
    return to_data_url(img_bytes, mime or "image/png")


def _local_placeholder(base64_data: str, mime_type: str, prompt: str) -> str:
    from ..render import stylize_offline

    logger.info("GEMINI_API_KEY not set; rendering offline placeholder")
    png = stylize_offline(base64.b64decode(base64_data), prompt)
    return to_data_url(png, "image/png")


def to_data_url(data: bytes, mime: str) -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def _first_image_bytes(resp: Any) -> tuple[bytes | None, str]:
    # Only the first candidate is considered; its first inline image part wins.
    cands = getattr(resp, "candidates", None) or []
    if not cands:
        return None, ""
    content = getattr(cands[0], "content", None)
    parts = getattr(content, "parts", None) if content else None
    for part in parts or []:
        inline = getattr(part, "inline_data", None)
        if inline and getattr(inline, "data", None):
            data = inline.data
            mime = getattr(inline, "mime_type", "") or "image/png"
            if isinstance(data, bytes):
                return data, mime
            # some versions may base64-encode
            try:
                return base64.b64decode(data), mime
            except (ValueError, TypeError):
                continue
    return None, ""


def describe_config() -> Dict[str, Any]:
    return {
        "model": _model_name(),
        "timeout": _timeout(),
        "offline": _get_api_key() is None,
    }
