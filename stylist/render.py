from __future__ import annotations

import base64
import io
from typing import Callable, Iterable, List, Optional, Tuple

from PIL import Image, ImageDraw, ImageEnhance, ImageFilter, ImageFont, ImageOps

from .prompts import STYLE_ERROR
from .state import GenerationResult

TILE_SIZE = 512

_BG = (30, 41, 59)
_FG = (148, 163, 184)
_ERR = (248, 113, 113)


def decode_data_url(url: str) -> Image.Image:
    """Open a ``data:<mime>;base64,<payload>`` reference as a Pillow image."""
    header, sep, payload = url.partition(",")
    if not sep or not header.startswith("data:") or ";base64" not in header:
        raise ValueError("not a base64 data URL")
    img = Image.open(io.BytesIO(base64.b64decode(payload)))
    img.load()
    return img


def placeholder_tile(text: str, color: Tuple[int, int, int] = _FG, size: int = TILE_SIZE) -> Image.Image:
    img = Image.new("RGB", (size, size), _BG)
    draw = ImageDraw.Draw(img)
    font = _font(22)
    lines = _wrap(draw, text, font, size - 60)
    line_h = font.size + 8 if hasattr(font, "size") else 20
    y = (size - line_h * len(lines)) / 2
    for ln in lines:
        tw = draw.textlength(ln, font=font)
        draw.text(((size - tw) / 2, y), ln, fill=color, font=font)
        y += line_h
    return img


def gallery_items(results: Iterable[GenerationResult]) -> List[Tuple[Image.Image, str]]:
    """(image, caption) pairs in display order, one per result."""
    items: List[Tuple[Image.Image, str]] = []
    for r in results:
        if r.is_loading:
            items.append((placeholder_tile("STYLIZING..."), r.style))
        elif r.failed:
            items.append((placeholder_tile(STYLE_ERROR, color=_ERR), r.style))
        else:
            try:
                items.append((decode_data_url(r.url), r.style))
            except (ValueError, OSError):
                items.append((placeholder_tile(STYLE_ERROR, color=_ERR), r.style))
    return items


# ------------------------- offline stylization -------------------------

def _cyberpunk(img: Image.Image) -> Image.Image:
    gray = ImageOps.grayscale(img)
    return ImageOps.colorize(gray, black=(20, 0, 60), white=(0, 255, 220), mid=(255, 0, 160))


def _oil(img: Image.Image) -> Image.Image:
    smooth = img.filter(ImageFilter.ModeFilter(size=7)).filter(ImageFilter.SMOOTH_MORE)
    return ImageEnhance.Color(smooth).enhance(1.4)


def _sketch(img: Image.Image) -> Image.Image:
    edges = ImageOps.grayscale(img).filter(ImageFilter.FIND_EDGES)
    return ImageOps.invert(ImageOps.autocontrast(edges)).convert("RGB")


def _anime(img: Image.Image) -> Image.Image:
    return ImageEnhance.Color(ImageOps.posterize(img, 3)).enhance(1.3)


def _clay(img: Image.Image) -> Image.Image:
    return Image.blend(img, img.filter(ImageFilter.EMBOSS), 0.4)


_OFFLINE_FILTERS: List[Tuple[Tuple[str, ...], Callable[[Image.Image], Image.Image]]] = [
    (("cyberpunk", "neon"), _cyberpunk),
    (("oil", "painting"), _oil),
    (("sketch", "pencil", "charcoal"), _sketch),
    (("ghibli", "anime"), _anime),
    (("3d", "claymation", "render"), _clay),
]


def stylize_offline(data: bytes, prompt: str) -> bytes:
    """Approximate a style locally with Pillow filters; returns PNG bytes."""
    img = Image.open(io.BytesIO(data)).convert("RGB")
    img.thumbnail((1024, 1024))
    lowered = prompt.lower()
    out = ImageOps.autocontrast(img)
    for keywords, fn in _OFFLINE_FILTERS:
        if any(k in lowered for k in keywords):
            out = fn(img)
            break

    draw = ImageDraw.Draw(out)
    font = _font(16)
    draw.rectangle([0, out.height - 28, 90, out.height], fill=_BG)
    draw.text((10, out.height - 24), "offline", fill=_FG, font=font)

    buf = io.BytesIO()
    out.save(buf, format="PNG")
    return buf.getvalue()


def _font(size: int):
    try:
        return ImageFont.truetype("DejaVuSans.ttf", size)
    except OSError:
        return ImageFont.load_default()


def _wrap(draw: ImageDraw.ImageDraw, text: str, font, max_w: float) -> List[str]:
    lines: List[str] = []
    line: Optional[str] = None
    for word in text.split():
        candidate = word if line is None else f"{line} {word}"
        if line is not None and draw.textlength(candidate, font=font) > max_w:
            lines.append(line)
            line = word
        else:
            line = candidate
    if line:
        lines.append(line)
    return lines or [""]
