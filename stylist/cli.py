from __future__ import annotations

import argparse
import asyncio
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from . import archive
from .dispatcher import StyleDispatcher
from .llm.gemini import describe_config
from .prompts import STYLES, style_by_name
from .state import GenerationResult, SourceImage


def _default_outdir() -> str:
    return f"artifacts/run_{datetime.now().strftime('%Y%m%d_%H%M%S')}"


async def _run(dispatcher: StyleDispatcher, instruction: str, styles) -> List[GenerationResult]:
    if instruction:
        await dispatcher.run_single(instruction)
        return list(dispatcher.state.results)
    return await dispatcher.run_batch(styles)


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Gemini Stylist: restyle a photo with Gemini image models")
    parser.add_argument("--image", type=str, required=True, help="Path to the source photo (PNG, JPG or WebP, max 5MB)")
    parser.add_argument("--instruction", type=str, default="", help="Custom edit instruction; omit to run the preset styles")
    parser.add_argument("--style", action="append", default=None, help="Preset style name (repeatable); default is all five")
    parser.add_argument("--outdir", type=str, default="", help="Output directory (optional)")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    image_path = Path(args.image)
    if not image_path.exists():
        raise SystemExit(f"Image not found: {image_path}")
    try:
        source = SourceImage.from_path(image_path)
        styles = [style_by_name(s) for s in args.style] if args.style else list(STYLES)
    except ValueError as e:
        raise SystemExit(str(e))

    logging.getLogger(__name__).info("Gemini config: %s", describe_config())

    dispatcher = StyleDispatcher()
    dispatcher.upload_image(source)
    results = asyncio.run(_run(dispatcher, args.instruction.strip(), styles))

    if dispatcher.state.error:
        print(dispatcher.state.error)
    for r in results:
        print(f"{r.style:<16} {'ok' if r.succeeded else 'FAILED'}")

    outdir = args.outdir or _default_outdir()
    saved = archive.run(results, outdir)
    print(f"Artifacts saved under: {outdir}")
    if not saved:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
