from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Iterable, List

from .render import decode_data_url
from .state import GenerationResult


def _slug(style: str) -> str:
    return re.sub(r"[^A-Za-z0-9]+", "-", style).strip("-") or "image"


def run(results: Iterable[GenerationResult], outdir: str | Path) -> List[Path]:
    """Save each succeeded result as ``stylized-<style>.png`` under outdir.

    A summary of all entries, including failed ones, goes to results.json.
    """
    out = Path(outdir)
    out.mkdir(parents=True, exist_ok=True)

    saved: List[Path] = []
    summary = []
    used: set[str] = set()
    for r in results:
        entry = {"id": r.id, "style": r.style, "status": "succeeded" if r.succeeded else "failed" if r.failed else "loading"}
        if r.succeeded:
            name = f"stylized-{_slug(r.style)}"
            # custom edits may repeat a label
            stem, n = name, 2
            while name in used:
                name = f"{stem}-{n}"
                n += 1
            used.add(name)
            dst = out / f"{name}.png"
            decode_data_url(r.url).save(dst, format="PNG")
            saved.append(dst)
            entry["file"] = dst.name
        summary.append(entry)

    (out / "results.json").write_text(json.dumps(summary, ensure_ascii=False, indent=2))
    return saved
