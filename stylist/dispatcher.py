from __future__ import annotations

import asyncio
import logging
import uuid
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Sequence

from .llm.gemini import GenerationError, process_image_style
from .prompts import CUSTOM_EDIT_ERROR, CUSTOM_EDIT_LABEL, STYLES
from .state import FAILED, AppState, AppStatus, GenerationResult, SourceImage, StyleDefinition

logger = logging.getLogger(__name__)

# (base64 data, MIME type, instruction) -> image reference or None
Generate = Callable[[str, str, str], Awaitable[Optional[str]]]
Listener = Callable[[AppState], None]


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class StyleDispatcher:
    """Owns the app state and is its only writer.

    Every request updates its own entry, looked up by id, as soon as it
    settles; batch and single operations return only after all of their
    requests have settled.
    """

    def __init__(self, generate: Optional[Generate] = None) -> None:
        self.state = AppState()
        self._generate: Generate = generate or process_image_style
        self._listeners: List[Listener] = []
        self._active = 0

    # ------------------------- observers -------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self.state)

    async def stream(self, operation: Awaitable) -> AsyncIterator[AppState]:
        """Run ``operation`` and yield a snapshot after every state change."""
        changed = asyncio.Event()
        unsubscribe = self.subscribe(lambda _state: changed.set())
        task = asyncio.ensure_future(operation)
        try:
            while not task.done():
                waiter = asyncio.ensure_future(changed.wait())
                await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
                waiter.cancel()
                if changed.is_set():
                    changed.clear()
                    yield self.state.snapshot()
            task.result()
            yield self.state.snapshot()
        finally:
            unsubscribe()

    # ------------------------- image lifecycle -------------------------

    def upload_image(self, source: SourceImage) -> None:
        # earlier results stay until explicitly cleared
        self.state.source_image = source
        self.state.error = None
        logger.info("Source image set (%s, %d bytes)", source.mime_type, len(source.data))
        self._notify()

    def clear_image(self) -> None:
        self.state.source_image = None
        self.state.results = []
        self._notify()

    def set_custom_prompt(self, text: str) -> None:
        self.state.custom_prompt = text or ""

    # ------------------------- status -------------------------

    def _begin(self) -> None:
        self._active += 1
        self.state.status = AppStatus.PROCESSING
        self.state.error = None

    def _end(self) -> None:
        self._active -= 1
        if self._active == 0:
            self.state.status = AppStatus.IDLE

    @property
    def processing(self) -> bool:
        return self.state.status is AppStatus.PROCESSING

    # ------------------------- result list -------------------------

    def _replace(self, result_id: str, fn: Callable[[GenerationResult], GenerationResult]) -> bool:
        for i, item in enumerate(self.state.results):
            if item.id == result_id:
                self.state.results[i] = fn(item)
                return True
        logger.debug("Result %s is no longer listed; update dropped", result_id)
        return False

    def _remove(self, result_id: str) -> None:
        self.state.results = [r for r in self.state.results if r.id != result_id]

    def _abandon(self, result_ids, *, remove: bool) -> None:
        # entries whose request never settled, e.g. a listener raised first
        for item in list(self.state.results):
            if item.id in result_ids and item.is_loading:
                if remove:
                    self._remove(item.id)
                else:
                    self._replace(item.id, GenerationResult.fail)

    async def _call(self, source: SourceImage, instruction: str) -> str:
        url = await self._generate(source.encoded, source.mime_type, instruction)
        if not url or url == FAILED:
            raise GenerationError("image model returned no image")
        return url

    # ------------------------- operations -------------------------

    async def run_batch(self, styles: Sequence[StyleDefinition] = STYLES) -> List[GenerationResult]:
        """Generate every style concurrently, replacing the visible results.

        Failed styles stay listed with the failure sentinel. Returns the final
        entries of this batch, in input order, once all have settled.
        """
        source = self.state.source_image
        if source is None:
            return []
        styles = list(styles)
        if not styles:
            raise ValueError("run_batch needs at least one style")

        self._begin()
        placeholders = [GenerationResult(id=_new_id(f"style-{i}"), style=s.name) for i, s in enumerate(styles)]
        ids = [p.id for p in placeholders]
        self.state.results = placeholders

        async def _one(result_id: str, style: StyleDefinition) -> None:
            try:
                url = await self._call(source, style.prompt)
            except Exception:
                logger.warning("Failed to generate %s", style.name, exc_info=True)
                self._replace(result_id, GenerationResult.fail)
            else:
                self._replace(result_id, lambda item: item.succeed(url))
            self._notify()

        try:
            self._notify()
            outcomes = await asyncio.gather(*(_one(rid, s) for rid, s in zip(ids, styles)), return_exceptions=True)
        finally:
            self._abandon(set(ids), remove=False)
            self._end()
            self._notify()
        # requests never raise here; anything left came from a listener
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome

        by_id = {r.id: r for r in self.state.results}
        final = [by_id[rid] for rid in ids if rid in by_id]
        logger.info(
            "Batch settled: %d/%d succeeded",
            sum(1 for r in final if r.succeeded),
            len(styles),
        )
        return final

    async def run_single(self, instruction: Optional[str] = None) -> Optional[GenerationResult]:
        """Apply one free-text edit; the entry is prepended to the results.

        On failure the entry is removed again and ``state.error`` is set.
        The pending custom prompt is cleared whatever the outcome.
        """
        source = self.state.source_image
        text = self.state.custom_prompt if instruction is None else instruction
        if source is None or not text.strip():
            return None

        self._begin()
        entry = GenerationResult(id=_new_id("custom"), style=CUSTOM_EDIT_LABEL)
        self.state.results = [entry, *self.state.results]

        done: Optional[GenerationResult] = None
        try:
            self._notify()
            try:
                url = await self._call(source, text)
            except Exception:
                logger.warning("Custom edit failed: %r", text[:60], exc_info=True)
                self.state.error = CUSTOM_EDIT_ERROR
                self._remove(entry.id)
            else:
                if self._replace(entry.id, lambda item: item.succeed(url)):
                    done = entry.succeed(url)
        finally:
            self._abandon({entry.id}, remove=True)
            self._end()
            self.state.custom_prompt = ""
            self._notify()
        return done
