from __future__ import annotations

import logging
import os
from typing import Any, Tuple

import gradio as gr

from stylist.dispatcher import StyleDispatcher
from stylist.llm.gemini import describe_config
from stylist.render import gallery_items
from stylist.state import AppState, AppStatus, SourceImage

logger = logging.getLogger(__name__)

_Outputs = Tuple[Any, Any, Any, Any, Any]


def _error_view(state: AppState) -> Any:
    if state.error:
        return gr.update(value=f"**{state.error}**", visible=True)
    return gr.update(value="", visible=False)


def view(state: AppState, *, clear_prompt: bool = False) -> _Outputs:
    """Gallery, error banner, both trigger buttons, custom prompt box."""
    busy = state.status is AppStatus.PROCESSING
    has_image = state.source_image is not None
    return (
        gallery_items(state.results),
        _error_view(state),
        gr.update(interactive=has_image and not busy),
        gr.update(interactive=has_image and not busy and bool(state.custom_prompt.strip())),
        gr.update(value="") if clear_prompt else gr.update(),
    )


def on_upload(path: str, dispatcher: StyleDispatcher):
    if not path:
        dispatcher.clear_image()
        return (dispatcher, *view(dispatcher.state))
    try:
        source = SourceImage.from_path(path)
    except ValueError as e:
        logger.info("Rejected upload %s: %s", path, e)
        raise gr.Error(str(e))
    dispatcher.upload_image(source)
    return (dispatcher, *view(dispatcher.state))


def on_clear(dispatcher: StyleDispatcher):
    dispatcher.clear_image()
    return (dispatcher, *view(dispatcher.state))


def on_prompt_change(text: str, dispatcher: StyleDispatcher):
    dispatcher.set_custom_prompt(text)
    return view(dispatcher.state)[3]


async def on_generate(dispatcher: StyleDispatcher):
    if dispatcher.state.source_image is None:
        raise gr.Error("Upload an image first.")
    async for snapshot in dispatcher.stream(dispatcher.run_batch()):
        yield view(snapshot)


async def on_custom_edit(text: str, dispatcher: StyleDispatcher):
    if dispatcher.state.source_image is None or not (text or "").strip():
        yield view(dispatcher.state)
        return
    dispatcher.set_custom_prompt(text)
    async for snapshot in dispatcher.stream(dispatcher.run_single()):
        yield view(snapshot, clear_prompt=not snapshot.custom_prompt)


def app() -> gr.Blocks:
    cfg = describe_config()
    offline_note = (
        "\n- Offline: no `GEMINI_API_KEY` set, results are local placeholders."
        if cfg["offline"]
        else ""
    )
    with gr.Blocks(title="Gemini Stylist") as demo:
        gr.Markdown(f"""
        # Gemini Stylist
        Transform your photos into 5 artistic masterpieces.
        - Model: `{cfg["model"]}`{offline_note}
        """)

        dispatcher = gr.State(StyleDispatcher)

        source = gr.Image(label="Source Image", type="filepath", sources=["upload"], height=360)
        with gr.Row():
            generate_btn = gr.Button("Generate 5 Different Styles", variant="primary", interactive=False)
            custom_prompt = gr.Textbox(
                show_label=False,
                placeholder="E.g., 'Add a retro filter' or 'Convert to a sketch'...",
                scale=3,
            )
            apply_btn = gr.Button("Apply Custom Edit", interactive=False)
        error = gr.Markdown(visible=False)
        gallery = gr.Gallery(label="Creations", columns=3, object_fit="cover", height="auto")

        view_outputs = [gallery, error, generate_btn, apply_btn, custom_prompt]

        source.upload(on_upload, inputs=[source, dispatcher], outputs=[dispatcher, *view_outputs])
        source.clear(on_clear, inputs=[dispatcher], outputs=[dispatcher, *view_outputs])
        generate_btn.click(on_generate, inputs=[dispatcher], outputs=view_outputs, concurrency_limit=None)
        apply_btn.click(on_custom_edit, inputs=[custom_prompt, dispatcher], outputs=view_outputs, concurrency_limit=None)
        custom_prompt.change(on_prompt_change, inputs=[custom_prompt, dispatcher], outputs=[apply_btn])
        custom_prompt.submit(on_custom_edit, inputs=[custom_prompt, dispatcher], outputs=view_outputs, concurrency_limit=None)

    return demo


if __name__ == "__main__":
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
    port = int(os.getenv("PORT", "7860"))
    app().launch(server_name="0.0.0.0", server_port=port)
