from __future__ import annotations

# Hugging Face Spaces entrypoint: HF serves the module-level `demo`.

import logging
import os

from scripts.gradio_app import app as create_app

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())

demo = create_app().queue()
