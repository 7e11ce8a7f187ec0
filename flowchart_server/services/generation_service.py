"""Flowchart document generation.

Builds the prompt, calls the text-completion provider and strips Markdown code
fences from the answer. The returned document is not validated: whatever the
model produced, minus the fences, is passed on.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from flowchart_server.adapters.llm.base import AbstractLLMClient
from flowchart_server.core.config import LLMSettings
from flowchart_server.core.errors import empty_input, generation_failed

logger = logging.getLogger(__name__)

# Example page shown to the model; the generated page should follow its shape.
EXAMPLE_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>Flowchart</title>
    <style>
        body { margin: 0; font-family: Arial, sans-serif; display: flex; flex-direction: column; height: 100vh; }
        #toolbar { padding: 8px; background: #f4f4f4; border-bottom: 1px solid #ccc; display: flex; gap: 8px; }
        #toolbar button { padding: 4px 12px; cursor: pointer; }
        #chart { flex: 1; overflow: hidden; }
    </style>
</head>
<body>
    <div id="toolbar">
        <button id="zoom-in">+</button>
        <button id="zoom-out">-</button>
        <button id="reset">Reset</button>
    </div>
    <div id="chart"></div>
    <script src="https://cdn.jsdelivr.net/npm/mermaid/dist/mermaid.min.js"></script>
    <script src="https://cdn.jsdelivr.net/npm/svg-pan-zoom/dist/svg-pan-zoom.min.js"></script>
    <script>
        mermaid.initialize({ startOnLoad: false, flowchart: { useMaxWidth: false } });
        const definition = `graph TD
    A[Start] --> B[End]`;
        async function render() {
            const target = document.getElementById('chart');
            const { svg } = await mermaid.render('flowchart', definition);
            target.innerHTML = svg.replace(/max-width:[0-9.]*px;/i, '');
            const panZoom = svgPanZoom('#flowchart', { zoomEnabled: true, controlIconsEnabled: false, fit: true, center: true });
            document.getElementById('zoom-in').onclick = () => panZoom.zoomIn();
            document.getElementById('zoom-out').onclick = () => panZoom.zoomOut();
            document.getElementById('reset').onclick = () => { panZoom.resetZoom(); panZoom.center(); };
        }
        window.addEventListener('load', render);
    </script>
</body>
</html>"""


def build_prompt(code: str) -> str:
    """Build the generation prompt for a code snippet.

    Args:
        code: Source code exactly as submitted.

    Returns:
        Prompt with the fixed instructions, the example page and the code.
    """
    return f"""
For the given code, generate an HTML page that uses the Mermaid library to draw an appropriate flowchart, with zoom and pan controls.
The flowchart must be clear and easy to follow, with meaningful labels and connections.
** Return nothing but the code. **
** The code must be a complete HTML page. **

Example:
{EXAMPLE_PAGE}

Now convert this code:
{code}
""".strip()


_OPENING_FENCE = re.compile(r"^```[\w.+-]*[ \t]*(?:\r?\n)?")
_CLOSING_FENCE = re.compile(r"(?:\r?\n)?```$")


def strip_code_fences(text: str) -> str:
    """Remove a wrapping Markdown code fence and surrounding whitespace.

    A leading fence may carry a language tag (```html). Either fence may be
    missing; text without fences is only trimmed.
    """
    text = text.strip()
    text = _OPENING_FENCE.sub("", text, count=1)
    text = _CLOSING_FENCE.sub("", text, count=1)
    return text.strip()


def ensure_code(code: str) -> None:
    """Reject empty or whitespace-only input.

    Raises:
        ValidationAppError: ``empty_input``.
    """
    if not code or not code.strip():
        raise empty_input()


@dataclass(frozen=True)
class GenerationConfig:
    """Sampling options sent with every completion request."""

    temperature: float = 0.5
    max_tokens: int = 5000
    top_p: float = 0.95
    top_k: int | None = None

    @classmethod
    def from_settings(cls, llm_settings: LLMSettings) -> "GenerationConfig":
        return cls(
            temperature=llm_settings.temperature,
            max_tokens=llm_settings.max_tokens,
            top_p=llm_settings.top_p,
            top_k=llm_settings.top_k,
        )


class GenerationService:
    """Turns source code into a flowchart page using an LLM.

    Attributes:
        llm: LLM client adapter.
        config: Sampling options.
    """

    def __init__(self, llm: AbstractLLMClient, config: GenerationConfig | None = None) -> None:
        self.llm = llm
        self.config = config or GenerationConfig()

    async def generate(self, code: str) -> str:
        """Generate the flowchart document for ``code``.

        Raises:
            ValidationAppError: ``empty_input`` before any provider call.
            LLMAppError: ``generation_failed`` when the provider call fails for
                any reason. The provider error is logged, never returned.
        """
        ensure_code(code)

        prompt = build_prompt(code)
        try:
            raw = await self.llm.generate_text(
                prompt,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
                top_p=self.config.top_p,
                top_k=self.config.top_k,
            )
        except Exception as exc:
            logger.error(
                "generation.failed",
                extra={
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                    "code_chars": len(code),
                },
            )
            raise generation_failed() from exc

        document = strip_code_fences(raw)
        logger.info(
            "generation.completed",
            extra={
                "code_chars": len(code),
                "raw_chars": len(raw),
                "document_chars": len(document),
            },
        )
        return document
