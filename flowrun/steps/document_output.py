"""Handler that synthesizes a document artifact from upstream output."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, Optional

from ..constants import DOCUMENT_CONTENT_KEYS
from ..contracts import (
    DocumentOutputStep,
    StepCompleted,
    StepContext,
    StepOutcome,
    utc_now,
)
from .base import StepHandler


def _content_of(output: Any) -> Optional[str]:
    if isinstance(output, str):
        return output or None
    if isinstance(output, Mapping):
        for key in DOCUMENT_CONTENT_KEYS:
            value = output.get(key)
            if isinstance(value, str) and value:
                return value
    return None


def extract_content(context: StepContext) -> str:
    """Prefer the most recent upstream output that carries text content.

    Falls back to a plain rendering of every upstream output.
    """
    for output in reversed(list(context.outputs.values())):
        content = _content_of(output)
        if content is not None:
            return content

    sections = []
    for step_id, output in context.outputs.items():
        body = output if isinstance(output, str) else json.dumps(output, default=str, indent=2)
        sections.append(f"## {step_id}\n\n{body}")
    return "\n\n".join(sections)


class DocumentOutputHandler(StepHandler):
    """Builds the artifact in-process; persisting it is left to the caller."""

    step_type = DocumentOutputStep

    async def execute(
        self, step: DocumentOutputStep, context: StepContext
    ) -> StepOutcome:
        now = utc_now()
        title = step.document_title or f"{context.workflow_title} — {now.date().isoformat()}"
        return StepCompleted(
            output={
                "title": title,
                "content": extract_content(context),
                "folder_id": step.document_folder_id,
                "source_step_ids": list(context.outputs),
                "created_at": now.isoformat(),
            }
        )
