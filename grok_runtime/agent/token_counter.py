"""Display-only token estimate; never used for request shaping."""
from __future__ import annotations

import json
from typing import Iterable

from grok_runtime.agent.messages import Message, TextPart, ToolCallPart, ToolResultPart

CHARS_PER_TOKEN = 3.5


def estimate_tokens(messages: Iterable[Message]) -> int:
    """Rough token estimate: total chars / 3.5."""
    total_chars = 0
    for msg in messages:
        for part in msg.parts:
            if isinstance(part, TextPart):
                total_chars += len(part.text)
            elif isinstance(part, ToolCallPart):
                total_chars += len(part.name) + len(json.dumps(part.input))
            elif isinstance(part, ToolResultPart):
                total_chars += len(part.output.value)
    return int(total_chars / CHARS_PER_TOKEN)


def estimate_text_tokens(text: str) -> int:
    return int(len(text) / CHARS_PER_TOKEN)
