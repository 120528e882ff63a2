"""
Untagged transcripts: `User:` / `Assistant:` prefixed turns, as pasted or
exported by hand. Lines before the first label are ignored.
"""

from __future__ import annotations

import re
from typing import List, Optional

from chatvault.memory.schema import CapturedMessage

from .types import ParsedCapture

_LABEL = re.compile(
    r"^\s*(?P<label>user|you|human|me|assistant|ai|bot|claude|chatgpt|gemini)\s*:\s?(?P<rest>.*)$",
    re.I,
)
_USER_LABELS = {"user", "you", "human", "me"}


def parse_plaintext(raw_text: str, app_name: str, fallback_title: Optional[str] = None) -> ParsedCapture:
    messages: List[CapturedMessage] = []
    role = ""
    content: List[str] = []

    def commit() -> None:
        text = "\n".join(content).strip()
        if role and text:
            messages.append(CapturedMessage(role=role, content=text))

    for line in (raw_text or "").split("\n"):
        m = _LABEL.match(line)
        if m:
            commit()
            role = "user" if m.group("label").lower() in _USER_LABELS else "assistant"
            content = [m.group("rest").strip()] if m.group("rest").strip() else []
        elif role:
            content.append(line.rstrip())

    commit()
    return ParsedCapture(platform="plaintext", app_name=app_name, messages=messages, fallback_title=fallback_title)
