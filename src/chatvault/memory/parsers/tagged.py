"""
Line-tagged scraper output.

The scraper emits one line per text node, tagged with what it recognised:

    [WINDOW_TITLE] ChatGPT - Brave
    [BROWSER_URL] chatgpt.com/c/abc123
    [CHAT_TITLE] Team Context Reminder
    [METADATA] 10:42
    [USER] first line of a user turn
    [ASSISTANT] first line of an assistant turn
    an untagged continuation line

Consecutive lines of the same role are joined into one turn. Platforms that
render "You said:" style labels in the page text can switch roles by label.
"""

from __future__ import annotations

import re
from typing import List, Optional, Tuple

from chatvault.memory.schema import CapturedMessage

from .types import ParsedCapture, PlatformProfile

_LEADING_TAG = re.compile(r"^\[.*?\]\s*")
_TIME = re.compile(r"\d{1,2}:\d{2}")

_TITLE_TAGS = {
    "[WINDOW_TITLE]": "window_title",
    "[BROWSER_URL]": "browser_url",
    "[CHAT_TITLE]": "chat_title",
}
_ROLE_TAGS = (("[USER]", "user"), ("[ASSISTANT]", "assistant"))


class TaggedTextParser:
    def __init__(self, profile: PlatformProfile):
        self.profile = profile

    def _keep(self, text: str) -> bool:
        if not text:
            return False
        return not (self.profile.filters_noise and self.profile.is_noise(text))

    def _detect_label(self, value: str) -> Optional[Tuple[str, str]]:
        lower = value.lower()
        for label, role in self.profile.role_labels:
            if lower == label:
                return role, ""
            if lower.startswith(label + " "):
                return role, value[len(label):].strip()
        return None

    def parse(self, raw_text: str, app_name: str, fallback_title: Optional[str] = None) -> ParsedCapture:
        result = ParsedCapture(
            platform=self.profile.name,
            app_name=self.profile.app_name or app_name,
            fallback_title=fallback_title,
        )
        messages: List[CapturedMessage] = []
        role = ""
        content: List[str] = []
        last_timestamp = ""

        def commit() -> None:
            if role and content:
                text = "\n".join(content).strip()
                if self._keep(text):
                    messages.append(CapturedMessage(role=role, content=text, timestamp=last_timestamp or None))

        for line in (raw_text or "").split("\n"):
            trimmed = line.strip()

            if self.profile.role_labels:
                label = self._detect_label(_LEADING_TAG.sub("", trimmed).strip())
                if label:
                    commit()
                    role, remainder = label
                    content = [remainder] if self._keep(remainder) else []
                    continue

            tag = next((t for t in _TITLE_TAGS if trimmed.startswith(t)), None)
            if tag:
                setattr(result, _TITLE_TAGS[tag], trimmed.replace(tag, "", 1).strip() or None)
                continue
            if trimmed.startswith("[TITLE]"):
                continue
            if trimmed.startswith("[METADATA]"):
                time_str = trimmed.replace("[METADATA]", "", 1).strip()
                if _TIME.search(time_str):
                    last_timestamp = time_str
                continue

            role_tag = next(((t, r) for t, r in _ROLE_TAGS if trimmed.startswith(t)), None)
            if role_tag:
                tag, tag_role = role_tag
                next_content = trimmed.replace(tag, "", 1).strip()
                if role == tag_role:
                    if self._keep(next_content):
                        content.append(next_content)
                else:
                    commit()
                    role = tag_role
                    content = [next_content] if self._keep(next_content) else []
            elif role:
                clean = re.sub(r"^\[.*?\]", "", trimmed).strip()
                if self._keep(clean):
                    content.append(clean)

        commit()
        result.messages = messages
        return result


def has_role_tags(raw_text: str) -> bool:
    return any(
        line.lstrip().startswith(("[USER]", "[ASSISTANT]"))
        for line in (raw_text or "").split("\n")
    )
