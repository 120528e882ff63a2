"""
Capture normalizer: raw scraped window text -> ordered chat turns.

Routing:
- app name containing "claude": Claude desktop
- browser apps: by the [BROWSER_URL] host (claude.ai, chatgpt.com /
  chat.openai.com, gemini.google.com); any other page yields no messages
- anything else: tagged lines if present, otherwise `User:` / `Assistant:`
"""

from __future__ import annotations

from typing import Optional

from loguru import logger

from .common import derive_session_id, extract_browser_url, host_matches, is_browser_app
from .plaintext import parse_plaintext
from .platforms import CHATGPT, CLAUDE_DESKTOP, CLAUDE_WEB, GEMINI, GENERIC
from .tagged import TaggedTextParser, has_role_tags
from .types import ParsedCapture, PlatformProfile

_BROWSER_ROUTES = (
    (("claude.ai",), CLAUDE_WEB),
    (("chatgpt.com", "chat.openai.com"), CHATGPT),
    (("gemini.google.com",), GEMINI),
)


def select_profile(app_name: str, raw_text: str) -> Optional[PlatformProfile]:
    """Profile for a capture, or None when the capture is not a chat."""
    if "claude" in (app_name or "").lower():
        return CLAUDE_DESKTOP
    if is_browser_app(app_name):
        url = extract_browser_url(raw_text)
        if not url:
            return None
        for domains, profile in _BROWSER_ROUTES:
            if host_matches(url, *domains):
                return profile
        return None
    return GENERIC


def parse_capture(raw_text: str, app_name: str, title: Optional[str] = None) -> ParsedCapture:
    profile = select_profile(app_name, raw_text)
    if profile is None:
        logger.debug(f"capture from {app_name!r} is not a supported chat page")
        return ParsedCapture(platform="unsupported", app_name=app_name, fallback_title=title)

    if profile is GENERIC and not has_role_tags(raw_text):
        return parse_plaintext(raw_text, app_name, fallback_title=title)

    return TaggedTextParser(profile).parse(raw_text, app_name, fallback_title=title)


__all__ = [
    "ParsedCapture",
    "PlatformProfile",
    "TaggedTextParser",
    "derive_session_id",
    "is_browser_app",
    "parse_capture",
    "parse_plaintext",
    "select_profile",
]
