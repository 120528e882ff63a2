from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urlsplit

_APP_UNSAFE = re.compile(r"[^a-zA-Z0-9]")
_TITLE_UNSAFE = re.compile(r"[^a-zA-Z0-9\-_]")
_HAS_SCHEME = re.compile(r"^[a-z]+://", re.I)

MAX_TITLE_SLUG = 60

BROWSER_TOKENS = (
    "chrome",
    "google chrome",
    "brave",
    "arc",
    "safari",
    "firefox",
    "edge",
    "microsoft edge",
    "opera",
)


def derive_session_id(app_name: str, title: str) -> str:
    """Stable conversation id from app name and chat title."""
    safe_app = _APP_UNSAFE.sub("", app_name or "").lower()
    safe_title = _TITLE_UNSAFE.sub("-", title or "").lower()[:MAX_TITLE_SLUG]
    return f"{safe_app}-{safe_title}"


def is_browser_app(app_name: str) -> bool:
    name = (app_name or "").lower()
    return any(token in name for token in BROWSER_TOKENS)


def extract_browser_url(raw_text: str) -> Optional[str]:
    for line in (raw_text or "").split("\n"):
        trimmed = line.strip()
        if trimmed.startswith("[BROWSER_URL]"):
            return trimmed.replace("[BROWSER_URL]", "", 1).strip() or None
    return None


def hostname_of(url: str) -> str:
    raw = (url or "").strip()
    if not raw:
        return ""
    with_scheme = raw if _HAS_SCHEME.match(raw) else f"https://{raw}"
    try:
        return (urlsplit(with_scheme).hostname or "").lower()
    except ValueError:
        return ""


def host_matches(url: str, *domains: str) -> bool:
    host = hostname_of(url)
    return any(host == d or host.endswith("." + d) for d in domains)
