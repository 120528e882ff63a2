from __future__ import annotations

import re

from .types import PlatformProfile

CLAUDE_DESKTOP = PlatformProfile(name="claude-desktop")

# claude.ai in a browser; stored under one app name regardless of browser
CLAUDE_WEB = PlatformProfile(name="claude-web", app_name="Claude.ai")

CHATGPT = PlatformProfile(
    name="chatgpt",
    app_name="ChatGPT",
    noise_literals=frozenset({
        "chat history",
        "search chats",
        "images",
        "apps",
        "projects",
        "gpts",
        "explore gpts",
        "your chats",
        "new chat",
        "share",
        "skip to content",
        "settings",
        "help",
        "account",
        "upgrade",
        "plans",
        "billing",
        "log out",
        "logout",
        "chatgpt can make mistakes. check important info.",
        "cookie preferences",
        "improve",
        "reports",
        "critique",
        "write",
        "focus",
    }),
    noise_patterns=(re.compile(r"^chatgpt\s*\d"),),
    noise_prefixes=("chatgpt.com/", "chat.openai.com/"),
    role_labels=(
        ("you said:", "user"),
        ("you:", "user"),
        ("chatgpt said:", "assistant"),
        ("chatgpt:", "assistant"),
        ("assistant:", "assistant"),
    ),
)

GEMINI = PlatformProfile(
    name="gemini",
    app_name="Gemini",
    noise_literals=frozenset({
        "gemini",
        "chats",
        "new chat",
        "chat history",
        "history",
        "recent",
        "settings",
        "help",
        "feedback",
        "privacy",
        "terms",
        "apps",
        "extensions",
        "upload",
        "send",
        "stop",
        "regenerate",
        "share",
        "export",
        "sign in",
        "signed out",
        "gemini can make mistakes, so double-check it",
        "show thinking",
        "hide thinking",
        "improve",
        "reports",
        "critique",
        "write",
        "focus",
    }),
    noise_prefixes=("gemini.google.com/", "bard.google.com/"),
    role_labels=(
        ("you", "user"),
        ("you:", "user"),
        ("user:", "user"),
        ("gemini", "assistant"),
        ("gemini:", "assistant"),
        ("assistant:", "assistant"),
    ),
)

GENERIC = PlatformProfile(name="generic")
