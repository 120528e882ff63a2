"""
Capture normalizer tests
"""

from chatvault.memory.parsers import derive_session_id, parse_capture, select_profile
from chatvault.memory.parsers.common import host_matches, is_browser_app
from chatvault.memory.parsers.platforms import CHATGPT, CLAUDE_DESKTOP, CLAUDE_WEB, GEMINI, GENERIC


CLAUDE_CAPTURE = """[WINDOW_TITLE] Claude
[CHAT_TITLE] Postgres migration plan
[USER] We are moving the ledger to PostgreSQL next month.
[METADATA] 6:57 PM
[ASSISTANT] Good choice.
Here is a plan:
[ASSISTANT] 1. Dump the schema
[USER] Thanks, also I prefer short answers.
"""


class TestRouting:
    def test_claude_desktop_by_app_name(self):
        assert select_profile("Claude", "") is CLAUDE_DESKTOP

    def test_browser_routed_by_url_host(self):
        assert select_profile("Google Chrome", "[BROWSER_URL] https://claude.ai/chat/1") is CLAUDE_WEB
        assert select_profile("Arc", "[BROWSER_URL] chatgpt.com/c/abc") is CHATGPT
        assert select_profile("Safari", "[BROWSER_URL] chat.openai.com/c/abc") is CHATGPT
        assert select_profile("Firefox", "[BROWSER_URL] gemini.google.com/app/1") is GEMINI

    def test_browser_on_other_page_is_unsupported(self):
        assert select_profile("Google Chrome", "[BROWSER_URL] https://news.ycombinator.com") is None
        assert select_profile("Google Chrome", "no url here") is None
        # lookalike hosts do not match
        assert not host_matches("https://notclaude.ai/x", "claude.ai")

    def test_other_apps_are_generic(self):
        assert select_profile("Terminal", "") is GENERIC
        assert is_browser_app("Microsoft Edge")


class TestClaude:
    def test_turns_titles_and_timestamps(self):
        parsed = parse_capture(CLAUDE_CAPTURE, "Claude", "Claude")
        assert parsed.platform == "claude-desktop"
        assert parsed.title == "Postgres migration plan"
        assert parsed.session_id == "claude-postgres-migration-plan"
        assert [(x.role, x.content) for x in parsed.messages] == [
            ("user", "We are moving the ledger to PostgreSQL next month."),
            ("assistant", "Good choice.\nHere is a plan:\n1. Dump the schema"),
            ("user", "Thanks, also I prefer short answers."),
        ]
        # the last seen time is attached when a turn is closed
        assert [x.timestamp for x in parsed.messages] == ["6:57 PM", "6:57 PM", "6:57 PM"]
        assert parse_capture("[USER] hello", "Claude").messages[0].timestamp is None

    def test_fallback_title(self):
        parsed = parse_capture("[USER] hello", "Claude", "Window Title")
        assert parsed.title == "Window Title"
        parsed = parse_capture("[USER] hello", "Claude", None)
        assert parsed.title == "Untitled Chat"

    def test_claude_web_uses_fixed_app_name(self):
        raw = "[BROWSER_URL] https://claude.ai/chat/9\n[CHAT_TITLE] Trip\n[USER] Planning Lisbon"
        parsed = parse_capture(raw, "Google Chrome", "Claude - Chrome")
        assert parsed.app_name == "Claude.ai"
        assert parsed.session_id == "claudeai-trip"


class TestChatGPT:
    def test_labels_switch_roles_and_noise_is_dropped(self):
        raw = "\n".join([
            "[BROWSER_URL] chatgpt.com/c/abc",
            "[CHAT_TITLE] Team Context Reminder",
            "New chat",
            "[USER] You said:",
            "[USER] Remind me what the team decided about retries",
            "[ASSISTANT] ChatGPT said:",
            "[ASSISTANT] You decided on three retries with backoff.",
            "Share",
            "ChatGPT can make mistakes. Check important info.",
        ])
        parsed = parse_capture(raw, "Brave Browser", None)
        assert parsed.platform == "chatgpt"
        assert parsed.app_name == "ChatGPT"
        assert [(x.role, x.content) for x in parsed.messages] == [
            ("user", "Remind me what the team decided about retries"),
            ("assistant", "You decided on three retries with backoff."),
        ]


class TestGemini:
    def test_bare_labels(self):
        raw = "\n".join([
            "[BROWSER_URL] https://gemini.google.com/app/x",
            "[CHAT_TITLE] Garden",
            "You",
            "How deep should tomato beds be?",
            "Gemini",
            "About 30 cm.",
            "Show thinking",
        ])
        parsed = parse_capture(raw, "Google Chrome", None)
        assert parsed.app_name == "Gemini"
        assert [(x.role, x.content) for x in parsed.messages] == [
            ("user", "How deep should tomato beds be?"),
            ("assistant", "About 30 cm."),
        ]


class TestUnsupportedAndPlaintext:
    def test_unsupported_page_has_no_messages(self):
        parsed = parse_capture("[BROWSER_URL] example.com\n[USER] hi", "Google Chrome", "x")
        assert parsed.platform == "unsupported"
        assert parsed.messages == []

    def test_plaintext_transcript(self):
        raw = "preamble ignored\nUser: I run a bakery\nin Porto\nAssistant: Nice!\nMe: thanks"
        parsed = parse_capture(raw, "Notes", "Bakery chat")
        assert parsed.platform == "plaintext"
        assert [(x.role, x.content) for x in parsed.messages] == [
            ("user", "I run a bakery\nin Porto"),
            ("assistant", "Nice!"),
            ("user", "thanks"),
        ]
        assert parsed.session_id == derive_session_id("Notes", "Bakery chat")

    def test_session_id_slug(self):
        assert derive_session_id("Google Chrome", "My Chat: v2!") == "googlechrome-my-chat--v2-"
        assert len(derive_session_id("Claude", "x" * 200)) == len("claude-") + 60
