from chatvault.memory.dedup import find_insert_start, new_messages, signature
from chatvault.memory.schema import CapturedMessage


def m(role, content, ts=None):
    return CapturedMessage(role=role, content=content, timestamp=ts)


def test_signature_normalises_role_and_missing_timestamp():
    assert signature(m("USER", "hi")) == "user||hi"
    assert signature({"role": "assistant", "content": "x", "timestamp": "9:00"}) == "assistant|9:00|x"


def test_nothing_stored_everything_new():
    assert find_insert_start([], [m("user", "a")]) == 0


def test_empty_incoming_is_none():
    assert find_insert_start([m("user", "a")], []) is None


def test_resumes_after_last_stored_message():
    stored = [m("user", "a"), m("assistant", "b")]
    incoming = [m("user", "a"), m("assistant", "b"), m("user", "c"), m("assistant", "d")]
    assert find_insert_start(stored, incoming) == 2
    assert [x.content for x in new_messages(stored, incoming)] == ["c", "d"]


def test_identical_capture_inserts_nothing():
    stored = [m("user", "a"), m("assistant", "b")]
    assert find_insert_start(stored, list(stored)) is None


def test_scrolled_window_still_finds_anchor():
    stored = [m("user", "a"), m("assistant", "b"), m("user", "c")]
    incoming = [m("user", "c"), m("assistant", "d")]
    assert find_insert_start(stored, incoming) == 1


def test_repeated_content_uses_last_occurrence():
    stored = [m("user", "ok go on")]
    incoming = [m("user", "ok go on"), m("assistant", "x"), m("user", "ok go on"), m("assistant", "y")]
    assert find_insert_start(stored, incoming) == 3


def test_fallback_first_unknown_message():
    stored = [m("user", "a"), m("assistant", "b")]
    # last stored message no longer visible, earlier one still is
    incoming = [m("user", "a"), m("user", "new")]
    assert find_insert_start(stored, incoming) == 1


def test_all_known_but_anchor_missing():
    stored = [m("user", "a"), m("assistant", "b")]
    assert find_insert_start(stored, [m("user", "a")]) is None


def test_timestamp_is_part_of_identity():
    stored = [m("user", "a", "9:00")]
    assert find_insert_start(stored, [m("user", "a", "9:05")]) == 0


def test_works_on_stored_rows_as_dicts():
    stored = [{"role": "user", "content": "a", "timestamp": None}]
    assert find_insert_start(stored, [m("user", "a"), m("assistant", "b")]) == 1
