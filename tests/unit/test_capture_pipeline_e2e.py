"""
Capture -> background batch -> memories, summary, entities, master memory.
"""

import pytest

from chatvault.core.errors import LLMError
from chatvault.infrastructure.event_log import (
    NEW_ENTITY,
    NEW_MEMORY,
    NEW_MESSAGES,
    SUMMARY_GENERATED,
)
from chatvault.memory.schema import CaptureEvent

from .fakes import (
    ENTITY_EXTRACTION,
    ENTITY_SUMMARY,
    MASTER_INCREMENTAL,
    MASTER_INITIAL,
    MEMORY_FILTER,
    SESSION_SUMMARY,
    as_json,
)

SESSION_ID = "notes-lisbon-chat"

TRANSCRIPT = (
    "User: I moved to Lisbon last spring and I work remotely as a data engineer.\n"
    "Assistant: Lisbon is a great base for remote work, with a strong tech scene and mild weather."
)

FOLLOW_UP = "\nUser: My team standardised on PostgreSQL 16 for every new service this year."


def classify(prompt):
    if "Role: user" not in prompt:
        return as_json({"store": False})
    if "PostgreSQL" in prompt:
        return as_json({"store": True, "name": "Database", "memory": "User's team runs PostgreSQL 16 for new services"})
    return as_json({"store": True, "name": "Home", "memory": "User lives in Lisbon and works remotely as a data engineer"})


@pytest.fixture
def scripted(fake_llm):
    fake_llm.on(MEMORY_FILTER, classify)
    fake_llm.on(SESSION_SUMMARY, "User is a remote data engineer living in Lisbon.")
    fake_llm.on(ENTITY_EXTRACTION, as_json({"entities": [
        {"name": "Lisbon", "type": "Place", "facts": ["User lives there"]},
    ]}))
    fake_llm.on(ENTITY_SUMMARY, "City where the user lives.")
    fake_llm.on(MASTER_INITIAL, "## About the User\nRemote data engineer in Lisbon.")
    fake_llm.on(MASTER_INCREMENTAL, "## About the User\nRemote data engineer in Lisbon. Uses PostgreSQL 16.")
    return fake_llm


def capture(raw=TRANSCRIPT):
    return CaptureEvent(app_name="Notes", title="Lisbon chat", raw_text=raw)


@pytest.mark.asyncio
async def test_full_flow(services, scripted, event_log):
    outcome = await services.capture.ingest_capture(capture())

    assert outcome.session_id == SESSION_ID
    assert outcome.platform == "plaintext"
    assert outcome.parsed == 2
    assert len(outcome.inserted) == 2
    assert outcome.job is not None

    results = await services.capture.drain()
    assert services.capture.pending_jobs == 0
    assert len(results) == 1
    result = results[0]
    assert not result.failed()
    assert [s.status for s in result.stages] == ["success"] * 4

    memories = services.memories.list_session_memories(SESSION_ID)
    assert [m["content"] for m in memories] == ["User lives in Lisbon and works remotely as a data engineer"]
    assert memories[0]["message_id"] == outcome.inserted[0]["id"]
    assert services.summaries.get_summary(SESSION_ID) == "User is a remote data engineer living in Lisbon."
    lisbon = services.graph.list_entities()[0]
    assert lisbon["name"] == "Lisbon"
    assert lisbon["summary"] == "City where the user lives."
    assert services.summaries.get_master()["content"] == "## About the User\nRemote data engineer in Lisbon."

    assert event_log.last(NEW_MESSAGES)["payload"]["count"] == 2
    assert len(event_log.of_kind(NEW_MEMORY)) == 1
    assert len(event_log.of_kind(SUMMARY_GENERATED)) == 1
    assert len(event_log.of_kind(NEW_ENTITY)) == 1


@pytest.mark.asyncio
async def test_repeated_and_growing_snapshots(services, scripted):
    await services.capture.ingest_capture(capture())
    await services.capture.drain()

    again = await services.capture.ingest_capture(capture())
    assert again.inserted == []
    assert again.job is None
    assert await services.capture.drain() == []
    assert len(services.conversations.list_messages(SESSION_ID)) == 2

    grown = await services.capture.ingest_capture(capture(TRANSCRIPT + FOLLOW_UP))
    assert [m["role"] for m in grown.inserted] == ["user"]
    await services.capture.drain()

    assert len(services.conversations.list_messages(SESSION_ID)) == 3
    assert services.memories.count() == 2
    assert len(scripted.prompts(MASTER_INCREMENTAL)) == 1
    assert "Uses PostgreSQL 16" in services.summaries.get_master()["content"]


def test_snapshot_sharing_nothing_with_stored_turns_is_appended_whole(services):
    services.capture.store_capture(capture(
        "User: First question about sourdough starters.\n"
        "Assistant: Feed the starter daily with equal flour and water.\n"
        "User: How long before it is ready to bake with?"
    ))

    parsed, inserted = services.capture.store_capture(capture(
        "User: Completely different topic about bicycle gears.\n"
        "Assistant: A wider cassette makes steep climbs easier."
    ))

    assert [m["content"] for m in inserted] == [m.content for m in parsed.messages]
    assert len(inserted) == 2
    assert len(services.conversations.list_messages(SESSION_ID)) == 5


@pytest.mark.asyncio
async def test_unsupported_capture_stores_nothing(services, fake_llm):
    outcome = await services.capture.ingest_capture(
        CaptureEvent(app_name="Google Chrome", title="News", raw_text="[BROWSER_URL] example.com\n[USER] hello")
    )
    assert outcome.session_id is None
    assert outcome.platform == "unsupported"
    assert outcome.job is None
    assert services.conversations.list_conversations() == []
    assert fake_llm.calls == []


@pytest.mark.asyncio
async def test_summary_failure_stops_the_batch(services, scripted):
    scripted.on(SESSION_SUMMARY, LLMError(message="model crashed"))

    await services.capture.ingest_capture(capture())
    (result,) = await services.capture.drain()

    assert result.failed()
    assert result.stage("evaluate_memories").status == "success"
    assert result.stage("summarize_session").status == "error"
    assert result.stage("extract_entities") is None
    assert services.memories.count() == 1
    assert services.graph.list_entities() == []
    assert services.summaries.get_master()["content"] is None


@pytest.mark.asyncio
async def test_entity_failure_does_not_block_master_update(services, scripted):
    scripted.on(ENTITY_EXTRACTION, LLMError(message="extraction crashed"))

    await services.capture.ingest_capture(capture())
    (result,) = await services.capture.drain()

    assert not result.failed()
    assert result.stage("extract_entities").status == "error"
    assert result.stage("update_master_memory").status == "success"
    assert services.summaries.get_master()["content"].startswith("## About the User")


@pytest.mark.asyncio
async def test_empty_summary_skips_downstream(services, scripted):
    scripted.on(SESSION_SUMMARY, "")

    await services.capture.ingest_capture(capture())
    (result,) = await services.capture.drain()

    assert result.stage("summarize_session").status == "success"
    assert result.stage("extract_entities").status == "skipped"
    assert result.stage("update_master_memory").status == "skipped"


@pytest.mark.asyncio
async def test_on_demand_summary(services, scripted):
    await services.capture.ingest_capture(capture())
    await services.capture.drain()
    scripted.on(SESSION_SUMMARY, "Updated summary.")

    result = await services.capture.summarize(SESSION_ID, "Notes")

    assert result.stage("evaluate_memories").status == "skipped"
    assert result.stage("summarize_session").output == "Updated summary."
    assert services.summaries.get_summary(SESSION_ID) == "Updated summary."
