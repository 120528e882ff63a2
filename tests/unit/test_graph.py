"""
Entity graph builder tests
"""

import pytest

from chatvault.core.errors import LLMError, LLMTimeoutError
from chatvault.infrastructure.event_log import NEW_ENTITY
from chatvault.memory.graph import is_blocked, render_memory_list
from chatvault.memory.schema import ExtractedEntity

from .fakes import ENTITY_EXTRACTION, ENTITY_SUMMARY, as_json


def extraction(*entities):
    return as_json({"entities": list(entities)})


def entity(name, type_="Technology", facts=("fact",)):
    return {"name": name, "type": type_, "facts": list(facts)}


def seed(services, session_id="s1", *contents):
    for c in contents:
        services.memories.add_memory(content=c, session_id=session_id, source_app="Claude")


def test_blocklist_and_short_names():
    assert is_blocked(ExtractedEntity(name="API"))
    assert is_blocked(ExtractedEntity(name="  user "))
    assert is_blocked(ExtractedEntity(name="Go"))
    assert not is_blocked(ExtractedEntity(name="PostgreSQL"))


def test_render_memory_list_skips_blank_rows():
    text = render_memory_list([{"content": "Uses Postgres 16"}, {"content": ""}, {"content": "Lives in Lisbon"}])
    assert text == "- Uses Postgres 16\n- Lives in Lisbon"


@pytest.mark.asyncio
async def test_process_session_upserts_links_and_summarizes(services, fake_llm, event_log):
    seed(services, "s1", "User runs PostgreSQL 16 in production", "User deploys with Fly.io")
    fake_llm.on(ENTITY_EXTRACTION, extraction(
        entity("PostgreSQL", facts=["Runs version 16 in production"]),
        entity("Fly.io", "Platform", facts=["Used for deployments"]),
        entity("database", facts=["generic"]),
        entity("Lisbon", "Place", facts=[]),
    ))
    fake_llm.on(ENTITY_SUMMARY, "Primary production database.")

    report = await services.graph_builder.process_session("s1")

    assert len(report.entity_ids) == 2
    assert report.created == report.entity_ids
    assert report.new_facts == 2
    assert sorted(report.skipped) == ["Lisbon", "database"]
    assert report.edges == 1

    assert "- User runs PostgreSQL 16 in production" in fake_llm.prompts(ENTITY_EXTRACTION)[0]
    summary_prompts = fake_llm.prompts(ENTITY_SUMMARY)
    assert len(summary_prompts) == 2
    assert all("(none)" in p for p in summary_prompts)

    pg = services.graph.get_entity(report.entity_ids[0])
    assert pg["name"] == "PostgreSQL"
    assert pg["summary"] == "Primary production database."
    assert pg["sessions"] == ["s1"]
    assert [f["fact"] for f in pg["facts"]] == ["Runs version 16 in production"]

    names = {e["payload"]["entity"]["name"] for e in event_log.of_kind(NEW_ENTITY)}
    assert names == {"PostgreSQL", "Fly.io"}

    edges = services.graph.list_edges()
    assert len(edges) == 1
    assert edges[0]["evidence_count"] == 1
    assert edges[0]["source_entity_id"] < edges[0]["target_entity_id"]


@pytest.mark.asyncio
async def test_repeat_run_adds_no_facts_and_no_summary_calls(services, fake_llm, event_log):
    seed(services, "s1", "User runs PostgreSQL 16 in production")
    fake_llm.on(ENTITY_EXTRACTION, extraction(entity("PostgreSQL", facts=["Runs version 16"])))
    fake_llm.on(ENTITY_SUMMARY, "Database.")

    await services.graph_builder.process_session("s1")
    report = await services.graph_builder.process_session("s1")

    assert report.new_facts == 0
    assert report.created == []
    assert len(fake_llm.prompts(ENTITY_SUMMARY)) == 1
    assert len(event_log.of_kind(NEW_ENTITY)) == 1


@pytest.mark.asyncio
async def test_summary_prompt_carries_previous_summary_and_only_new_facts(services, fake_llm):
    seed(services, "s1", "User runs PostgreSQL 16 in production")
    seed(services, "s2", "User tuned PostgreSQL autovacuum")
    fake_llm.on(ENTITY_SUMMARY, "Production database.")
    fake_llm.on(ENTITY_EXTRACTION, extraction(entity("PostgreSQL", facts=["Runs version 16"])))
    await services.graph_builder.process_session("s1")

    fake_llm.on(ENTITY_EXTRACTION, extraction(entity("postgresql", facts=["Runs version 16", "Autovacuum tuned"])))
    report = await services.graph_builder.process_session("s2")

    assert report.created == []
    assert report.new_facts == 1
    prompt = fake_llm.prompts(ENTITY_SUMMARY)[-1]
    assert "Production database." in prompt
    assert "- Autovacuum tuned" in prompt
    assert "- Runs version 16" not in prompt
    assert services.graph.get_entity(report.entity_ids[0])["sessions"] == ["s1", "s2"]


@pytest.mark.asyncio
async def test_summary_failure_keeps_facts(services, fake_llm):
    seed(services, "s1", "User runs PostgreSQL 16 in production")
    fake_llm.on(ENTITY_EXTRACTION, extraction(entity("PostgreSQL", facts=["Runs version 16"])))
    fake_llm.on(ENTITY_SUMMARY, LLMTimeoutError(message="slow"))

    report = await services.graph_builder.process_session("s1")

    row = services.graph.get_entity(report.entity_ids[0])
    assert row["summary"] is None
    assert len(row["facts"]) == 1


@pytest.mark.asyncio
async def test_malformed_extraction_yields_nothing(services, fake_llm):
    seed(services, "s1", "User runs PostgreSQL 16 in production")
    fake_llm.on(ENTITY_EXTRACTION, "Here are the entities: PostgreSQL")

    report = await services.graph_builder.process_session("s1")

    assert report.entity_ids == []
    assert services.graph.list_entities() == []


@pytest.mark.asyncio
async def test_extraction_failure_propagates(services, fake_llm):
    seed(services, "s1", "User runs PostgreSQL 16 in production")
    fake_llm.on(ENTITY_EXTRACTION, LLMError(message="boom"))

    with pytest.raises(LLMError):
        await services.graph_builder.process_session("s1")


@pytest.mark.asyncio
async def test_session_without_memories_makes_no_call(services, fake_llm):
    report = await services.graph_builder.process_session("empty")
    assert report.entity_ids == []
    assert fake_llm.calls == []


@pytest.mark.asyncio
async def test_strict_tier_prompt(services, fake_llm):
    services.runtime_settings.set("entity_strictness", "strict")
    await services.graph_builder.extract("- something")
    assert "very selective" in fake_llm.calls[-1]["prompt"]
