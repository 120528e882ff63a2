"""
HTTP API tests over a pre-wired service set.
"""

import pytest
from fastapi.testclient import TestClient

from chatvault.api.main import create_app
from chatvault.core.errors import LLMError, LLMTimeoutError

from .fakes import (
    ENTITY_EXTRACTION,
    MASTER_BATCH,
    MASTER_INITIAL,
    MEMORY_FILTER,
    RAG_CHAT,
    SESSION_SUMMARY,
    as_json,
)

CAPTURE = {
    "app_name": "Notes",
    "title": "Garden chat",
    "raw_text": (
        "User: I grow heirloom tomatoes on my balcony garden in Porto every summer.\n"
        "Assistant: Heirloom tomatoes do well on sunny balconies if you water them deeply."
    ),
}
SESSION_ID = "notes-garden-chat"


@pytest.fixture
def client(services, fake_llm):
    fake_llm.on(MEMORY_FILTER, lambda p: as_json(
        {"store": "Role: user" in p, "name": "Garden", "memory": "User grows heirloom tomatoes on a balcony in Porto"}
    ))
    fake_llm.on(SESSION_SUMMARY, "User gardens on a balcony in Porto.")
    fake_llm.on(ENTITY_EXTRACTION, as_json({"entities": [
        {"name": "Porto", "type": "Place", "facts": ["User's balcony garden is there"]},
    ]}))
    fake_llm.on(MASTER_INITIAL, "Gardener in Porto.")
    with TestClient(create_app(services)) as c:
        yield c


def ingest(client):
    resp = client.post("/api/captures", params={"wait": "true"}, json=CAPTURE)
    assert resp.status_code == 200
    return resp.json()


def test_health(client, fake_llm):
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["model"] == {"available": True}
    assert body["pending_jobs"] == 0

    fake_llm.available = False
    body = client.get("/health").json()
    assert body["status"] == "degraded"
    assert body["model"]["available"] is False


def test_capture_then_browse(client):
    body = ingest(client)
    assert body == {
        "session_id": SESSION_ID,
        "app_name": "Notes",
        "title": "Garden chat",
        "platform": "plaintext",
        "parsed": 2,
        "inserted": 2,
        "processed": True,
    }
    assert ingest(client)["inserted"] == 0

    sessions = client.get("/api/sessions").json()["items"]
    assert [s["session_id"] for s in sessions] == [SESSION_ID]
    assert sessions[0]["message_count"] == 2
    assert sessions[0]["summary"] == "User gardens on a balcony in Porto."

    detail = client.get(f"/api/sessions/{SESSION_ID}/messages").json()
    assert detail["session"]["title"] == "Garden chat"
    assert [m["role"] for m in detail["messages"]] == ["user", "assistant"]

    memories = client.get("/api/memories").json()["items"]
    assert [m["content"] for m in memories] == ["User grows heirloom tomatoes on a balcony in Porto"]

    entities = client.get("/api/entities").json()
    assert [e["name"] for e in entities["items"]] == ["Porto"]
    entity = client.get(f"/api/entities/{entities['items'][0]['id']}").json()
    assert entity["sessions"] == [SESSION_ID]

    assert client.get("/api/master-memory").json()["content"] == "Gardener in Porto."


def test_missing_resources_are_404(client):
    assert client.get("/api/sessions/nope/messages").status_code == 404
    assert client.delete("/api/sessions/nope").status_code == 404
    assert client.post("/api/sessions/nope/summarize").status_code == 404
    assert client.get("/api/entities/999").status_code == 404


def test_notes_and_search(client):
    resp = client.post("/api/memories", json={"content": "Allergic to peanuts", "name": "Allergy"})
    assert resp.status_code == 200
    assert resp.json()["memory"]["source_app"] == "note"
    assert client.post("/api/memories", json={"content": "   "}).status_code == 422
    assert client.post("/api/memories", json={"content": ""}).status_code == 422

    found = client.get("/api/memories/search", params={"q": "peanuts allergic"}).json()
    assert found["vector_search_used"] is True
    assert found["items"][0]["content"] == "Allergic to peanuts"


def test_chat(client, fake_llm):
    ingest(client)
    fake_llm.on(RAG_CHAT, "You grow tomatoes [Memory 1].")
    body = client.post("/api/chat", json={
        "query": "What do I grow on my balcony?",
        "history": [{"role": "user", "content": "hi"}],
    }).json()
    assert body["answer"] == "You grow tomatoes [Memory 1]."
    assert body["memories"][0]["session_id"] == SESSION_ID

    assert client.post("/api/chat", json={"query": "x", "history": [{"role": "system", "content": "no"}]}).status_code == 422


def test_model_errors_map_to_gateway_statuses(client, fake_llm):
    fake_llm.on(RAG_CHAT, LLMTimeoutError(message="too slow"))
    resp = client.post("/api/chat", json={"query": "anything"})
    assert resp.status_code == 504
    assert resp.json()["error"] == "LLM_TIMEOUT"

    fake_llm.on(RAG_CHAT, LLMError(message="bad gateway"))
    resp = client.post("/api/chat", json={"query": "anything"})
    assert resp.status_code == 502
    assert resp.json() == {"error": "LLM_ERROR", "detail": "bad gateway"}


def test_summarize_endpoint(client, fake_llm):
    ingest(client)
    fake_llm.on(SESSION_SUMMARY, "Fresh summary.")
    body = client.post(f"/api/sessions/{SESSION_ID}/summarize").json()
    assert body["summary"] == "Fresh summary."
    assert body["status"] == "success"
    assert [s["name"] for s in body["stages"]][:2] == ["evaluate_memories", "summarize_session"]

    fake_llm.on(SESSION_SUMMARY, LLMError(message="down"))
    assert client.post(f"/api/sessions/{SESSION_ID}/summarize").status_code == 502


def test_delete_session_regenerates_master(client, fake_llm):
    ingest(client)
    resp = client.delete(f"/api/sessions/{SESSION_ID}")
    assert resp.json() == {"deleted": SESSION_ID, "master_memory_regenerated": True}
    assert client.get("/api/sessions").json()["items"] == []
    assert client.get("/api/memories").json()["items"] == []
    assert client.get("/api/master-memory").json()["content"] == ""
    assert fake_llm.prompts(MASTER_BATCH) == []


def test_regenerate_and_admin(client, fake_llm):
    ingest(client)
    fake_llm.on(MASTER_BATCH, "Regenerated.")
    assert client.post("/api/master-memory/regenerate").json() == {"content": "Regenerated.", "sessions": 1}

    report = client.post("/api/reprocess", json={"clean": True}).json()
    assert report["cleaned"] is True
    assert report["memories_created"] == 1

    rebuilt = client.post("/api/admin/rebuild-fts").json()["rebuilt"]
    assert "memory_fts" in rebuilt


TRIP = {
    "app_name": "Notes",
    "title": "Trip chat",
    "raw_text": (
        "User: I am planning a weekend trip to Lisbon with my friend Ana next month.\n"
        "Assistant: Lisbon in spring is lovely, so book the tram tours early."
    ),
}


def test_graph_views(client, fake_llm):
    fake_llm.on(MEMORY_FILTER, lambda p: as_json({
        "store": "Role: user" in p,
        "name": "Trip" if "Lisbon" in p else "Garden",
        "memory": "User plans a Lisbon trip with Ana" if "Lisbon" in p
        else "User grows heirloom tomatoes on a balcony in Porto",
    }))
    fake_llm.on(ENTITY_EXTRACTION, lambda p: as_json({"entities": [
        {"name": "Lisbon", "type": "Place", "facts": ["User is visiting"]},
        {"name": "Ana", "type": "Person", "facts": ["Travelling with the user"]},
    ]} if "Lisbon" in p else {"entities": [
        {"name": "Porto", "type": "Place", "facts": ["User's balcony garden is there"]},
        {"name": "Heirloom Tomatoes", "type": "Plant", "facts": ["User grows them"]},
    ]}))
    ingest(client)
    assert client.post("/api/captures", params={"wait": "true"}, json=TRIP).json()["processed"] is True

    full = client.get("/api/graph").json()
    names = {n["name"]: n["id"] for n in full["nodes"]}
    assert set(names) == {"Porto", "Heirloom Tomatoes", "Lisbon", "Ana"}
    assert len(full["edges"]) == 2
    for edge in full["edges"]:
        assert {edge["source_entity_id"], edge["target_entity_id"]} <= set(names.values())

    focused = client.get("/api/graph", params={"focus": names["Porto"]}).json()
    assert {n["name"] for n in focused["nodes"]} == {"Porto", "Heirloom Tomatoes"}
    assert len(focused["edges"]) == 1
    assert focused["focus_entity_id"] == names["Porto"]

    assert len(client.get("/api/graph", params={"edge_limit": 1}).json()["edges"]) == 1
    assert client.get("/api/graph", params={"app": "Slack"}).json()["edges"] == []
    assert client.get("/api/graph", params={"focus": 999}).status_code == 404
    assert client.get("/api/entities", params={"app": "Slack"}).json() == {"items": [], "edges": []}

    assert client.post("/api/graph/rebuild").json() == {"edges": 2}
    assert len(client.get("/api/graph").json()["edges"]) == 2


def test_session_views_and_deletes(client):
    ingest(client)

    memories = client.get(f"/api/sessions/{SESSION_ID}/memories").json()["items"]
    assert [m["content"] for m in memories] == ["User grows heirloom tomatoes on a balcony in Porto"]
    entities = client.get(f"/api/sessions/{SESSION_ID}/entities").json()["items"]
    assert [e["name"] for e in entities] == ["Porto"]
    assert client.get("/api/sessions/nope/memories").status_code == 404
    assert client.get("/api/sessions/nope/entities").status_code == 404

    memory_id = memories[0]["id"]
    assert client.delete(f"/api/memories/{memory_id}").json() == {"deleted": memory_id}
    assert client.delete(f"/api/memories/{memory_id}").status_code == 404
    assert client.get(f"/api/sessions/{SESSION_ID}/memories").json()["items"] == []

    entity_id = entities[0]["id"]
    assert client.delete(f"/api/entities/{entity_id}").json() == {"deleted": entity_id}
    assert client.delete(f"/api/entities/{entity_id}").status_code == 404
    assert client.get(f"/api/entities/{entity_id}").status_code == 404
    assert client.get(f"/api/sessions/{SESSION_ID}/entities").json()["items"] == []


def test_stats(client):
    assert client.get("/api/stats").json() == {
        "memories": 0, "summaries": 0, "conversations": 0, "messages": 0,
        "entities": 0, "facts": 0, "edges": 0,
    }
    ingest(client)
    assert client.get("/api/stats").json() == {
        "memories": 1, "summaries": 1, "conversations": 1, "messages": 2,
        "entities": 1, "facts": 1, "edges": 0,
    }
