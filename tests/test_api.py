"""API tests for the analysis proxy endpoints and the session routes."""

import base64
import json
from functools import partial
from types import SimpleNamespace
from unittest.mock import AsyncMock

import anyio
import httpx
import pytest
from fastapi.testclient import TestClient

from configs.settings import Settings
from core.analysis.client import DirectAnalysisClient
from runtime.agents.conversation_agent import ConversationAgent
from runtime.api import analysis_routes, session_routes
from runtime.api.server import app, conversation_agent, log_store, session_store
from runtime.store.log_store import LogStore
from runtime.store.session_store import SessionStore

from conftest import FakeAnalysisClient, make_advice_payload, make_profile_payload


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def _backend_returning(payload) -> DirectAnalysisClient:
    completion = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=json.dumps(payload)))]
    )
    openai_client = SimpleNamespace(
        chat=SimpleNamespace(completions=SimpleNamespace(create=AsyncMock(return_value=completion)))
    )
    return DirectAnalysisClient(api_key="k", client=openai_client)


@pytest.fixture
def override_backend():
    def _override(payload):
        app.dependency_overrides[analysis_routes.get_analysis_backend] = lambda: _backend_returning(payload)

    yield _override
    app.dependency_overrides.clear()


@pytest.fixture
def fake_session_api():
    """Point the session routes at a fresh store and a scripted analysis client."""
    store = SessionStore()
    fake = FakeAnalysisClient()
    events = LogStore()
    agent = ConversationAgent(session_store=store, analysis_client=fake, log_store=events)
    session_routes.init_routes(session_store=store, conversation_agent=agent, log_store=events)
    yield SimpleNamespace(store=store, fake=fake, agent=agent)
    session_routes.init_routes(
        session_store=session_store,
        conversation_agent=conversation_agent,
        log_store=log_store,
    )


class TestAnalysisEndpoints:
    def test_profile_success(self, client, override_backend, png_bytes):
        override_backend(make_profile_payload())
        image = base64.b64encode(png_bytes).decode()

        response = client.post("/api/analyze-profile", json={"image": image, "note": "n"})

        assert response.status_code == 200
        body = response.json()
        assert body["basicInfo"]["name"] == "Amy"
        assert body["openingLines"][0]["content"]

    def test_chat_success_without_image(self, client, override_backend):
        override_backend(make_advice_payload())

        response = client.post(
            "/api/analyze-chat",
            json={"image": None, "profileContext": make_profile_payload(), "note": "she said yes"},
        )

        assert response.status_code == 200
        assert set(response.json()) == {"situationAnalysis", "suggestions", "coachTip"}

    @pytest.mark.parametrize("path", ["/api/analyze-profile", "/api/analyze-chat"])
    def test_non_post_is_rejected(self, client, path):
        response = client.get(path)

        assert response.status_code == 405
        assert response.json() == {"error": "Method not allowed"}

    @pytest.mark.parametrize(
        "path, body",
        [
            ("/api/analyze-profile", {"image": "aGVsbG8="}),
            ("/api/analyze-chat", {"profileContext": make_profile_payload(), "note": "hi"}),
        ],
    )
    def test_missing_credential(self, client, monkeypatch, path, body):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.setattr(analysis_routes, "settings", Settings())

        response = client.post(path, json=body)

        assert response.status_code == 500
        assert response.json() == {"error": "Server configuration error: API Key missing"}

    def test_schema_violation_is_bad_gateway(self, client, override_backend):
        payload = make_profile_payload()
        del payload["openingLines"]
        override_backend(payload)

        response = client.post("/api/analyze-profile", json={"image": "aGVsbG8="})

        assert response.status_code == 502
        assert "error" in response.json()

    def test_error_bodies_are_documented(self, client):
        responses = client.get("/openapi.json").json()["paths"]["/api/analyze-profile"]["post"]["responses"]

        for status in ("400", "405", "500", "502"):
            schema = responses[status]["content"]["application/json"]["schema"]
            assert schema["$ref"].endswith("/ErrorResponse")

    def test_invalid_body(self, client, override_backend):
        override_backend(make_profile_payload())

        response = client.post("/api/analyze-chat", json={"note": "no profile context"})

        assert response.status_code == 400
        assert "profileContext" in response.json()["error"]


class TestSessionRoutes:
    def test_create_and_list(self, client, fake_session_api):
        created = client.post("/agent/sessions").json()["session_id"]

        listing = client.get("/agent/sessions").json()

        assert listing["current_session_id"] == created
        assert listing["sessions"][0]["id"] == created
        assert listing["sessions"][0]["state"] == "NO_PROFILE"

    def test_rename_ignores_blank_titles(self, client, fake_session_api):
        session_id = fake_session_api.store.current_session_id
        client.patch(f"/agent/sessions/{session_id}", json={"title": " Amy "})

        response = client.patch(f"/agent/sessions/{session_id}", json={"title": "   "})

        assert response.json()["title"] == "Amy"

    def test_delete_last_session_keeps_one(self, client, fake_session_api):
        session_id = fake_session_api.store.current_session_id

        listing = client.delete(f"/agent/sessions/{session_id}").json()

        assert len(listing["sessions"]) == 1
        assert listing["current_session_id"] != session_id

    def test_send_profile_screenshot(self, client, fake_session_api, png_bytes, profile_payload):
        from core.analysis.models import ProfileRecord

        fake_session_api.fake.profile_results.append(ProfileRecord.model_validate(profile_payload))
        session_id = fake_session_api.store.current_session_id

        response = client.post(
            f"/agent/sessions/{session_id}/messages",
            json={"text": "hi", "image": base64.b64encode(png_bytes).decode()},
        )

        body = response.json()
        assert response.status_code == 200
        assert body["state"] == "PROFILE_ESTABLISHED"
        assert body["title"] == "Amy"
        assert [m["type"] for m in body["messages"]] == ["text", "profile_analysis", "chat_advice"]

    def test_send_undecodable_image(self, client, fake_session_api):
        session_id = fake_session_api.store.current_session_id

        response = client.post(
            f"/agent/sessions/{session_id}/messages",
            json={"image": base64.b64encode(b"not an image").decode()},
        )

        assert response.status_code == 400
        assert fake_session_api.store.get_session(session_id).messages == []

    def test_unknown_session(self, client, fake_session_api):
        response = client.get("/agent/sessions/missing")

        assert response.status_code == 404
        assert response.json() == {"error": "Session not found"}

    def test_healthz(self, client):
        assert client.get("/agent/healthz").json() == {"status": "ok"}

    def test_events_follow_sends(self, client, fake_session_api):
        session_id = fake_session_api.store.current_session_id
        client.post(f"/agent/sessions/{session_id}/messages", json={"text": "hi"})

        events = client.get("/agent/events", params={"event_type": "analysis_failed"}).json()["events"]

        assert len(events) == 1
        assert events[0]["payload"]["session_id"] == session_id


@pytest.mark.anyio
class TestConcurrentSends:
    async def test_second_send_while_in_flight_is_rejected(self, fake_session_api, png_bytes, profile_payload):
        from core.analysis.models import ProfileRecord

        release = anyio.Event()

        async def hook():
            await release.wait()

        fake_session_api.fake.hook = hook
        fake_session_api.fake.profile_results.append(ProfileRecord.model_validate(profile_payload))
        session_id = fake_session_api.store.current_session_id
        url = f"/agent/sessions/{session_id}/messages"
        image = base64.b64encode(png_bytes).decode()

        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
            async with anyio.create_task_group() as tg:
                tg.start_soon(partial(http.post, url, json={"text": "hi", "image": image}))
                await anyio.wait_all_tasks_blocked()
                assert fake_session_api.agent.is_processing(session_id)

                second = await http.post(url, json={"text": "again"})

                assert second.status_code == 409
                assert "error" in second.json()
                messages = fake_session_api.store.get_session(session_id).messages
                assert [m.content for m in messages] == ["hi"]
                release.set()

        assert len(fake_session_api.fake.calls) == 1
        assert fake_session_api.store.get_session(session_id).state.value == "PROFILE_ESTABLISHED"
