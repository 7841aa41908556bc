"""Tests for the FastAPI surface."""
import pytest
from fastapi.testclient import TestClient

from rajai_builder.config import Settings
from rajai_builder.server import PREVIEW_CSP, create_app
from tests.conftest import FakeLLM


@pytest.fixture
def client(make_session):
    return TestClient(create_app(session=make_session()))


class TestServer:

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"

    def test_initial_session(self, client):
        body = client.get("/session").json()
        assert body["phase"] == "idle"
        assert body["configuration_error"] is None
        assert len(body["session"]["messages"]) == 1
        assert body["projects"] == []

    def test_generate(self, client):
        response = client.post("/generate", json={"prompt": "todo app"})

        assert response.status_code == 200
        body = response.json()
        assert body["session"]["previewHtml"] == "<html></html>"
        assert body["session"]["agentProgress"][0]["status"] == "complete"
        assert body["projects"][0]["prompt"] == "todo app"

        preview = client.get("/preview")
        assert preview.text == "<html></html>"
        assert preview.headers["content-security-policy"] == PREVIEW_CSP
        assert client.get("/code").text == "<html></html>"
        assert len(client.get("/projects").json()["projects"]) == 1

    def test_failed_generation_is_a_chat_message(self, make_session):
        client = TestClient(create_app(session=make_session(llm=FakeLLM([], error=OSError("down")))))
        response = client.post("/generate", json={"prompt": "todo app"})

        assert response.status_code == 200
        assert response.json()["session"]["messages"][-1]["content"].startswith("❌ **Error**")

    def test_blank_prompt(self, client):
        assert client.post("/generate", json={"prompt": " "}).status_code == 400

    def test_missing_credential(self, make_session):
        client = TestClient(create_app(session=make_session(session_settings=Settings(api_key=None))))
        assert client.get("/session").json()["configuration_error"]
        assert client.post("/generate", json={"prompt": "todo app"}).status_code == 503

    def test_preview_before_generation(self, client):
        assert client.get("/preview").status_code == 404

    def test_new_chat(self, client):
        client.post("/generate", json={"prompt": "todo app"})
        body = client.post("/session/new").json()

        assert len(body["session"]["messages"]) == 1
        assert body["session"]["previewHtml"] == ""
        assert len(body["projects"]) == 1

    def test_generate_async(self, client):
        response = client.post("/generate/async", json={"prompt": "todo app"})
        assert response.status_code == 202
        # TestClient runs background tasks before returning
        assert client.get("/session").json()["session"]["previewHtml"] == "<html></html>"

    def test_generate_async_rejects_second_request(self, make_session):
        session = make_session()
        client = TestClient(create_app(session=session))
        session.begin("first")

        response = client.post("/generate/async", json={"prompt": "second"})

        assert response.status_code == 409
        assert [m["content"] for m in client.get("/session").json()["session"]["messages"]].count("second") == 0

    def test_generate_async_claims_session_before_responding(self, make_session):
        session = make_session()
        phases = []
        session.subscribe(lambda change, current: phases.append(current.phase.value) if change == "phase" else None)
        client = TestClient(create_app(session=session))

        response = client.post("/generate/async", json={"prompt": "todo app"})

        assert response.status_code == 202
        assert response.json()["request_id"]
        assert phases == ["generating", "completed", "idle"]
