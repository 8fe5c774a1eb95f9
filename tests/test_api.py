"""
Unit tests for API endpoints.
"""
import asyncio
import io
import json
import time

import pytest
from unittest.mock import patch
from fastapi import FastAPI
from fastapi.testclient import TestClient
from PIL import Image
from pptx import Presentation
from pptx.enum.shapes import MSO_SHAPE_TYPE

from src.api.routes.export import document_response, router as export_router
from src.api.routes.history import router as history_router
from src.api.routes.sessions import router as sessions_router, session_controllers
from src.api.routes.slides import router as slides_router
from src.models import Slide
from src.services.export import PDF_MEDIA_TYPE, PPTX_MEDIA_TYPE
from src.services.generation import PromptDispatcher
from src.services.history import HistoryStore
from src.services.history.store import STORAGE_KEY
from src.services.session import transitions


@pytest.fixture
def app():
    """Create a test FastAPI application."""
    app = FastAPI()
    app.include_router(slides_router)
    app.include_router(sessions_router)
    app.include_router(history_router)
    app.include_router(export_router)
    return app


@pytest.fixture
def client(app):
    """Create a test client."""
    with TestClient(app) as client:
        yield client
    session_controllers.clear()


@pytest.fixture
def history_store(tmp_path):
    store = HistoryStore(path=tmp_path / "history.json", debounce_seconds=0)
    with patch("src.api.routes.history.get_history_store", return_value=store), \
         patch("src.api.routes.sessions.get_history_store", return_value=store):
        yield store


@pytest.fixture
def use_dispatcher(fake_client, recorded_sleep):
    """Route every model call through a scripted client."""
    def install(responses):
        dispatcher = PromptDispatcher(client=fake_client(responses), sleep=recorded_sleep)
        patchers = [
            patch("src.api.routes.slides.get_prompt_dispatcher", return_value=dispatcher),
            patch("src.services.session.controller.get_prompt_dispatcher", return_value=dispatcher),
        ]
        for p in patchers:
            p.start()
        active.extend(patchers)
        return dispatcher

    active = []
    yield install
    for p in active:
        p.stop()


class TestGenerateSlidesAPI:
    """Tests for the generation endpoint."""

    def test_generate_success(self, client, use_dispatcher, model_deck):
        use_dispatcher([model_deck(6)])

        response = client.post("/api/generate-slides", json={"prompt": "Quantum Computing"})

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Here are your slides"
        assert len(data["slides"]) == 6
        assert data["slides"][0]["type"] == "title"

    def test_generate_with_history(self, client, use_dispatcher, model_deck):
        dispatcher = use_dispatcher([model_deck(5)])

        response = client.post("/api/generate-slides", json={
            "prompt": "Wasps",
            "conversationHistory": [{"sender": "user", "text": "Tell me about bees"}],
        })

        assert response.status_code == 200
        assert "Tell me about bees" in dispatcher._client.prompts[0]

    def test_default_message(self, client, use_dispatcher):
        use_dispatcher([json.dumps({"slides": [{"title": "Only"}]})])

        response = client.post("/api/generate-slides", json={"prompt": "Topic"})

        assert response.json()["message"] == "I've generated slides based on your request."

    def test_missing_prompt(self, client):
        response = client.post("/api/generate-slides", json={"prompt": "   "})

        assert response.status_code == 400
        assert response.json() == {"error": "Prompt is required"}

    def test_quota_exceeded(self, client, use_dispatcher):
        use_dispatcher([RuntimeError("429 quota exceeded")])

        response = client.post("/api/generate-slides", json={"prompt": "Topic"})

        assert response.status_code == 429
        data = response.json()
        assert data["error"] == "API quota exceeded"
        assert data["isRetryable"] is False
        assert "quota" in data["details"]

    def test_overloaded(self, client, use_dispatcher, status_error):
        use_dispatcher([status_error("overloaded", 503)] * 3)

        response = client.post("/api/generate-slides", json={"prompt": "Topic"})

        assert response.status_code == 503
        data = response.json()
        assert data["isRetryable"] is True
        assert data["retryDelay"] == 10

    def test_unknown_error(self, client, use_dispatcher):
        use_dispatcher([ValueError("bad payload")])

        response = client.post("/api/generate-slides", json={"prompt": "Topic"})

        assert response.status_code == 500
        data = response.json()
        assert data["error"] == "Failed to generate slides"
        assert data["details"] == "bad payload"
        assert data["isRetryable"] is False


class TestEditSlidesAPI:
    """Tests for the revision endpoint."""

    def test_edit_success(self, client, use_dispatcher, model_deck, sample_deck):
        use_dispatcher([model_deck(2, message="")])

        response = client.post("/api/edit-slides", json={
            "prompt": "Shorter",
            "currentSlides": [s.model_dump() for s in sample_deck],
        })

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Slides updated based on your request."
        assert len(data["slides"]) == 2

    def test_edit_requires_slides(self, client):
        response = client.post("/api/edit-slides", json={"prompt": "Shorter", "currentSlides": []})

        assert response.status_code == 400


class TestHealthAPI:

    def test_health(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "OK"
        assert data["model"] == "gpt-4o"
        assert "quota" in data


class TestHistoryAPI:
    """Tests for history endpoints."""

    def test_list_and_get(self, client, history_store, sample_session):
        history_store.path.write_text(json.dumps({STORAGE_KEY: [sample_session.model_dump(mode="json")]}))

        listing = client.get("/api/history").json()
        assert listing["total"] == 1

        response = client.get("/api/history/session-1")
        assert response.status_code == 200
        assert response.json()["prompt"] == "Quantum Computing"

        assert client.get("/api/history/missing").status_code == 404

    def test_delete(self, client, history_store, sample_session):
        history_store.path.write_text(json.dumps({STORAGE_KEY: [sample_session.model_dump(mode="json")]}))

        response = client.delete("/api/history/session-1")
        assert response.status_code == 200
        assert response.json() == {"deleted": "session-1"}

        assert client.delete("/api/history/session-1").status_code == 404

    def test_clear(self, client, history_store, sample_session):
        history_store.path.write_text(json.dumps({STORAGE_KEY: [sample_session.model_dump(mode="json")]}))

        response = client.delete("/api/history")

        assert response.json() == {"cleared": True}
        assert client.get("/api/history").json()["total"] == 0


class TestExportAPI:
    """Tests for export endpoints."""

    def test_export_pptx(self, client, sample_deck):
        response = client.post("/api/export/pptx", json={
            "slides": [s.model_dump() for s in sample_deck],
            "prompt": "Quantum Computing",
        })

        assert response.status_code == 200
        assert response.headers["content-type"] == PPTX_MEDIA_TYPE
        assert "Quantum%20Computing.pptx" in response.headers["content-disposition"]
        assert response.content[:2] == b"PK"

    def test_export_pdf(self, client, sample_deck):
        response = client.post("/api/export/pdf", json={"slides": [s.model_dump() for s in sample_deck]})

        assert response.status_code == 200
        assert response.headers["content-type"] == PDF_MEDIA_TYPE
        assert "presentation.pdf" in response.headers["content-disposition"]
        assert response.content.startswith(b"%PDF")

    def test_export_empty_deck(self, client):
        response = client.post("/api/export/pdf", json={"slides": []})

        assert response.status_code == 400

    def test_unknown_format(self, client, sample_deck):
        response = client.post("/api/export/docx", json={"slides": [s.model_dump() for s in sample_deck]})

        assert response.status_code == 422

    def test_server_files_are_not_embedded(self, client, tmp_path, sample_deck):
        path = tmp_path / "server.png"
        Image.new("RGB", (16, 9)).save(path)
        slides = [s.model_dump() for s in sample_deck]
        slides[0]["image"] = str(path)
        slides[1]["image"] = path.as_uri()

        response = client.post("/api/export/pptx", json={"slides": slides})

        assert response.status_code == 200
        prs = Presentation(io.BytesIO(response.content))
        for slide in prs.slides:
            assert not [s for s in slide.shapes if s.shape_type == MSO_SHAPE_TYPE.PICTURE]

    @pytest.mark.asyncio
    async def test_export_does_not_block_event_loop(self):
        deck = [Slide(title=f"Slide {i}", image=f"https://example.com/{i}.jpg") for i in range(3)]
        ticks = []

        async def ticker():
            while True:
                ticks.append(time.monotonic())
                await asyncio.sleep(0.02)

        def slow_fetch(uri, *args, **kwargs):
            time.sleep(0.3)
            return None

        with patch("src.services.export.pptx.load_image", side_effect=slow_fetch):
            task = asyncio.create_task(ticker())
            response = await document_response(deck, "Topic", "pptx")
            task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert response.status_code == 200
        assert len(ticks) >= 10


class TestSessionsAPI:
    """Tests for conversation endpoints."""

    def test_conversation_turn(self, client, history_store, use_dispatcher, model_deck):
        use_dispatcher([model_deck(5)])
        key = client.post("/api/sessions").json()["key"]

        response = client.post(f"/api/sessions/{key}/messages", json={"text": "Solar Power"})

        assert response.status_code == 200
        data = response.json()
        assert data["phase"] == "displaying"
        assert data["slide_count"] == 5
        assert data["message_count"] == 2
        assert client.get(f"/api/sessions/{key}").json()["session_id"] == data["session_id"]

        with patch("src.services.export.pptx.load_image", return_value=None):
            export = client.get(f"/api/sessions/{key}/export/pptx")
        assert export.status_code == 200
        assert "Solar%20Power.pptx" in export.headers["content-disposition"]

    def test_empty_message(self, client, history_store, use_dispatcher):
        use_dispatcher([])
        key = client.post("/api/sessions").json()["key"]

        response = client.post(f"/api/sessions/{key}/messages", json={"text": ""})

        assert response.status_code == 400

    def test_unknown_session(self, client):
        assert client.get("/api/sessions/nope").status_code == 404

    def test_fatal_failure_cannot_retry(self, client, history_store, use_dispatcher):
        use_dispatcher([RuntimeError("quota exceeded")])
        key = client.post("/api/sessions").json()["key"]

        data = client.post(f"/api/sessions/{key}/messages", json={"text": "Solar Power"}).json()

        assert data["phase"] == "erroring"
        assert data["error"]["category"] == "rate_limited"
        assert data["slide_count"] == 4
        assert client.post(f"/api/sessions/{key}/retry").status_code == 409

    def test_reset(self, client, history_store, use_dispatcher, model_deck):
        use_dispatcher([model_deck(3)])
        key = client.post("/api/sessions").json()["key"]
        client.post(f"/api/sessions/{key}/messages", json={"text": "Topic"})

        data = client.post(f"/api/sessions/{key}/reset").json()

        assert data["phase"] == "idle"
        assert data["slide_count"] == 0
        assert client.get(f"/api/sessions/{key}/export/pdf").status_code == 400

    def test_load_from_history(self, client, history_store, use_dispatcher, sample_session):
        use_dispatcher([])
        history_store.path.write_text(json.dumps({STORAGE_KEY: [sample_session.model_dump(mode="json")]}))
        key = client.post("/api/sessions").json()["key"]

        data = client.post(f"/api/sessions/{key}/load/session-1").json()

        assert data["phase"] == "displaying"
        assert data["session_id"] == "session-1"
        assert data["slide_count"] == 2
        assert client.post(f"/api/sessions/{key}/load/missing").status_code == 404

    def test_delete_session(self, client, history_store, use_dispatcher, model_deck):
        use_dispatcher([model_deck(3)])
        key = client.post("/api/sessions").json()["key"]
        client.post(f"/api/sessions/{key}/messages", json={"text": "Topic"})

        response = client.delete(f"/api/sessions/{key}")

        assert response.status_code == 200
        assert response.json() == {"deleted": key}
        assert key not in session_controllers
        assert client.get(f"/api/sessions/{key}").status_code == 404
        assert client.delete(f"/api/sessions/{key}").status_code == 404
        assert len(history_store.load()) == 1


class TestSlideEditingAPI:
    """Tests for per-slide editing endpoints."""

    @pytest.fixture
    def loaded_key(self, client, history_store, use_dispatcher, sample_session):
        use_dispatcher([])
        history_store.path.write_text(json.dumps({STORAGE_KEY: [sample_session.model_dump(mode="json")]}))
        key = client.post("/api/sessions").json()["key"]
        client.post(f"/api/sessions/{key}/load/session-1")
        return key

    def test_update_slide(self, client, loaded_key):
        response = client.put(f"/api/sessions/{loaded_key}/slides/1", json={"title": "Qubits 101"})

        assert response.status_code == 200
        slide = response.json()["deck"][1]
        assert slide["title"] == "Qubits 101"
        assert slide["subtitle"] == "The basic unit"

    def test_update_requires_a_field(self, client, loaded_key):
        assert client.put(f"/api/sessions/{loaded_key}/slides/1", json={}).status_code == 400
        assert client.put(f"/api/sessions/{loaded_key}/slides/9", json={"title": "x"}).status_code == 400

    def test_add_duplicate_move_delete(self, client, loaded_key):
        base = f"/api/sessions/{loaded_key}/slides"

        assert client.post(base).json()["deck"][-1]["title"] == "New Slide"
        assert client.post(f"{base}/0/duplicate").json()["slide_count"] == 4
        moved = client.post(f"{base}/3/move", json={"to": 0}).json()
        assert [s["title"] for s in moved["deck"]] == [
            "New Slide",
            "Quantum Computing",
            "Quantum Computing (Copy)",
            "Qubits",
        ]
        deleted = client.delete(f"{base}/0").json()
        assert deleted["slide_count"] == 3

    def test_regenerate_image(self, client, loaded_key):
        before = client.get(f"/api/sessions/{loaded_key}").json()["deck"][1]["image"]

        after = client.post(f"/api/sessions/{loaded_key}/slides/1/image").json()["deck"][1]["image"]

        assert after != before
        assert after.startswith("https://picsum.photos/seed/")

    def test_last_slide_cannot_be_deleted(self, client, loaded_key):
        base = f"/api/sessions/{loaded_key}/slides"
        client.delete(f"{base}/0")

        response = client.delete(f"{base}/0")

        assert response.status_code == 400
        assert client.get(f"/api/sessions/{loaded_key}").json()["slide_count"] == 1

    def test_no_deck_to_edit(self, client):
        key = client.post("/api/sessions").json()["key"]

        assert client.post(f"/api/sessions/{key}/slides").status_code == 400

    def test_busy_session_rejects_edits(self, client, loaded_key):
        controller = session_controllers[loaded_key]
        controller._state = transitions.begin_turn(controller.state, "Add a conclusion")

        assert client.post(f"/api/sessions/{loaded_key}/slides").status_code == 409
        assert client.put(f"/api/sessions/{loaded_key}/slides/0", json={"title": "x"}).status_code == 409
