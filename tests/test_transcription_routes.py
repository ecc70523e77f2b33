import json

from fastapi.testclient import TestClient

from app.core.errors import AccessDenied, InvalidUrl
from app.schemas.document import DocumentTarget
from app.schemas.transcript import TranscriptEvent
from app.services.strategies import TranscriptionStrategy, transcription_result
from main import app


class FakeNotion:
    def __init__(self, error=None):
        self.error = error
        self.appends = []

    async def check_access(self, url):
        if self.error:
            raise self.error
        return DocumentTarget(page_id="page1", anchor_id="anchor0")

    async def append_text(self, page_id, text, after=None):
        self.appends.append((text, after))
        return f"block-{len(self.appends)}"


class EchoStrategy(TranscriptionStrategy):
    """Publishes one final transcript per chunk, echoing its base64 payload."""

    name = "echo"
    instances = []

    def __init__(self, settings, gladia, publish, append):
        super().__init__(settings, publish, append)
        self.chunks = []
        self.closed = False
        EchoStrategy.instances.append(self)

    async def handle_audio_chunk(self, chunk_b64):
        self.chunks.append(chunk_b64)
        await self._emit(TranscriptEvent(type="final", transcription=chunk_b64))

    async def close(self):
        self.closed = True


def patch_services(monkeypatch, notion):
    from app.api import routes_transcription
    from app.services import relay

    monkeypatch.setattr(routes_transcription, "get_notion_client", lambda: notion)
    monkeypatch.setattr(routes_transcription, "get_gladia_client", lambda: object())
    monkeypatch.setattr(relay, "create_strategy", EchoStrategy)
    EchoStrategy.instances = []


def test_set_target_success(monkeypatch):
    notion = FakeNotion()
    patch_services(monkeypatch, notion)
    client = TestClient(app)

    with client.websocket_connect("/ws/transcription") as ws:
        ws.send_json({"type": "setTarget", "url": "https://www.notion.so/Page-page1#anchor0"})
        resp = ws.receive_json()

    assert resp["type"] == "targetResponse"
    assert resp["status"] == "success"
    assert resp["cursor"] == {"page_id": "page1", "anchor_id": "anchor0", "last_block_id": "block-1"}
    assert notion.appends == [("Starting transcription...", "anchor0")]


def test_set_target_accepts_notion_url_key(monkeypatch):
    patch_services(monkeypatch, FakeNotion())
    client = TestClient(app)

    with client.websocket_connect("/ws/transcription") as ws:
        ws.send_json({"type": "setTarget", "notionUrl": "https://www.notion.so/Page-page1"})
        assert ws.receive_json()["status"] == "success"


def test_set_target_invalid_url(monkeypatch):
    notion = FakeNotion(error=InvalidUrl("nope"))
    patch_services(monkeypatch, notion)
    client = TestClient(app)

    with client.websocket_connect("/ws/transcription") as ws:
        ws.send_json({"type": "setTarget", "url": "https://elsewhere.example/x"})
        resp = ws.receive_json()

    assert resp == {"type": "targetResponse", "status": "error", "message": "Invalid Notion URL"}
    assert notion.appends == []


def test_audio_frame_result_is_broadcast_and_session_closed(monkeypatch):
    patch_services(monkeypatch, FakeNotion())
    client = TestClient(app)

    with client.websocket_connect("/ws/transcription") as ws:
        ws.send_json({"type": "audioFrame", "data": "AAEC"})
        resp = ws.receive_json()

    assert resp["type"] == "transcriptionResult"
    event = json.loads(resp["data"])
    assert event["type"] == "final" and event["transcription"] == "AAEC"
    strategy = EchoStrategy.instances[0]
    assert strategy.chunks == ["AAEC"]
    assert strategy.closed


def test_check_access_message(monkeypatch):
    patch_services(monkeypatch, FakeNotion())
    client = TestClient(app)

    with client.websocket_connect("/ws/transcription") as ws:
        ws.send_json({"type": "checkAccess", "url": "https://www.notion.so/Page-page1#anchor0"})
        resp = ws.receive_json()

    assert resp == {"type": "checkAccessResponse", "anchorId": "anchor0", "pageId": "page1"}


def test_bad_messages_get_errors(monkeypatch):
    patch_services(monkeypatch, FakeNotion())
    client = TestClient(app)

    with client.websocket_connect("/ws/transcription") as ws:
        ws.send_text("{not json")
        assert ws.receive_json()["type"] == "error"
        ws.send_json({"type": "dance"})
        assert "Unknown message type" in ws.receive_json()["message"]
        ws.send_json({"type": "audioFrame"})
        assert ws.receive_json()["type"] == "error"
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}


def test_check_access_http(monkeypatch):
    from app.api import routes_notion

    client = TestClient(app)

    monkeypatch.setattr(routes_notion, "get_notion_client", lambda: FakeNotion())
    r = client.post("/notion/check-access", json={"notion_url": "https://www.notion.so/Page-page1#anchor0"})
    assert r.status_code == 200
    assert r.json()["block_id"] == "anchor0"

    monkeypatch.setattr(routes_notion, "get_notion_client", lambda: FakeNotion(error=AccessDenied("denied")))
    r = client.post("/notion/check-access", json={"notion_url": "https://www.notion.so/Page-page1#anchor0"})
    assert r.status_code == 403

    monkeypatch.setattr(routes_notion, "get_notion_client", lambda: FakeNotion(error=InvalidUrl("bad")))
    r = client.post("/notion/check-access", json={"notion_url": "https://elsewhere.example"})
    assert r.status_code == 400


def test_health_ready():
    client = TestClient(app)
    r = client.get("/health/ready")
    assert r.status_code == 200
    assert r.json()["status"] == "ready"


def test_transcription_result_payload_shape():
    payload = transcription_result(TranscriptEvent(type="partial", transcription="bon"))
    assert payload["type"] == "transcriptionResult"
    assert json.loads(payload["data"])["event"] == "transcript"


class BrokenStartStrategy(EchoStrategy):
    async def start(self):
        raise RuntimeError("provider unreachable")


def test_failed_session_open_is_cleaned_up(monkeypatch):
    from app.services import relay
    from app.services.viewer_hub import get_viewer_hub

    patch_services(monkeypatch, FakeNotion())
    monkeypatch.setattr(relay, "create_strategy", BrokenStartStrategy)
    hub = get_viewer_hub()
    viewers_before = len(hub)
    client = TestClient(app)

    with client.websocket_connect("/ws/transcription") as ws:
        resp = ws.receive_json()

    assert resp == {"type": "error", "message": "provider unreachable"}
    strategy = EchoStrategy.instances[0]
    assert strategy.closed
    assert len(hub) == viewers_before
