from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from pose_stream.landmarks import utc_now
from pose_stream.server import create_app, parse_limit
from pose_stream.store import PoseStore

LANDMARKS = [{"x": 0.5, "y": 0.5, "z": 0, "visibility": 1} for _ in range(33)]


def _parse(moment: str) -> datetime:
    return datetime.fromisoformat(moment.replace("Z", "+00:00"))


@pytest.fixture
def store():
    return PoseStore()


@pytest.fixture
def client(store):
    return TestClient(create_app(store=store))


def test_ingest_then_read_back(client):
    before = utc_now().replace(microsecond=0)

    response = client.post("/api/pose-landmarks", json={"landmarks": LANDMARKS, "sessionId": "s1"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Pose landmarks received successfully"
    assert isinstance(body["id"], int)

    data = client.get("/api/pose-data", params={"limit": 1}).json()
    assert data["total"] == 1
    [entry] = data["data"]
    assert entry["id"] == body["id"]
    assert entry["sessionId"] == "s1"
    assert entry["landmarks"] == LANDMARKS
    assert _parse(entry["receivedAt"]) >= before


def test_ingest_keeps_client_timestamp(client):
    client.post(
        "/api/pose-landmarks",
        json={"landmarks": LANDMARKS, "timestamp": "2024-05-01T10:00:00.000Z", "sessionId": "s2"},
    )

    entry = client.get("/api/pose-data").json()["data"][0]

    assert entry["timestamp"] == "2024-05-01T10:00:00.000Z"


@pytest.mark.parametrize(
    "body",
    [
        {},
        {"landmarks": None},
        {"landmarks": "not-a-list"},
        {"landmarks": {"x": 0.5}},
        {"landmarks": 3},
    ],
)
def test_invalid_landmarks_rejected_without_mutation(client, store, body):
    response = client.post("/api/pose-landmarks", json=body)

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid landmarks data", "message": "Landmarks must be an array"}
    assert len(store) == 0


@pytest.mark.parametrize("raw", [b"not json", b"[1, 2, 3]", b""])
def test_malformed_body_is_client_error(client, store, raw):
    response = client.post("/api/pose-landmarks", content=raw, headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert set(response.json()) == {"error", "message"}
    assert len(store) == 0


def test_unexpected_fault_returns_500_and_leaves_store_untouched():
    class BrokenStore(PoseStore):
        def append(self, landmarks, timestamp=None, session_id=None):
            raise RuntimeError("disk full")

    store = BrokenStore()
    client = TestClient(create_app(store=store))

    response = client.post("/api/pose-landmarks", json={"landmarks": LANDMARKS})

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error", "message": "Failed to process pose landmarks"}
    assert len(store) == 0


def test_fault_building_response_still_returns_structured_500():
    class MalformedEntryStore(PoseStore):
        def append(self, landmarks, timestamp=None, session_id=None):
            entry = super().append(landmarks, timestamp, session_id)
            return entry.model_copy(update={"id": "not-a-number"})

    client = TestClient(create_app(store=MalformedEntryStore()))

    response = client.post("/api/pose-landmarks", json={"landmarks": LANDMARKS})

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error", "message": "Failed to process pose landmarks"}


def test_pose_data_default_and_explicit_limit(client):
    for index in range(15):
        client.post("/api/pose-landmarks", json={"landmarks": [], "sessionId": f"s{index}"})

    default = client.get("/api/pose-data").json()
    assert default["total"] == 15
    assert len(default["data"]) == 10

    limited = client.get("/api/pose-data", params={"limit": 3}).json()
    assert [entry["sessionId"] for entry in limited["data"]] == ["s12", "s13", "s14"]

    fallback = client.get("/api/pose-data", params={"limit": "abc"}).json()
    assert len(fallback["data"]) == 10


def test_fifo_eviction_through_api():
    store = PoseStore(capacity=5)
    client = TestClient(create_app(store=store))

    for index in range(8):
        client.post("/api/pose-landmarks", json={"landmarks": [], "sessionId": f"s{index}"})

    data = client.get("/api/pose-data", params={"limit": 100}).json()
    assert data["total"] == 5
    assert [entry["sessionId"] for entry in data["data"]] == ["s3", "s4", "s5", "s6", "s7"]


def test_health_reports_store_size(client):
    client.post("/api/pose-landmarks", json={"landmarks": LANDMARKS})

    body = client.get("/api/health").json()

    assert body["status"] == "healthy"
    assert body["storedEntries"] == 1
    assert body["timestamp"].endswith("Z")


def test_root_serves_static_page(client):
    response = client.get("/")

    assert response.status_code == 200
    assert "Pose Landmark Collector" in response.text


def test_apps_do_not_share_state():
    first = TestClient(create_app())
    second = TestClient(create_app())

    first.post("/api/pose-landmarks", json={"landmarks": []})

    assert second.get("/api/health").json()["storedEntries"] == 0


@pytest.mark.parametrize(
    "raw,expected",
    [(None, 10), ("3", 3), ("abc", 10), ("0", 10), ("-4", 10), (" 7 ", 7), ("2.5", 2), ("3abc", 3), ("x3", 10)],
)
def test_parse_limit(raw, expected):
    assert parse_limit(raw) == expected
