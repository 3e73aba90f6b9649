from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from api_server import app
from app.core.container import global_container
from app.core.settings import settings
from job_store import IntentStatus

TX_HASH = "0x" + "ab" * 31 + "cdef"


@pytest.fixture
def verifier():
    v = MagicMock()
    v.verify.side_effect = lambda token: {"sub": token} if token else None
    with patch.object(global_container, "session_verifier", v):
        yield v


@pytest.fixture
def client(verifier, job_store):
    with patch("api_server.run_intent_job") as runner:
        c = TestClient(app)
        c.runner = runner
        yield c


def _login(client, user="u1"):
    client.cookies.set(settings.AUTH_COOKIE_NAME, user)


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert r.json()["backend_url"].endswith("/")


def test_login_page_and_redirects(client):
    r = client.get("/", follow_redirects=False)
    assert r.status_code == 200
    assert "Log in" in r.text

    r = client.get("/dashboard", follow_redirects=False)
    assert r.status_code == 302
    assert r.headers["location"] == "/"

    _login(client)
    r = client.get("/", follow_redirects=False)
    assert r.status_code == 302
    assert r.headers["location"] == "/dashboard"


def test_dashboard_idle_shows_form(client):
    _login(client)
    r = client.get("/dashboard")
    assert r.status_code == 200
    assert "Enter your heart" in r.text
    assert "Submit" in r.text
    assert 'http-equiv="refresh"' not in r.text


def test_dashboard_submit_schedules_job(client, job_store):
    _login(client)
    r = client.post("/dashboard", data={"intent": "send 1 USDC to vitalik.eth"}, follow_redirects=False)
    assert r.status_code == 303
    job = job_store.latest_for("u1")
    assert job is not None
    assert job.text == "send 1 USDC to vitalik.eth"
    client.runner.assert_called_once_with(job.job_id)

    page = client.get("/dashboard").text
    assert "Loading..." in page
    assert 'http-equiv="refresh"' in page


def test_dashboard_popup_and_dismiss(client, job_store):
    _login(client)
    job = job_store.create(owner="u1", text="send")
    job_store.transition(job.job_id, IntentStatus.LOADING)
    job_store.transition(
        job.job_id,
        IntentStatus.SUBMITTED,
        message="Transfer sent! Awaiting Confirmation ⌛",
        tx_hash=TX_HASH,
        explorer_url=f"https://sepolia.etherscan.io/tx/{TX_HASH}",
    )

    page = client.get("/dashboard").text
    assert "Transfer sent! Awaiting Confirmation" in page
    assert "0xabab...cdef" in page
    assert f"https://sepolia.etherscan.io/tx/{TX_HASH}" in page

    r = client.post("/dashboard/dismiss", data={"job_id": job.job_id}, follow_redirects=False)
    assert r.status_code == 303
    page = client.get("/dashboard").text
    assert "0xabab...cdef" not in page
    assert "Loading..." in page


def test_api_intents_lifecycle(client):
    r = client.post("/api/intents", json={"question": "swap 1 DAI for USDC"})
    assert r.status_code == 401

    _login(client)
    r = client.post("/api/intents", json={"question": "swap 1 DAI for USDC"})
    assert r.status_code == 200
    job_id = r.json()["data"]["job"]["job_id"]
    client.runner.assert_called_once_with(job_id)

    r = client.post("/api/intents", json={"question": "again"})
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "job_in_flight"

    r = client.get(f"/api/intents/{job_id}")
    assert r.status_code == 200
    assert r.json()["data"]["job"]["status"] == "idle"

    _login(client, "u2")
    r = client.get(f"/api/intents/{job_id}")
    assert r.status_code == 404


def test_api_intents_empty_question(client):
    _login(client)
    r = client.post("/api/intents", json={"question": "  "})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "empty_intent"


def test_logout_clears_cookie(client):
    _login(client)
    r = client.post("/logout", follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/"
    assert settings.AUTH_COOKIE_NAME in r.headers.get("set-cookie", "")
