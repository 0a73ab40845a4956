import asyncio

import pytest
from fastapi.testclient import TestClient

from grlkrash import config
from grlkrash.auth import SessionMint
from grlkrash.chain import LocalSigner
from grlkrash.server import RL_STRICT, create_app

from .conftest import TEST_KEY, WALLET, FakeToken

DAY = 24 * 60 * 60
ADMIN = {"X-Admin-Key": "admin-secret"}


@pytest.fixture
def token(clock):
    return FakeToken(balances={WALLET.lower(): 5000}, first_received={WALLET.lower(): clock() - 30 * DAY})


@pytest.fixture
def agent(make_agent, token):
    return make_agent(token=token)


@pytest.fixture
def mint(tmp_path):
    return SessionMint(secret="s3cret", location="test", db_path=tmp_path / "sessions.db")


@pytest.fixture
def client(agent, mint, monkeypatch):
    monkeypatch.setattr(config, "ADMIN_KEY", "admin-secret")
    return TestClient(create_app(agent, mint=mint))


def bearer(mint, user_id="alice"):
    token, _ = mint.create_session(user_id)
    return {"Authorization": f"Bearer {token}"}


def verify_wallet(client, headers):
    signer = LocalSigner(TEST_KEY)
    challenge = client.post("/governance/identity/challenge", json={"wallet": signer.address}, headers=headers)
    assert challenge.status_code == 200
    signature = signer.sign_message(challenge.json()["message"])
    return client.post(
        "/governance/identity/verify",
        json={"wallet": signer.address, "signature": signature},
        headers=headers,
    )


def test_root_and_health(client):
    assert client.get("/").json()["status"] == "operational"
    health = client.get("/health").json()
    assert health["services"]["twitter"] is True
    assert health["stats"]["cycles"] == 0


def test_rate_limits_unused_key_is_unbounded(client):
    body = client.get("/rate-limits/twitter/post").json()
    assert body["hourly"]["remaining"] is None


def test_rate_limits_after_use(client, agent):
    agent.rate_limits.acquire("twitter", "post")
    body = client.get("/rate-limits/twitter/post").json()
    assert body["hourly"]["remaining"] == config.PLATFORM_LIMITS["twitter:post"]["per_hour"] - 1


def test_milestones_and_pending(client):
    assert isinstance(client.get("/milestones").json()["milestones"], list)
    assert client.get("/transactions/pending").json() == {"enabled": False, "pending": []}


def test_token_requires_admin_key(client):
    assert client.post("/auth/token", json={"user_id": "alice"}).status_code == 403
    assert client.post("/auth/token", json={"user_id": "alice"}, headers={"X-Admin-Key": "nope"}).status_code == 403


def test_token_issued(client, mint):
    response = client.post("/auth/token", json={"user_id": "alice", "ttl_seconds": 60}, headers=ADMIN)
    assert response.status_code == 200
    assert mint.verify(response.json()["token"]) == "alice"


def test_token_bad_body(client):
    assert client.post("/auth/token", json={}, headers=ADMIN).status_code == 400
    assert client.post("/auth/token", content=b"{oops", headers=ADMIN).status_code == 400


def test_governance_writes_need_bearer(client):
    assert client.post("/governance/proposals", json={"title": "t", "description": "d"}).status_code == 401
    bad = {"Authorization": "Bearer garbage"}
    assert client.post("/governance/proposals", json={"title": "t", "description": "d"}, headers=bad).status_code == 401


def test_proposal_needs_identity(client, mint):
    response = client.post("/governance/proposals", json={"title": "t", "description": "d"}, headers=bearer(mint))
    assert response.status_code == 403


def test_identity_then_proposal_and_vote(client, mint):
    headers = bearer(mint)
    verified = verify_wallet(client, headers)
    assert verified.status_code == 200
    assert verified.json()["identity"]["wallet_address"] == WALLET

    created = client.post(
        "/governance/proposals", json={"title": "More memes", "description": "daily memes"}, headers=headers
    )
    assert created.status_code == 200
    proposal_id = created.json()["id"]

    listed = client.get("/governance/proposals").json()["proposals"]
    assert [p["id"] for p in listed] == [proposal_id]
    assert client.get(f"/governance/proposals/{proposal_id}").json()["title"] == "More memes"

    vote = client.post(f"/governance/proposals/{proposal_id}/vote", json={"support": True}, headers=headers)
    assert vote.status_code == 200
    assert vote.json()["votes_for"] > 0

    again = client.post(f"/governance/proposals/{proposal_id}/vote", json={"support": True}, headers=headers)
    assert again.status_code == 403


def on_event_loop():
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


def test_governance_chain_reads_run_off_the_event_loop(client, mint, token, monkeypatch):
    seen = []
    balance_of = token.balance_of

    def recording_balance_of(wallet):
        seen.append(on_event_loop())
        return balance_of(wallet)

    monkeypatch.setattr(token, "balance_of", recording_balance_of)
    headers = bearer(mint)
    assert verify_wallet(client, headers).status_code == 200

    created = client.post("/governance/proposals", json={"title": "t", "description": "d"}, headers=headers)
    assert created.status_code == 200
    vote = client.post(f"/governance/proposals/{created.json()['id']}/vote", json={"support": True}, headers=headers)
    assert vote.status_code == 200

    assert seen
    assert not any(seen)


def test_bad_signature_rejected(client, mint):
    headers = bearer(mint)
    client.post("/governance/identity/challenge", json={"wallet": WALLET}, headers=headers)
    response = client.post(
        "/governance/identity/verify", json={"wallet": WALLET, "signature": "0x" + "11" * 65}, headers=headers
    )
    assert response.status_code == 403


def test_unknown_proposal(client, mint):
    assert client.get("/governance/proposals/99").status_code == 404
    vote = client.post("/governance/proposals/99/vote", json={"support": True}, headers=bearer(mint))
    assert vote.status_code == 404


def test_vote_requires_boolean(client, mint):
    vote = client.post("/governance/proposals/1/vote", json={"support": "yes"}, headers=bearer(mint))
    assert vote.status_code == 400


def test_strict_limiter(client):
    statuses = [client.post("/auth/token", json={}).status_code for _ in range(RL_STRICT + 1)]
    assert statuses[-1] == 429
    assert 429 not in statuses[:-1]
