# tests/test_api.py
from __future__ import annotations

import pytest

pytestmark = pytest.mark.anyio


@pytest.fixture
async def api_election(client, positions, members):
    r = await client.post("/elections", json={"name": "AGO 2026", "position_ids": [p.id for p in positions]})
    assert r.status_code == 201, r.text
    return r.json()


@pytest.fixture
async def open_ballot(client, api_election, positions, members):
    eid = api_election["id"]
    cands = []
    for m in members[:2]:
        r = await client.post(f"/elections/{eid}/candidates", json={"position_id": positions[0].id, "member_id": m.id})
        assert r.status_code == 201, r.text
        cands.append(r.json())
    r = await client.post(f"/elections/{eid}/advance")
    assert r.status_code == 200, r.text
    ep = r.json()
    for m in members[:10]:
        r = await client.put(f"/elections/positions/{ep['id']}/attendance", json={"member_id": m.id})
        assert r.status_code == 204, r.text
    return ep, cands


async def vote(client, ep_id, voter_id, candidate_id):
    return await client.post(
        f"/elections/positions/{ep_id}/votes", json={"voter_id": voter_id, "candidate_id": candidate_id}
    )


async def test_healthz(client):
    r = await client.get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


async def test_readyz(client):
    r = await client.get("/readyz")
    assert r.status_code == 200
    assert r.json()["database"] == "ok"


async def test_second_active_election_conflicts(client, api_election):
    r = await client.post("/elections", json={"name": "Other"})
    assert r.status_code == 409
    detail = r.json()["detail"]
    assert detail["error_code"] == "election_already_active"
    assert detail["context"]["active_election_id"] == api_election["id"]


async def test_vote_and_duplicate(client, open_ballot, members):
    ep, (a, b) = open_ballot
    r = await vote(client, ep["id"], members[0].id, a["id"])
    assert r.status_code == 201
    assert r.json()["vote_id"] > 0

    r = await vote(client, ep["id"], members[0].id, b["id"])
    assert r.status_code == 409
    assert r.json()["detail"]["error_code"] == "duplicate_vote"


async def test_absent_voter_is_forbidden(client, open_ballot, members):
    ep, (a, _) = open_ballot
    r = await client.put(f"/elections/positions/{ep['id']}/attendance", json={"member_id": members[3].id, "present": False})
    assert r.status_code == 204
    r = await vote(client, ep["id"], members[3].id, a["id"])
    assert r.status_code == 403
    assert r.json()["detail"]["error_code"] == "not_eligible"


async def test_close_round_and_results(client, api_election, open_ballot, members):
    ep, (a, b) = open_ballot
    for i, m in enumerate(members[:10]):
        r = await vote(client, ep["id"], m.id, a["id"] if i < 6 else b["id"])
        assert r.status_code == 201

    r = await client.post(f"/elections/positions/{ep['id']}/close-round", json={"expected_round": 1})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["decision"] == "elected"
    assert body["winner_candidate_id"] == a["id"]
    assert body["tally"][0] == {"candidate_id": a["id"], "vote_count": 6}

    r = await client.post(f"/elections/positions/{ep['id']}/close-round", json={"expected_round": 1})
    assert r.status_code == 202
    assert r.json()["detail"]["error_code"] == "already_processed"

    r = await client.get(f"/elections/{api_election['id']}/results")
    assert r.status_code == 200
    first = r.json()["positions"][0]
    assert first["winner_id"] == a["id"]
    assert first["decided_by"] == "majority"


async def test_tie_reports_tally(client, api_election, open_ballot, members):
    ep, (a, b) = open_ballot
    for rnd in (1, 2, 3):
        for i, m in enumerate(members[:10]):
            r = await vote(client, ep["id"], m.id, a["id"] if i < 5 else b["id"])
            assert r.status_code == 201
        r = await client.post(f"/elections/positions/{ep['id']}/close-round", json={"expected_round": rnd})
        if rnd < 3:
            assert r.json()["next_scrutiny"] == rnd + 1

    assert r.status_code == 409
    detail = r.json()["detail"]
    assert detail["error_code"] == "tie_unresolved"
    assert {t["candidate_id"] for t in detail["context"]["tally"]} == {a["id"], b["id"]}

    r = await client.post(
        f"/elections/positions/{ep['id']}/force-winner",
        json={"candidate_id": b["id"], "reason": "re-vote by show of hands"},
    )
    assert r.status_code == 200, r.text
    assert r.json()["decided_by"] == "override"
    assert r.json()["won_at_scrutiny"] == 3

    r = await client.get(f"/elections/{api_election['id']}/admin-actions")
    assert r.status_code == 200
    (entry,) = r.json()
    assert entry["action"] == "force_winner"
    assert entry["election_position_id"] == ep["id"]
    assert entry["details"]["reason"] == "re-vote by show of hands"


async def test_out_of_order_open(client, api_election, positions):
    r = await client.post(f"/elections/{api_election['id']}/positions/{positions[2].id}/open")
    assert r.status_code == 409
    assert r.json()["detail"]["error_code"] == "out_of_order"


async def test_unknown_election_is_404(client):
    r = await client.get("/elections/9999/audit")
    assert r.status_code == 404
    assert r.json()["detail"]["error_code"] == "not_found"


async def test_void_vote_endpoint(client, open_ballot, members):
    ep, (a, _) = open_ballot
    vote_id = (await vote(client, ep["id"], members[0].id, a["id"])).json()["vote_id"]
    r = await client.request("DELETE", f"/elections/votes/{vote_id}", json={"reason": "misclick"})
    assert r.status_code == 204
    r = await vote(client, ep["id"], members[0].id, a["id"])
    assert r.status_code == 201


async def test_verification_requires_closed_election(client, api_election):
    r = await client.post(f"/elections/{api_election['id']}/verifications", json={})
    assert r.status_code == 409
    assert r.json()["detail"]["error_code"] == "invalid_state"
