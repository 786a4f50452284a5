"""HTTP API against an in-memory SQLite database."""

import pytest


@pytest.fixture
def game_id(client, auth_headers):
    response = client.post("/games/create", json={"name": "Artemis Table 1"}, headers=auth_headers)
    assert response.status_code == 200
    return response.json()["game_id"]


def _add_player(client, headers, game_id, name, specialization):
    response = client.post(
        f"/games/{game_id}/players",
        json={"name": name, "specialization": specialization},
        headers=headers,
    )
    assert response.status_code == 200, response.text
    return response.json()["events"][0]["payload"]["player_id"]


# ----- Auth -----

def test_register_login_me(client, auth_headers):
    me = client.get("/auth/me", headers=auth_headers)
    assert me.status_code == 200
    assert me.json()["username"] == "facilitator"

    login = client.post("/auth/login", json={"email": "facilitator@example.com", "password": "moonbase-alpha"})
    assert login.status_code == 200
    assert login.json()["access_token"]

    bad = client.post("/auth/login", json={"email": "facilitator@example.com", "password": "wrong"})
    assert bad.status_code == 401


def test_register_rejects_duplicates_and_bad_usernames(client, auth_headers):
    duplicate = client.post("/auth/register", json={
        "email": "facilitator@example.com", "username": "other", "password": "x",
    })
    assert duplicate.status_code == 400
    bad_name = client.post("/auth/register", json={
        "email": "new@example.com", "username": "has space", "password": "x",
    })
    assert bad_name.status_code == 400


def test_mutations_require_token(client):
    assert client.post("/games/create", json={"name": "No auth"}).status_code == 401
    bogus = {"Authorization": "Bearer not-a-token"}
    assert client.post("/games/create", json={"name": "No auth"}, headers=bogus).status_code == 401


def test_tokens_must_carry_the_facilitator_scope(client, auth_headers):
    from jose import jwt

    from lunar_policy.api.auth import ALGORITHM, SECRET_KEY, decode_token

    token = auth_headers["Authorization"].split(" ", 1)[1]
    claims = decode_token(token)
    assert claims["username"] == "facilitator"
    assert claims["scope"] == "facilitator"

    unscoped = jwt.encode({"sub": claims["sub"], "exp": claims["exp"]}, SECRET_KEY, algorithm=ALGORITHM)
    assert decode_token(unscoped) is None
    me = client.get("/auth/me", headers={"Authorization": f"Bearer {unscoped}"})
    assert me.status_code == 401


def test_settings(client):
    body = client.get("/settings").json()
    assert body["win"] == {"ev_threshold": 250, "rep_threshold": 0}
    assert body["tie_mode"] == "tiebreaker-ev-plus-rep"


# ----- Games -----

def test_list_and_delete_games(client, auth_headers, game_id):
    games = client.get("/games", headers=auth_headers).json()["games"]
    assert [g["id"] for g in games] == [game_id]
    assert games[0]["status"] == "setup"
    assert games[0]["phase"] == "Setup"

    assert client.delete(f"/games/{game_id}", headers=auth_headers).status_code == 200
    assert client.get(f"/games/{game_id}/dashboard").status_code == 404


def test_unknown_game_is_404(client, auth_headers):
    assert client.get("/games/nope/dashboard").status_code == 404
    response = client.post("/games/nope/advance-phase", json={"current_version": 0}, headers=auth_headers)
    assert response.status_code == 404


def test_dashboard(client, auth_headers, game_id):
    _add_player(client, auth_headers, game_id, "Alice", "Resource Extractor")
    _add_player(client, auth_headers, game_id, "Bob", "Operations Manager")

    body = client.get(f"/games/{game_id}/dashboard").json()
    assert body["snapshot"]["game_state"] == {
        "round": 0,
        "phase": "Setup",
        "version": 0,
        "ended": False,
        "victory_type": None,
        "winner_player_ids": [],
    }
    assert [p["name"] for p in body["snapshot"]["players"]] == ["Alice", "Bob"]
    assert body["evaluation"]["ended"] is False
    assert body["locked"] is False
    assert "add_player" in body["available_actions"]
    assert [row["rank"] for row in body["leaderboard"]] == [1, 1]
    assert len(body["infrastructure"]) == 2


def test_only_the_creator_can_change_a_game(client, auth_headers, game_id):
    alice = _add_player(client, auth_headers, game_id, "Alice", "Resource Extractor")
    other = client.post("/auth/register", json={
        "email": "observer@example.com", "username": "observer", "password": "far-side",
    })
    assert other.status_code == 200
    other_headers = {"Authorization": f"Bearer {other.json()['access_token']}"}

    advance = client.post(f"/games/{game_id}/advance-phase", json={"current_version": 0}, headers=other_headers)
    assert advance.status_code == 403
    adjust = client.post(f"/games/{game_id}/players/{alice}/adjust", json={
        "ev_change": 500, "reason": "Not mine",
    }, headers=other_headers)
    assert adjust.status_code == 403
    assert client.delete(f"/games/{game_id}", headers=other_headers).status_code == 403

    # Reading the dashboard needs no ownership, and nothing above changed the game
    snapshot = client.get(f"/games/{game_id}/dashboard").json()["snapshot"]
    assert snapshot["game_state"]["version"] == 0
    assert snapshot["game_state"]["phase"] == "Setup"
    assert snapshot["players"][0]["ev"] == 50
    assert client.get("/games", headers=other_headers).json()["games"] == []


# ----- Version-gated controls -----

def test_advance_phase_and_stale_version(client, auth_headers, game_id):
    ok = client.post(f"/games/{game_id}/advance-phase", json={"current_version": 0}, headers=auth_headers)
    assert ok.status_code == 200
    state = ok.json()["state"]
    assert (state["phase"], state["round"], state["version"]) == ("Governance", 1, 1)

    stale = client.post(f"/games/{game_id}/advance-phase", json={"current_version": 0}, headers=auth_headers)
    assert stale.status_code == 409
    assert stale.json()["expected_version"] == 0
    assert stale.json()["current_version"] == 1
    assert stale.json()["detail"].startswith("Version mismatch")

    dashboard = client.get(f"/games/{game_id}/dashboard").json()
    assert dashboard["snapshot"]["game_state"]["phase"] == "Governance"


def test_rule_violations_are_400(client, auth_headers, game_id):
    response = client.post(f"/games/{game_id}/advance-round", json={"current_version": 0}, headers=auth_headers)
    assert response.status_code == 400
    response = client.post(
        f"/games/{game_id}/players",
        json={"name": "Zed", "specialization": "Pilot"},
        headers=auth_headers,
    )
    assert response.status_code == 400


def test_round_with_contract_and_build(client, auth_headers, game_id):
    alice = _add_player(client, auth_headers, game_id, "Alice", "Resource Extractor")
    bob = _add_player(client, auth_headers, game_id, "Bob", "Infrastructure Provider")
    client.post(f"/games/{game_id}/advance-phase", json={"current_version": 0}, headers=auth_headers)

    build = client.post(f"/games/{game_id}/infrastructure", json={
        "builder_id": alice, "owner_id": alice, "infrastructure_type": "Helium-3 Extractor",
    }, headers=auth_headers)
    assert build.status_code == 200

    contract = client.post(f"/games/{game_id}/contracts", json={
        "party_a_id": bob, "party_b_id": alice, "ev_from_a_to_b": 10,
    }, headers=auth_headers)
    assert contract.status_code == 200
    contract_id = contract.json()["events"][0]["payload"]["contract_id"]

    ended = client.post(f"/games/{game_id}/contracts/{contract_id}/end", json={}, headers=auth_headers)
    assert ended.status_code == 200

    client.post(f"/games/{game_id}/advance-phase", json={"current_version": 1}, headers=auth_headers)
    settled = client.post(f"/games/{game_id}/advance-round", json={"current_version": 2}, headers=auth_headers)
    assert settled.status_code == 200
    players = {p["id"]: p for p in settled.json()["state"]["players"]}
    # 50 - 20 build + 10 contract - 5 maintenance + 12 starter + 20 helium-3
    assert players[alice]["ev"] == 67
    # 10 + 2 create + 5 completion
    assert players[alice]["rep"] == 17
    assert players[bob]["ev"] == 40


def test_end_game_locks_the_dashboard(client, auth_headers, game_id):
    alice = _add_player(client, auth_headers, game_id, "Alice", "Resource Extractor")
    _add_player(client, auth_headers, game_id, "Bob", "Operations Manager")

    undecided = client.post(f"/games/{game_id}/end-game", json={"current_version": 0}, headers=auth_headers)
    assert undecided.status_code == 200
    assert undecided.json()["ended"] is False

    client.post(f"/games/{game_id}/players/{alice}/adjust", json={
        "ev_change": 5, "rep_change": 0, "reason": "Bonus",
    }, headers=auth_headers)
    forced = client.post(
        f"/games/{game_id}/end-game",
        json={"current_version": 0, "force": True},
        headers=auth_headers,
    )
    assert forced.status_code == 200
    assert forced.json()["ended"] is True
    assert forced.json()["state"]["victory_type"] == "tiebreaker"
    assert forced.json()["state"]["winner_player_ids"] == [alice]

    dashboard = client.get(f"/games/{game_id}/dashboard").json()
    assert dashboard["locked"] is True
    assert dashboard["available_actions"] == []
    assert dashboard["evaluation"]["winner_player_ids"] == [alice]

    late = client.post(f"/games/{game_id}/players/{alice}/adjust", json={
        "ev_change": 1, "reason": "Late",
    }, headers=auth_headers)
    assert late.status_code == 400

    games = client.get("/games", headers=auth_headers).json()["games"]
    assert games[0]["status"] == "ended"
