"""HTTP API and live channel tests against a real application."""

import pytest

from golfboard.scoreboard import GolfBoardSystem


@pytest.fixture
async def client(aiohttp_client, tmp_path, config):
    system = GolfBoardSystem(db_path=str(tmp_path / "web.db"), config=config)
    return await aiohttp_client(system.create_app())


async def _post(client, path, body, status=201):
    resp = await client.post(path, json=body)
    assert resp.status == status, await resp.text()
    return await resp.json()


@pytest.fixture
async def seeded(client):
    """Tournament with teams Eagles and Hawks and one round."""
    tournament = await _post(client, "/api/tournaments", {"name": "Spring Classic"})
    tid = tournament["tournament_id"]
    eagles = await _post(
        client,
        f"/api/tournaments/{tid}/teams",
        {"display_name": "Eagles", "player1": "Ann", "player2": "Ben"},
    )
    hawks = await _post(
        client,
        f"/api/tournaments/{tid}/teams",
        {"display_name": "Hawks", "player1": "Cal", "player2": "Dee"},
    )
    round1 = await _post(
        client, f"/api/tournaments/{tid}/rounds", {"round_number": 1, "date": "2026-05-01"}
    )
    return {"tid": tid, "eagles": eagles, "hawks": hawks, "round1": round1}


def _score(team, round_, hole_number, strokes, par):
    return {
        "team_id": team["team_id"],
        "round_id": round_["round_id"],
        "hole_number": hole_number,
        "strokes": strokes,
        "par": par,
    }


async def test_index(client):
    resp = await client.get("/")
    assert resp.status == 200
    data = await resp.json()
    assert data["live_updates"] is True
    assert data["title"]


async def test_tournament_listing(client, seeded):
    resp = await client.get("/api/tournaments")
    data = await resp.json()
    assert [t["name"] for t in data["tournaments"]] == ["Spring Classic"]


async def test_create_tournament_requires_name(client):
    resp = await client.post("/api/tournaments", json={"location": "Nowhere"})
    assert resp.status == 400
    assert (await resp.json())["error"] == "name is required"


async def test_duplicate_round_conflicts(client, seeded):
    resp = await client.post(f"/api/tournaments/{seeded['tid']}/rounds", json={"round_number": 1})
    assert resp.status == 409


async def test_team_for_missing_tournament(client):
    resp = await client.post(
        "/api/tournaments/77/teams",
        json={"display_name": "Owls", "player1": "Eve", "player2": "Fay"},
    )
    assert resp.status == 404


async def test_submit_score_and_read_leaderboard(client, seeded):
    data = await _post(client, "/api/scores", _score(seeded["hawks"], seeded["round1"], 1, 3, 4))
    assert data["strokes"] == 3
    assert data["team_name"] == "Hawks"
    assert data["new_position"] == 1

    await _post(client, "/api/scores", _score(seeded["eagles"], seeded["round1"], 1, 5, 4))

    resp = await client.get(f"/api/leaderboard/{seeded['tid']}")
    board = await resp.json()
    assert resp.status == 200
    assert [(e["display_name"], e["position"]) for e in board["entries"]] == [
        ("Hawks", 1),
        ("Eagles", 2),
    ]
    assert board["entries"][0]["per_round"]["1"]["to_par"] == -1


async def test_submit_score_validation(client, seeded):
    body = _score(seeded["hawks"], seeded["round1"], 19, 3, 4)
    resp = await client.post("/api/scores", json=body)
    assert resp.status == 400
    assert (await resp.json())["error"] == "Hole number must be between 1 and 18"

    body = _score(seeded["hawks"], seeded["round1"], 1, 3, 4)
    del body["par"]
    resp = await client.post("/api/scores", json=body)
    assert (await resp.json())["error"] == "Missing field: par"

    resp = await client.post("/api/scores", data="{not json", headers={"Content-Type": "application/json"})
    assert resp.status == 400


async def test_submit_score_for_unknown_team(client, seeded):
    resp = await client.post("/api/scores", json=_score({"team_id": 999}, seeded["round1"], 1, 4, 4))
    assert resp.status == 404


async def test_missing_tournament_leaderboard(client):
    resp = await client.get("/api/leaderboard/404")
    assert resp.status == 404
    assert "not found" in (await resp.json())["error"]


async def test_round_leaderboard(client, seeded):
    resp = await client.get(f"/api/leaderboard/{seeded['tid']}/round/1")
    data = await resp.json()
    assert resp.status == 200
    assert data["entries"] == []

    await _post(client, "/api/scores", _score(seeded["eagles"], seeded["round1"], 1, 4, 4))
    resp = await client.get(f"/api/leaderboard/{seeded['tid']}/round/1")
    data = await resp.json()
    assert [e["display_name"] for e in data["entries"]] == ["Eagles"]
    assert data["entries"][0]["hole_scores"] == [
        {"hole_number": 1, "strokes": 4, "par": 4, "to_par": 0}
    ]

    resp = await client.get(f"/api/leaderboard/{seeded['tid']}/round/3")
    assert (await resp.json())["entries"] == []


async def test_summary_and_team_position(client, seeded):
    await _post(client, "/api/scores", _score(seeded["eagles"], seeded["round1"], 1, 3, 4))

    resp = await client.get(f"/api/leaderboard/{seeded['tid']}/summary?top=1")
    summary = await resp.json()
    assert [e["display_name"] for e in summary["top_teams"]] == ["Eagles"]
    assert summary["total_teams"] == 2

    team_id = seeded["hawks"]["team_id"]
    resp = await client.get(f"/api/leaderboard/{seeded['tid']}/team/{team_id}/position?window=0")
    view = await resp.json()
    assert view["focus_team"]["position"] == 2
    assert len(view["surrounding_teams"]) == 1

    resp = await client.get(f"/api/leaderboard/{seeded['tid']}/team/999/position")
    assert resp.status == 404

    resp = await client.get(f"/api/leaderboard/{seeded['tid']}/summary?top=many")
    assert resp.status == 400


async def test_score_listing_and_delete(client, seeded):
    await _post(client, "/api/scores", _score(seeded["eagles"], seeded["round1"], 1, 4, 4))
    await _post(client, "/api/scores", _score(seeded["eagles"], seeded["round1"], 2, 5, 4))

    resp = await client.get(f"/api/scores?tournament_id={seeded['tid']}")
    scores = (await resp.json())["scores"]
    assert [s["hole_number"] for s in scores] == [1, 2]

    path = f"/api/scores/{seeded['eagles']['team_id']}/{seeded['round1']['round_id']}/2"
    resp = await client.delete(path)
    assert resp.status == 200
    resp = await client.delete(path)
    assert resp.status == 404


async def test_refresh(client, seeded):
    resp = await client.post(f"/api/leaderboard/{seeded['tid']}/refresh")
    data = await resp.json()
    assert resp.status == 200
    assert data["viewers"] == 0


async def test_live_channel_receives_submission_events(client, seeded):
    ws = await client.ws_connect("/ws")
    await ws.send_json({"action": "join", "tournament_id": seeded["tid"], "user_name": "Ann"})

    joined = await ws.receive_json(timeout=5)
    assert joined["type"] == "LeaderboardUpdated"
    assert joined["data"]["tournament_name"] == "Spring Classic"

    await _post(client, "/api/scores", _score(seeded["eagles"], seeded["round1"], 1, 3, 4))

    update = await ws.receive_json(timeout=5)
    board = await ws.receive_json(timeout=5)
    assert update["type"] == "ScoreUpdate"
    assert update["data"]["message"] == "Eagles scored 3 on hole 1"
    assert board["type"] == "LeaderboardUpdated"
    assert board["data"]["entries"][0]["display_name"] == "Eagles"

    await ws.close()


async def test_live_channel_errors(client, seeded):
    ws = await client.ws_connect("/ws")

    await ws.send_json({"action": "refresh"})
    assert (await ws.receive_json(timeout=5))["data"]["message"] == "Join a tournament before refreshing"

    await ws.send_json({"action": "join", "tournament_id": 404})
    error = await ws.receive_json(timeout=5)
    assert error["type"] == "Error"
    assert "not found" in error["data"]["message"]

    await ws.send_json({"action": "dance"})
    assert (await ws.receive_json(timeout=5))["data"]["message"] == "Unknown action: dance"

    await ws.send_str("not json")
    assert (await ws.receive_json(timeout=5))["data"]["message"] == "Invalid JSON message"

    await ws.close()


async def test_viewers_see_each_other(client, seeded):
    first = await client.ws_connect("/ws")
    await first.send_json({"action": "join", "tournament_id": seeded["tid"], "user_name": "Ann"})
    await first.receive_json(timeout=5)

    second = await client.ws_connect("/ws")
    await second.send_json({"action": "join", "tournament_id": seeded["tid"], "user_name": "Ben"})
    await second.receive_json(timeout=5)

    joined = await first.receive_json(timeout=5)
    assert joined == {"type": "ViewerJoined", "data": {"user_name": "Ben", "viewer_count": 2}}

    await second.send_json({"action": "leave"})
    left = await first.receive_json(timeout=5)
    assert left == {"type": "ViewerLeft", "data": {"user_name": "Ben", "viewer_count": 1}}

    await second.close()
    await first.close()


async def test_reset_tournament(client, seeded):
    await _post(client, "/api/scores", _score(seeded["eagles"], seeded["round1"], 1, 4, 4))

    resp = await client.delete(f"/api/admin/reset-tournament/{seeded['tid']}")
    data = await resp.json()
    assert resp.status == 200
    assert data["deleted"] == {"scores": 1, "rounds": 1, "teams": 2}

    resp = await client.get(f"/api/leaderboard/{seeded['tid']}")
    board = await resp.json()
    assert resp.status == 200
    assert board["entries"] == []


async def test_reset_tournament_and_delete_it(client, seeded):
    resp = await client.delete(
        f"/api/admin/reset-tournament/{seeded['tid']}?deleteTournament=YES"
    )
    assert resp.status == 204

    resp = await client.get(f"/api/leaderboard/{seeded['tid']}")
    assert resp.status == 404

    resp = await client.delete(f"/api/admin/reset-tournament/{seeded['tid']}")
    assert resp.status == 404
