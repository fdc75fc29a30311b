"""Tests for score sync, players and the live leaderboard over HTTP."""
import asyncio

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from conftest import add_player, submit_score
from scorekeeper.models import Base, Tournament, TournamentPlayer
from scorekeeper.services.leaderboard import compute_leaderboard, load_room
from scorekeeper.services.score_sync import upsert_score


async def leaderboard(client, code):
    r = await client.get(f"/api/tournaments/{code}/leaderboard")
    assert r.status_code == 200
    return r.json()["leaderboard"]


@pytest.mark.asyncio
async def test_resubmission_overwrites(client, room):
    """Hole 1 par 3 with 4 strokes, then 5 strokes: the second value replaces the first."""
    code = room["roomCode"]
    p = await add_player(client, code, "Ann")
    r = await submit_score(client, code, p["id"], 1, 3, 4)
    assert r.status_code == 200
    r = await submit_score(client, code, p["id"], 1, 3, 5)
    assert r.status_code == 200
    assert r.json()["strokes"] == 5

    entry = (await leaderboard(client, code))[0]
    assert entry["totalStrokes"] == 5
    assert entry["relativeToPar"] == 2
    assert entry["holesCompleted"] == 1

    r = await client.get(f"/api/tournaments/{code}/players/{p['id']}/box-score")
    assert len(r.json()["scores"]) == 1


@pytest.mark.asyncio
async def test_total_includes_scratches_and_penalties(client, room):
    """Total strokes sums strokes, scratches and penalties."""
    code = room["roomCode"]
    p = await add_player(client, code, "Ann")
    await submit_score(client, code, p["id"], 1, 3, 2, scratches=1, penalties=1)
    await submit_score(client, code, p["id"], 2, 4, 5, scratches=0, penalties=2)
    entry = (await leaderboard(client, code))[0]
    assert entry["totalStrokes"] == 11
    assert entry["totalPar"] == 7
    assert entry["relativeToPar"] == 4
    assert entry["totalScratches"] == 1
    assert entry["totalPenalties"] == 3


@pytest.mark.asyncio
async def test_player_without_scores_on_leaderboard(client, room):
    """A registered player with no holes shows zero totals."""
    code = room["roomCode"]
    await add_player(client, code, "Ann", groupName="Group 1")
    entry = (await leaderboard(client, code))[0]
    assert entry["playerName"] == "Ann"
    assert entry["groupName"] == "Group 1"
    assert entry["holesCompleted"] == 0
    assert entry["relativeToPar"] == 0
    assert entry["totalStrokes"] == 0


@pytest.mark.asyncio
async def test_hole_over_max_rejected(client, room):
    """Hole 19 is rejected with 400 and nothing is stored."""
    code = room["roomCode"]
    p = await add_player(client, code, "Ann")
    r = await submit_score(client, code, p["id"], 19, 3, 3)
    assert r.status_code == 400
    assert "18" in r.json()["detail"]
    r = await submit_score(client, code, p["id"], 0, 3, 3)
    assert r.status_code == 400
    assert (await leaderboard(client, code))[0]["holesCompleted"] == 0


@pytest.mark.asyncio
async def test_score_for_player_in_other_room_is_404(client, room, master_headers):
    """A player id from another room cannot be scored here."""
    r = await client.post(
        "/api/tournaments", json={"name": "Other", "directorPin": "5555"}, headers=master_headers
    )
    other = r.json()["roomCode"]
    p = await add_player(client, other, "Ann")
    r = await submit_score(client, room["roomCode"], p["id"], 1, 3, 3)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_batch_skips_holes_over_max(client, room):
    """Batch sync stores valid holes and skips out-of-range ones."""
    code = room["roomCode"]
    p = await add_player(client, code, "Ann")
    r = await client.post(
        f"/api/tournaments/{code}/scores/batch",
        json={"scores": [
            {"tournamentPlayerId": p["id"], "hole": 1, "par": 3, "strokes": 3},
            {"tournamentPlayerId": p["id"], "hole": 2, "par": 4, "strokes": 5},
            {"tournamentPlayerId": p["id"], "hole": 19, "par": 3, "strokes": 1},
            {"tournamentPlayerId": p["id"], "hole": 2, "par": 4, "strokes": 4},
        ]},
    )
    assert r.status_code == 200
    assert len(r.json()) == 3
    entry = (await leaderboard(client, code))[0]
    assert entry["holesCompleted"] == 2
    assert entry["totalStrokes"] == 7


@pytest.mark.asyncio
async def test_leaderboard_order(client, room):
    """Lowest relative-to-par leads; ties fall to fewer strokes, then more holes."""
    code = room["roomCode"]
    a = await add_player(client, code, "Ann")
    b = await add_player(client, code, "Bob")
    c = await add_player(client, code, "Cat")
    await submit_score(client, code, a["id"], 1, 3, 4)
    await submit_score(client, code, b["id"], 1, 3, 2)
    await submit_score(client, code, c["id"], 1, 3, 3)
    await submit_score(client, code, c["id"], 2, 4, 3)
    names = [e["playerName"] for e in await leaderboard(client, code)]
    assert names == ["Bob", "Cat", "Ann"]


@pytest.mark.asyncio
async def test_remove_player_before_and_after_start(client, room, room_headers):
    """Before start a removed player disappears; after start the player is marked DNF."""
    code = room["roomCode"]
    a = await add_player(client, code, "Ann")
    b = await add_player(client, code, "Bob", deviceId="dev-1")
    await submit_score(client, code, a["id"], 1, 3, 3)

    r = await client.delete(f"/api/tournaments/{code}/players/{a['id']}", headers=room_headers)
    assert r.json()["result"] == "removed"
    players = (await client.get(f"/api/tournaments/{code}/players")).json()
    assert [p["playerName"] for p in players] == ["Bob"]

    await client.post(f"/api/tournaments/{code}/start", headers=room_headers)
    r = await client.delete(f"/api/tournaments/{code}/players/{b['id']}", headers=room_headers)
    assert r.json()["result"] == "dnf"
    players = (await client.get(f"/api/tournaments/{code}/players")).json()
    assert players[0]["isDnf"] is True
    assert players[0]["deviceId"] is None
    assert await leaderboard(client, code) == []


@pytest.mark.asyncio
async def test_remove_player_requires_director(client, room):
    """Deleting a player without a PIN is 401."""
    code = room["roomCode"]
    a = await add_player(client, code, "Ann")
    r = await client.delete(f"/api/tournaments/{code}/players/{a['id']}")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_update_player_and_batch_groups(client, room, room_headers):
    """Director edits a name and reassigns groups; an empty group clears it."""
    code = room["roomCode"]
    a = await add_player(client, code, "Ann", groupName="A")
    b = await add_player(client, code, "Bob", groupName="A")
    r = await client.patch(
        f"/api/tournaments/{code}/players/{a['id']}", json={"playerName": "Annie"}, headers=room_headers
    )
    assert r.status_code == 200
    assert r.json()["playerName"] == "Annie"
    assert r.json()["groupName"] == "A"

    r = await client.post(
        f"/api/tournaments/{code}/players/batch-update-groups",
        json={"updates": [{"playerId": a["id"], "groupName": "B"}, {"playerId": b["id"], "groupName": ""}]},
        headers=room_headers,
    )
    assert r.status_code == 200
    groups = {p["playerName"]: p["groupName"] for p in r.json()["players"]}
    assert groups == {"Annie": "B", "Bob": None}

    r = await client.post(
        f"/api/tournaments/{code}/players/batch-update-groups",
        json={"updates": [{"playerId": 99999, "groupName": "C"}]},
        headers=room_headers,
    )
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_device_assignment_flow(client, room, room_headers):
    """Assign players to a device, restore its scores, then leave."""
    code = room["roomCode"]
    a = await add_player(client, code, "Ann")
    b = await add_player(client, code, "Bob")
    await client.post(f"/api/tournaments/{code}/players/{a['id']}/assign", json={"deviceId": "dev-1"})
    await client.post(f"/api/tournaments/{code}/players/{b['id']}/assign", json={"deviceId": "dev-1"})
    await submit_score(client, code, a["id"], 1, 3, 4)

    r = await client.get(f"/api/tournaments/{code}/my-players", params={"deviceId": "dev-1"})
    assert [p["playerName"] for p in r.json()] == ["Ann", "Bob"]
    r = await client.get(f"/api/tournaments/{code}/my-scores", params={"deviceId": "dev-1"})
    data = r.json()
    assert data["scores"][str(a["id"])][0]["strokes"] == 4
    assert data["scores"][str(b["id"])] == []

    r = await client.post(f"/api/tournaments/{code}/players/{b['id']}/unassign-device", headers=room_headers)
    assert r.status_code == 200
    r = await client.post(f"/api/tournaments/{code}/leave", json={"deviceId": "dev-1"})
    assert r.json()["released"] == 1
    r = await client.get(f"/api/tournaments/{code}/my-players", params={"deviceId": "dev-1"})
    assert r.json() == []


@pytest.mark.asyncio
async def test_my_players_requires_device(client, room):
    """Missing deviceId is a 400."""
    r = await client.get(f"/api/tournaments/{room['roomCode']}/my-players")
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_player_scores_for_director(client, room, room_headers):
    """Director sees raw rows ordered by hole; without a PIN it is refused."""
    code = room["roomCode"]
    p = await add_player(client, code, "Ann")
    await submit_score(client, code, p["id"], 2, 4, 4)
    await submit_score(client, code, p["id"], 1, 3, 3)
    r = await client.get(f"/api/tournaments/{code}/players/{p['id']}/scores", headers=room_headers)
    assert [s["hole"] for s in r.json()] == [1, 2]
    r = await client.get(f"/api/tournaments/{code}/players/{p['id']}/scores")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_blank_player_name_rejected(client, room):
    """Names are trimmed before the length check, so whitespace alone is refused."""
    code = room["roomCode"]
    r = await client.post(f"/api/tournaments/{code}/players", json={"playerName": "   "})
    assert r.status_code == 422
    p = await add_player(client, code, "  Ann  ")
    assert p["playerName"] == "Ann"
    r = await client.get(f"/api/tournaments/{code}/players")
    assert [x["playerName"] for x in r.json()] == ["Ann"]


@pytest.mark.asyncio
async def test_rename_to_blank_rejected(client, room, room_headers):
    code = room["roomCode"]
    p = await add_player(client, code, "Ann")
    r = await client.patch(
        f"/api/tournaments/{code}/players/{p['id']}", json={"playerName": " "}, headers=room_headers
    )
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_concurrent_resubmissions_keep_one_row(tmp_path):
    """Devices racing on the same (player, hole) against a file database leave exactly one row."""
    race_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}")
    factory = async_sessionmaker(race_engine, expire_on_commit=False)
    try:
        async with race_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with factory() as session:
            t = Tournament(room_code="RACEAB", name="Race", director_pin_hash="unused")
            session.add(t)
            await session.flush()
            player = TournamentPlayer(tournament_id=t.id, player_name="Ann")
            session.add(player)
            await session.commit()

        async def submit(strokes):
            async with factory() as session:
                await upsert_score(session, player.id, 1, 3, strokes)
                await session.commit()

        await asyncio.gather(*(submit(s) for s in (3, 4, 5, 6)))

        async with factory() as session:
            players, scores_by_player = await load_room(session, t.id)
        assert len(scores_by_player[player.id]) == 1
        entry = compute_leaderboard(players, scores_by_player)[0]
        assert entry.holes_completed == 1
        assert entry.total_strokes in (3, 4, 5, 6)
    finally:
        await race_engine.dispose()
