"""Tests for the player directory: codes, search, merge, history and import/export."""
import pytest

from conftest import add_player


async def create(client, headers, name, **extra):
    r = await client.post("/api/universal-players", json={"name": name, **extra}, headers=headers)
    assert r.status_code == 200, r.text
    return r.json()


async def add_history(client, headers, player_id, rel, penalties=0, scratches=0):
    r = await client.post(
        f"/api/universal-players/{player_id}/history",
        json={"tournamentName": f"Event {rel}", "totalStrokes": 54 + rel, "totalPar": 54, "holesPlayed": 18,
              "totalPenalties": penalties, "totalScratches": scratches},
        headers=headers,
    )
    assert r.status_code == 200, r.text
    return r.json()


@pytest.mark.asyncio
async def test_directory_requires_master(client, room_headers):
    """The room PIN does not open the directory."""
    r = await client.get("/api/universal-players")
    assert r.status_code == 401
    r = await client.get("/api/universal-players", headers=room_headers)
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_codes_are_sequential(client, master_headers):
    """Codes continue from the highest PC number."""
    a = await create(client, master_headers, "Ann")
    b = await create(client, master_headers, "Bob")
    assert a["uniqueCode"] == "PC7001"
    assert b["uniqueCode"] == "PC7002"
    c = await create(client, master_headers, "Cat", uniqueCode="pc7100")
    assert c["uniqueCode"] == "PC7100"
    d = await create(client, master_headers, "Dan")
    assert d["uniqueCode"] == "PC7101"
    assert a["isProvisional"] is True
    assert a["completedTournaments"] == 0
    assert "pinHash" not in a


@pytest.mark.asyncio
async def test_explicit_code_validation(client, master_headers):
    """Malformed codes are 400; taken codes are 409."""
    await create(client, master_headers, "Ann", uniqueCode="PC7005")
    r = await client.post("/api/universal-players", json={"name": "X", "uniqueCode": "AB12"}, headers=master_headers)
    assert r.status_code == 400
    r = await client.post("/api/universal-players", json={"name": "X", "uniqueCode": "PC7005"}, headers=master_headers)
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_search(client, master_headers):
    """Search matches name, email or code, case-insensitively."""
    await create(client, master_headers, "Ann Smith", email="ann@example.com")
    await create(client, master_headers, "Bob Jones")
    r = await client.get("/api/universal-players/search", params={"query": "SMITH"}, headers=master_headers)
    assert [p["name"] for p in r.json()] == ["Ann Smith"]
    r = await client.get("/api/universal-players/search", params={"query": "example.com"}, headers=master_headers)
    assert len(r.json()) == 1
    r = await client.get("/api/universal-players/search", params={"query": "pc7002"}, headers=master_headers)
    assert [p["name"] for p in r.json()] == ["Bob Jones"]
    r = await client.get("/api/universal-players/search", headers=master_headers)
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_list_includes_ppt(client, master_headers):
    """PPT of 3 penalties and 1 scratch over two tournaments is 2.0."""
    a = await create(client, master_headers, "Ann")
    await add_history(client, master_headers, a["id"], 2, penalties=2, scratches=1)
    await add_history(client, master_headers, a["id"], 4, penalties=1)
    r = await client.get("/api/universal-players", headers=master_headers)
    player = r.json()[0]
    assert player["ppt"] == 2.0
    assert player["ppc"] == 4 / 36
    assert player["handicap"] == 3.0
    assert player["completedTournaments"] == 2


@pytest.mark.asyncio
async def test_merge_moves_history(client, master_headers, room):
    """Merging A (two history rows) into B moves the rows, deletes A and recounts B."""
    a = await create(client, master_headers, "Ann A")
    b = await create(client, master_headers, "Ann B")
    await add_history(client, master_headers, a["id"], 2)
    await add_history(client, master_headers, a["id"], 4)
    await add_history(client, master_headers, b["id"], 0)
    tp = await add_player(client, room["roomCode"], "Ann", universalId=a["uniqueCode"])

    r = await client.post(
        "/api/universal-players/merge", json={"sourceId": a["id"], "targetId": b["id"]}, headers=master_headers
    )
    assert r.status_code == 200
    merged = r.json()
    assert merged["id"] == b["id"]
    assert merged["completedTournaments"] == 3
    assert merged["handicap"] == 2.0

    r = await client.get(f"/api/universal-players/{a['id']}", headers=master_headers)
    assert r.status_code == 404
    r = await client.get(f"/api/universal-players/{b['id']}", headers=master_headers)
    assert len(r.json()["recentHistory"]) == 3
    players = (await client.get(f"/api/tournaments/{room['roomCode']}/players")).json()
    assert players[0]["id"] == tp["id"]
    assert players[0]["universalPlayerId"] == b["id"]


@pytest.mark.asyncio
async def test_merge_into_self_rejected(client, master_headers):
    a = await create(client, master_headers, "Ann")
    r = await client.post(
        "/api/universal-players/merge", json={"sourceId": a["id"], "targetId": a["id"]}, headers=master_headers
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_update_and_delete(client, master_headers, room):
    """Patch edits fields; delete unlinks tournament entries."""
    a = await create(client, master_headers, "Ann")
    r = await client.patch(
        f"/api/universal-players/{a['id']}",
        json={"email": "ann@example.com", "tShirtSize": "M", "handicap": 4.5},
        headers=master_headers,
    )
    assert r.status_code == 200
    assert r.json()["email"] == "ann@example.com"
    assert r.json()["tShirtSize"] == "M"
    assert r.json()["handicap"] == 4.5
    assert r.json()["name"] == "Ann"

    await add_history(client, master_headers, a["id"], 1)
    await add_player(client, room["roomCode"], "Ann", universalId=a["uniqueCode"])
    r = await client.delete(f"/api/universal-players/{a['id']}", headers=master_headers)
    assert r.status_code == 200
    r = await client.get("/api/universal-players", headers=master_headers)
    assert r.json() == []
    players = (await client.get(f"/api/tournaments/{room['roomCode']}/players")).json()
    assert players[0]["universalPlayerId"] is None


@pytest.mark.asyncio
async def test_delete_history_recalculates(client, master_headers):
    a = await create(client, master_headers, "Ann")
    h1 = await add_history(client, master_headers, a["id"], 2)
    await add_history(client, master_headers, a["id"], 6)
    r = await client.delete(f"/api/universal-players/{a['id']}/history/{h1['id']}", headers=master_headers)
    assert r.status_code == 200
    r = await client.get(f"/api/universal-players/{a['id']}", headers=master_headers)
    assert r.json()["handicap"] == 6.0
    assert r.json()["completedTournaments"] == 1
    r = await client.delete(f"/api/universal-players/{a['id']}/history/{h1['id']}", headers=master_headers)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_link_universal(client, master_headers, room):
    """Master can link a tournament entry to a directory player."""
    a = await create(client, master_headers, "Ann")
    tp = await add_player(client, room["roomCode"], "Ann")
    r = await client.post(
        f"/api/tournaments/{room['roomCode']}/players/{tp['id']}/link-universal",
        json={"universalPlayerId": a["id"]},
        headers=master_headers,
    )
    assert r.status_code == 200
    assert r.json()["universalPlayerId"] == a["id"]
    r = await client.post(
        f"/api/tournaments/{room['roomCode']}/players/{tp['id']}/link-universal",
        json={"universalPlayerId": 99999},
        headers=master_headers,
    )
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_export_import_players(client, master_headers):
    """Export omits PINs; import skips existing codes and recreates history."""
    a = await create(client, master_headers, "Ann")
    await add_history(client, master_headers, a["id"], 3, penalties=1)
    await client.post("/api/player/set-pin", json={"playerCode": a["uniqueCode"], "newPin": "1234"})

    r = await client.get("/api/export/players", headers=master_headers)
    export = r.json()
    assert export["type"] == "players"
    assert export["version"] == 1
    entry = export["universalPlayers"][0]
    assert entry["player"]["uniqueCode"] == "PC7001"
    assert "pin" not in entry["player"] and "pinHash" not in entry["player"]
    assert entry["history"][0]["totalPenalties"] == 1

    new_entry = {
        "player": {"uniqueCode": "PC8000", "name": "Zed", "completedTournaments": 1},
        "history": [{"tournamentName": "Old Cup", "totalStrokes": 50, "totalPar": 54, "holesPlayed": 18}],
    }
    r = await client.post(
        "/api/import/players",
        json={"universalPlayers": export["universalPlayers"] + [new_entry]},
        headers=master_headers,
    )
    assert r.status_code == 200
    data = r.json()
    assert data["playersImported"] == 1
    assert data["playersSkipped"] == 1
    assert data["historyImported"] == 1

    r = await client.get("/api/universal-players/search", params={"query": "PC8000"}, headers=master_headers)
    zed = r.json()[0]
    r = await client.get(f"/api/universal-players/{zed['id']}", headers=master_headers)
    assert r.json()["recentHistory"][0]["relativeToPar"] == -4


@pytest.mark.asyncio
async def test_import_rejects_bad_rows(client, master_headers):
    r = await client.post(
        "/api/import/players",
        json={"universalPlayers": [{"player": {"uniqueCode": "PC9000"}}]},
        headers=master_headers,
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_update_rejects_null_required_fields(client, master_headers):
    """Null name or isProvisional is refused at the boundary and leaves the player unchanged."""
    a = await create(client, master_headers, "Ann")
    url = f"/api/universal-players/{a['id']}"
    for body in ({"name": None}, {"isProvisional": None}, {"name": "   "}):
        r = await client.patch(url, json=body, headers=master_headers)
        assert r.status_code == 422, body
    r = await client.patch(url, json={"name": "  Annie  ", "email": None}, headers=master_headers)
    assert r.status_code == 200
    assert r.json()["name"] == "Annie"
    assert r.json()["isProvisional"] is True
