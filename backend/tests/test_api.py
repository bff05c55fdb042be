"""End-to-end tests through the HTTP API."""

import os
import sys
from pathlib import Path

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from atlas.config import settings
from pdf_factory import image_only_pdf, short_rules_pdf, wingspan_rules_pdf


def _create_game(client, **fields):
    body = {"name": "Wingspan", "publisher": "Stonemaier Games", "yearPublished": 2019, "complexityRating": 2.4}
    body.update(fields)
    resp = client.post("/api/games", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()


def _upload(client, game_id, content, filename="wingspan.pdf"):
    return client.post(
        f"/api/games/{game_id}/rules-upload",
        files={"file": (filename, content, "application/pdf")},
    )


class TestGamesApi:
    """Game CRUD over HTTP."""

    def test_create_and_get_camel_case(self, client):
        game = _create_game(client, minPlayers=1, maxPlayers=5)
        assert game["yearPublished"] == 2019
        assert game["minPlayers"] == 1
        assert game["rulesPdfPath"] is None
        assert "createdAt" in game and "updatedAt" in game

        resp = client.get(f"/api/games/{game['id']}")
        assert resp.status_code == 200
        assert resp.json()["name"] == "Wingspan"

    def test_unknown_field_rejected(self, client):
        resp = client.post("/api/games", json={"name": "Azul", "colour": "blue"})
        assert resp.status_code == 422

    def test_validation_error_body(self, client):
        resp = client.post("/api/games", json={"name": "Azul", "complexityRating": 9})
        assert resp.status_code == 400
        assert resp.json()["error"] == "validation_error"
        assert "Complexity" in resp.json()["detail"]

    def test_missing_game_is_404(self, client):
        resp = client.get("/api/games/999")
        assert resp.status_code == 404
        assert resp.json() == {"detail": "Game with id 999 not found", "error": "not_found"}

    def test_list_pagination(self, client):
        for name in ("Wingspan", "Azul", "Ark Nova"):
            _create_game(client, name=name)
        resp = client.get("/api/games", params={"page": 1, "limit": 2})
        assert resp.status_code == 200
        body = resp.json()
        assert [g["name"] for g in body["items"]] == ["Ark Nova", "Azul"]
        assert (body["page"], body["limit"], body["total"], body["totalPages"]) == (1, 2, 3, 2)
        assert body["items"][0]["hasRulesPdf"] is False
        assert body["items"][0]["houseRulesCount"] == 0

    def test_limit_bounds(self, client):
        assert client.get("/api/games", params={"limit": 0}).status_code == 422
        assert client.get("/api/games", params={"limit": 101}).status_code == 422
        assert client.get("/api/games", params={"page": 0}).status_code == 422

    def test_partial_update(self, client):
        game = _create_game(client)
        resp = client.put(f"/api/games/{game['id']}", json={"playTimeMinutes": 70})
        assert resp.status_code == 200
        assert resp.json()["playTimeMinutes"] == 70
        assert resp.json()["publisher"] == "Stonemaier Games"

    def test_delete_cascades(self, client, fake_chat):
        game = _create_game(client)
        gid = game["id"]
        assert _upload(client, gid, short_rules_pdf()).status_code == 200
        rule = client.post("/api/house-rules", json={"gameId": gid, "title": "Tray", "description": "Four cards."})
        session = client.post("/api/chat/sessions", json={"gameId": gid}).json()
        client.post("/api/chat/message", json={"sessionId": session["id"], "message": "How many cards?"})
        pdf_path = client.get(f"/api/games/{gid}").json()["rulesPdfPath"]

        resp = client.delete(f"/api/games/{gid}")
        assert resp.status_code == 204

        assert client.get(f"/api/games/{gid}").status_code == 404
        assert client.get(f"/api/house-rules/{rule.json()['id']}").status_code == 404
        assert client.get(f"/api/chat/sessions/{session['id']}").status_code == 404
        assert not Path(pdf_path).exists()


class TestRulesApi:
    """Upload, inspect and delete a rules document."""

    def test_wingspan_upload_search_and_delete(self, client):
        game = _create_game(client)
        gid = game["id"]

        resp = _upload(client, gid, wingspan_rules_pdf())
        assert resp.status_code == 200, resp.text
        upload = resp.json()
        assert upload["chunksProcessed"] == 7
        assert upload["gameId"] == gid
        assert Path(upload["filePath"]).name.startswith(f"game_{gid}_")
        assert Path(upload["filePath"]).exists()

        info = client.get(f"/api/games/{gid}/rules-info").json()
        assert info["hasRulesPdf"] is True
        assert info["chunkCount"] == 7
        assert info["textLength"] == upload["totalTextLength"]
        assert info["lastProcessed"] is not None

        resp = client.get("/api/chat/search-rules", params={"gameId": gid, "query": "scoring", "limit": 3})
        assert resp.status_code == 200
        search = resp.json()
        assert search["totalResults"] == len(search["results"]) <= 3
        scores = [r["similarityScore"] for r in search["results"]]
        assert scores == sorted(scores, reverse=True)
        assert all(r["sourceType"] == "rules_pdf" for r in search["results"])

        resp = client.delete(f"/api/games/{gid}/rules")
        assert resp.status_code == 200
        assert resp.json()["embeddingsDeleted"] == 7
        assert resp.json()["fileDeleted"] is True
        assert not Path(upload["filePath"]).exists()

        info = client.get(f"/api/games/{gid}/rules-info").json()
        assert info["hasRulesPdf"] is False
        assert info["chunkCount"] == 0
        assert info["textLength"] == 0

    def test_reupload_replaces_chunks_and_file(self, client):
        gid = _create_game(client)["id"]
        first = _upload(client, gid, wingspan_rules_pdf()).json()
        second = _upload(client, gid, short_rules_pdf()).json()

        assert second["chunksProcessed"] == 1
        assert client.get(f"/api/games/{gid}/rules-info").json()["chunkCount"] == 1
        assert not Path(first["filePath"]).exists()
        assert Path(second["filePath"]).exists()

    def test_not_a_pdf(self, client):
        gid = _create_game(client)["id"]
        resp = _upload(client, gid, b"just some text", filename="rules.txt")
        assert resp.status_code == 415
        assert resp.json()["error"] == "unsupported_format"

    def test_image_only_pdf(self, client):
        gid = _create_game(client)["id"]
        resp = _upload(client, gid, image_only_pdf())
        assert resp.status_code == 422
        assert resp.json()["error"] == "empty_document"
        assert client.get(f"/api/games/{gid}/rules-info").json()["hasRulesPdf"] is False

    def test_too_large(self, client, monkeypatch):
        gid = _create_game(client)["id"]
        monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 100)
        resp = _upload(client, gid, short_rules_pdf())
        assert resp.status_code == 413
        assert resp.json()["error"] == "too_large"

    def test_failed_upload_keeps_previous_rules(self, client):
        gid = _create_game(client)["id"]
        _upload(client, gid, short_rules_pdf())
        assert _upload(client, gid, image_only_pdf()).status_code == 422
        info = client.get(f"/api/games/{gid}/rules-info").json()
        assert info["hasRulesPdf"] is True
        assert info["chunkCount"] == 1

    def test_upload_for_missing_game(self, client):
        assert _upload(client, 999, short_rules_pdf()).status_code == 404

    def test_search_without_rules(self, client):
        gid = _create_game(client)["id"]
        resp = client.get("/api/chat/search-rules", params={"gameId": gid, "query": "scoring"})
        assert resp.status_code == 200
        assert resp.json()["results"] == []
        assert resp.json()["totalResults"] == 0

    def test_search_limit_bounds(self, client):
        gid = _create_game(client)["id"]
        resp = client.get("/api/chat/search-rules", params={"gameId": gid, "query": "scoring", "limit": 21})
        assert resp.status_code == 422


class TestHouseRulesApi:
    """House rules over HTTP, including their effect on search."""

    def test_crud_and_search(self, client):
        gid = _create_game(client)["id"]
        resp = client.post(
            "/api/house-rules",
            json={"gameId": gid, "title": "Bigger tray", "description": "The bird tray holds four cards.", "category": "setup"},
        )
        assert resp.status_code == 201
        rule = resp.json()
        assert rule["isActive"] is True

        results = client.get("/api/chat/search-rules", params={"gameId": gid, "query": "bird tray"}).json()["results"]
        assert [r["sourceType"] for r in results] == ["house_rule"]
        assert results[0]["sourceId"] == rule["id"]

        resp = client.put(f"/api/house-rules/{rule['id']}", json={"isActive": False})
        assert resp.status_code == 200
        assert resp.json()["isActive"] is False
        assert client.get("/api/chat/search-rules", params={"gameId": gid, "query": "bird tray"}).json()["totalResults"] == 0

        listing = client.get("/api/house-rules", params={"gameId": gid}).json()
        assert listing["total"] == 1
        assert client.get("/api/house-rules", params={"gameId": gid, "activeOnly": True}).json()["total"] == 0

        assert client.delete(f"/api/house-rules/{rule['id']}").status_code == 204
        assert client.get(f"/api/house-rules/{rule['id']}").status_code == 404

        games = client.get("/api/games").json()["items"]
        assert games[0]["houseRulesCount"] == 0

    def test_blank_description(self, client):
        gid = _create_game(client)["id"]
        resp = client.post("/api/house-rules", json={"gameId": gid, "title": "Tray", "description": "  "})
        assert resp.status_code == 400


class TestChatApi:
    """Sessions and messages over HTTP."""

    def test_scoring_conversation(self, client, fake_chat):
        gid = _create_game(client)["id"]
        _upload(client, gid, wingspan_rules_pdf())

        resp = client.post("/api/chat/sessions", json={"gameId": gid, "title": "Scoring"})
        assert resp.status_code == 201
        session = resp.json()

        resp = client.post("/api/chat/message", json={"sessionId": session["id"], "message": "How do I score points?"})
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["message"]["role"] == "assistant"
        assert body["message"]["content"] == fake_chat.reply
        assert body["contextSources"]

        history = client.get(f"/api/chat/sessions/{session['id']}").json()
        assert history["session"]["title"] == "Scoring"
        messages = history["messages"]
        assert [m["role"] for m in messages] == ["user", "assistant"]
        assert messages[0]["content"] == "How do I score points?"
        assert messages[0]["contextChunks"] is None
        assert messages[1]["contextChunks"] == [s["embeddingId"] for s in body["contextSources"]]
        assert messages[1]["contextSources"][0]["chunkText"] == body["contextSources"][0]["chunkText"]

        sessions = client.get("/api/chat/sessions", params={"gameId": gid}).json()
        assert sessions["total"] == 1
        assert sessions["items"][0]["messageCount"] == 2
        assert sessions["items"][0]["lastMessageAt"] is not None

    def test_citations_survive_reupload(self, client, fake_chat):
        gid = _create_game(client)["id"]
        _upload(client, gid, wingspan_rules_pdf())
        sid = client.post("/api/chat/sessions", json={"gameId": gid}).json()["id"]
        client.post("/api/chat/message", json={"sessionId": sid, "message": "How do I score points?"})

        _upload(client, gid, short_rules_pdf())

        assistant = client.get(f"/api/chat/sessions/{sid}").json()["messages"][1]
        assert assistant["contextChunks"]
        assert assistant["contextSources"]

    def test_generation_failure_keeps_user_message(self, client):
        gid = _create_game(client)["id"]
        sid = client.post("/api/chat/sessions", json={"gameId": gid}).json()["id"]

        resp = client.post("/api/chat/message", json={"sessionId": sid, "message": "How do I score points?"})
        assert resp.status_code == 502
        assert resp.json()["error"] == "upstream_unavailable"

        messages = client.get(f"/api/chat/sessions/{sid}").json()["messages"]
        assert [m["role"] for m in messages] == ["user"]

    def test_empty_message(self, client, fake_chat):
        gid = _create_game(client)["id"]
        sid = client.post("/api/chat/sessions", json={"gameId": gid}).json()["id"]
        resp = client.post("/api/chat/message", json={"sessionId": sid, "message": "  "})
        assert resp.status_code == 400

    def test_unknown_session(self, client, fake_chat):
        resp = client.post("/api/chat/message", json={"sessionId": 321, "message": "Hello"})
        assert resp.status_code == 404

    def test_session_for_unknown_game(self, client):
        assert client.post("/api/chat/sessions", json={"gameId": 999}).status_code == 404


class TestHealth:
    """Liveness endpoints."""

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["ai_providers"]["llm"] == "none"
        assert body["ai_providers"]["embedding"].startswith("hash")

    def test_ai_health(self, client):
        body = client.get("/api/health/ai").json()
        assert body["embedding"]["status"] == "ok"
        assert body["embedding"]["dimensions"] == settings.HASH_EMBEDDING_DIM
        assert body["llm"]["status"] == "unconfigured"
