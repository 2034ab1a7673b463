"""HTTP-level tests through FastAPI's TestClient."""
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from cardwise.dependencies import get_now
from cardwise.services import review_service

from conftest import USER


def create(client, front="Kot", back="Cat", **extra):
    res = client.post("/flashcards", json={"front": front, "back": back, **extra})
    assert res.status_code == 201, res.text
    return res.json()


class TestFlashcardEndpoints:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_create_and_get(self, client):
        card = create(client, is_ai_generated=True)
        assert card["state"] == 0
        assert card["reps"] == 0
        assert card["is_ai_generated"] is True
        assert card["user_id"] == USER

        res = client.get(f"/flashcards/{card['id']}")
        assert res.status_code == 200
        assert res.json()["front"] == "Kot"

    @pytest.mark.parametrize(
        "body",
        [
            {"front": "", "back": "x"},
            {"front": "x" * 501, "back": "x"},
            {"front": "x", "back": "x" * 1001},
            {"front": "x"},
        ],
    )
    def test_create_validation(self, client, body):
        assert client.post("/flashcards", json=body).status_code == 422

    def test_batch(self, client):
        cards = [{"front": f"Q{i}", "back": f"A{i}"} for i in range(3)]
        res = client.post("/flashcards/batch", json={"cards": cards})
        assert res.status_code == 201
        assert len(res.json()["ids"]) == 3
        assert client.get("/flashcards").json()["total"] == 3

    @pytest.mark.parametrize("count", [0, 101])
    def test_batch_size_limits(self, client, count):
        cards = [{"front": "q", "back": "a"}] * count
        assert client.post("/flashcards/batch", json={"cards": cards}).status_code == 422

    def test_list_search_and_study_mode(self, client):
        kot = create(client, front="Kot", back="Cat")
        create(client, front="Pies", back="Dog")

        res = client.get("/flashcards", params={"q": "dog"})
        assert [c["front"] for c in res.json()["items"]] == ["Pies"]

        res = client.post("/reviews", json={"card_id": kot["id"], "rating": 4})
        assert res.status_code == 200

        res = client.get("/flashcards", params={"mode": "study"})
        assert [c["front"] for c in res.json()["items"]] == ["Pies"]
        assert client.get("/flashcards", params={"mode": "bogus"}).status_code == 422

    def test_edit_and_delete(self, client):
        card = create(client)
        res = client.patch(f"/flashcards/{card['id']}", json={"back": "Kitty"})
        assert res.status_code == 200
        assert res.json()["back"] == "Kitty"
        assert res.json()["front"] == "Kot"

        assert client.delete(f"/flashcards/{card['id']}").status_code == 204
        assert client.get(f"/flashcards/{card['id']}").status_code == 404
        assert client.delete(f"/flashcards/{card['id']}").status_code == 404

    def test_users_are_isolated(self, client):
        card = create(client)
        other = {"X-User-Id": "someone-else"}
        assert client.get(f"/flashcards/{card['id']}", headers=other).status_code == 404
        assert client.get("/flashcards", headers=other).json()["total"] == 0


class TestReviewEndpoints:
    def test_submit_review(self, client):
        card = create(client)
        res = client.post(
            "/reviews",
            json={"card_id": card["id"], "rating": 3, "review_duration_ms": 2500},
        )
        assert res.status_code == 200
        body = res.json()
        assert body["reps"] == 1
        assert body["state"] == 1
        assert body["last_review"] is not None

        history = client.get(f"/flashcards/{card['id']}/reviews").json()
        assert history["total"] == 1
        assert history["items"][0]["state"] == 0
        assert history["items"][0]["rating"] == 3
        assert history["items"][0]["review_duration_ms"] == 2500

    @pytest.mark.parametrize("rating", [0, 5, "good", None, 2.5])
    def test_invalid_rating_never_reaches_scheduler(self, client, rating):
        card = create(client)
        with patch.object(review_service, "schedule") as scheduler:
            res = client.post("/reviews", json={"card_id": card["id"], "rating": rating})
        assert res.status_code == 422
        scheduler.assert_not_called()
        assert client.get(f"/flashcards/{card['id']}").json()["reps"] == 0

    def test_negative_duration_rejected(self, client):
        card = create(client)
        res = client.post(
            "/reviews", json={"card_id": card["id"], "rating": 3, "review_duration_ms": -1}
        )
        assert res.status_code == 422

    def test_unknown_card(self, client):
        res = client.post("/reviews", json={"card_id": "missing", "rating": 3})
        assert res.status_code == 404

    def test_conflict_maps_to_409(self, client):
        card = create(client)
        with patch.object(review_service, "update_memory_state", AsyncMock(return_value=False)):
            res = client.post("/reviews", json={"card_id": card["id"], "rating": 3})
        assert res.status_code == 409
        assert "try again" in res.json()["detail"]

    def test_reviews_use_injected_clock(self, app, client):
        card = create(client)
        fixed = datetime.fromisoformat(card["due"]) + timedelta(days=2)
        app.dependency_overrides[get_now] = lambda: fixed
        try:
            body = client.post("/reviews", json={"card_id": card["id"], "rating": 4}).json()
        finally:
            app.dependency_overrides.clear()
        assert datetime.fromisoformat(body["last_review"]) == fixed
        assert datetime.fromisoformat(body["due"]) == fixed + timedelta(days=body["scheduled_days"])

    def test_preview(self, client):
        card = create(client)
        res = client.get(f"/flashcards/{card['id']}/preview")
        assert res.status_code == 200
        body = res.json()
        assert body["retrievability"] == 0.0
        assert [o["rating"] for o in body["options"]] == [1, 2, 3, 4]
        assert body["options"][3]["state"] == 2
        # Preview must not touch the card
        assert client.get(f"/flashcards/{card['id']}").json()["reps"] == 0


class TestUserEndpoints:
    def test_stats(self, client):
        a = create(client)
        create(client)
        client.post("/reviews", json={"card_id": a["id"], "rating": 4})
        assert client.get("/users/me/stats").json() == {"total_count": 2, "study_count": 1}

    def test_delete_account(self, client):
        card = create(client)
        client.post("/reviews", json={"card_id": card["id"], "rating": 3})
        keep = client.post(
            "/flashcards", json={"front": "a", "back": "b"}, headers={"X-User-Id": "other"}
        ).json()

        assert client.delete("/users/me").status_code == 204
        assert client.get("/flashcards").json()["total"] == 0
        assert client.get(f"/flashcards/{keep['id']}", headers={"X-User-Id": "other"}).status_code == 200
