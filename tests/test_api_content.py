"""
API tests for the shop, admin CRUD, workouts and events.
"""
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from schemas import utcnow


def add_item(db, price=500, name="XP Booster"):
    return db.create_document("shopitem", {"name": name, "description": "d", "price": price, "type": "booster"})


class TestPurchase:

    def test_insufficient_coins_changes_nothing(self, hunter_client, db, hunter):
        hunter.coins = 1000
        db.save_document("user", hunter)
        item = add_item(db, price=500)

        response = hunter_client.post(f"/api/shop-items/{item.id}/purchase", json={"quantity": 3})

        assert response.status_code == 400
        assert response.json() == {"message": "Not enough coins"}
        assert db.get_user(hunter.id).coins == 1000
        assert db.get_documents("useritem") == []

    def test_exact_balance_is_enough(self, hunter_client, db, hunter):
        hunter.coins = 1000
        db.save_document("user", hunter)
        item = add_item(db, price=500)

        response = hunter_client.post(f"/api/shop-items/{item.id}/purchase", json={"quantity": 2})

        assert response.status_code == 201
        body = response.json()
        assert body["quantity"] == 2
        assert body["item"]["name"] == "XP Booster"
        assert db.get_user(hunter.id).coins == 0

    def test_repeat_purchase_increments_quantity(self, hunter_client, db, hunter):
        item = add_item(db, price=10)

        hunter_client.post(f"/api/shop-items/{item.id}/purchase")
        body = hunter_client.post(f"/api/shop-items/{item.id}/purchase", json={"quantity": 4}).json()

        assert body["quantity"] == 5
        assert len(db.get_documents("useritem")) == 1
        assert db.get_user(hunter.id).coins == 50

        owned = hunter_client.get("/api/user-items").json()
        assert [(o["quantity"], o["item"]["id"]) for o in owned] == [(5, item.id)]

    def test_unknown_item(self, hunter_client):
        assert hunter_client.post("/api/shop-items/99/purchase").status_code == 404

    def test_zero_quantity_rejected(self, hunter_client, db):
        item = add_item(db)

        assert hunter_client.post(f"/api/shop-items/{item.id}/purchase", json={"quantity": 0}).status_code == 400


class TestAdminCrud:

    @pytest.mark.parametrize("path, payload, patch", [
        ("/api/shop-items",
         {"name": "Cloak", "description": "Stealth", "price": 300, "type": "gear"},
         {"price": 250}),
        ("/api/events",
         {"title": "Gate Week", "description": "Gates everywhere", "type": "doublexp"},
         {"title": "Gate Week II"}),
        ("/api/workouts",
         {"title": "Sprint", "description": "Go fast", "targetStat": "speed", "targetRank": "E",
          "targetJob": "Novice Hunter", "exercises": [{"name": "Sprints", "sets": 5, "reps": "20s"}]},
         {"targetRank": "D"}),
        ("/api/quests",
         {"title": "Run", "description": "Run far", "type": "weekly", "xpReward": 10, "coinReward": 20,
          "targetStat": "stamina", "requiredAmount": 3, "expiresAt": "2030-01-01T00:00:00"},
         {"requiredAmount": 6}),
    ])
    def test_lifecycle(self, admin_client, path, payload, patch):
        created = admin_client.post(path, json=payload)
        assert created.status_code == 201
        record_id = created.json()["id"]

        assert admin_client.get(f"{path}/{record_id}").status_code == 200
        updated = admin_client.patch(f"{path}/{record_id}", json=patch)
        assert updated.status_code == 200
        for key, value in patch.items():
            assert updated.json()[key] == value
        assert record_id in [r["id"] for r in admin_client.get(path).json()]

        assert admin_client.delete(f"{path}/{record_id}").status_code == 204
        assert admin_client.get(f"{path}/{record_id}").status_code == 404
        assert admin_client.delete(f"{path}/{record_id}").status_code == 404

    def test_invalid_body_gets_generic_400(self, admin_client):
        response = admin_client.post("/api/shop-items", json={"name": "Broken", "price": -1})

        assert response.status_code == 400
        assert response.json() == {"message": "Invalid request data"}

    def test_hunters_cannot_write_content(self, hunter_client, db):
        item = add_item(db)

        assert hunter_client.patch(f"/api/shop-items/{item.id}", json={"price": 1}).status_code == 403
        assert hunter_client.delete(f"/api/shop-items/{item.id}").status_code == 403
        assert hunter_client.get(f"/api/shop-items/{item.id}").status_code == 200

    def test_naive_quest_expiry_is_utc(self, admin_client):
        body = admin_client.post("/api/quests", json={
            "title": "Run", "description": "Run", "type": "daily", "xpReward": 1, "coinReward": 1,
            "targetStat": "speed", "requiredAmount": 1, "expiresAt": "2030-01-01T00:00:00",
        }).json()

        assert body["expiresAt"].startswith("2030-01-01T00:00:00")
        assert body["expiresAt"].endswith("Z")


class TestUserAdministration:

    def test_admin_creates_and_patches_user(self, admin_client, db):
        created = admin_client.post("/api/users", json={"username": "goto", "password": "ryuji", "isAdmin": False})
        user_id = created.json()["id"]

        body = admin_client.patch(f"/api/users/{user_id}", json={
            "coins": 5000, "xp": 1600, "password": "ignored",
        }).json()

        assert body["coins"] == 5000
        # 1600 xp at level 1 rolls over into level 3 with 100 left
        assert (body["level"], body["xp"]) == (3, 100)
        assert TestClient(admin_client.app).post(
            "/api/login", json={"username": "goto", "password": "ryuji"},
        ).status_code == 200

    def test_list_users_hides_password(self, admin_client, hunter):
        users = admin_client.get("/api/users").json()

        assert {u["username"] for u in users} == {"chairman", "jinwoo"}
        assert all("passwordHash" not in u for u in users)

    def test_delete_user_cascades(self, admin_client, hunter_client, db, hunter, make_quest):
        quest = make_quest()
        hunter_client.post("/api/user-quests", json={"questId": quest.id})

        assert admin_client.delete(f"/api/users/{hunter.id}").status_code == 204

        assert db.get_user(hunter.id) is None
        assert db.get_documents("userquest") == []
        assert hunter_client.get("/api/user").status_code == 401


class TestWorkouts:

    def test_recommended_prefers_stored_match(self, hunter_client, db):
        stored = db.create_document("workout", {
            "title": "Stored", "description": "d", "target_stat": "strength", "target_rank": "E",
            "target_job": "Novice Hunter", "exercises": [{"name": "Push-ups", "sets": 3, "reps": "10"}],
        })

        body = hunter_client.get("/api/workouts/recommended").json()

        assert body["id"] == stored.id

    def test_recommended_generates_and_caches(self, hunter_client, db, hunter):
        hunter.stats.speed = 40
        db.save_document("user", hunter)

        first = hunter_client.get("/api/workouts/recommended").json()
        second = hunter_client.get("/api/workouts/recommended").json()

        assert first["title"] == "Novice Speed Training"
        assert (first["targetStat"], first["targetRank"], first["targetJob"]) == ("speed", "E", "Novice Hunter")
        assert second["id"] == first["id"]
        assert len(db.get_documents("workout")) == 1

    def test_filters_by_rank_and_job(self, hunter_client, db):
        for rank, job in (("E", "Novice Hunter"), ("B", "Mage")):
            db.create_document("workout", {
                "title": rank, "description": "d", "target_stat": "speed", "target_rank": rank,
                "target_job": job, "exercises": [{"name": "x", "sets": 1, "reps": "1"}],
            })

        assert [w["title"] for w in hunter_client.get("/api/workouts/by-rank/B").json()] == ["B"]
        assert [w["title"] for w in hunter_client.get("/api/workouts/by-job/Novice Hunter").json()] == ["E"]


class TestEvents:

    def test_active_events_window(self, hunter_client, db):
        now = utcnow()
        db.create_document("event", {"title": "Now", "description": "", "type": "doublexp",
                                     "start_date": now - timedelta(hours=1), "end_date": now + timedelta(hours=1)})
        db.create_document("event", {"title": "Later", "description": "", "type": "rankup",
                                     "start_date": now + timedelta(days=2), "end_date": now + timedelta(days=5)})
        db.create_document("event", {"title": "Undated", "description": "", "type": "rankup"})

        active = hunter_client.get("/api/events/active").json()

        assert [e["title"] for e in active] == ["Now"]
        assert len(hunter_client.get("/api/events").json()) == 3

    def test_null_title_rejected_and_row_kept(self, admin_client, db):
        event = db.create_document("event", {"title": "Gate Week", "description": "d", "type": "doublexp"})

        response = admin_client.patch(f"/api/events/{event.id}", json={"title": None})

        assert response.status_code == 400
        assert response.json() == {"message": "Invalid request data"}
        assert db.get_document("event", event.id).title == "Gate Week"
        assert admin_client.get("/api/events").json()[0]["title"] == "Gate Week"

    def test_null_date_clears_schedule(self, admin_client, db):
        now = utcnow()
        event = db.create_document("event", {"title": "Now", "description": "", "type": "doublexp",
                                             "start_date": now - timedelta(hours=1),
                                             "end_date": now + timedelta(hours=1)})

        body = admin_client.patch(f"/api/events/{event.id}", json={"endDate": None}).json()

        assert body["endDate"] is None
        assert body["title"] == "Now"
        assert admin_client.get("/api/events/active").json() == []

    def test_invalid_patch_on_shop_item(self, admin_client, db):
        item = add_item(db, price=10)

        assert admin_client.patch(f"/api/shop-items/{item.id}", json={"price": -5}).status_code == 400
        assert db.get_document("shopitem", item.id).price == 10


class TestService:

    def test_status_reports_counts(self, client, db):
        add_item(db)

        body = client.get("/test").json()

        assert body["collections"]["shopitem"] == 1

    def test_schema_listing(self, client):
        body = client.get("/schema").json()

        assert "xpReward" in body["quest"]
        assert "passwordHash" not in body["user"]

    def test_module_app_built_on_first_access(self, monkeypatch):
        import main

        monkeypatch.setenv("SEED_DEFAULTS", "false")
        monkeypatch.delitem(main.__dict__, "app", raising=False)

        application = main.app

        assert main.app is application
        assert TestClient(application).get("/").json() == {"message": "Hunter Fitness Tracker API"}
