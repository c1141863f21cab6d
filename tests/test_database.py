import pytest
from pydantic import ValidationError

from database import Database, UnknownCollection, seed_defaults
from schemas import ShopItem, User
from settings import Settings


def test_ids_increment_per_collection(db):
    first = db.create_document("shopitem", {"name": "A", "description": "a", "price": 1, "type": "gear"})
    second = db.create_document("shopitem", {"name": "B", "description": "b", "price": 2, "type": "gear"})
    event = db.create_document("event", {"title": "E", "description": "e", "type": "doublexp"})

    assert (first.id, second.id, event.id) == (1, 2, 1)


def test_reads_are_copies(db):
    item = db.create_document("shopitem", ShopItem(name="A", description="a", price=10, type="gear"))

    fetched = db.get_document("shopitem", item.id)
    fetched.price = 999

    assert db.get_document("shopitem", item.id).price == 10
    db.save_document("shopitem", fetched)
    assert db.get_document("shopitem", item.id).price == 999


def test_filters_by_mapping_and_predicate(db):
    for price in (5, 50, 500):
        db.create_document("shopitem", {"name": str(price), "description": "", "price": price, "type": "gear"})

    assert [i.price for i in db.get_documents("shopitem", {"price": 50})] == [50]
    assert [i.price for i in db.get_documents("shopitem", lambda i: i.price > 10)] == [50, 500]
    assert len(db.get_documents("shopitem", limit=2)) == 2


def test_update_and_delete(db):
    item = db.create_document("shopitem", {"name": "A", "description": "a", "price": 1, "type": "gear"})

    assert db.update_document("shopitem", item.id, {"price": 7}).price == 7
    assert db.update_document("shopitem", 42, {"price": 7}) is None
    assert db.delete_document("shopitem", item.id) is True
    assert db.delete_document("shopitem", item.id) is False


def test_update_rejects_invalid_values(db):
    event = db.create_document("event", {"title": "Gate Week", "description": "d", "type": "doublexp"})

    with pytest.raises(ValidationError):
        db.update_document("event", event.id, {"title": None})

    assert db.get_document("event", event.id).title == "Gate Week"


def test_unknown_collection(db):
    with pytest.raises(UnknownCollection):
        db.get_documents("dungeon")


def test_transaction_rolls_back_on_error(db):
    user = db.create_document("user", User(username="jinwoo", password_hash="x"))

    with pytest.raises(RuntimeError):
        with db.transaction():
            user.coins = 0
            db.save_document("user", user)
            db.create_document("useritem", {"user_id": user.id, "item_id": 1})
            raise RuntimeError("boom")

    assert db.get_user(user.id).coins == 100
    assert db.get_documents("useritem") == []
    # the counter is restored as well
    assert db.create_document("useritem", {"user_id": user.id, "item_id": 1}).id == 1


def test_username_lookup_is_case_insensitive(db):
    db.create_document("user", User(username="Jinwoo", password_hash="x"))

    assert db.get_user_by_username("JINWOO").username == "Jinwoo"
    assert db.get_user_by_username("cha") is None


def test_sessions(db):
    token = db.create_session(3)

    assert db.get_session_user_id(token) == 3
    db.delete_user_sessions(3)
    assert db.get_session_user_id(token) is None
    assert db.get_session_user_id(None) is None


def test_seed_defaults_runs_once():
    db = Database()
    settings = Settings()

    seed_defaults(db, settings, lambda pw: "hashed:" + pw)
    seed_defaults(db, settings, lambda pw: "hashed:" + pw)

    counts = db.collection_counts()
    assert counts["user"] == 2
    assert counts["workout"] == 2
    assert counts["shopitem"] == 2
    assert counts["event"] == 2
    admin = db.get_user_by_username("admin")
    assert admin.is_admin and admin.password_hash == "hashed:" + settings.admin_password
