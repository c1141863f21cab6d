"""
In-memory document store for Hunter Fitness Tracker

Collections are keyed by the lowercase record class name and hold pydantic
records by integer id. Ids auto-increment per collection starting at 1.
Reads hand out copies; changes become visible only through
``save_document`` / ``update_document``.
"""
import copy
import logging
import secrets
import threading
from contextlib import contextmanager
from datetime import timedelta
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Type, TypeVar, Union

from schemas import (
    Event,
    Exercise,
    Quest,
    Record,
    ShopItem,
    User,
    UserItem,
    UserQuest,
    Workout,
    utcnow,
)

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Record)
Filter = Union[Mapping[str, Any], Callable[[Any], bool], None]

COLLECTIONS: Dict[str, Type[Record]] = {
    "user": User,
    "quest": Quest,
    "userquest": UserQuest,
    "workout": Workout,
    "shopitem": ShopItem,
    "useritem": UserItem,
    "event": Event,
}


class UnknownCollection(KeyError):
    pass


def _matches(record: Record, flt: Filter) -> bool:
    if flt is None:
        return True
    if callable(flt):
        return bool(flt(record))
    return all(getattr(record, key, None) == value for key, value in flt.items())


class Database:
    """Volatile keyed collections plus the login session table."""

    def __init__(self):
        self._collections: Dict[str, Dict[int, Record]] = {name: {} for name in COLLECTIONS}
        self._counters: Dict[str, int] = {name: 1 for name in COLLECTIONS}
        self._sessions: Dict[str, int] = {}
        self._lock = threading.RLock()

    def _table(self, collection: str) -> Dict[int, Record]:
        try:
            return self._collections[collection]
        except KeyError:
            raise UnknownCollection(collection) from None

    # ---------- Documents ----------

    def create_document(self, collection: str, data: Union[Record, Mapping[str, Any]]) -> Record:
        """Insert a row, assigning the next id and a fresh created_at."""
        model = COLLECTIONS.get(collection)
        if model is None:
            raise UnknownCollection(collection)
        with self._lock:
            table = self._table(collection)
            if isinstance(data, Record):
                fields = data.model_dump(exclude={"id", "created_at"})
            else:
                fields = {k: v for k, v in dict(data).items() if k not in ("id", "created_at")}
            record = model.model_validate({**fields, "id": self._counters[collection], "created_at": utcnow()})
            self._counters[collection] += 1
            table[record.id] = record
            return record.model_copy(deep=True)

    def get_document(self, collection: str, doc_id: int) -> Optional[Record]:
        with self._lock:
            record = self._table(collection).get(doc_id)
            return record.model_copy(deep=True) if record is not None else None

    def get_documents(self, collection: str, filter_dict: Filter = None, limit: Optional[int] = None) -> List[Record]:
        """Rows in insertion order matching an equality mapping or a predicate."""
        with self._lock:
            items = [r for r in self._table(collection).values() if _matches(r, filter_dict)]
            if limit is not None:
                items = items[:limit]
            return [r.model_copy(deep=True) for r in items]

    def find_document(self, collection: str, filter_dict: Filter) -> Optional[Record]:
        found = self.get_documents(collection, filter_dict, limit=1)
        return found[0] if found else None

    def save_document(self, collection: str, record: R) -> R:
        """Replace a stored row with ``record`` (matched by id)."""
        with self._lock:
            table = self._table(collection)
            if record.id not in table:
                raise KeyError(f"{collection} {record.id} does not exist")
            table[record.id] = record.model_copy(deep=True)
            return record

    def update_document(self, collection: str, doc_id: int, updates: Mapping[str, Any]) -> Optional[Record]:
        """Merge field values into a stored row; last write wins.

        The merged row is validated against its record model, so a value the
        model rejects (a null title, a negative price) raises
        ``pydantic.ValidationError`` and leaves the stored row untouched.
        """
        with self._lock:
            table = self._table(collection)
            record = table.get(doc_id)
            if record is None:
                return None
            merged = record.model_dump()
            merged.update({k: v for k, v in updates.items() if k not in ("id", "created_at")})
            updated = type(record).model_validate(merged)
            table[doc_id] = updated
            return updated.model_copy(deep=True)

    def delete_document(self, collection: str, doc_id: int) -> bool:
        with self._lock:
            return self._table(collection).pop(doc_id, None) is not None

    def delete_documents(self, collection: str, filter_dict: Filter) -> int:
        with self._lock:
            table = self._table(collection)
            doomed = [doc_id for doc_id, r in table.items() if _matches(r, filter_dict)]
            for doc_id in doomed:
                del table[doc_id]
            return len(doomed)

    def collection_counts(self) -> Dict[str, int]:
        with self._lock:
            return {name: len(table) for name, table in self._collections.items()}

    @contextmanager
    def transaction(self) -> Iterator["Database"]:
        """Run a composite mutation atomically.

        Holds the store lock for the whole block and rolls every collection
        back to its prior state if the block raises.
        """
        with self._lock:
            snapshot = (copy.deepcopy(self._collections), dict(self._counters))
            try:
                yield self
            except BaseException:
                self._collections, self._counters = snapshot
                logger.warning("Transaction rolled back")
                raise

    # ---------- Users ----------

    def get_user(self, user_id: int) -> Optional[User]:
        return self.get_document("user", user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        wanted = username.lower()
        return self.find_document("user", lambda u: u.username.lower() == wanted)

    # ---------- Sessions ----------

    def create_session(self, user_id: int) -> str:
        token = secrets.token_urlsafe(32)
        with self._lock:
            self._sessions[token] = user_id
        return token

    def get_session_user_id(self, token: Optional[str]) -> Optional[int]:
        if not token:
            return None
        with self._lock:
            return self._sessions.get(token)

    def delete_session(self, token: Optional[str]) -> None:
        if token:
            with self._lock:
                self._sessions.pop(token, None)

    def delete_user_sessions(self, user_id: int) -> None:
        with self._lock:
            for token in [t for t, uid in self._sessions.items() if uid == user_id]:
                del self._sessions[token]


# ---------- Seed data ----------

def seed_defaults(db: Database, settings, hash_password: Callable[[str], str]) -> None:
    """Populate an empty store with starter accounts and content."""
    if db.get_documents("user", limit=1):
        return

    db.create_document("user", User(
        username=settings.admin_username,
        password_hash=hash_password(settings.admin_password),
        is_admin=True,
    ))
    db.create_document("user", User(
        username=settings.demo_username,
        password_hash=hash_password(settings.demo_password),
    ))

    db.create_document("workout", Workout(
        title="Novice Strength Training",
        description="Basic strength training for beginners",
        exercises=[
            Exercise(name="Push-ups", sets=3, reps="10"),
            Exercise(name="Squats", sets=3, reps="15"),
            Exercise(name="Planks", sets=3, reps="30s"),
        ],
        target_stat="strength",
        target_rank="E",
        target_job="Novice Hunter",
    ))
    db.create_document("workout", Workout(
        title="Berserker Strength Routine",
        description="Designed for B-Rank hunters to maximize strength gains",
        exercises=[
            Exercise(name="Bench Press", sets=4, reps="8"),
            Exercise(name="Barbell Squat", sets=4, reps="10"),
            Exercise(name="Deadlift", sets=3, reps="6"),
            Exercise(name="Pull-ups", sets=3, reps="Max"),
        ],
        target_stat="strength",
        target_rank="B",
        target_job="Berserker",
    ))

    db.create_document("shopitem", ShopItem(
        name="XP Booster", description="Double XP for a day",
        price=500, type="booster", effect_value=2,
    ))
    db.create_document("shopitem", ShopItem(
        name="Cosmic Avatar", description="Exclusive cosmic-themed avatar",
        price=1000, type="cosmetic", effect_value=0,
    ))

    now = utcnow()
    db.create_document("event", Event(
        title="Rank Up Challenge",
        description="Complete special tasks to advance to A-Rank",
        start_date=now + timedelta(days=2),
        end_date=now + timedelta(days=5),
        type="rankup",
    ))
    db.create_document("event", Event(
        title="Double XP Weekend",
        description="All workouts earn 2x XP for the weekend",
        start_date=now + timedelta(days=5),
        end_date=now + timedelta(days=7),
        type="doublexp",
    ))
    logger.info("Seeded default accounts and content")
