"""
Database Schemas for Hunter Fitness Tracker

Each Pydantic record model represents a collection in the in-memory store.
Collection name is the lowercase of the class name:
- User -> "user"
- Quest -> "quest"
- UserQuest -> "userquest"
- Workout -> "workout"
- ShopItem -> "shopitem"
- UserItem -> "useritem"
- Event -> "event"

Attributes are snake_case in Python and camelCase on the wire.
"""
from datetime import datetime, timezone
from typing import Annotated, Dict, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Rank = Literal["E", "D", "C", "B", "A", "S", "SS"]
Job = Literal[
    "Novice Hunter",
    "Assassin",
    "Berserker",
    "Mage",
    "Tank",
    "Warlock",
    "Shadow Monarch",
]
StatType = Literal["strength", "stamina", "speed", "endurance"]
QuestType = Literal["daily", "weekly"]
ItemType = Literal["booster", "cosmetic", "gear"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # naive timestamps from admin forms are taken as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Record(ApiModel):
    """Base for stored rows; the store assigns ``id`` on insert."""
    id: int = 0
    created_at: UtcDatetime = Field(default_factory=utcnow)


# ---------- Users ----------

class Stats(ApiModel):
    strength: int = Field(10, ge=0, le=100)
    stamina: int = Field(10, ge=0, le=100)
    speed: int = Field(10, ge=0, le=100)
    endurance: int = Field(10, ge=0, le=100)


class UserPublic(Record):
    """Hunter profile as exposed over the API"""
    username: str
    is_admin: bool = False
    rank: Rank = "E"
    job: Job = "Novice Hunter"
    level: int = Field(1, ge=1)
    xp: int = Field(0, ge=0)
    coins: int = Field(100, ge=0)
    stats: Stats = Field(default_factory=Stats)


class User(UserPublic):
    """Stored hunter account; only ever holds a salted password hash"""
    password_hash: str

    def public(self) -> UserPublic:
        return UserPublic.model_validate(self.model_dump(exclude={"password_hash"}))


class RegisterRequest(ApiModel):
    username: str = Field(..., min_length=3, max_length=64)
    password: str = Field(..., min_length=4)


class LoginRequest(RegisterRequest):
    pass


class UserCreate(RegisterRequest):
    is_admin: bool = False


class UserUpdate(ApiModel):
    username: Optional[str] = Field(None, min_length=3, max_length=64)
    is_admin: Optional[bool] = None
    rank: Optional[Rank] = None
    job: Optional[Job] = None
    level: Optional[int] = Field(None, ge=1)
    xp: Optional[int] = Field(None, ge=0)
    coins: Optional[int] = Field(None, ge=0)
    stats: Optional[Stats] = None


# ---------- Quests ----------

class QuestCreate(ApiModel):
    title: str
    description: str
    type: QuestType
    xp_reward: int = Field(..., ge=0)
    coin_reward: int = Field(..., ge=0)
    target_stat: StatType
    required_amount: int = Field(..., ge=1)
    expires_at: UtcDatetime


class QuestUpdate(ApiModel):
    title: Optional[str] = None
    description: Optional[str] = None
    type: Optional[QuestType] = None
    xp_reward: Optional[int] = Field(None, ge=0)
    coin_reward: Optional[int] = Field(None, ge=0)
    target_stat: Optional[StatType] = None
    required_amount: Optional[int] = Field(None, ge=1)
    expires_at: Optional[UtcDatetime] = None


class Quest(Record, QuestCreate):
    """Timed objective template, admin- or generator-authored"""

    def is_active(self, now: Optional[datetime] = None) -> bool:
        return self.expires_at > (now or utcnow())


class UserQuest(Record):
    """A hunter's acceptance of a quest and the progress made on it"""
    user_id: int
    quest_id: int
    progress: int = Field(0, ge=0)
    completed: bool = False


class AcceptQuestRequest(ApiModel):
    quest_id: int


class AmountRequest(ApiModel):
    amount: int = Field(1, ge=1)


class UserQuestUpdate(ApiModel):
    progress: Optional[int] = Field(None, ge=0)
    completed: Optional[bool] = None


class UserQuestDetail(UserQuest):
    quest: Optional[Quest] = None


# ---------- Workouts ----------

class Exercise(ApiModel):
    name: str
    sets: int = Field(..., ge=1)
    reps: str = Field(..., description="Rep count or duration, e.g. '10' or '30s'")


class WorkoutCreate(ApiModel):
    title: str
    description: str
    exercises: List[Exercise] = Field(..., min_length=1)
    target_stat: StatType
    target_rank: Rank
    target_job: Job


class WorkoutUpdate(ApiModel):
    title: Optional[str] = None
    description: Optional[str] = None
    exercises: Optional[List[Exercise]] = Field(None, min_length=1)
    target_stat: Optional[StatType] = None
    target_rank: Optional[Rank] = None
    target_job: Optional[Job] = None


class Workout(Record, WorkoutCreate):
    """Exercise routine tagged for recommendation matching"""


# ---------- Shop ----------

class ShopItemCreate(ApiModel):
    name: str
    description: str
    price: int = Field(..., ge=0)
    type: ItemType
    effect_value: int = 0


class ShopItemUpdate(ApiModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[int] = Field(None, ge=0)
    type: Optional[ItemType] = None
    effect_value: Optional[int] = None


class ShopItem(Record, ShopItemCreate):
    """Item purchasable with coins"""


class UserItem(Record):
    """Ownership record; quantity grows on repeat purchase"""
    user_id: int
    item_id: int
    quantity: int = Field(1, ge=1)


class PurchaseRequest(ApiModel):
    quantity: int = Field(1, ge=1)


class UserItemDetail(UserItem):
    item: Optional[ShopItem] = None


# ---------- Events ----------

class EventCreate(ApiModel):
    title: str
    description: str
    start_date: Optional[UtcDatetime] = None
    end_date: Optional[UtcDatetime] = None
    type: str = Field(..., description="rankup|doublexp|...")


class EventUpdate(ApiModel):
    title: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[UtcDatetime] = None
    end_date: Optional[UtcDatetime] = None
    type: Optional[str] = None


class Event(Record, EventCreate):
    """Informational calendar entry"""

    def is_active(self, now: Optional[datetime] = None) -> bool:
        if self.start_date is None or self.end_date is None:
            return False
        now = now or utcnow()
        return self.start_date <= now <= self.end_date


# ---------- Responses ----------

class MessageResponse(ApiModel):
    message: str


class TrainingResponse(ApiModel):
    user: UserPublic
    stat_increased: StatType
    amount_increased: int
    xp_gained: int
    updated_quests: Optional[List[UserQuest]] = None


class RankUpResponse(ApiModel):
    user: UserPublic
    previous_rank: Rank
    new_rank: Rank
    new_job: Job
    coins_rewarded: int


class GeneratedQuestResponse(ApiModel):
    quest: Quest
    user_quest: UserQuest


class LeaderboardEntry(UserPublic):
    total_xp: int


class StoreStatus(ApiModel):
    backend: str
    store: str
    collections: Dict[str, int]
