import logging
import random
from datetime import timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

import progression
from auth import admin_user, authenticate, current_user, end_session, get_db, hash_password, start_session
from database import Database, seed_defaults
from generators import recommend_quest, recommend_workout
from progression import STATS, MaxRankReached, RequirementsNotMet
from schemas import (
    AcceptQuestRequest,
    AmountRequest,
    Event,
    EventCreate,
    EventUpdate,
    GeneratedQuestResponse,
    LeaderboardEntry,
    LoginRequest,
    MessageResponse,
    PurchaseRequest,
    Quest,
    QuestCreate,
    QuestUpdate,
    RankUpResponse,
    RegisterRequest,
    ShopItem,
    ShopItemCreate,
    ShopItemUpdate,
    StoreStatus,
    TrainingResponse,
    User,
    UserCreate,
    UserItem,
    UserItemDetail,
    UserPublic,
    UserQuest,
    UserQuestDetail,
    UserQuestUpdate,
    UserUpdate,
    Workout,
    WorkoutCreate,
    WorkoutUpdate,
    utcnow,
)
from settings import Settings

logger = logging.getLogger(__name__)

router = APIRouter()

# ---------- Utilities ----------

def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def get_or_404(db: Database, collection: str, doc_id: int, label: str):
    record = db.get_document(collection, doc_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return record


def changed_fields(payload, keep_none: bool = False) -> dict:
    # keep nested models as models; model_dump would flatten them to dicts
    fields = {name: getattr(payload, name) for name in payload.model_fields_set}
    if keep_none:
        return fields
    return {name: value for name, value in fields.items() if value is not None}


def update_or_404(db: Database, collection: str, doc_id: int, updates: dict, label: str):
    try:
        record = db.update_document(collection, doc_id, updates)
    except ValidationError as exc:
        logger.debug("Rejected %s %s update: %s", collection, doc_id, exc.errors())
        raise HTTPException(status_code=400, detail="Invalid request data")
    if record is None:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return record


def get_rng(request: Request) -> random.Random:
    return request.app.state.rng


def create_user_account(request: Request, db: Database, username: str, password: str, is_admin: bool = False) -> User:
    if db.get_user_by_username(username) is not None:
        raise HTTPException(status_code=400, detail="Username already exists")
    method = request.app.state.settings.password_hash_method
    user = db.create_document("user", User(
        username=username,
        password_hash=hash_password(password, method),
        is_admin=is_admin,
    ))
    logger.info("Registered hunter %s (id=%s, admin=%s)", user.username, user.id, user.is_admin)
    return user


def with_quest(db: Database, user_quest: UserQuest) -> UserQuestDetail:
    return UserQuestDetail(**user_quest.model_dump(), quest=db.get_document("quest", user_quest.quest_id))


def with_item(db: Database, user_item: UserItem) -> UserItemDetail:
    return UserItemDetail(**user_item.model_dump(), item=db.get_document("shopitem", user_item.item_id))


def owned_user_quest(db: Database, user_quest_id: int, user: User) -> UserQuest:
    user_quest = get_or_404(db, "userquest", user_quest_id, "User quest")
    if user_quest.user_id != user.id and not user.is_admin:
        raise HTTPException(status_code=403, detail="Forbidden")
    return user_quest

# ---------- Health ----------

@router.get("/")
def read_root():
    return {"message": "Hunter Fitness Tracker API"}


@router.get("/test", response_model=StoreStatus)
def test_store(db: Database = Depends(get_db)):
    return StoreStatus(backend="Running", store="In-memory", collections=db.collection_counts())

# ---------- Auth ----------

@router.post("/api/register", response_model=UserPublic, status_code=201)
def register(payload: RegisterRequest, request: Request, response: Response, db: Database = Depends(get_db)):
    user = create_user_account(request, db, payload.username, payload.password)
    start_session(request, response, user)
    return user.public()


@router.post("/api/login", response_model=UserPublic)
def login(payload: LoginRequest, request: Request, response: Response, db: Database = Depends(get_db)):
    user = authenticate(db, payload.username, payload.password)
    if user is None:
        logger.info("Failed login for %s", payload.username)
        raise HTTPException(status_code=401, detail="Invalid username or password")
    start_session(request, response, user)
    return user.public()


@router.post("/api/logout", response_model=MessageResponse)
def logout(request: Request, response: Response):
    end_session(request, response)
    return MessageResponse(message="Logged out")


@router.get("/api/user", response_model=UserPublic)
def read_current_user(user: User = Depends(current_user)):
    return user.public()

# ---------- Users ----------

@router.get("/api/users", response_model=List[UserPublic])
def list_users(db: Database = Depends(get_db), _: User = Depends(admin_user)):
    return [u.public() for u in db.get_documents("user")]


@router.post("/api/users", response_model=UserPublic, status_code=201)
def create_user(payload: UserCreate, request: Request, db: Database = Depends(get_db), _: User = Depends(admin_user)):
    return create_user_account(request, db, payload.username, payload.password, payload.is_admin).public()


@router.get("/api/users/{user_id}", response_model=UserPublic)
def read_user(user_id: int, db: Database = Depends(get_db), me: User = Depends(current_user)):
    user = get_or_404(db, "user", user_id, "User")
    if not me.is_admin and me.id != user.id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return user.public()


@router.patch("/api/users/{user_id}", response_model=UserPublic)
def update_user(user_id: int, payload: UserUpdate, db: Database = Depends(get_db), _: User = Depends(admin_user)):
    with db.transaction():
        user = get_or_404(db, "user", user_id, "User")
        updates = changed_fields(payload)
        if "username" in updates:
            clash = db.get_user_by_username(updates["username"])
            if clash is not None and clash.id != user_id:
                raise HTTPException(status_code=400, detail="Username already exists")
        user = user.model_copy(update=updates)
        # admin edits to xp/level still respect the rollover invariant
        progression.grant_xp(user, 0)
        db.save_document("user", user)
    return user.public()


@router.delete("/api/users/{user_id}", status_code=204)
def delete_user(user_id: int, db: Database = Depends(get_db), _: User = Depends(admin_user)):
    with db.transaction():
        if not db.delete_document("user", user_id):
            raise HTTPException(status_code=404, detail="User not found")
        db.delete_documents("userquest", {"user_id": user_id})
        db.delete_documents("useritem", {"user_id": user_id})
        db.delete_user_sessions(user_id)
    logger.info("Deleted user %s", user_id)
    return Response(status_code=204)

# ---------- Quests ----------

@router.get("/api/quests", response_model=List[Quest])
def list_quests(db: Database = Depends(get_db), _: User = Depends(current_user)):
    return db.get_documents("quest")


@router.get("/api/quests/active", response_model=List[Quest])
def list_active_quests(db: Database = Depends(get_db), _: User = Depends(current_user)):
    now = utcnow()
    return db.get_documents("quest", lambda q: q.is_active(now))


@router.post("/api/quests/generate", response_model=GeneratedQuestResponse, status_code=201)
def generate_quest(db: Database = Depends(get_db), user: User = Depends(current_user),
                   rng: random.Random = Depends(get_rng)):
    data = recommend_quest(user.stats, user.rank, rng)
    lifetime = timedelta(days=1) if data["type"] == "daily" else timedelta(weeks=1)
    with db.transaction():
        quest = db.create_document("quest", {**data, "expires_at": utcnow() + lifetime})
        user_quest = db.create_document("userquest", {"user_id": user.id, "quest_id": quest.id})
    logger.info("Generated %s quest %s for user %s", quest.type, quest.id, user.id)
    return GeneratedQuestResponse(quest=quest, user_quest=user_quest)


@router.get("/api/quests/{quest_id}", response_model=Quest)
def read_quest(quest_id: int, db: Database = Depends(get_db), _: User = Depends(current_user)):
    return get_or_404(db, "quest", quest_id, "Quest")


@router.post("/api/quests", response_model=Quest, status_code=201)
def create_quest(payload: QuestCreate, db: Database = Depends(get_db), _: User = Depends(admin_user)):
    return db.create_document("quest", payload.model_dump())


@router.patch("/api/quests/{quest_id}", response_model=Quest)
def update_quest(quest_id: int, payload: QuestUpdate, db: Database = Depends(get_db), _: User = Depends(admin_user)):
    return update_or_404(db, "quest", quest_id, changed_fields(payload), "Quest")


@router.delete("/api/quests/{quest_id}", status_code=204)
def delete_quest(quest_id: int, db: Database = Depends(get_db), _: User = Depends(admin_user)):
    if not db.delete_document("quest", quest_id):
        raise HTTPException(status_code=404, detail="Quest not found")
    return Response(status_code=204)

# ---------- User quests ----------

@router.get("/api/user-quests", response_model=List[UserQuest])
def list_user_quests(db: Database = Depends(get_db), user: User = Depends(current_user)):
    return db.get_documents("userquest", {"user_id": user.id})


@router.get("/api/user-quests/active", response_model=List[UserQuestDetail])
def list_active_user_quests(db: Database = Depends(get_db), user: User = Depends(current_user)):
    return [with_quest(db, uq) for uq in db.get_documents("userquest", {"user_id": user.id, "completed": False})]


@router.get("/api/user-quests/completed", response_model=List[UserQuestDetail])
def list_completed_user_quests(db: Database = Depends(get_db), user: User = Depends(current_user)):
    return [with_quest(db, uq) for uq in db.get_documents("userquest", {"user_id": user.id, "completed": True})]


@router.post("/api/user-quests", response_model=UserQuest, status_code=201)
def accept_quest(payload: AcceptQuestRequest, db: Database = Depends(get_db), user: User = Depends(current_user)):
    with db.transaction():
        if db.find_document("userquest", {"user_id": user.id, "quest_id": payload.quest_id}) is not None:
            raise HTTPException(status_code=400, detail="Quest already accepted")
        get_or_404(db, "quest", payload.quest_id, "Quest")
        return db.create_document("userquest", {"user_id": user.id, "quest_id": payload.quest_id})


@router.post("/api/user-quests/{user_quest_id}/progress", response_model=UserQuest)
def progress_user_quest(user_quest_id: int, payload: Optional[AmountRequest] = None,
                        db: Database = Depends(get_db), me: User = Depends(current_user)):
    amount = payload.amount if payload else 1
    with db.transaction():
        user_quest = owned_user_quest(db, user_quest_id, me)
        quest = get_or_404(db, "quest", user_quest.quest_id, "Quest")
        owner = get_or_404(db, "user", user_quest.user_id, "User")
        progression.record_quest_progress(owner, user_quest, quest, amount)
        db.save_document("userquest", user_quest)
        db.save_document("user", owner)
    return user_quest


@router.patch("/api/user-quests/{user_quest_id}", response_model=UserQuest)
def update_user_quest(user_quest_id: int, payload: UserQuestUpdate,
                      db: Database = Depends(get_db), me: User = Depends(current_user)):
    with db.transaction():
        user_quest = owned_user_quest(db, user_quest_id, me)
        if user_quest.completed:
            # completion is final and its rewards are already paid
            return user_quest
        quest = get_or_404(db, "quest", user_quest.quest_id, "Quest")
        owner = get_or_404(db, "user", user_quest.user_id, "User")
        if payload.progress is not None:
            user_quest.progress = min(payload.progress, quest.required_amount)
        if payload.completed or user_quest.progress >= quest.required_amount:
            remaining = quest.required_amount - user_quest.progress
            progression.record_quest_progress(owner, user_quest, quest, remaining)
        db.save_document("userquest", user_quest)
        db.save_document("user", owner)
    return user_quest

# ---------- Workouts ----------

@router.get("/api/workouts", response_model=List[Workout])
def list_workouts(db: Database = Depends(get_db), _: User = Depends(current_user)):
    return db.get_documents("workout")


@router.get("/api/workouts/recommended", response_model=Workout)
def recommended_workout(db: Database = Depends(get_db), user: User = Depends(current_user),
                        rng: random.Random = Depends(get_rng)):
    matches = db.get_documents("workout", {"target_rank": user.rank, "target_job": user.job})
    if matches:
        return rng.choice(matches)

    data = recommend_workout(user.stats, user.rank, user.job)
    workout = db.create_document("workout", {**data, "target_rank": user.rank, "target_job": user.job})
    logger.info("Cached generated workout %s for %s-Rank %s", workout.id, user.rank, user.job)
    return workout


@router.get("/api/workouts/by-rank/{rank}", response_model=List[Workout])
def workouts_by_rank(rank: str, db: Database = Depends(get_db), _: User = Depends(current_user)):
    return db.get_documents("workout", {"target_rank": rank})


@router.get("/api/workouts/by-job/{job}", response_model=List[Workout])
def workouts_by_job(job: str, db: Database = Depends(get_db), _: User = Depends(current_user)):
    return db.get_documents("workout", {"target_job": job})


@router.get("/api/workouts/{workout_id}", response_model=Workout)
def read_workout(workout_id: int, db: Database = Depends(get_db), _: User = Depends(current_user)):
    return get_or_404(db, "workout", workout_id, "Workout")


@router.post("/api/workouts", response_model=Workout, status_code=201)
def create_workout(payload: WorkoutCreate, db: Database = Depends(get_db), _: User = Depends(admin_user)):
    return db.create_document("workout", payload.model_dump())


@router.patch("/api/workouts/{workout_id}", response_model=Workout)
def update_workout(workout_id: int, payload: WorkoutUpdate, db: Database = Depends(get_db), _: User = Depends(admin_user)):
    return update_or_404(db, "workout", workout_id, changed_fields(payload), "Workout")


@router.delete("/api/workouts/{workout_id}", status_code=204)
def delete_workout(workout_id: int, db: Database = Depends(get_db), _: User = Depends(admin_user)):
    if not db.delete_document("workout", workout_id):
        raise HTTPException(status_code=404, detail="Workout not found")
    return Response(status_code=204)

# ---------- Shop ----------

@router.get("/api/shop-items", response_model=List[ShopItem])
def list_shop_items(db: Database = Depends(get_db), _: User = Depends(current_user)):
    return db.get_documents("shopitem")


@router.get("/api/shop-items/{item_id}", response_model=ShopItem)
def read_shop_item(item_id: int, db: Database = Depends(get_db), _: User = Depends(current_user)):
    return get_or_404(db, "shopitem", item_id, "Shop item")


@router.post("/api/shop-items", response_model=ShopItem, status_code=201)
def create_shop_item(payload: ShopItemCreate, db: Database = Depends(get_db), _: User = Depends(admin_user)):
    return db.create_document("shopitem", payload.model_dump())


@router.patch("/api/shop-items/{item_id}", response_model=ShopItem)
def update_shop_item(item_id: int, payload: ShopItemUpdate, db: Database = Depends(get_db), _: User = Depends(admin_user)):
    return update_or_404(db, "shopitem", item_id, changed_fields(payload), "Shop item")


@router.delete("/api/shop-items/{item_id}", status_code=204)
def delete_shop_item(item_id: int, db: Database = Depends(get_db), _: User = Depends(admin_user)):
    if not db.delete_document("shopitem", item_id):
        raise HTTPException(status_code=404, detail="Shop item not found")
    return Response(status_code=204)


@router.post("/api/shop-items/{item_id}/purchase", response_model=UserItemDetail, status_code=201)
def purchase_item(item_id: int, payload: Optional[PurchaseRequest] = None,
                  db: Database = Depends(get_db), me: User = Depends(current_user)):
    quantity = payload.quantity if payload else 1
    with db.transaction():
        item = get_or_404(db, "shopitem", item_id, "Shop item")
        user = get_or_404(db, "user", me.id, "User")
        total_cost = item.price * quantity
        if total_cost > user.coins:
            raise HTTPException(status_code=400, detail="Not enough coins")

        owned = db.find_document("useritem", {"user_id": user.id, "item_id": item_id})
        if owned is not None:
            owned.quantity += quantity
            user_item = db.save_document("useritem", owned)
        else:
            user_item = db.create_document("useritem", {"user_id": user.id, "item_id": item_id, "quantity": quantity})

        progression.grant_coins(user, -total_cost)
        db.save_document("user", user)
    logger.info("User %s bought %s x %s for %s coins", user.id, quantity, item.name, total_cost)
    return UserItemDetail(**user_item.model_dump(), item=item)


@router.get("/api/user-items", response_model=List[UserItemDetail])
def list_user_items(db: Database = Depends(get_db), user: User = Depends(current_user)):
    return [with_item(db, ui) for ui in db.get_documents("useritem", {"user_id": user.id})]

# ---------- Events ----------

@router.get("/api/events", response_model=List[Event])
def list_events(db: Database = Depends(get_db), _: User = Depends(current_user)):
    return db.get_documents("event")


@router.get("/api/events/active", response_model=List[Event])
def list_active_events(db: Database = Depends(get_db), _: User = Depends(current_user)):
    now = utcnow()
    return db.get_documents("event", lambda e: e.is_active(now))


@router.get("/api/events/{event_id}", response_model=Event)
def read_event(event_id: int, db: Database = Depends(get_db), _: User = Depends(current_user)):
    return get_or_404(db, "event", event_id, "Event")


@router.post("/api/events", response_model=Event, status_code=201)
def create_event(payload: EventCreate, db: Database = Depends(get_db), _: User = Depends(admin_user)):
    return db.create_document("event", payload.model_dump())


@router.patch("/api/events/{event_id}", response_model=Event)
def update_event(event_id: int, payload: EventUpdate, db: Database = Depends(get_db), _: User = Depends(admin_user)):
    # an explicit null clears a date; on a required field it is rejected
    return update_or_404(db, "event", event_id, changed_fields(payload, keep_none=True), "Event")


@router.delete("/api/events/{event_id}", status_code=204)
def delete_event(event_id: int, db: Database = Depends(get_db), _: User = Depends(admin_user)):
    if not db.delete_document("event", event_id):
        raise HTTPException(status_code=404, detail="Event not found")
    return Response(status_code=204)

# ---------- Training & rank ----------

@router.post("/api/training/{stat}", response_model=TrainingResponse, response_model_exclude_none=True)
def train(stat: str, payload: Optional[AmountRequest] = None,
          db: Database = Depends(get_db), me: User = Depends(current_user)):
    if stat not in STATS:
        raise HTTPException(status_code=400, detail="Invalid stat type")
    amount = payload.amount if payload else 1

    with db.transaction():
        user = get_or_404(db, "user", me.id, "User")
        active = []
        for user_quest in db.get_documents("userquest", {"user_id": user.id, "completed": False}):
            quest = db.get_document("quest", user_quest.quest_id)
            if quest is not None:
                active.append((user_quest, quest))

        outcome = progression.train_stat(user, stat, amount, active)
        for user_quest in outcome.updated_quests:
            db.save_document("userquest", user_quest)
        db.save_document("user", user)

    return TrainingResponse(
        user=user.public(),
        stat_increased=stat,
        amount_increased=amount,
        xp_gained=outcome.xp_gained,
        updated_quests=outcome.updated_quests or None,
    )


@router.post("/api/rank-up", response_model=RankUpResponse)
def rank_up(db: Database = Depends(get_db), me: User = Depends(current_user)):
    with db.transaction():
        user = get_or_404(db, "user", me.id, "User")
        try:
            outcome = progression.rank_up(user)
        except MaxRankReached as exc:
            raise HTTPException(status_code=400, detail=exc.message)
        except RequirementsNotMet as exc:
            detail = {"message": exc.message}
            if exc.requirements:
                detail["requirements"] = exc.requirements
            raise HTTPException(status_code=400, detail=detail)
        db.save_document("user", user)

    return RankUpResponse(
        user=user.public(),
        previous_rank=outcome.previous_rank,
        new_rank=outcome.new_rank,
        new_job=outcome.new_job,
        coins_rewarded=outcome.coins_rewarded,
    )

# ---------- Leaderboard ----------

@router.get("/api/leaderboard", response_model=List[LeaderboardEntry])
def leaderboard(db: Database = Depends(get_db)):
    entries = [
        LeaderboardEntry(**u.public().model_dump(), total_xp=progression.total_xp(u))
        for u in db.get_documents("user")
    ]
    return sorted(entries, key=lambda e: e.total_xp, reverse=True)

# ---------- Schemas endpoint (for viewer tools) ----------

@router.get("/schema")
def read_schemas():
    def model_fields(model):
        return {field.alias or name: str(field.annotation) for name, field in model.model_fields.items()}
    return {
        "user": model_fields(UserPublic),
        "quest": model_fields(Quest),
        "userquest": model_fields(UserQuest),
        "workout": model_fields(Workout),
        "shopitem": model_fields(ShopItem),
        "useritem": model_fields(UserItem),
        "event": model_fields(Event),
    }

# ---------- Error shaping ----------

async def http_error_handler(request: Request, exc: StarletteHTTPException):
    content = exc.detail if isinstance(exc.detail, dict) else {"message": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.debug("Rejected %s %s: %s", request.method, request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"message": "Invalid request data"})


async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Internal server error"})

# ---------- App ----------

def create_app(settings: Optional[Settings] = None, db: Optional[Database] = None,
               rng: Optional[random.Random] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    application = FastAPI(title="Hunter Fitness Tracker")

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_exception_handler(StarletteHTTPException, http_error_handler)
    application.add_exception_handler(RequestValidationError, validation_error_handler)
    application.add_exception_handler(Exception, unexpected_error_handler)

    application.state.settings = settings
    application.state.db = db if db is not None else Database()
    application.state.rng = rng or random.Random()
    if settings.seed_defaults:
        seed_defaults(application.state.db, settings,
                      lambda pw: hash_password(pw, settings.password_hash_method))

    application.include_router(router)
    return application


def __getattr__(name):
    # `uvicorn main:app` resolves the default app on first access only
    if name == "app":
        application = create_app()
        globals()["app"] = application
        return application
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


if __name__ == "__main__":
    import uvicorn
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
