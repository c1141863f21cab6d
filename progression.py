"""
Progression rules: stat training, XP/leveling, coins, quest rewards, rank-up.

Every function mutates the records it is handed and leaves persistence to
the caller, so a request can apply several steps inside one store
transaction.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from schemas import Quest, User, UserQuest

logger = logging.getLogger(__name__)

RANKS = ("E", "D", "C", "B", "A", "S", "SS")
JOBS = ("Novice Hunter", "Assassin", "Berserker", "Mage", "Tank", "Warlock", "Shadow Monarch")
STATS = ("strength", "stamina", "speed", "endurance")

XP_PER_LEVEL = 500
MIN_STAT = 0
MAX_STAT = 100
STAT_STEP_PER_RANK = 25
LEVEL_STEP_PER_RANK = 5
RANK_UP_COIN_STEP = 500


class ProgressionError(Exception):
    """A business rule refused the requested change."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MaxRankReached(ProgressionError):
    def __init__(self):
        super().__init__("Already at maximum rank")


class RequirementsNotMet(ProgressionError):
    def __init__(self, message: str, requirements: Optional[Dict[str, int]] = None):
        super().__init__(message)
        self.requirements = requirements


@dataclass
class RankUpOutcome:
    previous_rank: str
    new_rank: str
    new_job: str
    coins_rewarded: int


@dataclass
class TrainingOutcome:
    xp_gained: int
    levels_gained: int = 0
    updated_quests: List[UserQuest] = field(default_factory=list)
    completed_quests: List[UserQuest] = field(default_factory=list)


def rank_index(rank: str) -> int:
    return RANKS.index(rank)


def xp_threshold(level: int) -> int:
    """XP needed to advance from ``level`` to the next one."""
    return XP_PER_LEVEL * level


def total_xp(user: User) -> int:
    return (user.level - 1) * XP_PER_LEVEL + user.xp


def rank_requirements(rank: str) -> Tuple[int, int]:
    """(required level, per-stat minimum) to leave ``rank``."""
    idx = rank_index(rank)
    return (idx + 2) * LEVEL_STEP_PER_RANK, (idx + 1) * STAT_STEP_PER_RANK


def increase_stat(user: User, stat: str, amount: int) -> int:
    if stat not in STATS:
        raise ValueError(f"unknown stat {stat!r}")
    value = getattr(user.stats, stat) + amount
    value = max(MIN_STAT, min(MAX_STAT, value))
    setattr(user.stats, stat, value)
    return value


def grant_xp(user: User, amount: int) -> int:
    """Add XP and roll it over into levels; returns the number of levels gained."""
    user.xp += amount
    gained = 0
    while user.xp >= xp_threshold(user.level):
        user.xp -= xp_threshold(user.level)
        user.level += 1
        gained += 1
    if gained:
        logger.debug("User %s reached level %s", user.id, user.level)
    return gained


def grant_coins(user: User, amount: int) -> int:
    user.coins = max(0, user.coins + amount)
    return user.coins


def rank_up(user: User) -> RankUpOutcome:
    idx = rank_index(user.rank)
    if idx >= len(RANKS) - 1:
        raise MaxRankReached()

    next_rank = RANKS[idx + 1]
    required_level, min_stat = rank_requirements(user.rank)
    if user.level < required_level:
        raise RequirementsNotMet(f"Level {required_level} required to rank up to {next_rank}-Rank")

    if any(getattr(user.stats, stat) < min_stat for stat in STATS):
        raise RequirementsNotMet(
            "Stats too low for rank-up",
            requirements={stat: min_stat for stat in STATS},
        )

    previous = user.rank
    reward = (idx + 2) * RANK_UP_COIN_STEP
    user.rank = next_rank
    user.job = JOBS[idx + 1]
    grant_coins(user, reward)
    logger.info("User %s ranked up %s -> %s (%s)", user.id, previous, user.rank, user.job)
    return RankUpOutcome(previous, user.rank, user.job, reward)


def record_quest_progress(user: User, user_quest: UserQuest, quest: Quest, amount: int) -> bool:
    """Advance a quest; rewards are paid only when this call completes it.

    Returns True when the quest moved from incomplete to complete.
    """
    if user_quest.completed:
        return False

    user_quest.progress = min(user_quest.progress + amount, quest.required_amount)
    user_quest.completed = user_quest.progress >= quest.required_amount
    if not user_quest.completed:
        return False

    grant_xp(user, quest.xp_reward)
    grant_coins(user, quest.coin_reward)
    increase_stat(user, quest.target_stat, math.ceil(quest.required_amount / 10))
    logger.info("User %s completed quest %s (%s)", user.id, quest.id, quest.title)
    return True


def train_stat(user: User, stat: str, amount: int,
               active_quests: Iterable[Tuple[UserQuest, Quest]] = ()) -> TrainingOutcome:
    increase_stat(user, stat, amount)
    xp_gained = amount * 10 * (rank_index(user.rank) + 1)
    outcome = TrainingOutcome(xp_gained=xp_gained, levels_gained=grant_xp(user, xp_gained))

    for user_quest, quest in active_quests:
        if quest.target_stat != stat or user_quest.completed:
            continue
        if record_quest_progress(user, user_quest, quest, amount):
            outcome.completed_quests.append(user_quest)
        outcome.updated_quests.append(user_quest)
    return outcome
