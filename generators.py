"""
Template-based workout and quest suggestions.

Picks are driven by a hunter's stats, rank and job plus an injected
random source; nothing is remembered between calls.
"""
import logging
import random
from typing import Any, Dict, List, Mapping, Optional

from progression import STATS, rank_index

logger = logging.getLogger(__name__)

WEEKLY_QUEST_CHANCE = 0.2
BASE_QUEST_XP = 50
BASE_QUEST_COINS = 100


def _ex(name: str, sets: int, reps: str) -> Dict[str, Any]:
    return {"name": name, "sets": sets, "reps": reps}


# Workout templates by job, then by focus stat
WORKOUT_TEMPLATES: Dict[str, Dict[str, Dict[str, Any]]] = {
    "Novice Hunter": {
        "strength": {
            "title": "Novice Strength Builder",
            "description": "Basic strength training for beginners",
            "exercises": [_ex("Push-ups", 3, "10"), _ex("Bodyweight Squats", 3, "15"), _ex("Planks", 3, "30s")],
        },
        "stamina": {
            "title": "Novice Endurance Training",
            "description": "Basic stamina building for beginners",
            "exercises": [_ex("Jumping Jacks", 3, "30s"), _ex("High Knees", 3, "30s"), _ex("Jogging in Place", 3, "1m")],
        },
        "speed": {
            "title": "Novice Speed Training",
            "description": "Basic speed development for beginners",
            "exercises": [_ex("Burpees", 3, "10"), _ex("Mountain Climbers", 3, "15 each leg"), _ex("Jump Rope", 3, "30s")],
        },
        "endurance": {
            "title": "Novice Endurance Builder",
            "description": "Basic endurance training for beginners",
            "exercises": [_ex("Wall Sit", 3, "30s"), _ex("Bicycle Crunches", 3, "15 each side"), _ex("Plank Shoulder Taps", 3, "10 each arm")],
        },
    },
    "Assassin": {
        "strength": {
            "title": "Assassin's Strength Circuit",
            "description": "Focused strength training for Assassin-class hunters",
            "exercises": [_ex("Pull-ups", 3, "8"), _ex("Push-ups with Clap", 3, "12"), _ex("Pistol Squats", 2, "5 each leg")],
        },
        "stamina": {
            "title": "Assassin's Stamina Builder",
            "description": "Specialized stamina training for Assassin-class hunters",
            "exercises": [_ex("Box Jumps", 4, "12"), _ex("Burpees", 3, "15"), _ex("Jump Rope - Double Unders", 3, "30s")],
        },
        "speed": {
            "title": "Shadow Step Training",
            "description": "Advanced speed drills for Assassin-class hunters",
            "exercises": [_ex("High-Knee Sprints", 5, "20s"), _ex("Lateral Jumps", 4, "10 each side"), _ex("Agility Ladder Drills", 3, "30s")],
        },
        "endurance": {
            "title": "Assassin's Endurance Protocol",
            "description": "Endurance training designed for Assassin-class hunters",
            "exercises": [_ex("Wall Climb", 3, "45s"), _ex("Hanging Leg Raises", 3, "12"), _ex("Side Plank with Rotation", 3, "10 each side")],
        },
    },
    "Berserker": {
        "strength": {
            "title": "Berserker's Rage Circuit",
            "description": "Extreme strength training for Berserker-class hunters",
            "exercises": [_ex("Deadlifts", 5, "5"), _ex("Weighted Push-ups", 4, "8"), _ex("Kettlebell Swings", 3, "15")],
        },
        "stamina": {
            "title": "Berserker Stamina Challenge",
            "description": "High-intensity stamina training for Berserker-class hunters",
            "exercises": [_ex("Battle Ropes", 3, "30s"), _ex("Sledgehammer Strikes", 3, "15 each side"), _ex("Tire Flips", 3, "8")],
        },
        "speed": {
            "title": "Berserker Speed Drills",
            "description": "Power-focused speed training for Berserker-class hunters",
            "exercises": [_ex("Box Jumps", 4, "8"), _ex("Medicine Ball Slams", 3, "12"), _ex("Explosive Push-ups", 3, "10")],
        },
        "endurance": {
            "title": "Berserker Endurance Protocol",
            "description": "Brutal endurance training for Berserker-class hunters",
            "exercises": [_ex("Farmer's Carry", 3, "40s"), _ex("Weighted Planks", 3, "45s"), _ex("Sandbag Carries", 3, "30s")],
        },
    },
    "Mage": {
        "strength": {
            "title": "Mage's Core Strengthening",
            "description": "Core-focused strength training for Mage-class hunters",
            "exercises": [_ex("Stability Ball Crunches", 3, "15"), _ex("Medicine Ball Russian Twists", 3, "12 each side"), _ex("Plank with Leg Lift", 3, "8 each leg")],
        },
        "stamina": {
            "title": "Mage's Energy Flow Circuit",
            "description": "Flow-based stamina training for Mage-class hunters",
            "exercises": [_ex("Sun Salutations", 3, "5 complete flows"), _ex("Deep Breathing Squats", 3, "12"), _ex("Flow Burpees", 3, "10")],
        },
        "speed": {
            "title": "Mage's Quick Cast Training",
            "description": "Reaction-based speed training for Mage-class hunters",
            "exercises": [_ex("Agility Ladder Drills", 4, "30s"), _ex("Reaction Ball Drills", 3, "45s"), _ex("Direction Change Sprints", 4, "15s")],
        },
        "endurance": {
            "title": "Mage's Mana Extension",
            "description": "Mental and physical endurance training for Mage-class hunters",
            "exercises": [_ex("Breathing Planks", 3, "60s"), _ex("Wall Sits with Arm Extension", 3, "45s"), _ex("Meditation Squat Holds", 3, "60s")],
        },
    },
    "Tank": {
        "strength": {
            "title": "Tank's Fortress Builder",
            "description": "Heavy strength training for Tank-class hunters",
            "exercises": [_ex("Goblet Squats", 4, "10"), _ex("Dumbbell Rows", 3, "12 each arm"), _ex("Weighted Lunges", 3, "10 each leg")],
        },
        "stamina": {
            "title": "Tank's Resilience Circuit",
            "description": "Stamina training for Tank-class hunters",
            "exercises": [_ex("Weighted Step-ups", 3, "12 each leg"), _ex("Rucksack Walks", 3, "2 minutes"), _ex("Wall Ball Shots", 3, "15")],
        },
        "speed": {
            "title": "Tank's Defensive Movement",
            "description": "Agility-focused speed training for Tank-class hunters",
            "exercises": [_ex("Lateral Shuffles", 4, "20s each direction"), _ex("Defensive Slides", 3, "30s"), _ex("Quick Direction Changes", 4, "15s")],
        },
        "endurance": {
            "title": "Tank's Unbreakable Protocol",
            "description": "Extreme endurance training for Tank-class hunters",
            "exercises": [_ex("Weighted Vest Walk", 2, "5 minutes"), _ex("Farmer's Carry", 3, "60s"), _ex("Weighted Plank", 3, "60s")],
        },
    },
    "Warlock": {
        "strength": {
            "title": "Warlock's Dark Power",
            "description": "Mysterious strength training for Warlock-class hunters",
            "exercises": [_ex("Weighted Pull-ups", 4, "8"), _ex("Skull Crushers", 3, "12"), _ex("Dragon Flags", 3, "6")],
        },
        "stamina": {
            "title": "Warlock's Mana Circuit",
            "description": "Dark energy stamina training for Warlock-class hunters",
            "exercises": [_ex("Shadow Boxing", 3, "45s"), _ex("Tabata Protocol", 4, "20s work/10s rest"), _ex("Circuit Training", 2, "3 minutes")],
        },
        "speed": {
            "title": "Warlock's Shadow Step",
            "description": "Supernatural speed training for Warlock-class hunters",
            "exercises": [_ex("Shadow Sprints", 5, "15s"), _ex("Bounding Leaps", 4, "8 each leg"), _ex("Explosive Transitions", 3, "10")],
        },
        "endurance": {
            "title": "Warlock's Eternal Darkness",
            "description": "Soul-draining endurance training for Warlock-class hunters",
            "exercises": [_ex("Weighted Wall Sits", 3, "90s"), _ex("L-Sit Progression", 3, "30s"), _ex("Hollow Body Holds", 3, "60s")],
        },
    },
    "Shadow Monarch": {
        "strength": {
            "title": "Monarch's Domain",
            "description": "Ultimate strength training for Shadow Monarch-class hunters",
            "exercises": [_ex("Weighted Muscle-ups", 4, "6"), _ex("Heavy Deadlifts", 5, "5"), _ex("One-Arm Push-up Progression", 3, "5 each arm")],
        },
        "stamina": {
            "title": "Arise Protocol",
            "description": "Ultimate stamina building for Shadow Monarch-class hunters",
            "exercises": [_ex("Hurricane Training", 3, "2 minutes"), _ex("CrossFit WOD", 1, "10 minute AMRAP"), _ex("VO2 Max Training", 4, "4 minute cycles")],
        },
        "speed": {
            "title": "Shadow Rush",
            "description": "Supernatural speed development for Shadow Monarch-class hunters",
            "exercises": [_ex("Flying Sprints", 6, "20s"), _ex("Depth Jumps", 4, "8"), _ex("Olympic Lifts", 4, "5")],
        },
        "endurance": {
            "title": "Eternal Monarch",
            "description": "God-tier endurance training for Shadow Monarch-class hunters",
            "exercises": [_ex("Iron Crucible", 3, "2 minutes"), _ex("Mace 360s", 3, "20 each direction"), _ex("Loaded Carries Complex", 2, "5 minutes")],
        },
    },
}

GENERIC_EXERCISES = [_ex("Push-ups", 3, "10"), _ex("Squats", 3, "15"), _ex("Planks", 3, "30s")]

# Quest templates by focus stat, plus the weekly pool
QUEST_TEMPLATES: Dict[str, List[Dict[str, Any]]] = {
    "strength": [
        {"title": "Power Within", "description": "Complete strength exercises to unlock your hidden potential", "type": "daily", "required_amount": 5},
        {"title": "Mighty Hunter", "description": "Demonstrate your strength through intense training", "type": "daily", "required_amount": 8},
        {"title": "Surge of Power", "description": "Push your strength to new limits with focused exercises", "type": "daily", "required_amount": 10},
    ],
    "stamina": [
        {"title": "Endless Energy", "description": "Build your stamina through persistent training", "type": "daily", "required_amount": 6},
        {"title": "Breathing Control", "description": "Master your stamina through controlled breathing exercises", "type": "daily", "required_amount": 8},
        {"title": "Mana Extension", "description": "Expand your energy reserves through challenging stamina drills", "type": "daily", "required_amount": 12},
    ],
    "speed": [
        {"title": "Lightning Reflexes", "description": "Sharpen your speed with quick, explosive movements", "type": "daily", "required_amount": 5},
        {"title": "Shadow Step", "description": "Move like a shadow with these speed-enhancing exercises", "type": "daily", "required_amount": 8},
        {"title": "Time Warp", "description": "Train to move so fast that time seems to slow down around you", "type": "daily", "required_amount": 15},
    ],
    "endurance": [
        {"title": "Unbreakable", "description": "Build your endurance to withstand any challenge", "type": "daily", "required_amount": 7},
        {"title": "Last Hunter Standing", "description": "Outlast your opponents by building superior endurance", "type": "daily", "required_amount": 10},
        {"title": "Eternal Guardian", "description": "Train your body to overcome any endurance challenge", "type": "daily", "required_amount": 12},
    ],
    "weekly": [
        {"title": "Gate Clearing", "description": "A dangerous gate has appeared! Complete a full week of training to close it", "type": "weekly", "required_amount": 25},
        {"title": "Hunter Association Challenge", "description": "The Hunter Association has issued a special training challenge", "type": "weekly", "required_amount": 30},
        {"title": "Dungeon Break", "description": "A dungeon break has occurred! Train intensely to handle the crisis", "type": "weekly", "required_amount": 35},
    ],
}


def _stat_values(stats: Any) -> Dict[str, int]:
    if isinstance(stats, Mapping):
        return {s: int(stats.get(s, 0)) for s in STATS}
    return {s: int(getattr(stats, s)) for s in STATS}


def highest_stat(stats: Any) -> str:
    """Strongest stat; ties go to the earliest in STATS order."""
    values = _stat_values(stats)
    return max(STATS, key=lambda s: (values[s], -STATS.index(s)))


def lowest_stat(stats: Any) -> str:
    """Weakest stat; ties go to the earliest in STATS order."""
    values = _stat_values(stats)
    return min(STATS, key=lambda s: (values[s], STATS.index(s)))


def recommend_workout(stats: Any, rank: str, job: str) -> Dict[str, Any]:
    focus = highest_stat(stats)
    template = WORKOUT_TEMPLATES.get(job, {}).get(focus)
    if template is not None:
        workout = {
            "title": template["title"],
            "description": template["description"],
            "exercises": [dict(e) for e in template["exercises"]],
        }
    else:
        workout = {
            "title": f"{job} {focus.capitalize()} Training",
            "description": f"Personalized workout for {rank}-Rank {job} focused on {focus}",
            "exercises": [dict(e) for e in GENERIC_EXERCISES],
        }
    workout["target_stat"] = focus
    return workout


def recommend_quest(stats: Any, rank: str, rng: Optional[random.Random] = None) -> Dict[str, Any]:
    rng = rng or random.Random()
    focus = lowest_stat(stats)
    multiplier = rank_index(rank) + 1

    if rng.random() < WEEKLY_QUEST_CHANCE:
        template = rng.choice(QUEST_TEMPLATES["weekly"])
    else:
        template = rng.choice(QUEST_TEMPLATES[focus])

    scale = 2 if template["type"] == "weekly" else 1
    quest = {
        "title": template["title"],
        "description": template["description"],
        "type": template["type"],
        "xp_reward": BASE_QUEST_XP * multiplier * scale,
        "coin_reward": BASE_QUEST_COINS * multiplier * scale,
        "target_stat": focus,
        "required_amount": template["required_amount"],
    }
    logger.debug("Generated %s quest %r targeting %s", quest["type"], quest["title"], focus)
    return quest
