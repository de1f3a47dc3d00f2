"""Default challenge catalogue seeded into a fresh database."""

from typing import Dict, List


DEFAULT_CHALLENGES: List[Dict] = [
    {
        "code": "ramadan_prep_2026",
        "name": "Ramadan Prep Challenge",
        "description": "Four weeks of walking, hydration, workouts and Ramadan preparation.",
        "start_date": "2026-01-18",
        "end_date": "2026-02-14",
        "milestone_granularity": "WEEK",
        "activities": [
            # Stricter cap on workouts, lenient caps on the low-effort habits.
            {"id": "WALK", "name": "Walk", "unit": "miles", "cap": 5, "threshold": 5},
            {"id": "WATER", "name": "Water", "unit": "liters", "required_amount": 2, "cap": 7, "threshold": 5},
            {"id": "WORKOUT", "name": "Workout", "unit": "minutes", "cap": 3, "threshold": 3},
            {"id": "RAMADAN_PREP", "name": "Ramadan Prep", "unit": "days", "cap": 7, "threshold": 5},
        ],
    },
    {
        "code": "steps_monthly",
        "name": "Step Ladder",
        "description": "Collect steps every week; bigger weeks earn more points.",
        "start_date": "2026-03-01",
        "end_date": "2026-03-31",
        "milestone_granularity": "WEEK",
        "activities": [
            {
                "id": "STEPS",
                "name": "Steps",
                "unit": "steps",
                "aggregation": "SUM",
                "threshold": 35000,
                "rules": [
                    {"threshold_min": 1, "threshold_max": 34999, "points": 1, "priority": 1},
                    {"threshold_min": 35000, "threshold_max": 69999, "points": 2, "priority": 2},
                    {"threshold_min": 70000, "threshold_max": None, "points": 3, "priority": 3},
                ],
            },
            {
                "id": "WORKOUT",
                "name": "Workout",
                "unit": "sessions",
                "aggregation": "COUNT",
                "rules": [
                    {"threshold_min": 1, "threshold_max": 2, "points": 1, "priority": 1},
                    {"threshold_min": 3, "threshold_max": None, "points": 2, "priority": 2},
                ],
            },
        ],
    },
]
