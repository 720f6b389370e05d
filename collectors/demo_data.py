"""Mock stations, impact factors and detections for demo mode and seeding."""

import random
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from waste_metrics.models import Category

DEMO_ORGANIZATION_ID = "demo-org-001"
DEMO_ORGANIZATION_NAME = "Demo Campus"

DEMO_STATIONS = [
    {"id": "station-001", "name": "Main Lobby", "status": "active", "organization_id": DEMO_ORGANIZATION_ID},
    {"id": "station-002", "name": "Cafeteria", "status": "active", "organization_id": DEMO_ORGANIZATION_ID},
    {"id": "station-003", "name": "Building B - Floor 2", "status": "active", "organization_id": DEMO_ORGANIZATION_ID},
]

DEMO_ITEMS = {
    Category.TRASH: ["food_wrapper", "napkin", "styrofoam", "plastic_bag", "chip_bag", "candy_wrapper", "paper_towel"],
    Category.RECYCLE: ["plastic_bottle", "aluminum_can", "cardboard", "paper", "glass_bottle", "milk_carton", "newspaper"],
    Category.COMPOST: ["banana_peel", "apple_core", "coffee_grounds", "food_scraps", "orange_peel", "egg_shells", "vegetable_scraps"],
}

# item -> (co2_saved_kg, water_saved_gal, energy_saved_kwh)
DEMO_IMPACT_FACTORS = {
    "plastic_bottle": (0.08, 0.9, 0.15),
    "aluminum_can": (0.17, 0.4, 0.40),
    "cardboard": (0.10, 1.2, 0.12),
    "paper": (0.03, 0.8, 0.05),
    "glass_bottle": (0.12, 0.2, 0.08),
    "milk_carton": (0.05, 0.6, 0.06),
    "newspaper": (0.04, 0.9, 0.05),
    "banana_peel": (0.05, 0.0, 0.0),
    "apple_core": (0.04, 0.0, 0.0),
    "coffee_grounds": (0.06, 0.0, 0.0),
    "food_scraps": (0.09, 0.0, 0.0),
    "orange_peel": (0.05, 0.0, 0.0),
    "egg_shells": (0.02, 0.0, 0.0),
    "vegetable_scraps": (0.06, 0.0, 0.0),
}

TRASH_SHARE = 0.45
RECYCLE_SHARE_END = 0.80
FIRST_HOUR = 7
OPEN_HOURS = 11


def impact_factor_rows() -> List[Dict[str, Any]]:
    return [
        {"item": item, "co2_saved_kg": co2, "water_saved_gal": water, "energy_saved_kwh": energy}
        for item, (co2, water, energy) in DEMO_IMPACT_FACTORS.items()
    ]


def generate_mock_detections(
    days: int = 30,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> List[Dict[str, Any]]:
    """
    Detections for the past `days` days, oldest first.

    Recent days are busier; every day gets at least 20 items, spread between
    7AM and 6PM, split 45% trash, 35% recycle, 20% compost. Nothing is
    dated after `now`; today only covers the hours already elapsed.
    """
    rng = rng or random.Random()
    now = now or datetime.now().astimezone()
    station_ids = [s["id"] for s in DEMO_STATIONS]
    detections = []

    for day_offset in range(days):
        day = now - timedelta(days=day_offset)
        opening = day.replace(hour=FIRST_HOUR, minute=0, second=0, microsecond=0)
        closing = min(opening + timedelta(hours=OPEN_HOURS), now)
        open_seconds = int((closing - opening).total_seconds())
        if open_seconds <= 0:
            continue
        per_day = max(20, int(80 + rng.random() * 70) - day_offset * 2)

        for _ in range(per_day):
            sample = rng.random()
            if sample < TRASH_SHARE:
                category = Category.TRASH
            elif sample < RECYCLE_SHARE_END:
                category = Category.RECYCLE
            else:
                category = Category.COMPOST

            created_at = opening + timedelta(seconds=rng.randrange(open_seconds))
            detections.append({
                "category": category.value,
                "item": rng.choice(DEMO_ITEMS[category]),
                "created_at": created_at,
                "device_id": rng.choice(station_ids),
            })

    detections.sort(key=lambda d: d["created_at"])
    return detections
