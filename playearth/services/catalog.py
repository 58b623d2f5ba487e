"""Pilot catalog: the action types users can self-declare and the starter quests."""
from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from playearth.models.action import ActionType
from playearth.models.quest import Quest

logger = logging.getLogger(__name__)


# (id, title, category, base_reward_credits, icon)
ACTION_TYPES: tuple[tuple[str, str, str, int, str], ...] = (
    ("walk-instead-of-drive", "Walk Instead of Drive", "Transport", 15, "footprints"),
    ("bike-commute", "Bike Commute", "Transport", 20, "bike"),
    ("public-transport", "Public Transport", "Transport", 15, "bus"),
    ("carpool", "Carpool", "Transport", 12, "car"),
    ("work-from-home", "Work From Home", "Transport", 10, "home"),
    ("e-scooter", "E-Scooter or E-Bike", "Transport", 12, "zap"),
    ("unplug-devices", "Unplug Devices", "Energy", 8, "plug"),
    ("cold-wash", "Cold Wash Laundry", "Energy", 12, "thermometer"),
    ("air-dry", "Air Dry Clothes", "Energy", 10, "wind"),
    ("led-switch", "LED Switch", "Energy", 25, "lightbulb"),
    ("shorter-shower", "Shorter Shower", "Energy", 8, "droplet"),
    ("thermostat", "Thermostat Adjustment", "Energy", 10, "thermometer"),
    ("meat-free-meal", "Meat-Free Meal", "Food", 18, "salad"),
    ("local-produce", "Local Produce", "Food", 15, "apple"),
    ("no-food-waste", "No Food Waste", "Food", 12, "utensils"),
    ("composted-scraps", "Composted Scraps", "Food", 10, "leaf"),
    ("reusable-container", "Reusable Container", "Food", 8, "package"),
    ("batch-cooking", "Batch Cooking", "Food", 15, "utensils"),
    ("refill-bottle", "Refill Water Bottle", "Waste", 10, "droplet"),
    ("recycled-correctly", "Recycled Correctly", "Waste", 8, "recycle"),
    ("refused-plastic-bag", "Refused Plastic Bag", "Waste", 6, "x-circle"),
    ("repaired-item", "Repaired Item", "Waste", 30, "wrench"),
    ("zero-waste-shopping", "Zero Waste Shopping", "Waste", 25, "shopping-bag"),
    ("donated-items", "Donated Items", "Waste", 20, "heart"),
    ("litter-pickup", "Litter Pickup", "Community", 20, "trash"),
    ("shared-knowledge", "Shared Knowledge", "Community", 15, "users"),
    ("volunteered", "Volunteered", "Community", 35, "heart"),
    ("eco-event", "Attended Eco Event", "Community", 25, "calendar"),
    ("planted-something", "Planted Something", "Community", 30, "leaf"),
    ("local-business", "Supported Local Business", "Community", 12, "store"),
)

QUESTS: tuple[dict, ...] = (
    {
        "id": "green-commute-week",
        "title": "Green Commute Week",
        "description": "Take sustainable transport to work or school for 5 days straight.",
        "verification_type": "strava",
        "points": 300,
    },
    {
        "id": "plastic-free-challenge",
        "title": "Plastic-Free Challenge",
        "description": "Avoid single-use plastics for one week.",
        "verification_type": "photo",
        "points": 400,
    },
    {
        "id": "energy-saver-quiz",
        "title": "Energy Saver Sprint",
        "description": "Test what you know about cutting home energy use.",
        "verification_type": "quiz",
        "points": 250,
    },
    {
        "id": "nature-walk",
        "title": "Nature Walk",
        "description": "Walk outdoors for at least ten minutes with GPS tracking on.",
        "verification_type": "gps",
        "points": 50,
        "min_duration_sec": 600,
    },
    {
        "id": "local-park-cleanup",
        "title": "Local Park Cleanup",
        "description": "Join a park cleanup and submit a photo showing today's code.",
        "verification_type": "photo",
        "points": 200,
    },
)


def seed_catalog(db: Session) -> tuple[int, int]:
    """Insert missing catalog rows; existing ids are left untouched. Returns (action_types, quests) added."""
    known_actions = set(db.execute(select(ActionType.id)).scalars())
    added_actions = 0
    for action_id, title, category, reward, icon in ACTION_TYPES:
        if action_id in known_actions:
            continue
        db.add(ActionType(id=action_id, title=title, category=category, base_reward_credits=reward, icon=icon))
        added_actions += 1

    known_quests = set(db.execute(select(Quest.id)).scalars())
    added_quests = 0
    for fields in QUESTS:
        if fields["id"] in known_quests:
            continue
        db.add(Quest(**fields))
        added_quests += 1

    db.commit()
    logger.info("catalog.seeded action_types=%s quests=%s", added_actions, added_quests)
    return added_actions, added_quests
