# backend/mystery_events/fixtures/mock_events.py
"""
Demo catalog served when ``EVENT_DATA_SOURCE=fixture``.

Dates are offsets from the day the catalog is built so the demo never goes
stale.
"""

from datetime import date, timedelta
from typing import Any, Dict, List

MOCK_EVENTS: List[Dict[str, Any]] = [
    {
        "id": "mock-01",
        "title": "The Victorian Manor Mystery",
        "description": (
            "A dark night, an abandoned manor and an unsolved crime. "
            "Find the truth before it is too late in this immersive murder mystery."
        ),
        "category": "murder",
        "image_url": "https://images.unsplash.com/photo-1520637836862-4d197d17c98a?w=400&h=300&fit=crop",
        "days_ahead": 5,
        "start_time": "19:30",
        "duration_minutes": 150,
        "location": "Madrid Centre - Mystery Hall",
        "capacity": 12,
        "available_tickets": 8,
        "price": "45.00",
    },
    {
        "id": "mock-02",
        "title": "Escape Room: Alcatraz",
        "description": (
            "You are locked inside Alcatraz with sixty minutes to escape before the guards return. "
            "Teamwork and logic are the only way out."
        ),
        "category": "escape",
        "image_url": "https://images.unsplash.com/photo-1578662996442-48f60103fc96?w=400&h=300&fit=crop",
        "days_ahead": 6,
        "start_time": "18:00",
        "duration_minutes": 60,
        "location": "EscapeRoom Madrid - Room 3",
        "capacity": 6,
        "available_tickets": 2,
        "price": "25.00",
    },
    {
        "id": "mock-03",
        "title": "Private Eye: The Missing Necklace",
        "description": (
            "A priceless necklace vanished during an elegant party. "
            "Question the suspects, follow the clues and close the case."
        ),
        "category": "detective",
        "image_url": "https://images.unsplash.com/photo-1518709268805-4e9042af2176?w=400&h=300&fit=crop",
        "days_ahead": 7,
        "start_time": "20:00",
        "duration_minutes": 120,
        "location": "Hotel Palace - Sherlock Room",
        "capacity": 10,
        "available_tickets": 6,
        "price": "35.00",
    },
    {
        "id": "mock-04",
        "title": "House of Horror: Night Terrors",
        "description": "A haunted house full of chilling surprises. Not for the faint of heart.",
        "category": "horror",
        "image_url": "https://images.unsplash.com/photo-1509248961158-e54f6934749c?w=400&h=300&fit=crop",
        "days_ahead": 14,
        "start_time": "21:30",
        "duration_minutes": 90,
        "location": "House of Terror - North Side",
        "capacity": 8,
        "available_tickets": 8,
        "price": "40.00",
    },
    {
        "id": "mock-05",
        "title": "Murder Mystery Dinner",
        "description": "An elegant dinner turns into a crime scene. Solve the murder between courses.",
        "category": "murder",
        "image_url": "https://images.unsplash.com/photo-1414235077428-338989a2e8c0?w=400&h=300&fit=crop",
        "days_ahead": 10,
        "start_time": "19:00",
        "duration_minutes": 180,
        "location": "El Enigma Restaurant",
        "capacity": 16,
        "available_tickets": 12,
        "price": "65.00",
    },
    {
        "id": "mock-06",
        "title": "Digital Escape: Inside the Matrix",
        "description": "Trapped in a virtual world, you must solve VR puzzles to find the exit.",
        "category": "escape",
        "image_url": "https://images.unsplash.com/photo-1518709268805-4e9042af2176?w=400&h=300&fit=crop",
        "days_ahead": 20,
        "start_time": "17:30",
        "duration_minutes": 90,
        "location": "VR Experience Center",
        "capacity": 4,
        "available_tickets": 1,
        "price": "35.00",
    },
]


def build_mock_events(today: date) -> List[Dict[str, Any]]:
    """Fixture rows with ``event_date`` resolved against ``today``."""
    events = []
    for raw in MOCK_EVENTS:
        row = {key: value for key, value in raw.items() if key != "days_ahead"}
        row["event_date"] = today + timedelta(days=raw["days_ahead"])
        row["status"] = "active"
        events.append(row)
    return events
