from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy.orm import Session

from db import storage
from db.models import User
from utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

PROGRAM_WEEKS = [
    (1, "Self Reflection", "Begin your journey with deep self-discovery and understanding your current state.", "Target", "#FFD700"),
    (2, "Skill Growth", "Identify skills you want to develop and create a learning roadmap.", "BookOpen", "#4DD0E1"),
    (3, "Physical Health", "Build sustainable fitness habits and optimize your physical well-being.", "Dumbbell", "#7C4DFF"),
    (4, "Mind & Spirit", "Cultivate mental clarity through mindfulness and spiritual practices.", "Brain", "#AB47BC"),
    (5, "Knowledge Expansion", "Broaden your horizons with new ideas, books, and perspectives.", "Sparkles", "#FF7043"),
    (6, "Career Growth", "Advance your professional goals and clarify your career vision.", "Briefcase", "#FFD700"),
    (7, "Relationships", "Strengthen connections and build meaningful relationships.", "Heart", "#4DD0E1"),
    (8, "Integration & Celebration", "Integrate all learnings and celebrate your transformation.", "Trophy", "#FFD700"),
]

WEEK_ONE_CHALLENGES = [
    ("Complete your self-assessment", "Take 30 minutes to honestly evaluate your current state across all life areas.", "daily"),
    ("Define your core values", "List your top 5 core values that will guide your transformation journey.", "daily"),
    ("Set 8-week goals", "Write down 3-5 specific, measurable goals you want to achieve by the end of the program.", "weekly"),
]

SAMPLE_RESOURCES = [
    ("Atomic Habits by James Clear", "Learn how tiny changes can lead to remarkable results in building better habits.", "Self-Discipline", "article", "https://jamesclear.com/atomic-habits"),
    ("The Power of Now by Eckhart Tolle", "A guide to spiritual enlightenment and living in the present moment.", "Mindfulness", "article", "https://www.eckharttolle.com/the-power-of-now/"),
    ("Fitness Fundamentals", "A comprehensive guide to building a sustainable exercise routine.", "Health", "video", "https://www.youtube.com/watch?v=example"),
]

WELCOME_TITLE = "Welcome to Arcane Arc!"
WELCOME_CONTENT = (
    "Your transformation journey begins today. Remember to journal daily, complete your weekly "
    "challenges, and connect with the community. We're here to support you every step of the way!"
)


def ensure_weeks(db: Session) -> int:
    created = 0
    for number, title, description, icon, color in PROGRAM_WEEKS:
        if storage.get_week_by_number(db, number):
            continue
        storage.create_week(db, week_number=number, title=title, description=description, icon=icon, color=color)
        created += 1
    return created


def ensure_sample_content(db: Session, admin: User) -> None:
    """Starter content, only on a store that has none of it yet."""
    week_one = storage.get_week_by_number(db, 1)
    if week_one and not storage.list_challenges_by_week(db, week_one.id):
        for title, description, kind in WEEK_ONE_CHALLENGES:
            storage.create_challenge(
                db, week_id=week_one.id, title=title, description=description, type=kind, created_by=admin.id
            )

    if not storage.list_resources(db):
        for title, description, category, kind, url in SAMPLE_RESOURCES:
            storage.create_resource(
                db,
                title=title,
                description=description,
                category=category,
                type=kind,
                url=url,
                created_by=admin.id,
            )

    if not storage.list_announcements(db, limit=1):
        storage.create_announcement(db, title=WELCOME_TITLE, content=WELCOME_CONTENT, created_by=admin.id)

    if week_one and not storage.list_tasks(db):
        storage.create_task(
            db,
            title="Complete Your Personal Assessment",
            description=(
                "Take time to reflect on your current state in all life areas. "
                "This will help you track your progress throughout the program."
            ),
            week_id=week_one.id,
            due_date=utcnow() + timedelta(days=7),
            created_by=admin.id,
            assigned_to_all=True,
        )


def seed_database(db: Session, admin: User, sample_content: bool = True) -> None:
    # Starter content rides along with the first run only; later deletions stick.
    created = ensure_weeks(db)
    if sample_content and created:
        ensure_sample_content(db, admin)
    db.flush()
    logger.info("Seed complete: %s new weeks", created)
