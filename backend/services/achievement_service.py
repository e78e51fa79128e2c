"""Badge catalog, per-user unlocks, and the criteria evaluator registry.

No evaluator ships by default: `criteria` is stored as given and unlocks happen
through `grant_achievement` or evaluators registered at startup.
"""
from __future__ import annotations

import logging
from typing import Any, Callable

from sqlalchemy.orm import Session

from auth.utils import AuthSession, require_admin
from db import storage
from db.models import Achievement, User, UserAchievement
from services.errors import NotFoundError, ValidationError
from services.uniqueness import insert_or_conflict

logger = logging.getLogger(__name__)

CriteriaEvaluator = Callable[[Session, User, dict[str, Any]], bool]


class CriteriaRegistry:
    def __init__(self):
        self._evaluators: dict[str, CriteriaEvaluator] = {}

    def register(self, criteria_type: str, evaluator: CriteriaEvaluator) -> None:
        if criteria_type in self._evaluators:
            raise ValueError(f"Evaluator already registered: {criteria_type}")
        self._evaluators[criteria_type] = evaluator

    def get(self, criteria_type: str) -> CriteriaEvaluator | None:
        return self._evaluators.get(criteria_type)

    def types(self) -> list[str]:
        return sorted(self._evaluators)


criteria_registry = CriteriaRegistry()


def create_achievement(
    db: Session,
    session: AuthSession,
    *,
    name: str,
    description: str,
    icon: str,
    criteria: dict[str, Any],
) -> Achievement:
    require_admin(session)
    if not (name or "").strip():
        raise ValidationError("`name` is required", field="name")
    if not isinstance(criteria, dict) or not criteria:
        raise ValidationError("`criteria` must be a non-empty object", field="criteria")
    return storage.create_achievement(
        db,
        name=name.strip(),
        description=(description or "").strip(),
        icon=(icon or "Award").strip(),
        criteria=criteria,
    )


def grant_achievement(db: Session, user_id: str, achievement_id: str) -> UserAchievement:
    """Record an unlock; granting an already-unlocked badge returns the existing row."""
    if not storage.get_achievement(db, achievement_id):
        raise NotFoundError("Achievement", achievement_id)
    existing = next(
        (row for row in storage.list_user_achievements(db, user_id) if row.achievement_id == achievement_id),
        None,
    )
    if existing:
        return existing
    unlocked = insert_or_conflict(
        db,
        lambda: storage.add_user_achievement(db, user_id, achievement_id),
        "Achievement already unlocked",
    )
    logger.info("Achievement unlocked: user=%s achievement=%s", user_id, achievement_id)
    return unlocked


def evaluate_achievements(
    db: Session,
    user: User,
    registry: CriteriaRegistry | None = None,
) -> list[UserAchievement]:
    """Run registered evaluators over locked badges and grant the ones that pass."""
    active_registry = registry or criteria_registry
    unlocked_ids = {row.achievement_id for row in storage.list_user_achievements(db, user.id)}
    granted: list[UserAchievement] = []
    for achievement in storage.list_achievements(db):
        if achievement.id in unlocked_ids:
            continue
        criteria = achievement.criteria if isinstance(achievement.criteria, dict) else {}
        evaluator = active_registry.get(str(criteria.get("type") or ""))
        if evaluator is None:
            continue
        if evaluator(db, user, criteria):
            granted.append(grant_achievement(db, user.id, achievement.id))
    return granted


def list_user_achievements_with_details(db: Session, user_id: str) -> list[dict]:
    catalog = {a.id: a for a in storage.list_achievements(db)}
    rows = []
    for unlock in storage.list_user_achievements(db, user_id):
        achievement = catalog.get(unlock.achievement_id)
        if achievement:
            rows.append({"unlock": unlock, "achievement": achievement})
    return rows
