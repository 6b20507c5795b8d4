from datetime import datetime, timezone
from pathlib import Path
import sys

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from chorequest.achievements import (
    ACHIEVEMENT_CATEGORIES,
    ACHIEVEMENT_TEMPLATES,
    Achievement,
    AchievementProgress,
    achievement_id_for,
    evaluate_achievements,
    get_achievement_template,
)
from chorequest.errors import AchievementNotFound

NOW = datetime(2024, 2, 2, tzinfo=timezone.utc)


def test_templates_cover_every_category() -> None:
    assert set(ACHIEVEMENT_TEMPLATES) == set(ACHIEVEMENT_CATEGORIES)
    assert all(len(templates) == 2 for templates in ACHIEVEMENT_TEMPLATES.values())


def test_template_lookup() -> None:
    template = get_achievement_template("task", "task master")
    assert template.title == "Task Master"
    assert (template.metric, template.threshold) == ("completed_tasks", 100)
    assert (template.reward.xp, template.reward.gold) == (1000, 500)
    assert template.achievement_id == "task.task_master"
    with pytest.raises(AchievementNotFound):
        get_achievement_template("task", "Couch Potato")
    with pytest.raises(AchievementNotFound):
        get_achievement_template("cooking", "Task Master")


def test_achievement_ids_are_slugs() -> None:
    assert achievement_id_for("adventure", "Boss Slayer!") == "adventure.boss_slayer"


def test_evaluate_returns_newly_met_achievements() -> None:
    progress = AchievementProgress(completed_tasks=120, bosses_defeated=1, unique_items=3)

    earned = evaluate_achievements(progress, now=NOW)

    assert [achievement.title for achievement in earned] == ["Task Master", "Boss Slayer"]
    assert all(achievement.unlocked_at == NOW for achievement in earned)


def test_evaluate_skips_unlocked_ids_and_titles() -> None:
    progress = AchievementProgress(completed_tasks=100, tasks_today=12, legendary_items=5)

    earned = evaluate_achievements(progress, unlocked=["task.task_master", "speed demon"], now=NOW)

    assert [achievement.achievement_id for achievement in earned] == ["collection.treasure_hunter"]


def test_nothing_is_earned_below_thresholds() -> None:
    assert evaluate_achievements(AchievementProgress(completed_tasks=99, party_members=4)) == []


def test_achievement_round_trips_through_dict() -> None:
    achievement = evaluate_achievements(AchievementProgress(party_tasks=50), now=NOW)[0]
    assert achievement.title == "Team Player"
    assert Achievement.from_dict(achievement.to_dict()) == achievement
