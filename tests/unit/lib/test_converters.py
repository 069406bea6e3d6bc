from tests.conftest import T0, make_task
from triage.core.models import Recurrence, Settings
from triage.lib.converters import (
    record_to_recurrence,
    record_to_settings,
    record_to_task,
    settings_to_record,
    task_to_record,
)


def _record(**kw):
    base = {"id": "a", "title": "t", "status": "queued", "createdAt": T0, "updatedAt": T0, "order": 2}
    return {**base, **kw}


def test_record_to_task_basic():
    t = record_to_task(_record(priority="high", tags=["x", "y"], doneAt=None))

    assert t.status == "queued"
    assert t.order == 2
    assert t.priority == "high"
    assert t.tags == ("x", "y")
    assert t.done_at is None


def test_record_to_task_leaves_missing_defaults_unset():
    t = record_to_task(_record())

    assert t.priority is None
    assert t.tags is None


def test_record_to_task_coerces_float_numbers():
    t = record_to_task(_record(order=3.0, actualMinutes=12.0, startedAt=float(T0)))

    assert t.order == 3
    assert t.actual_minutes == 12
    assert t.started_at == T0


def test_record_to_task_ignores_bool_numbers():
    t = record_to_task(_record(estimatedMinutes=True))

    assert t.estimated_minutes is None


def test_recurrence_uses_type_key():
    rec = record_to_recurrence({"type": "weekly", "dayOfWeek": 3})

    assert rec == Recurrence(kind="weekly", day_of_week=3)
    assert record_to_recurrence({"type": "yearly"}) is None
    assert record_to_recurrence(None) is None


def test_task_to_record_omits_unset_fields():
    record = task_to_record(make_task("a", description="notes"))

    assert record["description"] == "notes"
    assert "doneAt" not in record
    assert "recurrence" not in record
    assert record["tags"] == []


def test_task_to_record_writes_recurrence():
    record = task_to_record(make_task("a", recurrence=Recurrence("monthly", day_of_month=15)))

    assert record["recurrence"] == {"type": "monthly", "dayOfMonth": 15}


def test_task_record_round_trip_with_every_field():
    t = make_task(
        "a",
        "completed",
        done_at=T0 + 5,
        description="d",
        priority="low",
        tags=("x",),
        estimated_minutes=20,
        actual_minutes=18,
        started_at=T0,
        completed_at_hour=9,
        day_of_week=2,
        recurrence=Recurrence("daily"),
        archived_at=T0 + 9,
        later_due_date=T0 + 10,
    )

    assert record_to_task(task_to_record(t)) == t


def test_settings_defaults_for_missing_keys():
    assert record_to_settings(None) == Settings()
    assert record_to_settings({"dailyGoal": 5}) == Settings(daily_goal=5)
    assert record_to_settings({"enableAI": "yes"}).enable_ai is False


def test_settings_record_keys():
    assert settings_to_record(Settings(pomodoro_minutes=30, daily_goal=2, enable_ai=True)) == {
        "pomodoroMinutes": 30,
        "dailyGoal": 2,
        "enableAI": True,
    }
