import dataclasses
from datetime import datetime

import pytest

from tests.conftest import DAY, MINUTE, T0, make_task
from triage.core import actions as act
from triage.core.models import Recurrence
from triage.engine import apply


def _by_id(tasks):
    return {t.id: t for t in tasks}


def _actives(tasks):
    return [t for t in tasks if t.status == "active"]


# ── add ──────────────────────────────────────────────────────────────────────


def test_add_to_empty_collection():
    result = apply((), act.Add("a", "Write report", 1000))

    assert len(result) == 1
    t = result[0]
    assert t.id == "a"
    assert t.title == "Write report"
    assert t.status == "captured"
    assert t.order == 1
    assert t.priority == "normal"
    assert t.tags == ()
    assert t.created_at == t.updated_at == 1000


def test_add_trims_title_and_appends_to_inbox():
    tasks = (make_task("x", order=4), make_task("q", "queued", order=9))
    result = apply(tasks, act.Add("a", "  call bank  ", T0))

    assert _by_id(result)["a"].title == "call bank"
    assert _by_id(result)["a"].order == 5


@pytest.mark.parametrize("title", ["", "   ", "\t\n"])
def test_add_blank_title_returns_same_collection(title):
    tasks = (make_task("x"),)
    assert apply(tasks, act.Add("a", title, T0)) is tasks


# ── normalize ────────────────────────────────────────────────────────────────


def test_normalize_promotes_lowest_queued():
    tasks = (make_task("b", "queued", order=2), make_task("a", "queued", order=1))
    result = _by_id(apply((), act.Normalize(tasks, 5000)))

    assert result["a"].status == "active"
    assert result["a"].order == 0
    assert result["a"].started_at == 5000
    assert result["b"].status == "queued"


def test_normalize_fills_defaults():
    raw = dataclasses.replace(make_task("a"), priority=None, tags=None)
    (t,) = apply((), act.Normalize([raw], T0))

    assert t.priority == "normal"
    assert t.tags == ()


def test_normalize_keeps_most_recently_updated_active():
    tasks = (
        make_task("old", "active", order=0, updated_at=T0),
        make_task("new", "active", order=0, updated_at=T0 + 10),
        make_task("q", "queued", order=3),
    )
    result = _by_id(apply((), act.Normalize(tasks, T0 + 99)))

    assert result["new"].status == "active"
    assert result["old"].status == "queued"
    assert result["old"].order == 4


def test_normalize_demotes_extra_actives_to_distinct_orders():
    tasks = tuple(make_task(str(i), "active", order=0, updated_at=T0 + i) for i in range(4))
    result = apply((), act.Normalize(tasks, T0 + 50))

    assert [t.id for t in _actives(result)] == ["3"]
    demoted = sorted(t.order for t in result if t.status == "queued")
    assert demoted == [1, 2, 3]


def test_normalize_replaces_collection_wholesale():
    current = (make_task("stale"),)
    result = apply(current, act.Normalize([make_task("fresh")], T0))

    assert [t.id for t in result] == ["fresh"]


def test_normalize_is_idempotent():
    messy = (
        dataclasses.replace(make_task("a", "active", order=0), priority=None),
        make_task("b", "active", order=0, updated_at=T0 + 5),
        make_task("c", "queued", order=7),
        dataclasses.replace(make_task("d", "captured"), tags=("x", "x")),
    )
    once = apply((), act.Normalize(messy, T0 + 100))
    twice = apply(once, act.Normalize(once, T0 + 200))

    assert twice == once


def test_normalize_repairs_done_at():
    tasks = (
        make_task("a", "completed", updated_at=T0 + 7),
        make_task("b", "captured", done_at=5),
        make_task("c", "completed", done_at=T0 + 1),
    )
    result = _by_id(apply((), act.Normalize(tasks, T0 + 100)))

    assert result["a"].done_at == T0 + 7
    assert result["b"].done_at is None
    assert result["c"].done_at == T0 + 1


def test_normalize_clears_nothing_without_queued():
    tasks = (make_task("a"), make_task("b", "deferred"))
    result = apply((), act.Normalize(tasks, T0))

    assert _actives(result) == []


# ── move / set active ────────────────────────────────────────────────────────


def test_move_to_queued_with_nothing_active_promotes_it():
    tasks = (make_task("a"),)
    (t,) = apply(tasks, act.MoveTo("a", "queued", T0 + 1))

    assert t.status == "active"
    assert t.order == 0
    assert t.started_at == T0 + 1


def test_move_to_queued_appends_behind_queue():
    tasks = (
        make_task("n", "active", order=0),
        make_task("q", "queued", order=3),
        make_task("a"),
    )
    result = _by_id(apply(tasks, act.MoveTo("a", "queued", T0 + 1)))

    assert result["a"].status == "queued"
    assert result["a"].order == 4
    assert result["a"].updated_at == T0 + 1


def test_move_to_same_status_keeps_order():
    tasks = (make_task("a", order=3), make_task("b", order=7))
    result = _by_id(apply(tasks, act.MoveTo("a", "captured", T0 + 1)))

    assert result["a"].order == 3
    assert result["a"].updated_at == T0 + 1


def test_move_active_away_promotes_next():
    tasks = (
        make_task("n", "active", order=0),
        make_task("q2", "queued", order=2),
        make_task("q1", "queued", order=1),
    )
    result = _by_id(apply(tasks, act.MoveTo("n", "deferred", T0 + 1)))

    assert result["n"].status == "deferred"
    assert result["q1"].status == "active"
    assert result["q2"].status == "queued"


def test_move_to_active_demotes_current():
    tasks = (make_task("n", "active", order=0), make_task("a"))
    result = _by_id(apply(tasks, act.MoveTo("a", "active", T0 + 1)))

    assert result["a"].status == "active"
    assert result["n"].status == "queued"
    assert len(_actives(result.values())) == 1


def test_move_out_of_completed_clears_done_at():
    tasks = (make_task("a", "completed", done_at=T0),)
    (t,) = apply(tasks, act.MoveTo("a", "deferred", T0 + 1))

    assert t.done_at is None


def test_move_unknown_id_is_noop():
    tasks = (make_task("a"),)
    assert apply(tasks, act.MoveTo("zzz", "queued", T0)) is tasks


def test_set_active_demotes_previous_to_queue_tail():
    tasks = (
        make_task("n", "active", order=0),
        make_task("q", "queued", order=5),
        make_task("a"),
    )
    result = _by_id(apply(tasks, act.SetActive("a", T0 + 1)))

    assert result["a"].status == "active"
    assert result["a"].order == 0
    assert result["a"].started_at == T0 + 1
    assert result["n"].status == "queued"
    assert result["n"].order == 6


def test_set_active_unknown_id_returns_same_collection():
    tasks = (make_task("n", "active", order=0),)
    assert apply(tasks, act.SetActive("missing", T0)) is tasks


# ── completion ───────────────────────────────────────────────────────────────


def test_complete_active_derives_timing():
    started = 1000
    done = started + 30 * MINUTE
    tasks = (make_task("a", "active", order=0, started_at=started),)
    (t,) = apply(tasks, act.CompleteActive(done))

    local = datetime.fromtimestamp(done / 1000)
    assert t.status == "completed"
    assert t.done_at == done
    assert t.actual_minutes == 30
    assert t.completed_at_hour == local.hour
    assert t.day_of_week == (local.weekday() + 1) % 7


def test_actual_minutes_rounds_half_up():
    tasks = (make_task("a", "active", order=0, started_at=T0),)
    (t,) = apply(tasks, act.CompleteActive(T0 + 90_000))

    assert t.actual_minutes == 2


def test_complete_active_promotes_next_queued():
    tasks = (
        make_task("n", "active", order=0, started_at=T0),
        make_task("q", "queued", order=1),
    )
    result = _by_id(apply(tasks, act.CompleteActive(T0 + MINUTE)))

    assert result["n"].status == "completed"
    assert result["q"].status == "active"
    assert result["q"].started_at == T0 + MINUTE


def test_complete_active_without_active_is_noop():
    tasks = (make_task("q", "captured"),)
    assert apply(tasks, act.CompleteActive(T0)) is tasks


def test_move_to_completed_sets_done_at():
    tasks = (make_task("a"),)
    (t,) = apply(tasks, act.MoveTo("a", "completed", T0 + 5))

    assert t.done_at == T0 + 5
    assert t.actual_minutes is None


def test_completion_round_trip():
    tasks = (make_task("a", "active", order=0, started_at=T0),)
    done = apply(tasks, act.CompleteActive(T0 + 10 * MINUTE))
    (t,) = apply(done, act.UndoCompleted("a", T0 + 11 * MINUTE))

    assert t.status == "captured"
    assert t.done_at is None


def test_undo_only_applies_to_completed():
    tasks = (make_task("a", "queued"),)
    assert apply(tasks, act.UndoCompleted("a", T0)) is tasks


# ── recurrence ───────────────────────────────────────────────────────────────


def test_recurring_completion_regenerates_task():
    daily = Recurrence(kind="daily")
    tasks = (
        make_task(
            "r",
            "active",
            order=0,
            started_at=T0,
            recurrence=daily,
            description="d",
            tags=("home", "chores"),
            priority="high",
            estimated_minutes=20,
        ),
        make_task("b", "captured", order=1),
        make_task("c", "captured", order=2),
    )
    result = apply(tasks, act.CompleteActive(T0 + 5 * MINUTE))

    assert len(result) == len(tasks) + 1
    new = next(t for t in result if t.id not in {"r", "b", "c"})
    assert new.status == "captured"
    assert new.recurrence == daily
    assert new.description == "d"
    assert new.tags == ("home", "chores")
    assert new.priority == "high"
    assert new.estimated_minutes == 20
    assert new.created_at == T0 + 5 * MINUTE
    for field in ("done_at", "started_at", "actual_minutes", "completed_at_hour", "day_of_week"):
        assert getattr(new, field) is None
    assert _by_id(result)["r"].status == "completed"


def test_regenerated_task_leads_the_inbox():
    tasks = (
        make_task("r", "active", order=0, started_at=T0, recurrence=Recurrence(kind="daily")),
        make_task("b", "captured", order=1),
        make_task("c", "captured", order=2),
    )
    result = apply(tasks, act.CompleteActive(T0 + MINUTE))

    inbox = sorted((t for t in result if t.status == "captured"), key=lambda t: t.order)
    assert inbox[0].id.startswith("rec_")
    assert inbox[0].order == 0
    assert [t.id for t in inbox[1:]] == ["b", "c"]


def test_regenerated_id_is_unique():
    weekly = Recurrence(kind="weekly", day_of_week=1)
    tasks = (make_task("r", "captured", recurrence=weekly),)
    result = apply(tasks, act.MoveTo("r", "completed", T0))

    ids = [t.id for t in result]
    assert len(set(ids)) == len(ids) == 2
    assert ids[1].startswith(f"rec_{T0}_")


# ── reorder ──────────────────────────────────────────────────────────────────


@pytest.fixture
def queue():
    return (
        make_task("n", "active", order=0),
        make_task("q1", "queued", order=1),
        make_task("q2", "queued", order=2),
        make_task("q3", "queued", order=3),
    )


def test_reorder_swaps_with_neighbour(queue):
    result = _by_id(apply(queue, act.Reorder("q2", "up", T0 + 1)))

    assert result["q2"].order == 1
    assert result["q1"].order == 2
    assert result["q1"].updated_at == result["q2"].updated_at == T0 + 1
    assert result["q3"] is _by_id(queue)["q3"]


def test_reorder_first_up_is_identity(queue):
    assert apply(queue, act.Reorder("q1", "up", T0)) is queue


def test_reorder_last_down_is_identity(queue):
    assert apply(queue, act.Reorder("q3", "down", T0)) is queue


def test_reorder_outside_queue_is_identity(queue):
    assert apply(queue, act.Reorder("n", "down", T0)) is queue


# ── discard / restore ────────────────────────────────────────────────────────


def test_restore_discarded_goes_to_inbox_tail():
    tasks = (make_task("d", "discarded", order=1), make_task("c", order=6))
    result = _by_id(apply(tasks, act.RestoreDiscarded("d", T0 + 1)))

    assert result["d"].status == "captured"
    assert result["d"].order == 7


def test_restore_non_discarded_is_noop():
    tasks = (make_task("c"),)
    assert apply(tasks, act.RestoreDiscarded("c", T0)) is tasks


# ── setters ──────────────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    ("action", "field", "value"),
    [
        (act.SetDescription("a", "notes", T0 + 1), "description", "notes"),
        (act.SetPriority("a", "high", T0 + 1), "priority", "high"),
        (act.SetEstimate("a", 25, T0 + 1), "estimated_minutes", 25),
        (act.SetLaterDue("a", T0 + DAY, T0 + 1), "later_due_date", T0 + DAY),
        (act.SetRecurrence("a", Recurrence("monthly", day_of_month=3), T0 + 1), "recurrence", Recurrence("monthly", day_of_month=3)),
    ],
)
def test_setters_touch_only_their_field(action, field, value):
    before = make_task("a", "queued", order=2)
    (after,) = apply((before,), action)

    assert getattr(after, field) == value
    assert after.updated_at == T0 + 1
    assert dataclasses.replace(after, **{field: getattr(before, field), "updated_at": before.updated_at}) == before


def test_add_tag_appends_once():
    tasks = (make_task("a", tags=("work",)),)
    result = apply(tasks, act.AddTag("a", "home", T0))

    assert result[0].tags == ("work", "home")
    assert apply(result, act.AddTag("a", "home", T0 + 1)) is result


def test_remove_tag():
    tasks = (make_task("a", tags=("work", "home")),)
    result = apply(tasks, act.RemoveTag("a", "work", T0))

    assert result[0].tags == ("home",)
    assert apply(result, act.RemoveTag("a", "work", T0)) is result


def test_setter_unknown_id_is_noop():
    tasks = (make_task("a"),)
    assert apply(tasks, act.SetPriority("nope", "low", T0)) is tasks


# ── archive ──────────────────────────────────────────────────────────────────


def test_archive_is_independent_of_status():
    tasks = (make_task("n", "active", order=0),)
    (t,) = apply(tasks, act.Archive("n", T0 + 1))

    assert t.archived_at == T0 + 1
    assert t.status == "active"

    (restored,) = apply((t,), act.RestoreArchive("n", T0 + 2))
    assert restored.archived_at is None


def test_restore_archive_when_not_archived_is_noop():
    tasks = (make_task("a"),)
    assert apply(tasks, act.RestoreArchive("a", T0)) is tasks


# ── invariants over sequences ────────────────────────────────────────────────


def test_single_active_holds_across_a_session():
    steps = [
        act.Add("a", "a", T0),
        act.Add("b", "b", T0 + 1),
        act.Add("c", "c", T0 + 2),
        act.MoveTo("a", "queued", T0 + 3),
        act.MoveTo("b", "queued", T0 + 4),
        act.SetActive("c", T0 + 5),
        act.MoveTo("b", "active", T0 + 6),
        act.Reorder("a", "down", T0 + 7),
        act.CompleteActive(T0 + 8),
        act.MoveTo("a", "discarded", T0 + 9),
        act.CompleteActive(T0 + 10),
    ]
    tasks = ()
    for step in steps:
        tasks = apply(tasks, step)
        assert len(_actives(tasks)) <= 1
        if not _actives(tasks):
            assert not [t for t in tasks if t.status == "queued"]
        for t in tasks:
            assert (t.done_at is not None) == (t.status == "completed")


def test_unknown_action_type_is_identity():
    tasks = (make_task("a"),)
    assert apply(tasks, object()) is tasks  # type: ignore[arg-type]
