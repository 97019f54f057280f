from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from src.scheduling.models import ItemProgress, MasteryStatus
from src.scheduling.srs import (
    MAX_CONFIDENCE_HISTORY,
    MIN_EASE_FACTOR,
    apply_answer,
    average_confidence,
    calculate_mastery_score,
    calculate_priority,
    derive_status,
    initial_progress,
    is_due,
    process_answer,
    schedule,
    update_confidence_history,
)


NOW = datetime(2026, 10, 19, 15, 30, tzinfo=timezone.utc)


def _progress(**overrides) -> ItemProgress:
    values = dict(
        item_id="T1A01",
        attempts=2,
        correct_count=2,
        last_attempt=NOW - timedelta(days=6),
        next_review=NOW,
        ease=2.5,
        interval=6,
        status=MasteryStatus.LEARNING,
    )
    values.update(overrides)
    return ItemProgress(**values)


def test_first_successes_follow_fixed_intervals() -> None:
    first = schedule(quality=4, repetitions=0, easiness=2.5, interval=0, now=NOW)
    second = schedule(quality=4, repetitions=1, easiness=first.ease, interval=first.interval, now=NOW)
    third = schedule(quality=4, repetitions=2, easiness=second.ease, interval=second.interval, now=NOW)

    assert (first.interval, first.repetitions) == (1, 1)
    assert (second.interval, second.repetitions) == (6, 2)
    assert third.interval == 15
    assert first.ease == pytest.approx(2.5)


def test_next_review_is_truncated_to_start_of_day() -> None:
    result = schedule(quality=5, repetitions=0, easiness=2.5, interval=0, now=NOW)

    assert result.next_review == datetime(2026, 10, 20, tzinfo=timezone.utc)
    assert result.ease == pytest.approx(2.6)


def test_failed_review_resets_progress_and_keeps_ease() -> None:
    result = schedule(quality=2, repetitions=4, easiness=2.2, interval=30, now=NOW)

    assert result.repetitions == 0
    assert result.interval == 1
    assert result.ease == pytest.approx(2.2)
    assert result.status is MasteryStatus.LEARNING


def test_ease_never_drops_below_minimum() -> None:
    result = schedule(quality=3, repetitions=3, easiness=1.35, interval=10, now=NOW)

    assert result.ease == pytest.approx(MIN_EASE_FACTOR)


def test_out_of_range_quality_is_clamped() -> None:
    high = schedule(quality=9, repetitions=0, easiness=2.5, interval=0, now=NOW)
    low = schedule(quality=-3, repetitions=2, easiness=2.5, interval=6, now=NOW)

    assert high.ease == pytest.approx(2.6)
    assert low.interval == 1


@pytest.mark.parametrize(
    ("interval", "correct", "attempts", "expected"),
    [
        (0, 0, 0, MasteryStatus.NEW),
        (1, 1, 1, MasteryStatus.LEARNING),
        (7, 3, 4, MasteryStatus.REVIEW),
        (25, 8, 10, MasteryStatus.REVIEW),
        (25, 9, 10, MasteryStatus.MASTERED),
    ],
)
def test_derive_status_uses_answer_history(interval, correct, attempts, expected) -> None:
    assert derive_status(interval, correct_count=correct, attempts=attempts) is expected


def test_derive_status_falls_back_to_repetitions() -> None:
    assert derive_status(1, repetitions=0) is MasteryStatus.LEARNING
    assert derive_status(10, repetitions=3) is MasteryStatus.REVIEW
    assert derive_status(30, repetitions=5) is MasteryStatus.MASTERED


def test_process_answer_for_unseen_item() -> None:
    result = process_answer(True, None, now=NOW)

    assert result.interval == 1
    assert result.status is MasteryStatus.LEARNING
    assert result.next_review == datetime(2026, 10, 20, tzinfo=timezone.utc)


def test_process_answer_grows_interval_from_prior_state() -> None:
    result = process_answer(True, _progress(), now=NOW)

    assert result.interval == 15
    assert result.status is MasteryStatus.REVIEW


def test_confident_correct_answer_stretches_interval() -> None:
    result = process_answer(True, _progress(), confidence=4, now=NOW)

    assert result.interval == 16
    assert result.ease == pytest.approx(2.52)


def test_unsure_correct_answer_shrinks_ease() -> None:
    result = process_answer(True, None, confidence=1, now=NOW)

    assert result.interval == 1
    assert result.ease == pytest.approx(2.46)


def test_fractional_confidence_rounds_half_up() -> None:
    neutral = process_answer(True, None, confidence=2.5, now=NOW)
    certain = process_answer(True, _progress(), confidence=4.5, now=NOW)

    assert neutral.interval == 1
    assert neutral.ease == pytest.approx(2.5)
    assert certain.interval == 17
    assert certain.ease == pytest.approx(2.54)


def test_overconfident_miss_is_penalized() -> None:
    result = process_answer(False, _progress(), confidence=5, now=NOW)

    assert result.interval == 1
    assert result.ease == pytest.approx(2.4)


def test_mastery_score_blends_accuracy_and_interval() -> None:
    assert calculate_mastery_score(0, 0, 5) == 0.0
    assert calculate_mastery_score(10, 10, 0) == 60.0
    assert calculate_mastery_score(9, 10, 21) == 94.0


def test_confidence_history_is_bounded() -> None:
    history = update_confidence_history(list(range(1, 11)), 5)

    assert len(history) == MAX_CONFIDENCE_HISTORY
    assert history[0] == 2
    assert history[-1] == 5
    assert average_confidence([]) is None
    assert average_confidence([2, 4]) == pytest.approx(3.0)


def test_apply_answer_builds_first_record() -> None:
    updated = apply_answer(None, "T1A01", True, now=NOW)

    assert updated.attempts == 1
    assert updated.correct_count == 1
    assert updated.last_attempt == NOW
    assert updated.interval == 1
    assert updated.mastery_score == 70.0
    assert updated.confidence_history == [3]


def test_apply_answer_after_a_miss() -> None:
    updated = apply_answer(_progress(), "T1A01", False, confidence=2, now=NOW)

    assert updated.attempts == 3
    assert updated.correct_count == 2
    assert updated.interval == 1
    assert updated.status is MasteryStatus.LEARNING


def test_priority_favours_overdue_short_intervals() -> None:
    assert calculate_priority(NOW - timedelta(days=2), 4, NOW) == pytest.approx(0.5)
    assert calculate_priority(NOW - timedelta(days=2), 0, NOW) == pytest.approx(2.0)
    assert calculate_priority(NOW + timedelta(days=1), 4, NOW) == pytest.approx(-1.0)


def test_is_due_and_initial_progress() -> None:
    fresh = initial_progress("T1A01", now=NOW)

    assert fresh.status is MasteryStatus.NEW
    assert fresh.attempts == 0
    assert fresh.ease == pytest.approx(2.5)
    assert is_due(fresh.next_review, NOW)
    assert not is_due(NOW + timedelta(seconds=1), NOW)
