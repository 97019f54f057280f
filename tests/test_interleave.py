from __future__ import annotations

import random

from src.scheduling.interleave import interleave, measure_interleaving
from src.scheduling.models import StudyItem


def _items(*subelements: str) -> list[StudyItem]:
    return [StudyItem(f"{sub}X{index:02d}", sub, f"{sub}X") for index, sub in enumerate(subelements)]


def test_measure_interleaving() -> None:
    assert measure_interleaving([]) == 0.0
    assert measure_interleaving(_items("T1")) == 0.0
    assert measure_interleaving(_items("T1", "T1", "T2")) == 0.5
    assert measure_interleaving(_items("T1", "T2", "T1", "T2")) == 1.0


def test_interleave_is_a_permutation_that_keeps_category_order() -> None:
    items = _items("T1", "T1", "T1", "T2", "T2", "T3")

    result = interleave(items, rng=random.Random(7))

    assert sorted(item.id for item in result) == sorted(item.id for item in items)
    for subelement in ("T1", "T2", "T3"):
        original = [item.id for item in items if item.subelement == subelement]
        reordered = [item.id for item in result if item.subelement == subelement]
        assert reordered == original


def test_interleave_alternates_balanced_categories() -> None:
    items = _items("T1", "T1", "T1", "T2", "T2", "T2")

    result = interleave(items, rng=random.Random(3))

    assert measure_interleaving(result) == 1.0


def test_interleave_is_deterministic_for_a_seed() -> None:
    items = _items("T1", "T2", "T3", "T1", "T2", "T3", "T4")

    first = interleave(items, rng=random.Random(42))
    second = interleave(items, rng=random.Random(42))

    assert first == second


def test_single_category_is_left_unchanged() -> None:
    items = _items("T1", "T1", "T1")

    assert interleave(items, rng=random.Random(1)) == items
    assert interleave([]) == []


def test_custom_key_groups_by_item_group() -> None:
    items = [
        StudyItem("T1A01", "T1", "T1A"),
        StudyItem("T1A02", "T1", "T1A"),
        StudyItem("T1B01", "T1", "T1B"),
        StudyItem("T1B02", "T1", "T1B"),
    ]

    result = interleave(items, rng=random.Random(5), key=lambda item: item.group)

    assert measure_interleaving(result, key=lambda item: item.group) == 1.0
