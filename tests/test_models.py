"""Tests for rename plan models."""

from __future__ import annotations

import os

import pytest

from f2.renaming import Change, RenameStatus


def test_original_source_defaults_to_source_and_is_immutable() -> None:
    change = Change(base_dir="photos", source="a.jpg", target="b.jpg")

    assert change.original_source == "a.jpg"
    with pytest.raises(AttributeError):
        change.original_source = "c.jpg"


def test_paths_are_joined_and_normalized() -> None:
    change = Change(base_dir="photos/./2021", source="a.jpg", target="../b.jpg")

    assert change.source_path == "photos/2021/a.jpg".replace("/", os.sep)
    assert change.target_path == "photos/b.jpg".replace("/", os.sep)
    assert not change.is_unchanged


def test_serialization_omits_runtime_fields() -> None:
    change = Change(
        base_dir="photos",
        source="a.jpg",
        target="b.jpg",
        status=RenameStatus.PATH_EXISTS,
    )

    data = change.model_dump(mode="json", exclude_none=True)

    assert data == {
        "base_dir": "photos",
        "source": "a.jpg",
        "target": "b.jpg",
        "is_dir": False,
        "will_overwrite": False,
    }


def test_swapped_exchanges_source_and_target() -> None:
    change = Change(base_dir="docs", source="old", target="new", is_dir=True, error="x")

    swapped = change.swapped()

    assert (swapped.source, swapped.target) == ("new", "old")
    assert swapped.is_dir
    assert swapped.error is None
    assert swapped.original_source == "new"
