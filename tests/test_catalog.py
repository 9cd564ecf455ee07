from __future__ import annotations

import pytest

from gamescore.catalog import expected_platform, infer_platform, is_valid_region, platform_mismatch
from gamescore.models import DetectedObject, Detection


def _detection(*labels: str) -> Detection:
    return Detection(timestamp_seconds=0.0, objects=tuple(DetectedObject(label, 0.8) for label in labels))


def test_region_validation_uses_game_catalog() -> None:
    assert is_valid_region("Valorant", "NA") is True
    assert is_valid_region("BGMI", "NA") is False
    assert is_valid_region("Unlisted Game", "Global") is False


def test_expected_platform_defaults_to_unknown() -> None:
    assert expected_platform("Free Fire") == "mobile"
    assert expected_platform("Destiny 2") == "controller"
    assert expected_platform("Unlisted Game") == "unknown"


@pytest.mark.parametrize(
    ("labels", "expected"),
    [
        (("person", "Cell Phone"), "mobile"),
        (("keyboard",), "pc"),
        (("tv", "mouse"), "pc"),
        (("tv",), "console"),
        (("person",), "unknown"),
    ],
)
def test_infer_platform_from_ui_objects(labels: tuple[str, ...], expected: str) -> None:
    assert infer_platform([_detection(*labels)]) == expected


@pytest.mark.parametrize(
    ("expected", "detected", "mismatch"),
    [
        ("pc", "mobile", True),
        ("pc", "unknown", False),
        ("mobile", "pc", True),
        ("mobile", "mobile", False),
        ("console", "pc", True),
        ("controller", "console", False),
        ("controller", "mobile", True),
        ("unknown", "mobile", False),
    ],
)
def test_platform_mismatch(expected: str, detected: str, mismatch: bool) -> None:
    assert platform_mismatch(expected, detected) is mismatch
