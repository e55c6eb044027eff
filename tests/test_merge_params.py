"""Tests for merge parameter parsing and validation."""

import pytest

from dualpng.models.errors import MalformedInputError
from dualpng.models.merge_params import MergeParams, parse_merge_params, parse_range


def test_parse_full_form() -> None:
    params = parse_merge_params({
        "r1start": "0", "r1end": "200",
        "r2start": "210", "r2end": "255",
        "gamma": "1000",
        "width": "640", "height": "",
        "brightness1": "0.8", "brightness2": "1",
        "mask": "[[1, 1], [1, 0]]",
    })

    assert params == MergeParams(
        range1=(0, 200),
        range2=(210, 255),
        gamma=1000,
        width=640,
        height=0,
        brightness1=0.8,
        brightness2=1.0,
        mask=[[1, 1], [1, 0]],
    )
    assert params.wants_resize


def test_empty_form_uses_defaults() -> None:
    params = parse_merge_params({})

    assert params == MergeParams()
    assert not params.wants_resize


def test_defaults_come_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("DEFAULT_GAMMA", "4500")
    monkeypatch.setenv("DEFAULT_RANGE1", "10-20")
    monkeypatch.setenv("DEFAULT_RANGE2", "240")

    params = parse_merge_params({})

    assert params.gamma == 4500
    assert params.range1 == (10, 20)
    assert params.range2 == (0, 240)


def test_every_bad_field_is_reported() -> None:
    with pytest.raises(MalformedInputError) as exc_info:
        parse_merge_params({"r1start": "abc", "gamma": "1.5", "brightness2": "bright", "mask": "[[1,"})

    problems = exc_info.value.problems
    assert len(problems) == 4
    assert problems[0].startswith("r1start")
    assert problems[1].startswith("gamma")
    assert problems[2].startswith("brightness2")
    assert problems[3].startswith("mask")


def test_inverted_range_is_rejected() -> None:
    with pytest.raises(MalformedInputError) as exc_info:
        parse_merge_params({"r1start": "200", "r1end": "100"})

    assert "greater than" in exc_info.value.problems[0]


@pytest.mark.parametrize("form", [
    {"r2end": "300"},
    {"gamma": "-1"},
    {"width": "-5"},
    {"brightness1": "-0.5"},
    {"brightness1": "nan"},
    {"mask": "[[1, 0], [1]]"},
    {"mask": "[]"},
    {"mask": "[[true]]"},
    {"mask": "{\"a\": 1}"},
])
def test_invalid_values_are_rejected(form) -> None:
    with pytest.raises(MalformedInputError):
        parse_merge_params(form)


def test_parse_range() -> None:
    assert parse_range("0-230") == (0, 230)
    assert parse_range("230") == (0, 230)
    with pytest.raises(ValueError):
        parse_range("1-2-3")
    with pytest.raises(ValueError):
        parse_range("a-b")


@pytest.mark.parametrize("mask", ["[[NaN]]", "[[1, Infinity]]", "[[-Infinity], [0]]"])
def test_non_finite_mask_values_are_rejected(mask) -> None:
    with pytest.raises(MalformedInputError) as exc_info:
        parse_merge_params({"mask": mask})

    assert len(exc_info.value.problems) == 1
    assert "finite" in exc_info.value.problems[0]


@pytest.mark.parametrize("raw", ["1_000", "١٢", "0x10", " 12 3"])
def test_integers_must_be_plain_digits(raw) -> None:
    with pytest.raises(MalformedInputError):
        parse_merge_params({"gamma": raw})


def test_signed_integers_still_parse() -> None:
    assert parse_merge_params({"gamma": "+1200"}).gamma == 1200
    with pytest.raises(ValueError):
        parse_range("1_0-200")
