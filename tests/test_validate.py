from __future__ import annotations

from smart_format.engine.validate import validate_elements
from tests.conftest import SQUARE, make_element


def test_negative_position_is_out_of_bounds():
    result = validate_elements([make_element(x=-5, y=0, width=50, height=50)], SQUARE)
    assert not result.is_valid
    assert "out_of_bounds" in result.codes()


def test_overflowing_element_exceeds_bounds():
    result = validate_elements([make_element(x=1000, y=0, width=200, height=50)], SQUARE)
    assert result.codes() == {"exceeds_bounds"}


def test_overlapping_ctas_are_flagged():
    a = make_element("a", kind="button", x=100, y=100, width=200, height=80, role="cta")
    b = make_element("b", kind="button", x=150, y=120, width=200, height=80, role="cta")
    result = validate_elements([a, b], SQUARE)
    assert "critical_overlap" in result.codes()
    [issue] = [i for i in result.issues if i.code == "critical_overlap"]
    assert issue.element_ids == ("a", "b")
    assert result.suggestions


def test_overlapping_non_critical_elements_are_fine():
    a = make_element("a", x=100, y=100, width=200, height=80, role="body")
    b = make_element("b", x=150, y=120, width=200, height=80, role="caption")
    assert validate_elements([a, b], SQUARE).is_valid


def test_tiny_elements_and_small_fonts():
    result = validate_elements(
        [make_element("dot", kind="shape", width=5, height=5, role="decoration"), make_element("t", font_size=8)],
        SQUARE,
    )
    assert result.codes() == {"too_small", "small_font"}
    assert len(result.suggestions) == 2


def test_thresholds_are_configurable():
    el = make_element(font_size=14)
    assert validate_elements([el], SQUARE).is_valid
    assert not validate_elements([el], SQUARE, min_font_size=16).is_valid


def test_result_wire_format():
    data = validate_elements([make_element(x=-5)], SQUARE).to_dict()
    assert data["isValid"] is False
    assert data["issues"][0]["code"] == "out_of_bounds"
    assert data["issues"][0]["elementIds"] == ["h1"]
