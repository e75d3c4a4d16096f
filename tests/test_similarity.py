import pytest

from sheetsync.domain.imports.similarity import jaro_winkler


def test_identical_strings_score_one():
    assert jaro_winkler("trackingNumber", "trackingNumber") == 1.0


def test_comparison_ignores_case_and_surrounding_whitespace():
    assert jaro_winkler("  SKU ", "sku") == 1.0


def test_empty_inputs():
    assert jaro_winkler("", "") == 1.0
    assert jaro_winkler("", "sku") == 0.0
    assert jaro_winkler("sku", "") == 0.0


def test_no_common_characters_scores_zero():
    assert jaro_winkler("abc", "xyz") == 0.0


def test_classic_reference_values():
    assert jaro_winkler("MARTHA", "MARHTA") == pytest.approx(0.9611, abs=1e-4)
    assert jaro_winkler("DWAYNE", "DUANE") == pytest.approx(0.84, abs=1e-4)
    assert jaro_winkler("DIXON", "DICKSONX") == pytest.approx(0.8133, abs=1e-4)


def test_score_is_symmetric():
    pairs = [("tracking number", "tracking no"), ("qty", "quantity"), ("vendor", "vendor name")]
    for left, right in pairs:
        assert jaro_winkler(left, right) == pytest.approx(jaro_winkler(right, left))


def test_shared_prefix_beats_same_characters_elsewhere():
    with_prefix = jaro_winkler("trackingNumber", "tracking_no")
    without_prefix = jaro_winkler("numberTracking", "tracking_no")
    assert with_prefix > without_prefix


def test_scores_stay_in_unit_interval():
    for left, right in [("a", "b"), ("a", "a"), ("ship date", "date shipped"), ("x" * 40, "x" * 39)]:
        assert 0.0 <= jaro_winkler(left, right) <= 1.0
