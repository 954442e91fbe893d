"""Tests for fta.py"""

from tariff_sim.fta import AHS, MFN, FTA_COUNTRIES, is_preferential, tariff_type_for


def test_fta_set_has_nine_members():
    assert len(FTA_COUNTRIES) == 9
    assert "Singapore" in FTA_COUNTRIES
    assert "USA" not in FTA_COUNTRIES


def test_both_members_is_preferential():
    assert is_preferential("Singapore", "China") is True
    assert is_preferential("Japan", "Japan") is True


def test_one_member_is_not_preferential():
    assert is_preferential("Singapore", "USA") is False
    assert is_preferential("Germany", "China") is False


def test_match_is_exact():
    assert is_preferential("singapore", "China") is False
    assert is_preferential(" Singapore", "China") is False


def test_none_is_not_preferential():
    assert is_preferential(None, "China") is False


def test_tariff_type_for():
    assert tariff_type_for("Vietnam", "India") == AHS
    assert tariff_type_for("USA", "Germany") == MFN
