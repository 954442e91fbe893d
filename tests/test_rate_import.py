"""Tests for rate_import.py"""

import pandas as pd
import pytest

from tariff_sim.rate_import import import_rates, load_rates_csv, normalize_rates
from tariff_sim.rates import MemoryRateTable

SAMPLE_CSV = """country,partner,hs_code,year,ahs_weighted,mfn_weighted
 Singapore ,China,8471,2022,2.5,6
USA,Germany,,2021,,12
USA,Canada,8471,2022,-1,7
,Japan,8471,2022,1,1
"""


def test_normalize_requires_columns():
    with pytest.raises(ValueError, match="mfn_weighted"):
        normalize_rates(pd.DataFrame({"country": ["USA"], "partner": ["Canada"], "ahs_weighted": [1]}))


def test_load_rates_csv(tmp_path):
    path = tmp_path / "rates.csv"
    path.write_text(SAMPLE_CSV, encoding="utf-8")
    entries = {e.key: e for e in load_rates_csv(path)}

    assert set(entries) == {("Singapore", "China"), ("USA", "Germany"), ("USA", "Canada")}
    assert entries[("Singapore", "China")].ahs_weighted == 2.5
    assert entries[("Singapore", "China")].year == 2022
    assert entries[("USA", "Germany")].ahs_weighted is None
    assert entries[("USA", "Germany")].hs_code is None
    # negative rates are dropped, not stored
    assert entries[("USA", "Canada")].ahs_weighted is None
    assert entries[("USA", "Canada")].mfn_weighted == 7.0


def test_import_rates_upserts(tmp_path):
    path = tmp_path / "rates.csv"
    path.write_text(SAMPLE_CSV, encoding="utf-8")
    table = MemoryRateTable()
    assert import_rates(table, load_rates_csv(path)) == 3
    assert table.distinct_countries() == ["Singapore", "USA"]
