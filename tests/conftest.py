import numpy as np
import pandas as pd
import pytest

import broadband_usage_end_to_end as bb


def make_sources(n: int = 30, missing_target=(), seed: int = 0):
    """Raw broadband + census tables as they come from the source files (text codes)."""
    rng = np.random.RandomState(seed)
    county_codes = [f"{i:03d}" for i in range(1, n + 1)]
    availability = rng.uniform(0.3, 1.0, n)
    no_internet = rng.uniform(0.05, 0.4, n)
    usage = 0.5 * availability - 0.3 * no_internet + 0.2 + rng.normal(0, 0.01, n)

    broadband = pd.DataFrame({
        "ST": "KY",
        "COUNTY ID": ["21" + c for c in county_codes],
        "COUNTY NAME": [f"County {i}" for i in range(1, n + 1)],
        "BROADBAND AVAILABILITY PER FCC": [f"{v:.4f}" for v in availability],
        "BROADBAND USAGE": [f"{v:.4f}" for v in usage],
    })
    for i in missing_target:
        broadband.loc[i, "BROADBAND USAGE"] = "-"

    census = pd.DataFrame({
        "GEO_ID": [f"0500000US21{c}" for c in county_codes],
        "NAME": [f"County {i}, Kentucky" for i in range(1, n + 1)],
        "STATE_FIPS": "21",
        "COUNTY_FIPS": county_codes,
        "TOTAL_POPULATION": rng.randint(2000, 200000, n),
        "UNEMPLOYMENT_RATE": rng.uniform(0.02, 0.12, n),
        "UNEMPLOYMENT_RATE_MOE": rng.uniform(0.001, 0.01, n),
        "PCT_NO_HEALTH_INSURANCE": rng.uniform(0.03, 0.15, n),
        "POVERTY_RATE": rng.uniform(0.05, 0.35, n),
        "PCT_FOOD_ASSISTANCE": rng.uniform(0.05, 0.3, n),
        "PCT_NO_COMPUTER": rng.uniform(0.05, 0.35, n),
        "PCT_NO_INTERNET": no_internet,
    })
    return broadband, census


def make_clean(n: int = 20, seed: int = 0, noise: float = 0.01) -> pd.DataFrame:
    """Already-normalized frame with usage = 0.5 * availability + noise."""
    rng = np.random.RandomState(seed)
    df = pd.DataFrame({
        "state": "KY",
        "county_name": [f"County {i}" for i in range(n)],
        "broadband_availability": rng.uniform(0.0, 1.0, n),
        "population": rng.uniform(1e3, 1e5, n),
        "unemployment_rate": rng.uniform(0.02, 0.12, n),
        "pct_no_health_insurance": rng.uniform(0.03, 0.15, n),
        "poverty_rate": rng.uniform(0.05, 0.35, n),
        "pct_food_assistance": rng.uniform(0.05, 0.3, n),
        "pct_no_computer": rng.uniform(0.05, 0.35, n),
        "pct_no_internet": rng.uniform(0.05, 0.4, n),
    }, index=pd.Index([f"21{i:03d}" for i in range(n)], name=bb.JOIN_KEY))
    df[bb.TARGET] = 0.5 * df["broadband_availability"] + rng.normal(0, noise, n)
    return df[bb.CLEAN_COLUMNS]


@pytest.fixture
def sources():
    return make_sources()


@pytest.fixture
def clean_frame():
    return make_clean()


@pytest.fixture
def small_config():
    return bb.PipelineConfig(knn_grid=[1, 2, 3, 4, 5], cv_folds=5,
                             enet_l1_grid=[0.1, 0.5, 0.9])
