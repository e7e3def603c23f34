"""Pytest fixtures shared by the pipeline tests."""

import numpy as np
import pandas as pd
import pytest

from musicpipe.config import PipelineConfig, popularity_config
from musicpipe.models.config import ModelConfig


def _audio_frame(rng: np.random.Generator, n: int) -> pd.DataFrame:
    return pd.DataFrame({
        "instance_id": np.arange(n),
        "acousticness": rng.uniform(0.01, 1.0, n),
        "danceability": rng.uniform(0.1, 0.95, n),
        "duration_ms": rng.lognormal(12.3, 0.3, n),
        "energy": rng.uniform(0.05, 1.0, n),
        "instrumentalness": np.where(rng.uniform(size=n) < 0.6, 0.0, rng.uniform(0, 1, n)),
        "liveness": rng.beta(2, 8, n) + 0.01,
        "loudness": rng.normal(-8, 3, n),
        "speechiness": rng.beta(1.5, 10, n) + 0.01,
        "tempo": rng.uniform(60, 180, n),
        "valence": rng.uniform(0.05, 0.95, n),
        "key": rng.choice(["A", "C", "D", "E", "G"], n),
        "mode": rng.choice(["Major", "Minor"], n),
    })


@pytest.fixture
def genre_df() -> pd.DataFrame:
    """200 tracks, genre depends on speechiness and danceability."""
    rng = np.random.default_rng(42)
    n = 200
    df = _audio_frame(rng, n)
    urban = rng.uniform(size=n) < 0.35
    df.loc[urban, "speechiness"] = df.loc[urban, "speechiness"] + 0.3
    df.loc[urban, "danceability"] = np.minimum(df.loc[urban, "danceability"] + 0.2, 0.99)
    raw = np.where(urban, rng.choice(["Rap", "Hip-Hop"], n), rng.choice(["Rock", "Jazz", "Country"], n))
    df["music_genre"] = raw
    return df


@pytest.fixture
def dirty_genre_df(genre_df: pd.DataFrame) -> pd.DataFrame:
    """genre_df with the quirks of the raw export: -1 durations, '?' tempos, a blank row."""
    df = genre_df.copy()
    df["tempo"] = df["tempo"].round(3).astype(object)
    df.loc[[3, 17], "duration_ms"] = -1
    df.loc[[5], "tempo"] = "?"
    feature_cols = [c for c in df.columns if c not in ("instance_id", "music_genre")]
    df.loc[50, feature_cols] = np.nan
    return df


@pytest.fixture
def popularity_df() -> pd.DataFrame:
    """Popularity is a noisy linear function of energy, danceability and loudness."""
    rng = np.random.default_rng(7)
    n = 240
    df = _audio_frame(rng, n)
    df = df.rename(columns={"instance_id": "track_id"})
    df["time_signature"] = rng.choice([3, 4, 4, 4, 5], n)
    df["popularity"] = (
        30 + 25 * df["energy"] + 20 * df["danceability"] + 1.5 * (df["loudness"] + 8)
        + rng.normal(0, 3, n)
    ).clip(0, 100)
    return df


@pytest.fixture
def binary_df() -> pd.DataFrame:
    """100 rows with a 30/70 binary label."""
    rng = np.random.default_rng(0)
    return pd.DataFrame({
        "x": rng.normal(0, 1, 100),
        "label": ["pos"] * 30 + ["neg"] * 70,
    })


@pytest.fixture
def quiet_genre_config() -> PipelineConfig:
    return PipelineConfig(
        verbose=False,
        model=ModelConfig(name="logreg_cv", cv_folds=3),
    )


@pytest.fixture
def quiet_popularity_config() -> PipelineConfig:
    return popularity_config(
        verbose=False,
        model=ModelConfig(name="lasso_cv", cv_scheme="kfold", cv_folds=5),
    )
