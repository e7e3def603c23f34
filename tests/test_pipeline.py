import warnings
from dataclasses import replace

import numpy as np
import pandas as pd
import pytest

from musicpipe import run_pipeline, run_stages
from musicpipe.config import CLASSIFICATION, PipelineConfig, REGRESSION
from musicpipe.data_eng.pipeline import (
    Stage,
    clean,
    evaluate_stage,
    fit,
    ingest,
    split,
    split_assignment,
    standardize,
    transform,
)
from musicpipe.data_eng.transforms import fit_transforms
from musicpipe.errors import DegenerateColumnError, MissingnessBiasWarning, PipelineStageError
from musicpipe.models.config import ModelConfig


class TestStageOrder:
    def test_stages_advance_in_order(self, genre_df: pd.DataFrame, quiet_genre_config: PipelineConfig) -> None:
        state = ingest(genre_df, quiet_genre_config)
        assert state.stage == Stage.INGESTED
        for step, expected in [
            (clean, Stage.CLEANED),
            (transform, Stage.TRANSFORMED),
            (split, Stage.SPLIT),
            (standardize, Stage.STANDARDIZED),
            (fit, Stage.FITTED),
            (evaluate_stage, Stage.EVALUATED),
        ]:
            state = step(state)
            assert state.stage == expected
        assert state.result is not None

    def test_skipping_a_stage(self, genre_df: pd.DataFrame, quiet_genre_config: PipelineConfig) -> None:
        state = ingest(genre_df, quiet_genre_config)
        with pytest.raises(PipelineStageError, match="TRANSFORMED"):
            split(state)

    def test_repeating_a_stage(self, genre_df: pd.DataFrame, quiet_genre_config: PipelineConfig) -> None:
        cleaned = clean(ingest(genre_df, quiet_genre_config))
        with pytest.raises(PipelineStageError):
            clean(cleaned)

    @pytest.mark.parametrize("step, reached", [
        (transform, Stage.INGESTED),
        (fit, Stage.CLEANED),
        (standardize, Stage.TRANSFORMED),
        (evaluate_stage, Stage.SPLIT),
    ])
    def test_order_checked_before_stage_runs(self, genre_df: pd.DataFrame, quiet_genre_config: PipelineConfig,
                                             step, reached: Stage) -> None:
        state = ingest(genre_df, quiet_genre_config)
        for upstream in (clean, transform, split)[:reached - 1]:
            state = upstream(state)
        assert state.stage == reached
        with pytest.raises(PipelineStageError, match=reached.name):
            step(state)

    def test_states_are_not_mutated(self, genre_df: pd.DataFrame, quiet_genre_config: PipelineConfig) -> None:
        ingested = ingest(genre_df, quiet_genre_config)
        rows = len(ingested.data)
        cleaned = clean(ingested)
        assert ingested.stage == Stage.INGESTED
        assert len(ingested.data) == rows
        assert cleaned.cleaning is not None


class TestLeakage:
    def test_transforms_fit_on_training_rows(self, genre_df: pd.DataFrame,
                                             quiet_genre_config: PipelineConfig) -> None:
        cleaned = clean(ingest(genre_df, quiet_genre_config))
        transformed = transform(cleaned)
        assert transformed.split_mask is not None

        train_rows = cleaned.data.loc[transformed.split_mask.to_numpy(dtype=bool)]
        expected = fit_transforms(train_rows, quiet_genre_config.transform_candidates,
                                  quiet_genre_config.transform_overrides, domain_frame=cleaned.data)
        assert transformed.transforms == expected

        split_state = split(transformed)
        assert split_state.split_mask.equals(transformed.split_mask)
        assert len(split_state.split.train) == int(transformed.split_mask.sum())

    def test_zero_in_a_test_row_does_not_abort(self, genre_df: pd.DataFrame,
                                               quiet_genre_config: PipelineConfig) -> None:
        cleaned = clean(ingest(genre_df, quiet_genre_config))
        mask = split_assignment(cleaned.data, quiet_genre_config)
        test_row = mask.index[~mask.to_numpy(dtype=bool)][0]

        df = genre_df.copy()
        df.loc[test_row, "acousticness"] = 0.0
        state = run_stages(df, quiet_genre_config)

        assert not state.split_mask[test_row]
        assert state.transforms["acousticness"].method not in ("log", "boxcox")
        expected = state.transforms["acousticness"].apply([0.0])[0]
        assert state.split.test.loc[test_row, "acousticness"] == pytest.approx(expected)

    def test_pre_split_fit_is_flagged(self, genre_df: pd.DataFrame) -> None:
        conf = PipelineConfig(verbose=False, transform_fit="pre_split", model=ModelConfig(name="logreg"))
        state = run_stages(genre_df, conf)
        assert state.result.leakage_risk
        assert not run_pipeline(genre_df, PipelineConfig(verbose=False, model=ModelConfig(name="logreg"))).leakage_risk

    def test_standardizer_ignores_test_rows(self, genre_df: pd.DataFrame,
                                            quiet_genre_config: PipelineConfig) -> None:
        state = split(transform(clean(ingest(genre_df, quiet_genre_config))))
        baseline = standardize(state).scaling

        numeric = quiet_genre_config.feature_columns
        poisoned_test = state.split.X_test.copy()
        poisoned_test[numeric] = poisoned_test[numeric] * 1000.0
        poisoned = replace(state, split=replace(state.split, X_test=poisoned_test))
        assert standardize(poisoned).scaling == baseline

    def test_train_matrix_is_centered(self, genre_df: pd.DataFrame, quiet_genre_config: PipelineConfig) -> None:
        state = standardize(split(transform(clean(ingest(genre_df, quiet_genre_config)))))
        numeric = quiet_genre_config.feature_columns
        np.testing.assert_allclose(state.split.X_train[numeric].mean(), 0.0, atol=1e-9)
        assert {"key_A", "mode_Major"} <= set(state.split.X_train.columns)
        assert list(state.split.X_train.columns) == list(state.split.X_test.columns)


class TestEndToEnd:
    def test_genre_classification(self, genre_df: pd.DataFrame, quiet_genre_config: PipelineConfig) -> None:
        state = run_stages(genre_df, quiet_genre_config)
        result = state.result
        assert result.task == CLASSIFICATION
        assert result.n_train + result.n_test == state.cleaning.rows_after
        assert set(result.labels) == {"Hip-Hop/Rap", "Other"}
        assert result.metrics["accuracy"] > 0.6
        assert result.is_defined("auprc")
        assert "C" in result.model_params

    def test_popularity_regression(self, popularity_df: pd.DataFrame,
                                   quiet_popularity_config: PipelineConfig) -> None:
        result = run_pipeline(popularity_df, quiet_popularity_config)
        assert result.task == REGRESSION
        assert result.metrics["r2"] > 0.5
        assert result.is_defined("r2_vs_train_mean")
        assert "alpha" in result.model_params

    def test_dirty_input(self, dirty_genre_df: pd.DataFrame, quiet_genre_config: PipelineConfig) -> None:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", MissingnessBiasWarning)
            state = run_stages(dirty_genre_df, quiet_genre_config)
        report = state.cleaning
        assert report.dropped_all_missing == 1
        assert report.rows_after < report.rows_before
        assert state.result.n_train + state.result.n_test == report.rows_after

    def test_impute_policy_keeps_partial_rows(self, dirty_genre_df: pd.DataFrame) -> None:
        conf = PipelineConfig(verbose=False, missingness_policy="impute", model=ModelConfig(name="logreg"))
        state = run_stages(dirty_genre_df, conf)
        assert state.cleaning.rows_after == len(dirty_genre_df) - 1
        assert not state.split.X_train.isna().any().any()
        assert not state.split.X_test.isna().any().any()

    def test_deterministic(self, genre_df: pd.DataFrame, quiet_genre_config: PipelineConfig) -> None:
        a = run_pipeline(genre_df, quiet_genre_config)
        b = run_pipeline(genre_df, quiet_genre_config)
        assert a.metrics == pytest.approx(b.metrics, nan_ok=True)
        assert a.model_params == b.model_params

    def test_constant_feature_is_reported(self, genre_df: pd.DataFrame,
                                          quiet_genre_config: PipelineConfig) -> None:
        df = genre_df.copy()
        df["valence"] = 0.5
        with pytest.raises(DegenerateColumnError) as exc:
            run_pipeline(df, quiet_genre_config)
        assert exc.value.columns == ["valence"]

    def test_reads_csv(self, genre_df: pd.DataFrame, tmp_path) -> None:
        path = tmp_path / "music_genre.csv"
        genre_df.to_csv(path, index=False)
        result = run_pipeline(path, PipelineConfig(verbose=False, model=ModelConfig(name="logreg")))
        assert result.n_test > 0
