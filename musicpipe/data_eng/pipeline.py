# musicpipe/data_eng/pipeline.py

from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import IntEnum
from typing import Any, Dict, Optional

import pandas as pd

from musicpipe.config import PipelineConfig, REGRESSION
from musicpipe.data_eng.clean_data import cleaning_pipeline
from musicpipe.data_eng.get_data import Source, get_X_y, read_dataset
from musicpipe.data_eng.scale_data import (
    apply_imputer,
    apply_standardizer,
    encode_features,
    fit_encoder,
    fit_imputer,
    fit_standardizer,
)
from musicpipe.data_eng.splits import split_by_mask, stratified_split_mask
from musicpipe.data_eng.transforms import apply_transforms, fit_transforms
from musicpipe.data_eng.types import (
    CleaningReport,
    EvaluationResult,
    SplitBundle,
    StandardizationParams,
    TransformDescriptor,
)
from musicpipe.errors import PipelineStageError
from musicpipe.eval.metrics import evaluate
from musicpipe.models.registry import fit_model, tuned_params


class Stage(IntEnum):
    INGESTED = 1
    CLEANED = 2
    TRANSFORMED = 3
    SPLIT = 4
    STANDARDIZED = 5
    FITTED = 6
    EVALUATED = 7


@dataclass(frozen=True)
class PipelineState:
    """
    Everything one run has produced so far. Each stage function returns a
    new state; nothing is mutated in place and stages cannot be skipped
    or repeated.
    """
    stage: Stage
    config: PipelineConfig
    data: pd.DataFrame
    cleaning: Optional[CleaningReport] = None
    # computed once per run, True = train
    split_mask: Optional[pd.Series] = None
    transforms: Dict[str, TransformDescriptor] = field(default_factory=dict)
    split: Optional[SplitBundle] = None
    scaling: Optional[StandardizationParams] = None
    encoder: Any = None
    model: Any = None
    result: Optional[EvaluationResult] = None


def _require(state: PipelineState, done: Stage) -> None:
    # checked before a stage reads anything from the state
    if state.stage != done - 1:
        raise PipelineStageError(
            f"Cannot run {done.name.lower()} stage: state is {state.stage.name}, "
            f"expected {Stage(done - 1).name}. Start a fresh run to redo upstream steps."
        )


def _advance(state: PipelineState, done: Stage, **changes: Any) -> PipelineState:
    _require(state, done)
    return replace(state, stage=done, **changes)


def _log(conf: PipelineConfig, msg: str) -> None:
    if conf.verbose:
        print(msg)


def ingest(source: Source, conf: PipelineConfig) -> PipelineState:
    _log(conf, 'begin reading data...')
    df = read_dataset(source, schema=conf.schema(), na_values=conf.na_values)
    _log(conf, f'read {df.shape[0]} rows, {df.shape[1]} columns')
    return PipelineState(stage=Stage.INGESTED, config=conf, data=df)


def clean(state: PipelineState) -> PipelineState:
    _require(state, Stage.CLEANED)
    conf = state.config
    _log(conf, 'begin data cleaning...')
    df, report = cleaning_pipeline(state.data, conf)
    _log(conf, f'done cleaning data: {report.rows_before} -> {report.rows_after} rows')
    return _advance(state, Stage.CLEANED, data=df, cleaning=report)


def split_assignment(df: pd.DataFrame, conf: PipelineConfig) -> pd.Series:
    if conf.task == REGRESSION:
        label = conf.target_column if conf.stratify_bins else None
        bins = conf.stratify_bins
    else:
        label, bins = conf.target_column, None
    return stratified_split_mask(df, label, conf.train_fraction, conf.seed, bins=bins)


def transform(state: PipelineState) -> PipelineState:
    """
    Select a transform per configured numeric column and apply it to every row.

    transform_fit='train' computes the split assignment here and fits the
    transform parameters on training rows only; the split stage reuses that
    assignment. 'pre_split' fits on all rows and marks the run as a
    leakage risk.
    """
    _require(state, Stage.TRANSFORMED)
    conf = state.config
    df = state.data
    numeric = set(conf.feature_columns)
    candidates = {c: m for c, m in conf.transform_candidates.items() if c in numeric}
    overrides = {c: m for c, m in conf.transform_overrides.items() if c in numeric}

    mask = None
    fit_frame = df
    if conf.transform_fit == 'train':
        mask = split_assignment(df, conf)
        fit_frame = df.loc[mask.to_numpy(dtype=bool)]

    _log(conf, f'selecting transforms for {sorted(set(candidates) | set(overrides))} (fit on {conf.transform_fit})')
    descriptors = fit_transforms(fit_frame, candidates, overrides, domain_frame=df)
    for desc in descriptors.values():
        _log(conf, f'  {desc.column}: {desc.method} {desc.params}')

    return _advance(
        state, Stage.TRANSFORMED,
        data=apply_transforms(df, descriptors),
        transforms=descriptors,
        split_mask=mask,
    )


def split(state: PipelineState) -> PipelineState:
    _require(state, Stage.SPLIT)
    conf = state.config
    mask = state.split_mask if state.split_mask is not None else split_assignment(state.data, conf)
    train, test = split_by_mask(state.data, mask)
    _log(conf, f'split {len(state.data)} rows -> train {len(train)} / test {len(test)}')

    X_train, y_train = get_X_y(train, conf.target_column, conf.all_features)
    X_test, y_test = get_X_y(test, conf.target_column, conf.all_features)
    bundle = SplitBundle(train=train, test=test,
                         X_train=X_train, y_train=y_train,
                         X_test=X_test, y_test=y_test)
    return _advance(state, Stage.SPLIT, split=bundle, split_mask=mask)


def standardize(state: PipelineState) -> PipelineState:
    """Impute (if configured), standardize and one-hot encode with train-only parameters."""
    _require(state, Stage.STANDARDIZED)
    conf = state.config
    bundle = state.split
    numeric = list(conf.feature_columns)
    categorical = list(conf.categorical_columns)

    X_train, X_test = bundle.X_train, bundle.X_test
    if conf.missingness_policy == 'impute':
        imputers = fit_imputer(X_train, numeric, categorical)
        X_train = apply_imputer(X_train, imputers, numeric, categorical)
        X_test = apply_imputer(X_test, imputers, numeric, categorical)

    params = fit_standardizer(X_train, numeric)
    X_train = apply_standardizer(X_train, params)
    X_test = apply_standardizer(X_test, params)

    encoder = fit_encoder(X_train, categorical)
    X_train = encode_features(X_train, numeric, categorical, encoder)
    X_test = encode_features(X_test, numeric, categorical, encoder)
    _log(conf, f'standardized {len(numeric)} numeric columns, model matrix has {X_train.shape[1]} columns')

    scaled = replace(bundle, X_train=X_train, X_test=X_test)
    return _advance(state, Stage.STANDARDIZED, split=scaled, scaling=params, encoder=encoder)


def fit(state: PipelineState) -> PipelineState:
    _require(state, Stage.FITTED)
    conf = state.config
    _log(conf, f'fitting {conf.model.name} on {len(state.split.X_train)} rows...')
    model = fit_model(state.split.X_train, state.split.y_train, conf.model, conf.task)
    return _advance(state, Stage.FITTED, model=model)


def evaluate_stage(state: PipelineState) -> PipelineState:
    _require(state, Stage.EVALUATED)
    conf = state.config
    bundle = state.split
    result = evaluate(
        state.model,
        bundle.X_test,
        bundle.y_test,
        task=conf.task,
        y_train=bundle.y_train,
        probability=conf.model.probability,
        model_name=conf.model.name,
        n_train=len(bundle.X_train),
        leakage_risk=conf.transform_fit == 'pre_split',
        model_params=tuned_params(state.model),
    )
    _log(conf, 'done evaluating model')
    return _advance(state, Stage.EVALUATED, result=result)


STAGES = (clean, transform, split, standardize, fit, evaluate_stage)


def run_stages(source: Source, conf: PipelineConfig) -> PipelineState:
    state = ingest(source, conf)
    for step in STAGES:
        state = step(state)
    return state


def run_pipeline(source: Source, conf: Optional[PipelineConfig] = None) -> EvaluationResult:
    """Ingest -> clean -> transform -> split -> standardize -> fit -> evaluate."""
    state = run_stages(source, conf if conf is not None else PipelineConfig())
    return state.result
