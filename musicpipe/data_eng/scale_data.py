from sklearn.preprocessing import StandardScaler, OneHotEncoder
from sklearn.impute import SimpleImputer
import numpy as np
import pandas as pd
from typing import List, Optional, Sequence, Tuple

from musicpipe.data_eng.get_data import require_columns
from musicpipe.data_eng.types import StandardizationParams
from musicpipe.errors import DegenerateColumnError


def fit_standardizer(train: pd.DataFrame, numeric_cols: Sequence[str]) -> StandardizationParams:
    """
    Per-column mean and population std-dev from the training partition only.
    Raises DegenerateColumnError for zero-variance columns.
    """
    cols = require_columns(train, numeric_cols)
    if not cols:
        return StandardizationParams(columns=(), mean=(), std=())
    if train.shape[0] == 0:
        raise ValueError("Cannot fit a standardizer on an empty training partition.")

    scaler = StandardScaler()
    # Fit on non-NaN rows for these columns (sklearn ignores NaN in fit)
    scaler.fit(train[cols].to_numpy(dtype=float))

    variances = np.asarray(scaler.var_, dtype=float)
    degenerate = [c for c, v in zip(cols, variances) if not v > 0]
    if degenerate:
        raise DegenerateColumnError(degenerate)

    return StandardizationParams(
        columns=tuple(cols),
        mean=tuple(float(m) for m in scaler.mean_),
        std=tuple(float(np.sqrt(v)) for v in variances),
    )


def apply_standardizer(df: pd.DataFrame, params: StandardizationParams) -> pd.DataFrame:
    """
    Return a copy of df with each parameterised column replaced by
    (v - mean) / std. Does not touch other columns (e.g. the target).
    """
    require_columns(df, params.columns)
    out = df.copy()
    for col, mean, std in zip(params.columns, params.mean, params.std):
        out[col] = (out[col].astype(float) - mean) / std
    return out


def invert_standardizer(df: pd.DataFrame, params: StandardizationParams) -> pd.DataFrame:
    require_columns(df, params.columns)
    out = df.copy()
    for col, mean, std in zip(params.columns, params.mean, params.std):
        out[col] = out[col].astype(float) * std + mean
    return out


def fit_imputer(train: pd.DataFrame, numeric_cols: Sequence[str], categorical_cols: Sequence[str]
                ) -> Tuple[Optional[SimpleImputer], Optional[SimpleImputer]]:
    """Median for numeric, most frequent for categorical; statistics from train only."""
    num = SimpleImputer(strategy='median', keep_empty_features=True).fit(train[list(numeric_cols)]) if numeric_cols else None
    cat = SimpleImputer(strategy='most_frequent', keep_empty_features=True).fit(
        train[list(categorical_cols)].astype(object)) if categorical_cols else None
    return num, cat


def apply_imputer(df: pd.DataFrame,
                  imputers: Tuple[Optional[SimpleImputer], Optional[SimpleImputer]],
                  numeric_cols: Sequence[str],
                  categorical_cols: Sequence[str]) -> pd.DataFrame:
    num, cat = imputers
    out = df.copy()
    if num is not None:
        out[list(numeric_cols)] = num.transform(out[list(numeric_cols)])
    if cat is not None:
        out[list(categorical_cols)] = cat.transform(out[list(categorical_cols)].astype(object))
    return out


def fit_encoder(train: pd.DataFrame, categorical_cols: Sequence[str]) -> Optional[OneHotEncoder]:
    if not categorical_cols:
        return None
    enc = OneHotEncoder(handle_unknown='ignore', sparse_output=False)
    enc.fit(train[list(categorical_cols)].astype(str))
    return enc


def encode_features(df: pd.DataFrame,
                    numeric_cols: Sequence[str],
                    categorical_cols: Sequence[str],
                    encoder: Optional[OneHotEncoder]) -> pd.DataFrame:
    """
    Model matrix: numeric columns as-is followed by one-hot categorical
    columns. Categories unseen in train encode as all zeros.
    """
    X = df[list(numeric_cols)].astype(float).copy()
    if encoder is None:
        return X
    encoded = encoder.transform(df[list(categorical_cols)].astype(str))
    names: List[str] = list(encoder.get_feature_names_out(list(categorical_cols)))
    dummies = pd.DataFrame(encoded, index=df.index, columns=names)
    return pd.concat([X, dummies], axis=1)
