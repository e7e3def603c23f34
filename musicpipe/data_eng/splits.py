# musicpipe/data_eng/splits.py

from __future__ import annotations
import warnings
from typing import Optional, Tuple

import numpy as np
import pandas as pd

from musicpipe.data_eng.get_data import require_columns
from musicpipe.errors import LabelImbalanceWarning


def stratify_labels(df: pd.DataFrame, label_column: Optional[str], bins: Optional[int] = None) -> pd.Series:
    """
    Labels used for stratification. A numeric target with `bins` set is cut
    into quantile bins; no label column means one group.
    """
    if label_column is None:
        return pd.Series('all', index=df.index)
    require_columns(df, [label_column])
    labels = df[label_column]
    if labels.isna().any():
        raise ValueError(f"Stratification column '{label_column}' has missing values.")
    if bins:
        codes = pd.qcut(labels.rank(method='first'), q=bins, labels=False)
        return codes.astype(int).astype(str)
    return labels.astype(str)


def stratified_split_mask(
    df: pd.DataFrame,
    label_column: Optional[str],
    train_fraction: float = 0.7,
    seed: int = 123,
    bins: Optional[int] = None,
) -> pd.Series:
    """
    Boolean Series (True = train) aligned to df.index.

    Within each label group round(train_fraction * n) rows are drawn for
    train from a seeded permutation. Groups are visited in sorted order so
    the assignment depends only on the data and the seed. Groups too small
    to keep both sides non-empty raise LabelImbalanceWarning and are split
    as close as possible.
    """
    if not 0.0 < train_fraction < 1.0:
        raise ValueError("train_fraction must be strictly between 0 and 1.")
    labels = stratify_labels(df, label_column, bins)

    rng = np.random.default_rng(seed)
    positions = np.arange(len(df))
    is_train = np.zeros(len(df), dtype=bool)

    small = []
    for label in sorted(labels.unique()):
        group = positions[(labels == label).to_numpy()]
        n = len(group)
        n_train = int(round(train_fraction * n))
        if n_train == 0 or n_train == n:
            small.append((label, n))
        shuffled = rng.permutation(group)
        is_train[shuffled[:n_train]] = True

    if small:
        desc = ', '.join(f"'{label}' (n={n})" for label, n in small)
        warnings.warn(
            f"Label group(s) too small to split at train_fraction={train_fraction}: {desc}. "
            "They land entirely on one side of the split.",
            LabelImbalanceWarning,
            stacklevel=2,
        )
    return pd.Series(is_train, index=df.index, name='is_train')


def stratified_split(
    df: pd.DataFrame,
    label_column: Optional[str],
    train_fraction: float = 0.7,
    seed: int = 123,
    bins: Optional[int] = None,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    mask = stratified_split_mask(df, label_column, train_fraction, seed, bins)
    return split_by_mask(df, mask)


def split_by_mask(df: pd.DataFrame, mask: pd.Series) -> Tuple[pd.DataFrame, pd.DataFrame]:
    if not mask.index.equals(df.index):
        raise ValueError("Split assignment is not aligned with the dataset index.")
    m = mask.to_numpy(dtype=bool)
    return df.loc[m].copy(), df.loc[~m].copy()
