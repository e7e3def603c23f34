import warnings
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import stats

from musicpipe.config import PipelineConfig, REGRESSION
from musicpipe.data_eng.get_data import require_columns
from musicpipe.data_eng.types import CleaningReport, OutlierBounds
from musicpipe.errors import MissingnessBiasError, MissingnessBiasWarning


def cleaning_pipeline(df: pd.DataFrame, conf: PipelineConfig) -> Tuple[pd.DataFrame, CleaningReport]:
    """
    Dedupe -> recode labels -> sentinels/domain to NaN -> missingness report
    -> drop missing rows -> cap outliers. Returns a new frame and the QC record.
    """
    require_columns(df, conf.all_features + [conf.target_column])
    rows_before = int(df.shape[0])
    if conf.verbose:
        print('pre-cleaning qc check')
        print(qc_report(df, conf.target_column))

    out, n_dupes = clean_duplicates(df, conf.drop_duplicates_on)

    if conf.label_mapping:
        out[conf.target_column] = recode_labels(out[conf.target_column], conf.label_mapping, conf.label_fallback)

    out, sentinel_counts = sanitize_sentinels(out, conf.sentinels)
    out, domain_counts = sanitize_domain(out, conf.domain_rules)

    # report after sentinels so the counts include them
    missing = missingness_report(out, conf.all_features)

    n_before_target = int(out.shape[0])
    out = out.dropna(subset=[conf.target_column])
    missing_target = n_before_target - int(out.shape[0])

    out, prune_info = prune_missing(
        out,
        conf.all_features,
        target=conf.target_column,
        policy=conf.missingness_policy,
        numeric_target=conf.task == REGRESSION,
        alpha=conf.bias_alpha,
        strict=conf.strict_missingness,
    )

    outliers: List[OutlierBounds] = []
    for col in conf.outlier_columns:
        low, high = conf.outlier_bounds.get(col, (None, None))
        out, bounds = cap_outliers(out, col, low=low, high=high, whisker=conf.outlier_whisker)
        outliers.append(bounds)

    report = CleaningReport(
        rows_before=rows_before,
        rows_after=int(out.shape[0]),
        duplicates_removed=n_dupes,
        sentinel_counts=sentinel_counts,
        domain_counts=domain_counts,
        missing_by_column=missing,
        dropped_all_missing=prune_info['dropped_all_missing'],
        dropped_partial_missing=prune_info['dropped_partial_missing'],
        missing_target_dropped=missing_target,
        bias_p_value=prune_info['bias_p_value'],
        outliers=outliers,
    )
    if conf.verbose:
        print('cleaning summary')
        print(report.to_dict())
    return out, report


def qc_report(df: pd.DataFrame, target: Optional[str] = None) -> dict:
    return {
        "rows": int(df.shape[0]),
        "cols": list(df.columns),
        "dupe_rows": int(df.duplicated().sum()),
        "n_na_total": int(df.isna().sum().sum()),
        "n_na_target": int(df[target].isna().sum()) if target and target in df.columns else None,
    }


def clean_duplicates(df: pd.DataFrame, subset: Optional[Sequence[str]] = None) -> Tuple[pd.DataFrame, int]:
    if subset:
        require_columns(df, subset)
    mask = df.duplicated(subset=list(subset) if subset else None, keep='first')
    return df.loc[~mask].copy(), int(mask.sum())


def sanitize_sentinels(df: pd.DataFrame, rules: Mapping[str, Any]) -> Tuple[pd.DataFrame, Dict[str, int]]:
    """Replace out-of-domain sentinel values ({column: sentinel}) with NaN."""
    require_columns(df, rules.keys())
    out = df.copy()
    counts: Dict[str, int] = {}
    for col, sentinel in rules.items():
        mask = out[col] == sentinel
        counts[col] = int(mask.sum())
        out.loc[mask, col] = np.nan
    return out, counts


def sanitize_domain(
    df: pd.DataFrame,
    rules: Mapping[str, Tuple[Optional[float], Optional[float]]]
) -> Tuple[pd.DataFrame, Dict[str, int]]:
    # values outside [low, high] are treated as missing, not clipped
    require_columns(df, rules.keys())
    out = df.copy()
    counts: Dict[str, int] = {}
    for col, (low, high) in rules.items():
        mask = pd.Series(False, index=out.index)
        if low is not None:
            mask |= out[col] < low
        if high is not None:
            mask |= out[col] > high
        counts[col] = int(mask.sum())
        out.loc[mask, col] = np.nan
    return out, counts


def missingness_report(df: pd.DataFrame, feature_columns: Sequence[str]) -> Dict[str, int]:
    """Count of missing values per feature column."""
    require_columns(df, feature_columns)
    return {c: int(df[c].isna().sum()) for c in feature_columns}


def row_missing_counts(df: pd.DataFrame, feature_columns: Sequence[str]) -> pd.Series:
    return df[list(feature_columns)].isna().sum(axis=1)


def check_missingness_bias(
    df: pd.DataFrame,
    feature_columns: Sequence[str],
    target: str,
    numeric_target: bool = False,
) -> Optional[float]:
    """
    p-value for association between "row has a missing feature" and the target.
    Chi-square independence test for a categorical target, point-biserial
    correlation for a numeric one. None when no test is possible.
    """
    frame = df.dropna(subset=[target])
    indicator = row_missing_counts(frame, feature_columns) > 0
    if indicator.nunique() < 2:
        return None

    if numeric_target:
        y = pd.to_numeric(frame[target], errors='coerce')
        if y.nunique() < 2:
            return None
        _, p = stats.pointbiserialr(indicator.astype(int), y)
        return float(p)

    table = pd.crosstab(indicator, frame[target])
    if table.shape[0] < 2 or table.shape[1] < 2:
        return None
    _, p, _, _ = stats.chi2_contingency(table)
    return float(p)


def prune_missing(
    df: pd.DataFrame,
    feature_columns: Sequence[str],
    target: str,
    policy: str = 'drop',
    numeric_target: bool = False,
    alpha: float = 0.01,
    strict: bool = False,
) -> Tuple[pd.DataFrame, Dict[str, Any]]:
    """
    Rows missing on every feature are always dropped. With policy='drop'
    rows missing on any feature are dropped too, after checking that
    missingness is not associated with the target.
    """
    if not feature_columns:
        raise ValueError("prune_missing needs at least one feature column.")
    counts = row_missing_counts(df, feature_columns)
    all_missing = counts == len(feature_columns)
    out = df.loc[~all_missing]

    info: Dict[str, Any] = {
        'dropped_all_missing': int(all_missing.sum()),
        'dropped_partial_missing': 0,
        'bias_p_value': None,
    }
    if policy == 'impute':
        return out.copy(), info

    p = check_missingness_bias(out, feature_columns, target, numeric_target=numeric_target)
    info['bias_p_value'] = p
    if p is not None and p < alpha:
        msg = (f"Missing feature values are associated with '{target}' (p={p:.3g}); "
               "dropping those rows biases the sample. Consider missingness_policy='impute'.")
        if strict:
            raise MissingnessBiasError(msg)
        warnings.warn(msg, MissingnessBiasWarning, stacklevel=2)

    partial = row_missing_counts(out, feature_columns) > 0
    info['dropped_partial_missing'] = int(partial.sum())
    return out.loc[~partial].copy(), info


def iqr_bounds(values: pd.Series, whisker: float = 1.5) -> Tuple[float, float]:
    q1 = float(values.quantile(0.25))
    q3 = float(values.quantile(0.75))
    iqr = q3 - q1
    return q1 - whisker * iqr, q3 + whisker * iqr


def cap_outliers(
    df: pd.DataFrame,
    column: str,
    low: Optional[float] = None,
    high: Optional[float] = None,
    whisker: float = 1.5,
) -> Tuple[pd.DataFrame, OutlierBounds]:
    """
    Winsorize `column` into [low, high]. Missing bounds come from the IQR rule
    (Q1 - whisker*IQR, Q3 + whisker*IQR). Values inside the bounds and NaNs
    are left untouched, so capping twice with the same bounds is a no-op.
    """
    require_columns(df, [column])
    if low is None or high is None:
        iqr_low, iqr_high = iqr_bounds(df[column].dropna(), whisker)
        low = iqr_low if low is None else low
        high = iqr_high if high is None else high
    if low > high:
        raise ValueError(f"low bound {low} exceeds high bound {high} for '{column}'")

    out = df.copy()
    values = out[column]
    n_clipped = int(((values < low) | (values > high)).sum())
    out[column] = values.clip(lower=low, upper=high)
    return out, OutlierBounds(column=column, low=float(low), high=float(high), n_clipped=n_clipped)


def recode_labels(labels: pd.Series, mapping: Mapping[Any, Any], fallback: Any = None) -> pd.Series:
    """
    Map raw label values to buckets with a lookup table. Unmapped values go
    to `fallback` (or are kept as-is when fallback is None); NaN stays NaN.
    """
    mapped = labels.map(mapping)
    unmapped = mapped.isna() & labels.notna()
    if fallback is None:
        mapped = mapped.where(~unmapped, labels)
    else:
        mapped = mapped.where(~unmapped, fallback)
    return mapped
