from __future__ import annotations
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import special, stats

from musicpipe.data_eng.types import TransformDescriptor
from musicpipe.errors import TransformDomainError

# candidate -> predicate the (non-NaN) values must satisfy
_DOMAINS = {
    'identity': lambda x: True,
    'log': lambda x: bool(np.all(x > 0)),
    'sqrt': lambda x: bool(np.all(x >= 0)),
    'boxcox': lambda x: bool(np.all(x > 0)),
    'yeojohnson': lambda x: True,
}


def _as_float(values: pd.Series | np.ndarray) -> np.ndarray:
    return np.asarray(pd.to_numeric(pd.Series(values), errors='coerce'), dtype=float)


def in_domain(values: pd.Series | np.ndarray, method: str) -> bool:
    if method not in _DOMAINS:
        raise ValueError(f"Unknown transform '{method}'. Known: {list(_DOMAINS)}")
    x = _as_float(values)
    return _DOMAINS[method](x[~np.isnan(x)])


def fit_transform_params(values: pd.Series | np.ndarray, method: str) -> Dict[str, float]:
    """Estimate the parameters that make `method` a fixed function (Box-Cox/Yeo-Johnson lambda)."""
    x = _as_float(values)
    x = x[~np.isnan(x)]
    if method == 'boxcox':
        _, lmbda = stats.boxcox(x)
        return {'lmbda': float(lmbda)}
    if method == 'yeojohnson':
        _, lmbda = stats.yeojohnson(x)
        return {'lmbda': float(lmbda)}
    return {}


def apply_transform(
    values: pd.Series | np.ndarray,
    method: str,
    params: Optional[Mapping[str, float]] = None,
    column: str = '',
) -> np.ndarray:
    """Apply a fitted transform; NaN passes through, out-of-domain values raise."""
    params = params or {}
    x = _as_float(values)
    if not in_domain(x, method):
        raise TransformDomainError(
            f"'{method}' is undefined for some values of column '{column}' "
            f"(min={np.nanmin(x) if np.any(~np.isnan(x)) else float('nan')})."
        )

    if method == 'identity':
        return x
    if method == 'log':
        return np.log(x)
    if method == 'sqrt':
        return np.sqrt(x)
    if method == 'boxcox':
        return special.boxcox(x, params['lmbda'])
    if method == 'yeojohnson':
        out = np.full_like(x, np.nan)
        mask = ~np.isnan(x)
        out[mask] = stats.yeojohnson(x[mask], lmbda=params['lmbda'])
        return out
    raise ValueError(f"Unknown transform '{method}'")


def skew_score(values: np.ndarray) -> float:
    """Normality objective: absolute sample skewness, lower is better."""
    x = values[~np.isnan(values)]
    if x.size < 3:
        return float('nan')
    return float(abs(stats.skew(x)))


def select_transform(
    values: pd.Series | np.ndarray,
    candidates: Sequence[str],
    override: Optional[str] = None,
    column: str = '',
) -> Tuple[np.ndarray, TransformDescriptor]:
    """
    Pick the candidate whose output has the lowest absolute skewness.

    Candidates whose domain does not hold (log/Box-Cox on non-positive data,
    sqrt on negative data) or that cannot be fit are skipped. Ties keep the
    earlier candidate, so the result depends only on the column values and
    the candidate order. `override` forces a method.
    """
    if override is not None:
        if not in_domain(values, override):
            raise TransformDomainError(f"override '{override}' is undefined for column '{column}'")
        params = fit_transform_params(values, override)
        transformed = apply_transform(values, override, params, column=column)
        return transformed, TransformDescriptor(
            column=column, method=override, params=params,
            score=skew_score(transformed), forced=True,
        )

    best: Optional[Tuple[np.ndarray, TransformDescriptor]] = None
    for method in candidates:
        if not in_domain(values, method):
            continue
        try:
            params = fit_transform_params(values, method)
        except ValueError:
            # e.g. Box-Cox on constant data
            continue
        transformed = apply_transform(values, method, params, column=column)
        score = skew_score(transformed)
        if np.isnan(score):
            continue
        if best is None or score < best[1].score:
            best = (transformed, TransformDescriptor(column=column, method=method, params=params, score=score))

    if best is None:
        x = _as_float(values)
        return x, TransformDescriptor(column=column, method='identity', score=skew_score(x))
    return best


def fit_transforms(
    df: pd.DataFrame,
    candidates: Mapping[str, Sequence[str]],
    overrides: Optional[Mapping[str, str]] = None,
    domain_frame: Optional[pd.DataFrame] = None,
) -> Dict[str, TransformDescriptor]:
    """
    Select a transform per column from `df`; returns descriptors only.

    `domain_frame` holds every row the descriptors will later be applied to
    (e.g. train and test). Candidates are screened against it so a method
    fit on `df` never meets out-of-domain values at apply time, while the
    parameters are still estimated from `df` alone.
    """
    overrides = overrides or {}
    columns: Iterable[str] = list(dict.fromkeys(list(candidates) + list(overrides)))
    descriptors: Dict[str, TransformDescriptor] = {}
    for col in columns:
        if col not in df.columns:
            continue
        methods = list(candidates.get(col, ['identity']))
        override = overrides.get(col)
        if domain_frame is not None and col in domain_frame.columns:
            methods = [m for m in methods if in_domain(domain_frame[col], m)]
            if override is not None and not in_domain(domain_frame[col], override):
                raise TransformDomainError(f"override '{override}' is undefined for column '{col}'")
        _, desc = select_transform(df[col], methods, override=override, column=col)
        descriptors[col] = desc
    return descriptors


def apply_transforms(df: pd.DataFrame, descriptors: Mapping[str, TransformDescriptor]) -> pd.DataFrame:
    out = df.copy()
    for col, desc in descriptors.items():
        out[col] = desc.apply(out[col])
    return out
