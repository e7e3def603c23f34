from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
import numpy as np
import pandas as pd

NUMERIC = 'numeric'
CATEGORICAL = 'categorical'


@dataclass(frozen=True)
class ColumnSpec:
    name: str
    kind: str = NUMERIC

    def __post_init__(self):
        if self.kind not in (NUMERIC, CATEGORICAL):
            raise ValueError(f"kind must be '{NUMERIC}' or '{CATEGORICAL}', got '{self.kind}'")


@dataclass(frozen=True)
class TransformDescriptor:
    column: str
    method: str
    params: Dict[str, float] = field(default_factory=dict)
    score: float = float('nan')
    forced: bool = False

    def apply(self, values: pd.Series | np.ndarray) -> np.ndarray:
        # local import, transforms imports this module
        from musicpipe.data_eng.transforms import apply_transform
        return apply_transform(values, self.method, self.params, column=self.column)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'column': self.column,
            'method': self.method,
            'params': dict(self.params),
            'score': None if np.isnan(self.score) else self.score,
            'forced': self.forced,
        }


@dataclass(frozen=True)
class OutlierBounds:
    column: str
    low: float
    high: float
    n_clipped: int = 0


@dataclass(frozen=True)
class StandardizationParams:
    columns: Tuple[str, ...]
    mean: Tuple[float, ...]
    std: Tuple[float, ...]

    def as_dict(self) -> Dict[str, Tuple[float, float]]:
        return {c: (m, s) for c, m, s in zip(self.columns, self.mean, self.std)}


@dataclass(frozen=True)
class CleaningReport:
    rows_before: int
    rows_after: int
    duplicates_removed: int = 0
    sentinel_counts: Dict[str, int] = field(default_factory=dict)
    domain_counts: Dict[str, int] = field(default_factory=dict)
    missing_by_column: Dict[str, int] = field(default_factory=dict)
    dropped_all_missing: int = 0
    dropped_partial_missing: int = 0
    missing_target_dropped: int = 0
    bias_p_value: Optional[float] = None
    outliers: List[OutlierBounds] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rows_before': self.rows_before,
            'rows_after': self.rows_after,
            'duplicates_removed': self.duplicates_removed,
            'sentinel_counts': dict(self.sentinel_counts),
            'domain_counts': dict(self.domain_counts),
            'missing_by_column': dict(self.missing_by_column),
            'dropped_all_missing': self.dropped_all_missing,
            'dropped_partial_missing': self.dropped_partial_missing,
            'missing_target_dropped': self.missing_target_dropped,
            'bias_p_value': self.bias_p_value,
            'outliers': [
                {'column': o.column, 'low': o.low, 'high': o.high, 'n_clipped': o.n_clipped}
                for o in self.outliers
            ],
        }


@dataclass(frozen=True)
class SplitBundle:
    # Raw partitions
    train: pd.DataFrame
    test: pd.DataFrame

    # Feature/target splits
    X_train: pd.DataFrame
    y_train: pd.Series
    X_test: pd.DataFrame
    y_test: pd.Series


@dataclass(frozen=True)
class EvaluationResult:
    task: str
    metrics: Dict[str, float]
    undefined: Tuple[str, ...] = ()
    n_train: int = 0
    n_test: int = 0
    model_name: str = ''
    confusion: Optional[np.ndarray] = None
    labels: Tuple[Any, ...] = ()
    leakage_risk: bool = False
    model_params: Dict[str, Any] = field(default_factory=dict)

    def is_defined(self, metric: str) -> bool:
        return metric in self.metrics and metric not in self.undefined

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            'task': self.task,
            'model': self.model_name,
            'n_train': self.n_train,
            'n_test': self.n_test,
            'metrics': {k: (None if pd.isna(v) else float(v)) for k, v in self.metrics.items()},
            'undefined': list(self.undefined),
            'leakage_risk': self.leakage_risk,
            'model_params': dict(self.model_params),
        }
        if self.confusion is not None:
            out['confusion'] = np.asarray(self.confusion).tolist()
            out['labels'] = [str(label) for label in self.labels]
        return out

