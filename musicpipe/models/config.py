# musicpipe/models/config.py

from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

DEFAULT_RANDOM_STATE = 42

CV_SCHEMES = (
    'kfold',
    'stratified_kfold',
    'repeated_kfold',
    'repeated_stratified_kfold',
    'loo',
)

# default search grids, mirror what the exploratory notebooks tried
LR_CS: List[float] = [0.01, 0.03, 0.1, 0.3, 1, 3, 10]
KNN_NEIGHBORS: List[int] = [3, 5, 7, 9, 11, 15, 21]
LASSO_ALPHAS: List[float] = [0.001, 0.003, 0.01, 0.03, 0.1, 0.3, 1.0]


@dataclass(frozen=True)
class ModelConfig:
    """
    Explicit, enumerated model configuration.

    name:        key into musicpipe.models.registry.MODEL_BUILDERS
    params:      fixed estimator keyword arguments
    search_grid: hyperparameter grid; None uses the builder's default grid
    cv_scheme:   resampling scheme for tuning, one of CV_SCHEMES
    cv_folds:    k in k-fold (never interpreted as leave-one-out)
    cv_repeats:  repeats for the repeated_* schemes
    probability: ask the classifier for class probabilities at evaluation
    """
    name: str = 'logreg_cv'
    params: Dict[str, Any] = field(default_factory=dict)
    search_grid: Optional[Dict[str, List[Any]]] = None
    cv_scheme: str = 'stratified_kfold'
    cv_folds: int = 5
    cv_repeats: int = 1
    scoring: Optional[str] = None
    probability: bool = True
    random_state: int = DEFAULT_RANDOM_STATE
    n_jobs: Optional[int] = None

    def __post_init__(self):
        if self.cv_scheme not in CV_SCHEMES:
            raise ValueError(f"cv_scheme must be one of {list(CV_SCHEMES)}, got '{self.cv_scheme}'")
        if self.cv_scheme != 'loo' and self.cv_folds < 2:
            raise ValueError("cv_folds must be at least 2 for k-fold schemes.")
        if self.cv_repeats < 1:
            raise ValueError("cv_repeats must be positive.")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ModelConfig':
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)
