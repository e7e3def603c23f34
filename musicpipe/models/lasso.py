from __future__ import annotations
from typing import List, Optional

from sklearn.linear_model import Lasso, LassoCV

from musicpipe.models.config import DEFAULT_RANDOM_STATE, LASSO_ALPHAS


def basic_lasso(alpha: float = 0.1, random_state: int = DEFAULT_RANDOM_STATE, **params) -> Lasso:
    return Lasso(alpha=alpha, max_iter=10000, random_state=random_state, **params)


def lasso_cv(
        cv,
        alphas: Optional[List[float]] = None,
        random_state: int = DEFAULT_RANDOM_STATE,
        n_jobs: Optional[int] = None,
        **params
        ) -> LassoCV:
    # cv is a splitter object, never an int
    return LassoCV(
        alphas=alphas if alphas is not None else LASSO_ALPHAS,
        cv=cv,
        max_iter=10000,
        n_jobs=n_jobs,
        random_state=random_state,
        **params
    )
