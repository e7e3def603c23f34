from __future__ import annotations
from typing import Any, Dict, List, Optional

from sklearn.model_selection import GridSearchCV
from sklearn.neighbors import KNeighborsClassifier

from musicpipe.models.config import KNN_NEIGHBORS


def basic_knn(n_neighbors: int = 5, **params) -> KNeighborsClassifier:
    return KNeighborsClassifier(n_neighbors=n_neighbors, **params)


def build_knn_search(
    cv,
    param_grid: Optional[Dict[str, List[Any]]] = None,
    scoring: str = 'accuracy',
    n_jobs: Optional[int] = None,
    **params
) -> GridSearchCV:
    """
    Returns a GridSearchCV over KNeighborsClassifier. The default grid tunes
    k only, which is what the notebooks resampled over.
    """
    grid = param_grid if param_grid is not None else {'n_neighbors': KNN_NEIGHBORS}

    search = GridSearchCV(
        estimator=KNeighborsClassifier(**params),
        param_grid=grid,
        scoring=scoring,
        cv=cv,
        refit=True,
        n_jobs=n_jobs,
    )
    return search
