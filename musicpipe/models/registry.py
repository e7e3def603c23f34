from __future__ import annotations

from typing import Any, Callable, Dict
import pandas as pd
from sklearn.model_selection import (
    KFold,
    LeaveOneOut,
    RepeatedKFold,
    RepeatedStratifiedKFold,
    StratifiedKFold,
)

from musicpipe.config import CLASSIFICATION, REGRESSION
from musicpipe.errors import UnknownModelError
from musicpipe.models.config import ModelConfig
from musicpipe.models.knn import basic_knn, build_knn_search
from musicpipe.models.lasso import basic_lasso, lasso_cv
from musicpipe.models.logistic_regression import basic_lr, basic_lr_cv


def build_cv(mc: ModelConfig):
    """Resampling splitter for tuning; shuffled and seeded so runs repeat."""
    if mc.cv_scheme == 'loo':
        return LeaveOneOut()
    if mc.cv_scheme == 'kfold':
        return KFold(n_splits=mc.cv_folds, shuffle=True, random_state=mc.random_state)
    if mc.cv_scheme == 'stratified_kfold':
        return StratifiedKFold(n_splits=mc.cv_folds, shuffle=True, random_state=mc.random_state)
    if mc.cv_scheme == 'repeated_kfold':
        return RepeatedKFold(n_splits=mc.cv_folds, n_repeats=mc.cv_repeats, random_state=mc.random_state)
    return RepeatedStratifiedKFold(n_splits=mc.cv_folds, n_repeats=mc.cv_repeats, random_state=mc.random_state)


def _logreg(mc: ModelConfig) -> Any:
    return basic_lr(random_state=mc.random_state, **mc.params)


def _logreg_cv(mc: ModelConfig) -> Any:
    grid = mc.search_grid or {}
    kwargs: Dict[str, Any] = dict(mc.params)
    if 'C' in grid:
        kwargs['Cs'] = grid['C']
    if mc.scoring:
        kwargs['scoring'] = mc.scoring
    return basic_lr_cv(cv=build_cv(mc), random_state=mc.random_state, n_jobs=mc.n_jobs, **kwargs)


def _knn(mc: ModelConfig) -> Any:
    return basic_knn(**mc.params)


def _knn_cv(mc: ModelConfig) -> Any:
    return build_knn_search(
        cv=build_cv(mc),
        param_grid=mc.search_grid,
        scoring=mc.scoring or 'accuracy',
        n_jobs=mc.n_jobs,
        **mc.params
    )


def _lasso(mc: ModelConfig) -> Any:
    return basic_lasso(random_state=mc.random_state, **mc.params)


def _lasso_cv(mc: ModelConfig) -> Any:
    grid = mc.search_grid or {}
    return lasso_cv(
        cv=build_cv(mc),
        alphas=grid.get('alpha'),
        random_state=mc.random_state,
        n_jobs=mc.n_jobs,
        **mc.params
    )


# Constructor registry; add new models here
MODEL_BUILDERS: Dict[str, Callable[[ModelConfig], Any]] = {
    'logreg': _logreg,
    'logreg_cv': _logreg_cv,
    'knn': _knn,
    'knn_cv': _knn_cv,
    'lasso': _lasso,
    'lasso_cv': _lasso_cv,
}
MODELS = {
    'logreg': 'lbfgs logistic regression, l2 penalty, balanced classes, C=1',
    'logreg_cv': 'logistic regression with C tuned by cross validation (neg log loss)',
    'knn': 'k-nearest-neighbours classifier, k=5',
    'knn_cv': 'k-nearest-neighbours with k tuned by grid search over the resampling scheme',
    'lasso': 'Lasso regression, alpha=0.1',
    'lasso_cv': 'Lasso regression with alpha tuned by k-fold cross validation',
}
MODEL_TASKS = {
    'logreg': CLASSIFICATION,
    'logreg_cv': CLASSIFICATION,
    'knn': CLASSIFICATION,
    'knn_cv': CLASSIFICATION,
    'lasso': REGRESSION,
    'lasso_cv': REGRESSION,
}


def build_model(mc: ModelConfig, task: str | None = None) -> Any:
    try:
        builder = MODEL_BUILDERS[mc.name]
    except KeyError as e:
        known = ", ".join(sorted(MODEL_BUILDERS))
        raise UnknownModelError(f"Unknown model '{mc.name}'. Known: {known}") from e
    if task is not None and MODEL_TASKS[mc.name] != task:
        raise ValueError(f"Model '{mc.name}' is a {MODEL_TASKS[mc.name]} model, run task is {task}.")
    if mc.cv_scheme.startswith(('stratified', 'repeated_stratified')) and MODEL_TASKS[mc.name] == REGRESSION:
        raise ValueError(f"cv_scheme '{mc.cv_scheme}' needs class labels; use 'kfold' for {mc.name}.")
    return builder(mc)


def fit_model(X_train: pd.DataFrame, y_train: pd.Series, mc: ModelConfig, task: str | None = None) -> Any:
    """Build the configured estimator and fit it on the training partition only."""
    if len(X_train) == 0:
        raise ValueError("Cannot fit a model on an empty training partition.")
    model = build_model(mc, task)
    model.fit(X_train, y_train)
    return model


def tuned_params(model: Any) -> Dict[str, Any]:
    """Hyperparameters picked by the resampling search, if any."""
    if hasattr(model, 'best_params_'):
        return dict(model.best_params_)
    if hasattr(model, 'C_'):
        return {'C': float(model.C_[0])}
    if hasattr(model, 'alpha_'):
        return {'alpha': float(model.alpha_)}
    return {}
