
from sklearn.linear_model import LogisticRegression, LogisticRegressionCV

from musicpipe.models.config import DEFAULT_RANDOM_STATE, LR_CS


def basic_lr(C: float = 1.0, random_state: int = DEFAULT_RANDOM_STATE, **params) -> LogisticRegression:
    reg_model = LogisticRegression(
        C=C,
        solver='lbfgs',
        max_iter=2000,
        class_weight="balanced",
        random_state=random_state,
        **params
    )
    return reg_model


def basic_lr_cv(
        cv,
        Cs: list[float] = LR_CS,
        scoring: str = 'neg_log_loss',
        solver: str = 'lbfgs',
        max_iter: int = 5000,
        random_state: int = DEFAULT_RANDOM_STATE,
        n_jobs: int | None = None,
        **params
          ) -> LogisticRegressionCV:
    """Logistic regression with the inverse regularization strength tuned over Cs."""
    return LogisticRegressionCV(
        Cs=Cs,
        cv=cv,
        scoring=scoring,
        solver=solver,
        class_weight="balanced",
        max_iter=max_iter,
        n_jobs=n_jobs,
        random_state=random_state,
        **params
    )
