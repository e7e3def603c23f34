import numpy as np
import pandas as pd
import pytest
from sklearn.linear_model import LassoCV, LogisticRegression, LogisticRegressionCV
from sklearn.model_selection import GridSearchCV, KFold, LeaveOneOut, RepeatedKFold, StratifiedKFold

from musicpipe.config import CLASSIFICATION, REGRESSION
from musicpipe.errors import UnknownModelError
from musicpipe.models.config import LASSO_ALPHAS, ModelConfig
from musicpipe.models.registry import MODEL_BUILDERS, MODELS, MODEL_TASKS, build_cv, build_model, fit_model, tuned_params


class TestModelConfig:
    def test_unknown_scheme(self) -> None:
        with pytest.raises(ValueError):
            ModelConfig(cv_scheme="bootstrap")

    def test_folds_must_be_k_fold(self) -> None:
        with pytest.raises(ValueError):
            ModelConfig(cv_folds=1)

    def test_round_trip(self) -> None:
        mc = ModelConfig(name="knn_cv", search_grid={"n_neighbors": [3, 5]}, cv_folds=4)
        assert ModelConfig.from_dict(mc.to_dict()) == mc


class TestBuildCV:
    def test_folds_mean_k(self) -> None:
        cv = build_cv(ModelConfig(cv_scheme="kfold", cv_folds=10))
        assert isinstance(cv, KFold)
        assert cv.get_n_splits() == 10

    def test_leave_one_out_only_when_asked(self) -> None:
        assert isinstance(build_cv(ModelConfig(cv_scheme="loo")), LeaveOneOut)
        assert isinstance(build_cv(ModelConfig(cv_scheme="stratified_kfold")), StratifiedKFold)

    def test_repeated(self) -> None:
        cv = build_cv(ModelConfig(cv_scheme="repeated_kfold", cv_folds=3, cv_repeats=2))
        assert isinstance(cv, RepeatedKFold)
        assert cv.get_n_splits() == 6


class TestBuildModel:
    def test_registry_tables_agree(self) -> None:
        assert set(MODEL_BUILDERS) == set(MODELS) == set(MODEL_TASKS)

    @pytest.mark.parametrize("name, cls", [
        ("logreg", LogisticRegression),
        ("logreg_cv", LogisticRegressionCV),
        ("knn_cv", GridSearchCV),
    ])
    def test_classifiers(self, name, cls) -> None:
        assert isinstance(build_model(ModelConfig(name=name), CLASSIFICATION), cls)

    def test_lasso_cv_uses_configured_folds(self) -> None:
        model = build_model(ModelConfig(name="lasso_cv", cv_scheme="kfold", cv_folds=10), REGRESSION)
        assert isinstance(model, LassoCV)
        assert model.cv.get_n_splits() == 10

    def test_unknown_model(self) -> None:
        with pytest.raises(UnknownModelError, match="logreg"):
            build_model(ModelConfig(name="svm"))

    def test_task_mismatch(self) -> None:
        with pytest.raises(ValueError):
            build_model(ModelConfig(name="lasso", cv_scheme="kfold"), CLASSIFICATION)

    def test_stratified_cv_needs_labels(self) -> None:
        with pytest.raises(ValueError):
            build_model(ModelConfig(name="lasso_cv", cv_scheme="stratified_kfold"), REGRESSION)

    def test_search_grid_passed_through(self) -> None:
        model = build_model(ModelConfig(name="logreg_cv", search_grid={"C": [0.1, 1.0]}))
        assert list(model.Cs) == [0.1, 1.0]


class TestFitModel:
    def test_empty_training_partition(self) -> None:
        with pytest.raises(ValueError):
            fit_model(pd.DataFrame({"x": []}), pd.Series([], dtype=float), ModelConfig(name="lasso", cv_scheme="kfold"))

    def test_tuned_alpha_reported(self) -> None:
        rng = np.random.default_rng(8)
        X = pd.DataFrame({"a": rng.normal(size=80), "b": rng.normal(size=80)})
        y = 3 * X["a"] + rng.normal(0, 0.5, 80)
        model = fit_model(X, y, ModelConfig(name="lasso_cv", cv_scheme="kfold", cv_folds=5), REGRESSION)
        params = tuned_params(model)
        assert params["alpha"] in LASSO_ALPHAS

    def test_knn_search_reports_k(self) -> None:
        rng = np.random.default_rng(9)
        X = pd.DataFrame({"a": rng.normal(size=60)})
        y = pd.Series(np.where(X["a"] > 0, "hi", "lo"))
        mc = ModelConfig(name="knn_cv", search_grid={"n_neighbors": [3, 5]}, cv_folds=3)
        params = tuned_params(fit_model(X, y, mc, CLASSIFICATION))
        assert params["n_neighbors"] in (3, 5)

    def test_untuned_model_has_no_params(self) -> None:
        assert tuned_params(LogisticRegression()) == {}
