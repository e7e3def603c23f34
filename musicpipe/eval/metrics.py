from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple
from sklearn.metrics import (
    accuracy_score,
    average_precision_score,
    confusion_matrix,
    f1_score,
    mean_absolute_error,
    precision_score,
    recall_score,
    roc_auc_score,
)
from sklearn.preprocessing import label_binarize

import numpy as np
import pandas as pd

from musicpipe.config import CLASSIFICATION, REGRESSION
from musicpipe.data_eng.types import EvaluationResult

ArrayLike1D = Sequence[Any] | np.ndarray | pd.Series

CLASSIFICATION_METRICS = ['accuracy', 'precision_macro', 'recall_macro', 'f1_macro', 'auprc', 'roc_auc']
REGRESSION_METRICS = ['r2', 'r2_vs_train_mean', 'mse', 'rmse', 'mae']


def r_squared(y_true: ArrayLike1D, y_pred: ArrayLike1D, baseline: Optional[float] = None) -> float:
    """
    1 - SSE/SST. SST is taken around `baseline` (e.g. the training mean) when
    given, otherwise around the mean of y_true. NaN when SST is zero or
    there is nothing to score.
    """
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)
    if y_true.ndim != 1 or y_pred.ndim != 1:
        raise ValueError("y_true and y_pred must be 1D.")
    if len(y_true) != len(y_pred):
        raise ValueError("Lengths must match.")
    if y_true.size == 0:
        return float('nan')

    center = float(y_true.mean()) if baseline is None else float(baseline)
    sst = float(np.sum((y_true - center) ** 2))
    sse = float(np.sum((y_true - y_pred) ** 2))
    if sst == 0:
        return float('nan')
    return 1.0 - sse / sst


def regression_metrics(y_true: ArrayLike1D,
                       y_pred: ArrayLike1D,
                       train_mean: Optional[float] = None) -> Dict[str, float]:
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)
    if y_true.size == 0:
        return {k: float('nan') for k in REGRESSION_METRICS}

    mse = float(np.mean((y_true - y_pred) ** 2))
    return {
        'r2': r_squared(y_true, y_pred),
        'r2_vs_train_mean': r_squared(y_true, y_pred, baseline=train_mean) if train_mean is not None else float('nan'),
        'mse': mse,
        'rmse': float(np.sqrt(mse)),
        'mae': float(mean_absolute_error(y_true, y_pred)),
    }


def classification_metrics(y_true: ArrayLike1D,
                           y_predictions: ArrayLike1D,
                           y_score: Optional[np.ndarray] = None,
                           classes: Optional[Sequence[Any]] = None,
                           positive_label: Any = None) -> Tuple[Dict[str, float], np.ndarray, List[Any]]:
    """
    Held-out classification metrics.

    Args:
        y_true: ground truth labels.
        y_predictions: predicted labels.
        y_score: predict_proba output, columns ordered as `classes`.
        classes: label order of the model (model.classes_).
        positive_label: class treated as positive for binary AUPRC / ROC AUC.
            Defaults to the second entry of `classes`.

    Returns:
        (metrics, confusion matrix, labels used for the confusion matrix).
        Metrics that cannot be computed (empty partition, a single class in
        y_true) are NaN rather than raising.
    """
    y_true = np.asarray(y_true)
    y_pred = np.asarray(y_predictions)
    if y_true.ndim != 1 or y_pred.ndim != 1:
        raise ValueError("y_true and y_pred must be 1D.")
    if len(y_true) != len(y_pred):
        raise ValueError("Lengths must match.")

    labels = list(classes) if classes is not None else sorted(set(y_true) | set(y_pred))
    metrics: Dict[str, float] = {k: float('nan') for k in CLASSIFICATION_METRICS}
    if y_true.size == 0:
        return metrics, np.zeros((len(labels), len(labels)), dtype=int), labels

    metrics['accuracy'] = float(accuracy_score(y_true, y_pred))
    metrics['precision_macro'] = float(precision_score(y_true, y_pred, labels=labels, average='macro', zero_division=0))
    metrics['recall_macro'] = float(recall_score(y_true, y_pred, labels=labels, average='macro', zero_division=0))
    metrics['f1_macro'] = float(f1_score(y_true, y_pred, labels=labels, average='macro', zero_division=0))

    per_precision = precision_score(y_true, y_pred, labels=labels, average=None, zero_division=0)
    per_recall = recall_score(y_true, y_pred, labels=labels, average=None, zero_division=0)
    for label, p, r in zip(labels, per_precision, per_recall):
        metrics[f'precision_{label}'] = float(p)
        metrics[f'recall_{label}'] = float(r)

    if y_score is not None and len(set(y_true)) > 1:
        score = np.asarray(y_score, dtype=float)
        if len(labels) == 2:
            pos = labels[1] if positive_label is None else positive_label
            pos_score = score[:, labels.index(pos)] if score.ndim == 2 else score
            y_bin = (y_true == pos).astype(int)
            metrics['auprc'] = float(average_precision_score(y_bin, pos_score))
            try:
                metrics['roc_auc'] = float(roc_auc_score(y_bin, pos_score))
            except ValueError:
                metrics['roc_auc'] = float('nan')
        else:
            Y = label_binarize(y_true, classes=labels)
            present = Y.sum(axis=0) > 0
            metrics['auprc'] = float(average_precision_score(Y[:, present], score[:, present], average='macro'))
            try:
                metrics['roc_auc'] = float(roc_auc_score(y_true, score, multi_class='ovr', labels=labels))
            except ValueError:
                metrics['roc_auc'] = float('nan')

    cm = confusion_matrix(y_true=y_true, y_pred=y_pred, labels=labels)
    return metrics, cm, labels


def evaluate(model: Any,
             X_test: pd.DataFrame,
             y_test: pd.Series,
             task: str,
             y_train: Optional[pd.Series] = None,
             probability: bool = True,
             model_name: str = '',
             n_train: int = 0,
             leakage_risk: bool = False,
             model_params: Optional[Dict[str, Any]] = None) -> EvaluationResult:
    """
    Score a fitted model on the held-out partition only. y_train is used for
    the training-mean R² baseline and the minority (positive) class, never
    for fitting.
    """
    n_test = int(len(X_test))
    confusion = None
    labels: List[Any] = []

    if task == REGRESSION:
        train_mean = float(np.mean(y_train)) if y_train is not None and len(y_train) else None
        y_pred = model.predict(X_test) if n_test else np.array([])
        metrics = regression_metrics(y_test, y_pred, train_mean=train_mean)
    elif task == CLASSIFICATION:
        classes = list(getattr(model, 'classes_', []))
        y_pred = model.predict(X_test) if n_test else np.array([])
        y_score = None
        if probability and n_test and hasattr(model, 'predict_proba'):
            y_score = model.predict_proba(X_test)
        positive = _minority_label(y_train, classes) if len(classes) == 2 else None
        metrics, confusion, labels = classification_metrics(
            y_test, y_pred, y_score, classes=classes or None, positive_label=positive
        )
    else:
        raise ValueError(f"Unknown task '{task}'")

    undefined = tuple(k for k, v in metrics.items() if pd.isna(v))
    return EvaluationResult(
        task=task,
        metrics=metrics,
        undefined=undefined,
        n_train=n_train if n_train else (len(y_train) if y_train is not None else 0),
        n_test=n_test,
        model_name=model_name,
        confusion=confusion,
        labels=tuple(labels),
        leakage_risk=leakage_risk,
        model_params=dict(model_params or {}),
    )


def _minority_label(y_train: Optional[pd.Series], classes: List[Any]) -> Any:
    if y_train is None or len(y_train) == 0:
        return classes[1]
    counts = pd.Series(y_train).value_counts()
    # ties keep the model's second class
    return min(classes, key=lambda c: (counts.get(c, 0), -classes.index(c)))


def flatten_metrics(result: EvaluationResult) -> dict:
    row: Dict[str, Any] = {
        "model": result.model_name,
        "task": result.task,
        "n_train": result.n_train,
        "n_test": result.n_test,
        "leakage_risk": result.leakage_risk,
    }
    row.update(result.metrics)
    row["undefined"] = ";".join(result.undefined)
    return row


def format_metrics(result: EvaluationResult) -> str:
    """
    Build a nicely formatted string from an EvaluationResult.
    """
    lines: list[str] = []
    lines.append("=" * 60)
    lines.append("MODEL EVALUATION SUMMARY")
    lines.append(f"Model: {result.model_name}  task: {result.task}")
    lines.append(f"Train rows: {result.n_train}  Test rows: {result.n_test}")
    if result.model_params:
        lines.append(f"Tuned params: {result.model_params}")
    if result.leakage_risk:
        lines.append("WARNING: transforms were fit before the split (leakage risk)")
    lines.append("=" * 60)

    headline = CLASSIFICATION_METRICS if result.task == CLASSIFICATION else REGRESSION_METRICS
    for k in headline:
        v = result.metrics.get(k, float('nan'))
        shown = "undefined" if k in result.undefined else f"{v:.4f}"
        lines.append(f"{k:>18}: {shown}")

    per_class = [k for k in result.metrics if k not in headline]
    if per_class:
        lines.append("-" * 60)
        for k in per_class:
            v = result.metrics[k]
            shown = "undefined" if k in result.undefined else f"{v:.4f}"
            lines.append(f"{k:>18}: {shown}")

    # Confusion matrix
    if result.confusion is not None and np.asarray(result.confusion).size:
        lines.append("-" * 60)
        lines.append("Confusion matrix")
        labels = [str(label) for label in result.labels]
        df_cm = pd.DataFrame(np.asarray(result.confusion),
                             index=pd.Index([f"Actual {label}" for label in labels], name=""),
                             columns=[f"Pred {label}" for label in labels])
        lines.append(df_cm.to_string())

    lines.append("=" * 60)
    return "\n".join(lines)


def print_metrics(result: EvaluationResult) -> None:
    """Print the formatted metrics summary."""
    print(format_metrics(result))
