import json
import pandas as pd
from pathlib import Path
from typing import Any, Dict, Optional

from musicpipe.config import PipelineConfig
from musicpipe.data_eng.types import CleaningReport, EvaluationResult, TransformDescriptor
from musicpipe.eval.metrics import flatten_metrics


def build_report(result: EvaluationResult,
                 conf: Optional[PipelineConfig] = None,
                 cleaning: Optional[CleaningReport] = None,
                 transforms: Optional[Dict[str, TransformDescriptor]] = None) -> Dict[str, Any]:
    """Boundary artifact of a run: metric name -> value plus the context that produced it."""
    report: Dict[str, Any] = {'result': result.to_dict()}
    if conf is not None:
        report['config'] = conf.to_dict()
    if cleaning is not None:
        report['cleaning'] = cleaning.to_dict()
    if transforms:
        report['transforms'] = {col: d.to_dict() for col, d in transforms.items()}
    return report


def dump_report(result: EvaluationResult, path: Path | str, **context) -> Path:
    _path = Path(path)
    _path.parent.mkdir(parents=True, exist_ok=True)
    with open(_path, 'w') as f:
        # NaN is not valid JSON; to_dict already maps it to null
        json.dump(build_report(result, **context), f, indent=2, default=str)
    return _path


def dump_csv_metrics(results: list[EvaluationResult], path: Path | str) -> Path:
    _path = Path(path)
    _path.parent.mkdir(parents=True, exist_ok=True)
    pd.DataFrame([flatten_metrics(r) for r in results]).to_csv(_path, index=False)
    return _path
