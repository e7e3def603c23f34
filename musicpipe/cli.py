# musicpipe/cli.py
from __future__ import annotations

import argparse
import difflib
import sys
import textwrap
import warnings
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Optional

from musicpipe.config import PipelineConfig, get_preset, preset_names
from musicpipe.data_eng.pipeline import run_stages
from musicpipe.errors import LabelImbalanceWarning, MissingnessBiasWarning, MusicPipeError
from musicpipe.eval.export import dump_report
from musicpipe.eval.metrics import print_metrics
from musicpipe.models.registry import MODEL_TASKS, MODELS


@dataclass(frozen=True)
class CLIConfig:
    data: Path
    pipeline: PipelineConfig
    report: Optional[Path] = None


def _validate_model(value: str, available: Dict[str, str]) -> str:
    v = value.strip()
    if v in available:
        return v
    # Suggest closest matches
    suggestions = difflib.get_close_matches(v, list(available.keys()), n=3, cutoff=0.5)
    hint = f" Did you mean: {', '.join(suggestions)}?" if suggestions else ""
    raise argparse.ArgumentTypeError(f"Unknown model '{v}'.{hint}")


def _fraction(value: str) -> float:
    try:
        f = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"'{value}' is not a number")
    if not 0.0 < f < 1.0:
        raise argparse.ArgumentTypeError("train fraction must be strictly between 0 and 1")
    return f


def _models_as_text(available: Dict[str, str]) -> str:
    # Pretty list: left-align model key, wrap descriptions
    lines = ["Available models:\n"]
    max_key = max((len(k) for k in available), default=0)
    width = 88
    for name in sorted(available):
        desc = available[name].strip()
        prefix = f"  {name.ljust(max_key)}  "
        wrapped = textwrap.fill(desc, width=width, subsequent_indent=" " * len(prefix))
        lines.append(prefix + wrapped)
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="musicpipe",
        description="Clean, transform, split, standardize, fit and evaluate a tabular music dataset."
    )
    parser.add_argument("--data", type=Path, help="CSV file with a header row.")
    parser.add_argument("--preset", choices=list(preset_names()), default="genre",
                        help="Starting configuration (default: genre).")
    parser.add_argument("--config", type=Path, help="JSON file with PipelineConfig fields; replaces --preset.")
    parser.add_argument("--model", help="Model identifier (see --list-models).")
    parser.add_argument("--target", help="Target column override.")
    parser.add_argument("--train-fraction", type=_fraction, help="Share of each label group used for training.")
    parser.add_argument("--seed", type=int, help="Seed for the stratified split.")
    parser.add_argument("--report", type=Path, help="Write a JSON metric report here.")
    parser.add_argument("--quiet", action="store_true", help="Only print the final summary.")
    parser.add_argument("--list-models", action="store_true", help="List available models and exit.")
    return parser


def parse_cli_args(argv: list[str] | None = None) -> CLIConfig:
    """
    Parse command-line args into a CLIConfig.
    Also supports --list-models to print available models and exit.
    """
    parser = build_parser()
    ns = parser.parse_args(argv)

    if ns.list_models:
        print(_models_as_text(MODELS))
        sys.exit(0)

    if not ns.data:
        parser.error("the following arguments are required: --data (or use --list-models)")

    if ns.model:
        try:
            _validate_model(ns.model, MODELS)
        except argparse.ArgumentTypeError as e:
            parser.error(str(e))

    try:
        conf = PipelineConfig.from_json(ns.config) if ns.config else get_preset(ns.preset)
        overrides = conf.to_dict()
        overrides['model'] = conf.model
        if ns.model:
            overrides['model'] = replace(conf.model, name=ns.model)
        if ns.target:
            overrides['target_column'] = ns.target
        if ns.train_fraction is not None:
            overrides['train_fraction'] = ns.train_fraction
        if ns.seed is not None:
            overrides['seed'] = ns.seed
        if ns.quiet:
            overrides['verbose'] = False
        conf = PipelineConfig.from_dict(overrides)
    except (OSError, ValueError) as e:
        parser.error(str(e))

    if MODEL_TASKS.get(conf.model.name, conf.task) != conf.task:
        parser.error(f"model '{conf.model.name}' cannot be used for a {conf.task} target.")

    return CLIConfig(data=ns.data, pipeline=conf, report=ns.report)


def main(argv: list[str] | None = None) -> int:
    cfg = parse_cli_args(argv)
    try:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", LabelImbalanceWarning)
            warnings.simplefilter("always", MissingnessBiasWarning)
            state = run_stages(cfg.data, cfg.pipeline)
    except (MusicPipeError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    for w in caught:
        print(f"[WARN] {w.category.__name__}: {w.message}", file=sys.stderr)

    print_metrics(state.result)
    if cfg.report:
        path = dump_report(state.result, cfg.report, conf=cfg.pipeline,
                           cleaning=state.cleaning, transforms=state.transforms)
        print(f"saved: {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
