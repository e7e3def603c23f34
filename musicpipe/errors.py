# musicpipe/errors.py

from __future__ import annotations
from typing import Iterable, List


class MusicPipeError(ValueError):
    """Base class for every error raised by the pipeline."""


class FormatError(MusicPipeError):
    """Input does not have a uniform, declared schema."""


class DegenerateColumnError(MusicPipeError):
    """A column with zero variance was handed to the standardizer."""

    def __init__(self, columns: Iterable[str]):
        self.columns: List[str] = list(columns)
        super().__init__(
            f"Cannot standardize constant column(s): {', '.join(self.columns)}. "
            "Exclude them from the numeric feature list."
        )


class TransformDomainError(MusicPipeError):
    """A transform was applied to values outside its domain (e.g. log of 0)."""


class MissingnessBiasError(MusicPipeError):
    """Missing rows are associated with the target; dropping them would bias the sample."""


class PipelineStageError(MusicPipeError):
    """A pipeline stage was called before its predecessor completed."""


class UnknownModelError(MusicPipeError):
    pass


class LabelImbalanceWarning(UserWarning):
    """A label group is too small to split at the requested fraction."""


class MissingnessBiasWarning(UserWarning):
    pass
