from __future__ import annotations
import csv
import io
import numpy as np
import pandas as pd
from pathlib import Path
from typing import IO, Iterable, List, Optional, Sequence, Tuple, Union

from musicpipe.data_eng.types import ColumnSpec, NUMERIC
from musicpipe.errors import FormatError

Source = Union[str, Path, IO[str], pd.DataFrame]


def read_dataset(source: Source,
                 schema: Optional[Sequence[ColumnSpec]] = None,
                 na_values: Optional[Iterable[str]] = None,
                 **kwargs) -> pd.DataFrame:
    """
    Reads a delimited file (header row required) into a DataFrame.

    Args:
        source: path, open text buffer, or an already-loaded DataFrame.
        schema: declared columns; every one must be present and numeric
            columns are coerced to numbers (unparseable tokens become NaN).
        na_values: extra tokens to read as missing, e.g. '?'.
        **kwargs: passed through to pd.read_csv.

    Raises:
        FormatError: a record has a different field count than the header,
            the source has no header/rows, or a declared column is missing.
    """
    if isinstance(source, pd.DataFrame):
        df = source.copy()
        if na_values:
            df = df.replace(list(na_values), np.nan)
    else:
        text = _read_text(source)
        _check_field_counts(text, delimiter=kwargs.get('sep', ','))
        kwargs.setdefault('on_bad_lines', 'error')
        if na_values:
            kwargs['na_values'] = list(na_values)
        try:
            df = pd.read_csv(io.StringIO(text), **kwargs)
        except pd.errors.ParserError as e:
            raise FormatError(f"Inconsistent column count in {source}: {e}") from e
        except pd.errors.EmptyDataError as e:
            raise FormatError(f"No columns to parse in {source}") from e

    # normalize header whitespace to avoid surprises
    df.columns = [str(c).strip() for c in df.columns]
    if df.columns.duplicated().any():
        dupes = sorted(set(df.columns[df.columns.duplicated()]))
        raise FormatError(f"Duplicate column names: {dupes}")

    if schema is not None:
        df = validate_schema(df, schema)
    return df


def validate_schema(df: pd.DataFrame, schema: Sequence[ColumnSpec]) -> pd.DataFrame:
    missing = [spec.name for spec in schema if spec.name not in df.columns]
    if missing:
        raise FormatError(f"Missing declared column(s): {missing}")

    out = df.copy()
    for spec in schema:
        if spec.kind == NUMERIC:
            out[spec.name] = pd.to_numeric(out[spec.name], errors='coerce')
    return out


def require_columns(df: pd.DataFrame, columns: Iterable[str]) -> List[str]:
    cols = list(columns)
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise FormatError(f"Missing column(s): {missing}")
    return cols


def get_X_y(df: pd.DataFrame,
            y_col: str,
            feature_cols: Sequence[str]) -> Tuple[pd.DataFrame, pd.Series]:
    """Select named feature columns and the target; never by position."""
    require_columns(df, list(feature_cols) + [y_col])
    X = df[list(feature_cols)].copy()
    y = df[y_col].copy()
    return X, y


def _read_text(source: Union[str, Path, IO[str]]) -> str:
    if hasattr(source, 'read'):
        return source.read()
    with open(source, 'r', newline='') as f:
        return f.read()


def _check_field_counts(text: str, delimiter: str = ',') -> None:
    # pandas pads short records with NaN; we want those rejected too
    reader = csv.reader(io.StringIO(text), delimiter=delimiter)
    header = next(reader, None)
    if not header:
        raise FormatError("Input has no header row.")
    names = [h.strip() for h in header]
    dupes = sorted({n for n in names if names.count(n) > 1})
    if dupes:
        raise FormatError(f"Duplicate column names: {dupes}")
    for line_no, record in enumerate(reader, start=2):
        if not record:
            continue
        if len(record) != len(header):
            raise FormatError(
                f"Line {line_no} has {len(record)} fields, header has {len(header)}."
            )
