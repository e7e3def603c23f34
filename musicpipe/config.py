# musicpipe/config.py

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from musicpipe.data_eng.types import ColumnSpec, NUMERIC, CATEGORICAL
from musicpipe.models.config import ModelConfig

CLASSIFICATION = 'classification'
REGRESSION = 'regression'

TRANSFORM_METHODS = ('identity', 'log', 'sqrt', 'boxcox', 'yeojohnson')

AUDIO_FEATURES = [
    'acousticness', 'danceability', 'duration_ms', 'energy', 'instrumentalness',
    'liveness', 'loudness', 'speechiness', 'tempo', 'valence'
]
# features that live on [0, 1] in the Spotify audio feature API
UNIT_INTERVAL_FEATURES = [
    'acousticness', 'danceability', 'energy', 'instrumentalness',
    'liveness', 'speechiness', 'valence'
]

# collapse the raw genre strings into the buckets the classifier predicts
GENRE_BUCKETS = {
    'Rap': 'Hip-Hop/Rap',
    'Hip-Hop': 'Hip-Hop/Rap',
}


class PipelineConfig:
    """
    Configuration surface for one pipeline run.

    Defaults describe the genre classification run on the music_genre
    dataset; see popularity_config() for the Lasso popularity run.
    """
    def __init__(
        self,
        target_column: str = 'music_genre',
        task: str = CLASSIFICATION,
        feature_columns: Optional[List[str]] = None,
        categorical_columns: Optional[List[str]] = None,
        train_fraction: float = 0.7,
        seed: int = 123,
        # cleaning
        sentinels: Optional[Dict[str, Any]] = None,
        domain_rules: Optional[Dict[str, Tuple[Optional[float], Optional[float]]]] = None,
        na_values: Optional[List[str]] = None,
        drop_duplicates_on: Optional[List[str]] = None,
        missingness_policy: str = 'drop',   # 'drop' or 'impute'
        strict_missingness: bool = False,
        bias_alpha: float = 0.01,
        label_mapping: Optional[Dict[str, str]] = None,
        label_fallback: Optional[str] = 'Other',
        # outliers: column -> (low, high); None on either side derives it from the IQR
        outlier_columns: Optional[List[str]] = None,
        outlier_bounds: Optional[Dict[str, Tuple[Optional[float], Optional[float]]]] = None,
        outlier_whisker: float = 1.5,
        # transforms
        transform_candidates: Optional[Dict[str, List[str]]] = None,
        transform_overrides: Optional[Dict[str, str]] = None,
        transform_fit: str = 'train',      # 'train' or 'pre_split'
        # splitting
        stratify_bins: Optional[int] = None,
        model: Optional[ModelConfig] = None,
        verbose: bool = True,
    ):
        self.target_column = target_column
        self.task = task
        self.feature_columns = feature_columns if feature_columns is not None else list(AUDIO_FEATURES)
        self.categorical_columns = categorical_columns if categorical_columns is not None else ['key', 'mode']
        self.train_fraction = train_fraction
        self.seed = seed
        self.sentinels = sentinels if sentinels is not None else {'duration_ms': -1}
        self.domain_rules = domain_rules if domain_rules is not None else {
            c: (0.0, 1.0) for c in UNIT_INTERVAL_FEATURES
        }
        self.na_values = na_values if na_values is not None else ['?']
        self.drop_duplicates_on = drop_duplicates_on
        self.missingness_policy = missingness_policy
        self.strict_missingness = strict_missingness
        self.bias_alpha = bias_alpha
        self.label_mapping = label_mapping if label_mapping is not None else dict(GENRE_BUCKETS)
        self.label_fallback = label_fallback
        self.outlier_columns = outlier_columns if outlier_columns is not None else [
            'duration_ms', 'loudness', 'speechiness', 'liveness'
        ]
        self.outlier_bounds = outlier_bounds if outlier_bounds is not None else {}
        self.outlier_whisker = outlier_whisker
        self.transform_candidates = transform_candidates if transform_candidates is not None else {
            c: list(TRANSFORM_METHODS) for c in ['duration_ms', 'speechiness', 'liveness', 'acousticness']
        }
        # mostly zeros: log/Box-Cox are undefined and the skew objective is meaningless
        self.transform_overrides = transform_overrides if transform_overrides is not None else {
            'instrumentalness': 'identity'
        }
        self.transform_fit = transform_fit
        self.stratify_bins = stratify_bins
        self.model = model if model is not None else ModelConfig()
        self.verbose = verbose

        self.validate()

    def validate(self) -> None:
        if self.task not in (CLASSIFICATION, REGRESSION):
            raise ValueError(f"task must be '{CLASSIFICATION}' or '{REGRESSION}'")
        if not 0.0 < self.train_fraction < 1.0:
            raise ValueError("train_fraction must be strictly between 0 and 1.")
        if self.missingness_policy not in ('drop', 'impute'):
            raise ValueError("missingness_policy must be 'drop' or 'impute'")
        if self.transform_fit not in ('train', 'pre_split'):
            raise ValueError("transform_fit must be 'train' or 'pre_split'")
        if self.target_column in self.feature_columns or self.target_column in self.categorical_columns:
            raise ValueError(f"target '{self.target_column}' is also listed as a feature.")
        if not self.feature_columns and not self.categorical_columns:
            raise ValueError("at least one feature column is required.")
        overlap = set(self.feature_columns) & set(self.categorical_columns)
        if overlap:
            raise ValueError(f"columns declared both numeric and categorical: {sorted(overlap)}")
        for col, methods in self.transform_candidates.items():
            bad = [m for m in methods if m not in TRANSFORM_METHODS]
            if bad:
                raise ValueError(f"unknown transform(s) {bad} for '{col}'")
        for col, method in self.transform_overrides.items():
            if method not in TRANSFORM_METHODS:
                raise ValueError(f"unknown transform override '{method}' for '{col}'")

    @property
    def all_features(self) -> List[str]:
        return list(self.feature_columns) + list(self.categorical_columns)

    def schema(self) -> List[ColumnSpec]:
        specs = [ColumnSpec(c, NUMERIC) for c in self.feature_columns]
        specs += [ColumnSpec(c, CATEGORICAL) for c in self.categorical_columns]
        target_kind = NUMERIC if self.task == REGRESSION else CATEGORICAL
        specs.append(ColumnSpec(self.target_column, target_kind))
        return specs

    def to_dict(self) -> Dict:
        return {
            'target_column': self.target_column,
            'task': self.task,
            'feature_columns': self.feature_columns,
            'categorical_columns': self.categorical_columns,
            'train_fraction': self.train_fraction,
            'seed': self.seed,
            'sentinels': self.sentinels,
            'domain_rules': {k: list(v) for k, v in self.domain_rules.items()},
            'na_values': self.na_values,
            'drop_duplicates_on': self.drop_duplicates_on,
            'missingness_policy': self.missingness_policy,
            'strict_missingness': self.strict_missingness,
            'bias_alpha': self.bias_alpha,
            'label_mapping': self.label_mapping,
            'label_fallback': self.label_fallback,
            'outlier_columns': self.outlier_columns,
            'outlier_bounds': {k: list(v) for k, v in self.outlier_bounds.items()},
            'outlier_whisker': self.outlier_whisker,
            'transform_candidates': self.transform_candidates,
            'transform_overrides': self.transform_overrides,
            'transform_fit': self.transform_fit,
            'stratify_bins': self.stratify_bins,
            'model': self.model.to_dict(),
            'verbose': self.verbose,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PipelineConfig':
        kwargs = dict(data)
        if 'model' in kwargs and isinstance(kwargs['model'], dict):
            kwargs['model'] = ModelConfig.from_dict(kwargs['model'])
        for key in ('domain_rules', 'outlier_bounds'):
            if kwargs.get(key) is not None:
                kwargs[key] = {k: tuple(v) for k, v in kwargs[key].items()}
        unknown = set(kwargs) - set(cls().to_dict())
        if unknown:
            raise ValueError(f"unknown config keys: {sorted(unknown)}")
        return cls(**kwargs)

    @classmethod
    def from_json(cls, path: Path | str) -> 'PipelineConfig':
        import json
        with open(path, 'r') as f:
            return cls.from_dict(json.load(f))


def genre_config(**overrides: Any) -> PipelineConfig:
    """Logistic regression on the bucketed genre label."""
    return PipelineConfig(**overrides)


def popularity_config(**overrides: Any) -> PipelineConfig:
    """Lasso regression of the 0-100 popularity score on the audio features."""
    params: Dict[str, Any] = dict(
        target_column='popularity',
        task=REGRESSION,
        feature_columns=list(AUDIO_FEATURES),
        categorical_columns=['key', 'mode', 'time_signature'],
        drop_duplicates_on=['track_id'],
        label_mapping={},
        label_fallback=None,
        stratify_bins=5,
        model=ModelConfig(name='lasso_cv', cv_scheme='kfold', cv_folds=10),
    )
    params.update(overrides)
    return PipelineConfig(**params)


def preset_names() -> Sequence[str]:
    return ('genre', 'popularity')


def get_preset(name: str, **overrides: Any) -> PipelineConfig:
    presets = {'genre': genre_config, 'popularity': popularity_config}
    if name not in presets:
        raise ValueError(f"Unknown preset '{name}'. Known: {', '.join(preset_names())}")
    return presets[name](**overrides)
