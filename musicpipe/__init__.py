from musicpipe.config import PipelineConfig, genre_config, popularity_config
from musicpipe.data_eng.pipeline import run_pipeline, run_stages
from musicpipe.models.config import ModelConfig

__version__ = "0.1.0"

__all__ = [
    "PipelineConfig",
    "ModelConfig",
    "genre_config",
    "popularity_config",
    "run_pipeline",
    "run_stages",
]
