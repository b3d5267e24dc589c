"""BIM2SE: BIM to structural engineering geometry pipeline."""

from .config import ConfigError, PipelineConfig, default_config, load_config
from .manifest import Artifact, PipelineReport
from .pipeline import Bim2sePipeline, run_pipeline

__version__ = "0.1.0"
__all__ = [
    "ConfigError", "PipelineConfig", "default_config", "load_config",
    "Artifact", "PipelineReport",
    "Bim2sePipeline", "run_pipeline",
]
