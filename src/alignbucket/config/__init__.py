from .pipeline_config import LoadPipelineConfig, PipelineConfig

__all__ = ["LoadPipelineConfig", "PipelineConfig"]
