"""Pipeline module for Singalong."""

from singalong.pipeline.base import PipelineStage
from singalong.pipeline.orchestrator import Pipeline, create_default_pipeline

__all__ = ["Pipeline", "PipelineStage", "create_default_pipeline"]
