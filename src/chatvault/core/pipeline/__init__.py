"""
Stage pipeline used by the capture batch job.
"""

from .pipeline import FAILED, Pipeline, PipelineResult, PipelineStage, StageResult

__all__ = ["FAILED", "Pipeline", "PipelineStage", "PipelineResult", "StageResult"]
