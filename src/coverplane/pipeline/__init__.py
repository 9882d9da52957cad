"""End-to-end coverage aggregation."""

from coverplane.pipeline.models import PipelineSummary, RunStatus
from coverplane.pipeline.ops import CoveragePipeline, version_name

__all__ = ["CoveragePipeline", "PipelineSummary", "RunStatus", "version_name"]
