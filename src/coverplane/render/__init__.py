"""Report rendering boundary."""

from coverplane.render.ops import LCOV_NAME, SUMMARY_NAME, ReportRenderer

__all__ = ["LCOV_NAME", "SUMMARY_NAME", "ReportRenderer"]
