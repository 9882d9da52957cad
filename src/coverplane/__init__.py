"""Coverplane - multi-project coverage aggregation and publishing."""
