"""Matching package for the FitPlan exercise library.

This package contains the text normalization, similarity scoring and
name matching used to resolve exercise and muscle names.
"""

__all__ = ["matching"]
