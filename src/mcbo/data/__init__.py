"""
mcbo.data
=========

submodule for handling objective function observations.

Includes:
- dataset: Dataset
"""

from .dataset import Dataset

__all__ = ["Dataset"]
