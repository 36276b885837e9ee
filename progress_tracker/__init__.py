from __future__ import annotations

__version__ = "0.1.0"

from .tracker import CycleResult, ProgressTracker

__all__ = ["CycleResult", "ProgressTracker", "__version__"]
