"""batchrefiner: refine registry-granted files in concurrent batches."""

from batchrefiner.version import __version__

__all__ = ["__version__"]
