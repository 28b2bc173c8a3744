"""AutoDup command line interface."""
from autodup import __version__

__all__ = ["__version__"]
