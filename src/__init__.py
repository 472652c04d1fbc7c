"""cacheplan: dated build cache keys with fallback restore for CI pipelines."""

from cacheplan.version import __version__

__all__ = ["__version__"]
