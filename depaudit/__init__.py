"""Static usage analysis of external dependencies in JavaScript/TypeScript projects."""

__version__ = "0.1.0"

__all__ = ["__version__"]
