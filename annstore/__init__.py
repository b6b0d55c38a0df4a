"""In-memory storage of typed arrays, categorical arrays and data frames, with lazily loaded elements."""

__version__ = "0.1.0"