"""minirt: a miniature blockchain-style runtime."""

__version__ = "0.1.0"
