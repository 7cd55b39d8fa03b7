"""Read versioned migrations from sources and apply them to databases."""

__version__ = "4.0.0"