"""fitlink: resilient client for the exercise-analysis backend."""

__version__ = "0.1.0"
