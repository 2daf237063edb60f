"""FitCoach smart notification scheduler."""

__version__ = "0.1.0"
