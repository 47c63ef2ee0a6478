class AnalysisError(Exception):
    pass


class InvalidSnapshot(AnalysisError):
    """A required numeric field is missing, negative or not finite."""


class InsufficientHistory(AnalysisError):
    """Not enough candles to compute indicators."""


class ConfigurationError(AnalysisError):
    """Scoring weights or thresholds are inconsistent."""
