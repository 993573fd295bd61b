"""
Error taxonomy of the behavioral engine.

Public service operations convert these into {"success": False, ...} results;
`code` is the stable identifier reported alongside the message.
"""


class BehavioralAnalysisError(Exception):
    """Base class for behavioral engine errors"""

    code = "Internal"


class NotInitializedError(BehavioralAnalysisError):
    """Durable store unavailable or engine not initialized"""

    code = "NotInitialized"

    def __init__(self, message: str = "Behavioral analysis not initialized"):
        super().__init__(message)


class InsufficientDataError(BehavioralAnalysisError):
    """Fewer observations than an analysis requires"""

    code = "InsufficientData"


class NotFoundError(BehavioralAnalysisError):
    code = "NotFound"


class PersistenceError(BehavioralAnalysisError):
    """A durable read or write failed"""

    code = "PersistenceFailure"


class ProcessingError(BehavioralAnalysisError):
    """Folding an event into its profile failed"""

    code = "ProcessingFailure"
