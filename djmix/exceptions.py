"""Custom exceptions for djmix."""


class DJMixError(Exception):
    """Base error carrying a machine-readable code."""

    code = "DJ_MIX_ERROR"

    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class MixAnalysisError(DJMixError):
    """Raised when a track cannot be analyzed for mixing."""

    code = "DJ_MIX_ANALYSIS_ERROR"


class TransitionPlanError(DJMixError):
    """Raised when a transition between two tracks cannot be built."""

    code = "TRANSITION_PLAN_ERROR"


class DJSetError(DJMixError):
    """Raised when a set is requested with fewer than two tracks."""

    code = "DJ_SET_ERROR"


class DJSetPlanningError(DJMixError):
    """Raised when set planning fails."""

    code = "DJ_SET_PLANNING_ERROR"


class NoSessionError(DJMixError):
    code = "DJ_NO_SESSION"


class NoCurrentSongError(DJMixError):
    code = "DJ_NO_CURRENT_SONG"


class NoAnalysisError(DJMixError):
    code = "DJ_NO_ANALYSIS"


class QueueError(DJMixError):
    """Raised when a queue mutation fails."""

    code = "DJ_QUEUE_ERROR"


class DuplicateSongError(QueueError):
    """Raised when the duplicate policy rejects a track."""

    code = "DUPLICATE_SONG"


class AutoMixError(DJMixError):
    """Base for auto-mix planning failures."""

    pass


class NoCandidatesError(AutoMixError):
    code = "DJ_AUTO_MIX_NO_CANDIDATES"


class InsufficientSongsError(AutoMixError):
    code = "DJ_AUTO_MIX_INSUFFICIENT_SONGS"


class InsufficientFilteredError(AutoMixError):
    code = "DJ_AUTO_MIX_INSUFFICIENT_FILTERED"
