"""
Episode workflow exceptions.

Every error the orchestrator raises carries a stable ``code``, an HTTP status
and a ``retryable`` flag so the API layer can map it without inspection.
"""
from fastapi import HTTPException, status


class EpisodeError(Exception):
    """Base exception for episode workflow errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    retryable: bool = False

    def __init__(self, message: str, code: str = "EPISODE_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code,
            "retryable": self.retryable,
            "status_code": self.status_code,
        }

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.to_dict())


class InvalidPremiseError(EpisodeError):
    """Premise missing or outside the accepted length."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, length: int, minimum: int, maximum: int):
        super().__init__(
            message=f"Premise must be between {minimum} and {maximum} characters (got {length})",
            code="INVALID_PREMISE",
        )
        self.length = length


class InvalidChoiceError(EpisodeError):
    """Choice is not 'A' or 'B'."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, choice: str):
        super().__init__(message=f"Choice must be 'A' or 'B' (got {choice!r})", code="INVALID_CHOICE")
        self.choice = choice


class EpisodeNotFoundError(EpisodeError):
    """Episode does not exist (or is not visible to the caller)."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, episode_id: str):
        super().__init__(message=f"Episode not found: {episode_id}", code="EPISODE_NOT_FOUND")
        self.episode_id = episode_id


class SessionNotFoundError(EpisodeError):
    """No live session for the episode in this process."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, episode_id: str):
        super().__init__(
            message=f"No active session for episode {episode_id} - resume the episode first",
            code="SESSION_NOT_FOUND",
        )
        self.episode_id = episode_id


class MissingWorldBibleError(EpisodeError):
    """Scene generation attempted before a World Bible exists."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, episode_id: str = ""):
        super().__init__(
            message=f"World Bible required before scene generation (episode {episode_id or 'unknown'})",
            code="MISSING_WORLD_BIBLE",
        )
        self.episode_id = episode_id


class NoPregeneratedSceneError(EpisodeError):
    """The chosen option has not been pre-generated yet."""

    status_code = status.HTTP_409_CONFLICT
    retryable = True

    def __init__(self, episode_id: str, option: str):
        super().__init__(
            message=f"Scene for option {option} of episode {episode_id} is not ready yet",
            code="NO_PREGENERATED_SCENE",
        )
        self.episode_id = episode_id
        self.option = option


class InvalidStateError(EpisodeError):
    """Operation not allowed in the episode's current status."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, episode_id: str, current_status: str, operation: str):
        super().__init__(
            message=f"Cannot {operation}: episode {episode_id} is {current_status}",
            code="INVALID_STATE",
        )
        self.episode_id = episode_id
        self.current_status = current_status


class ConcurrentModificationError(EpisodeError):
    """Another operation on the same episode is in progress."""

    status_code = status.HTTP_409_CONFLICT
    retryable = True

    def __init__(self, episode_id: str, operation: str):
        super().__init__(
            message=f"Episode {episode_id} is busy - {operation} rejected",
            code="CONCURRENT_MODIFICATION",
        )
        self.episode_id = episode_id


class StaleStateUpdateError(EpisodeError):
    """State Tracker returned a summary that ignores the new scene."""

    status_code = status.HTTP_502_BAD_GATEWAY
    retryable = True

    def __init__(self, scene_number: int):
        super().__init__(
            message=f"State update for scene {scene_number} did not change the story summary",
            code="STALE_STATE_UPDATE",
        )
        self.scene_number = scene_number


class GenerationTimeoutError(EpisodeError):
    """An agent call exceeded the generation timeout."""

    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    retryable = True

    def __init__(self, operation: str, timeout_seconds: float):
        super().__init__(
            message=f"{operation} timed out after {timeout_seconds:.0f}s",
            code="GENERATION_TIMEOUT",
        )
        self.operation = operation
        self.timeout_seconds = timeout_seconds
