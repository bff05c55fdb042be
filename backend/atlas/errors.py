"""Domain exceptions raised by the services and mapped to HTTP in main.py."""


class AtlasError(Exception):
    """Base class for every error the API reports with a structured body."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# ── 4xx ──────────────────────────────────────────────────────────────────────

class ValidationError(AtlasError):
    status_code = 400
    code = "validation_error"


class InvalidInput(ValidationError):
    pass


class UnsupportedFormat(ValidationError):
    status_code = 415
    code = "unsupported_format"


class EmptyDocument(ValidationError):
    status_code = 422
    code = "empty_document"


class TooLarge(ValidationError):
    status_code = 413
    code = "too_large"


class NotFoundError(AtlasError):
    status_code = 404
    code = "not_found"


class GameNotFound(NotFoundError):
    def __init__(self, game_id: int):
        super().__init__(f"Game with id {game_id} not found")
        self.game_id = game_id


class HouseRuleNotFound(NotFoundError):
    def __init__(self, house_rule_id: int):
        super().__init__(f"House rule with id {house_rule_id} not found")
        self.house_rule_id = house_rule_id


class SessionNotFound(NotFoundError):
    def __init__(self, session_id: int):
        super().__init__(f"Chat session with id {session_id} not found")
        self.session_id = session_id


# ── Upstream model services ──────────────────────────────────────────────────

class UpstreamServiceError(AtlasError):
    status_code = 502
    code = "upstream_unavailable"

    def __init__(self, message: str, timed_out: bool = False):
        super().__init__(message)
        self.timed_out = timed_out
        if timed_out:
            self.status_code = 504
            self.code = "upstream_timeout"


class EmbeddingServiceUnavailable(UpstreamServiceError):
    pass


class GenerationFailed(UpstreamServiceError):
    pass


# ── Storage ──────────────────────────────────────────────────────────────────

class PersistenceError(AtlasError):
    status_code = 500
    code = "persistence_error"
