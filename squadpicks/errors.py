"""
Error kinds raised by the pick lifecycle.

Validator errors go straight back to the caller. The grading conditions
(GameNotCompletedError, AlreadyGradedError) are swallowed and counted by the
grading sweep.
"""


class PickError(Exception):
    """Base class for every pick lifecycle error"""

    code = "pick_error"
    status_code = 400

    def __init__(self, message=None, **details):
        self.message = message or self.__doc__
        self.details = details
        super().__init__(self.message)

    def to_dict(self):
        data = {"error": self.code, "message": self.message}
        if self.details:
            data["details"] = {k: str(v) for k, v in self.details.items()}
        return data


class LockedWindowError(PickError):
    """Picks for this week are not open"""

    code = "locked_window"
    status_code = 409


class InvalidPickCountError(PickError):
    """A pick set must contain exactly three picks"""

    code = "invalid_pick_count"


class DuplicateGameError(PickError):
    """The same game was picked more than once"""

    code = "duplicate_game"


class InvalidChoiceError(PickError):
    """A pick choice must be 'home' or 'away'"""

    code = "invalid_choice"


class GameNotFoundError(PickError):
    """Game not found"""

    code = "game_not_found"
    status_code = 404


class WeekMismatchError(PickError):
    """Game does not belong to the requested week"""

    code = "week_mismatch"


class AlreadySubmittedError(PickError):
    """Picks for this week were already submitted"""

    code = "already_submitted"
    status_code = 409


class LineUnavailableError(PickError):
    """No spread is available for this game yet"""

    code = "line_unavailable"
    status_code = 409


class GameNotCompletedError(PickError):
    """Game has no final result yet"""

    code = "game_not_completed"
    status_code = 409


class AlreadyGradedError(PickError):
    """Pick has already been graded"""

    code = "already_graded"
    status_code = 409

    def __init__(self, message=None, grade=None, **details):
        super().__init__(message, **details)
        self.grade = grade


class WeekNotCompleteError(PickError):
    """Week still has games without a final result"""

    code = "week_not_complete"
    status_code = 409
