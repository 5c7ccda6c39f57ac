"""
Typed failures of the engagement engine.

Each carries the HTTP status the API answers with and a stable machine code.
"""


class EngagementError(Exception):
    """Base class for every caller-visible engagement failure"""
    status_code = 400
    code = "engagement_error"


class ForbiddenError(EngagementError):
    """Actor lacks the role or ownership the operation requires"""
    status_code = 403
    code = "forbidden"


class InvalidTransitionError(EngagementError):
    """Requested status change is not reachable from the current status"""
    status_code = 409
    code = "invalid_transition"


class ConflictError(EngagementError):
    """Concurrent mutation lost the compare-and-swap, or a duplicate live record exists"""
    status_code = 409
    code = "conflict"


class NotFoundError(EngagementError):
    status_code = 404
    code = "not_found"


class ValidationError(EngagementError):
    """Malformed or incomplete payload"""
    status_code = 422
    code = "validation_error"


class RosterError(EngagementError):
    """A membership change would break the team roster invariant"""
    status_code = 422
    code = "roster_violation"


class CreatorCannotLeaveError(RosterError):
    code = "creator_cannot_leave"


class LastLeadError(RosterError):
    code = "last_lead"


class MinimumTeamSizeError(RosterError):
    code = "minimum_team_size"
