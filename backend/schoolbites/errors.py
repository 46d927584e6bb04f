# Overview: Error taxonomy shared by services and routes.

"""
Every error raised on purpose by the service layer derives from
SchoolBitesError and carries the HTTP status the routes answer with.
"""


class SchoolBitesError(Exception):
    """Base class for expected, user-displayable failures."""
    status_code = 500


class InvalidInputError(SchoolBitesError, ValueError):
    """400-level input problem (malformed dates, negative counts, ...)."""
    status_code = 400


class UnauthenticatedError(SchoolBitesError):
    status_code = 401


class PermissionDeniedError(SchoolBitesError):
    """Record exists but belongs to someone else."""
    status_code = 403


class NotFoundError(SchoolBitesError):
    status_code = 404


class DataIntegrityError(SchoolBitesError):
    """Stored data breaks an invariant (duplicate session id, missing order link)."""
    status_code = 409
