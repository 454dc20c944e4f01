# ABOUTME: Domain exceptions shared by the store, API routes and UI workspace.
# ABOUTME: All subclass ValueError so callers that only expect bad-input errors still catch them.


class NotFoundError(ValueError):
    """The requested row does not exist for this user."""


class ConfirmationRequired(ValueError):
    """A destructive-feeling action was requested without explicit user confirmation."""


class DuplicateIdError(ValueError):
    """A client-supplied id is already taken."""
