class PortalError(Exception):
    """Base class for errors surfaced to the user."""


class FormValidationError(PortalError):
    """Input rejected before any network call was made."""


class ActionInProgress(PortalError):
    """The same mutation is already in flight."""


class RequestFailed(PortalError):
    """The gateway returned an error or could not be reached."""
