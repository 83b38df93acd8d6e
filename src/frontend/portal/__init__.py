"""Client-side state for the compliance portal UI."""

from .errors import PortalError, FormValidationError, ActionInProgress, RequestFailed

__all__ = ["PortalError", "FormValidationError", "ActionInProgress", "RequestFailed"]
