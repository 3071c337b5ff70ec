"""Exception hierarchy for dwight.

Backend and transport failures move a chat session into its error state;
persistence failures are reported as status messages and leave the session
untouched. A missing model is not an exception: it is a session state.
"""


class DwightError(Exception):
    """Base class for all dwight errors."""


class BackendError(DwightError):
    """Failure talking to the inference backend."""


class BackendUnreachable(BackendError):
    """The backend API could not be reached at the transport level."""


class RequestFailed(BackendError):
    """A backend call returned a non-success status or failed mid-flight."""


class PullError(BackendError):
    """Base class for model pull failures."""


class PullFailed(PullError):
    """The pull request was rejected or could not be issued."""


class PullTimeout(PullError):
    """The model did not appear in the registry before the deadline."""


class StreamError(BackendError):
    """Failure consuming a streamed reply."""


class StreamTruncated(StreamError):
    """The stream ended without a terminal ``done`` record."""


class PersistenceError(DwightError):
    """Conversation file could not be read, written or parsed."""


class ConversationNotFound(PersistenceError):
    """No conversation file exists for the requested id."""


class ValidationError(DwightError):
    """Input rejected locally before any request is issued."""


class InvalidTransition(DwightError):
    """Operation not permitted in the session's current state."""
