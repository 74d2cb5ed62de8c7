"""Exceptions for the inbox engine."""


class InboxError(Exception):
    """Base exception for inbox errors."""

    pass


class SourceUnavailableError(InboxError):
    """Raised when one of the backing stores fails to respond."""

    def __init__(self, source: str, reason: str = ""):
        self.source = source
        self.reason = reason
        message = f"Source '{source}' is unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class SendFailureError(InboxError):
    """Raised when an outgoing message could not be persisted."""

    pass


class StaleWriteError(InboxError):
    """A remote snapshot would regress a locally confirmed status."""

    pass


class OwnershipMismatchError(InboxError):
    """A chat room's receiver is not the current user. Logged, never surfaced."""

    def __init__(self, room_id: str, receiver_id: str, current_user_id: str):
        self.room_id = room_id
        self.receiver_id = receiver_id
        self.current_user_id = current_user_id
        super().__init__(
            f"Chat room '{room_id}' belongs to '{receiver_id}', "
            f"not '{current_user_id}'"
        )


class MalformedRecordError(InboxError):
    """Raised when an inquiry or message is missing required fields."""

    pass


class ChatRoomNotFoundError(InboxError):
    """Raised when a chat room does not exist."""

    def __init__(self, room_id: str):
        self.room_id = room_id
        super().__init__(f"Chat room '{room_id}' does not exist")
