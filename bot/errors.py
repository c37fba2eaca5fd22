"""
bot/errors.py - Bot exception hierarchy.

Every exception carries a `message_key` from the message catalog, so the
dispatcher can turn it into a localized reply, plus a `technical_detail`
that only goes to the logs.

    BotError
    ├── AuthorizationError     sender not allowed (generic notice, WARNING)
    ├── PolicyRejection        group policy sink (silent, DEBUG)
    ├── ValidationError        bad user input (specific notice)
    │   └── AudioValidationError
    ├── ResourceError          download / transcode / cleanup
    │   ├── DownloadError
    │   └── TranscodingError
    ├── BackendError           speech or proofreading service
    │   ├── TranscriptionError
    │   └── ProofreadingError
    └── FatalProcessError      fault outside any event scope
"""


class BotError(Exception):
    """Base class. `message_key` is looked up in the message catalog."""

    message_key = "error_processing"

    def __init__(
        self,
        technical_detail: str = "",
        *,
        message_key: str | None = None,
        params: dict | None = None,
    ):
        if message_key is not None:
            self.message_key = message_key
        self.technical_detail = technical_detail
        self.params = params or {}
        super().__init__(technical_detail or self.message_key)


class AuthorizationError(BotError):
    message_key = "not_authorized"


class PolicyRejection(BotError):
    message_key = ""


class ValidationError(BotError):
    message_key = "error_processing"


class AudioValidationError(ValidationError):
    """Attachment is missing, too large or in an unsupported format."""


class ResourceError(BotError):
    message_key = "error_processing"


class DownloadError(ResourceError):
    pass


class TranscodingError(ResourceError):
    pass


class BackendError(BotError):
    message_key = "error_processing"


class TranscriptionError(BackendError):
    """The speech backend failed; `technical_detail` holds its message."""


class ProofreadingError(BackendError):
    pass


class FatalProcessError(BotError):
    pass
