"""Error kinds surfaced by the share client.

Locally detectable problems (bad names, bad metadata, writes against a
snapshot) are raised before the endpoint is called. Errors reported by the
endpoint are raised as the matching kind and never retried here.
"""
import enum
import typing as t

from shareclient.util import ShareClientError


class ErrorStatus(enum.Enum):
    """Abstract status attached to a storage error, modelled on HTTP codes."""

    TRANSPORT = 0
    UNUSED = 306
    BAD_REQUEST = 400
    NOT_FOUND = 404
    CONFLICT = 409
    PRECONDITION_FAILED = 412


class StorageError(ShareClientError):
    """Error class specifically for share storage errors."""

    default_status = ErrorStatus.BAD_REQUEST

    def __init__(self,
                 msg: str,
                 code: int,
                 error_code: t.Optional[str] = None,
                 status: t.Optional[ErrorStatus] = None,
                 is_recoverable: bool = False):
        super().__init__(msg, "SHARE", code, is_recoverable=is_recoverable)
        self.error_code = error_code
        self.status = status or self.default_status


class InvalidArgumentError(StorageError, ValueError):
    pass


class NotFoundError(StorageError):

    default_status = ErrorStatus.NOT_FOUND


class ParentNotFoundError(NotFoundError):

    def __init__(self, msg: str, code: int, error_code: str = "ParentNotFound", **kwargs):
        super().__init__(msg, code, error_code, **kwargs)


class ConflictError(StorageError):

    default_status = ErrorStatus.CONFLICT


class PreconditionFailedError(StorageError):

    default_status = ErrorStatus.PRECONDITION_FAILED


class InvalidOperationError(StorageError):
    pass


class TransportError(StorageError):

    default_status = ErrorStatus.TRANSPORT
