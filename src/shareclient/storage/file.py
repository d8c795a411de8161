from __future__ import annotations
import typing as t

from .base import ShareItem, mutating_operation
from .endpoint import ItemKind
from .errors import InvalidArgumentError
from .names import validate_file_name
from .properties import FileProperties, PropertyTag, SMB_TAGS, CONTENT_TAGS

# 1 TiB
MAX_FILE_SIZE = 1 << 40


def _check_size(size: t.Optional[int]):
    if size is None or isinstance(size, bool) or not isinstance(size, int):
        raise InvalidArgumentError(f"File size must be an integer, found [{size!r}]", 1510)
    if size < 0 or size > MAX_FILE_SIZE:
        raise InvalidArgumentError(f"File size [{size}] must be between 0 and {MAX_FILE_SIZE} bytes", 1511)


class ShareFile(ShareItem):
    """A file in a share. Content transfer is not handled here."""

    kind = ItemKind.FILE
    properties_class = FileProperties
    logger_name = "shareclient.file"
    create_tags = SMB_TAGS + CONTENT_TAGS
    settable_tags = SMB_TAGS + CONTENT_TAGS

    properties: FileProperties

    def _validate_name(self):
        validate_file_name(self.name)

    @property
    def length(self) -> t.Optional[int]:
        return self.properties.length

    @mutating_operation("create")
    def create(self, size: int = 0):
        """Create the file with the given size, replacing any file already at this path."""
        _check_size(size)
        self._create({PropertyTag.LENGTH: size})

    @mutating_operation("resize")
    def resize(self, size: int):
        _check_size(size)
        self._breakpoint()
        self._log.debug(f"Resizing file [{self}] to [{size}] bytes")
        result = self.endpoint.resize_file(self.address, size)
        self.properties.update_confirmed(result)
