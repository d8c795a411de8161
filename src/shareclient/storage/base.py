from __future__ import annotations
import functools
import typing as t

import zrlog

from shareclient.util import HaltFlag
from .endpoint import ItemKind, ServiceEndpoint, ALL_HANDLES
from .errors import InvalidArgumentError, InvalidOperationError, NotFoundError
from .metadata import MetadataMap
from .paths import ShareAddress
from .properties import PropertySet, PropertyTag, DirectoryProperties, SMB_TAGS
from .segments import (
    SegmentKind, ContinuationToken, ResultSegment, CloseHandlesSegment, SegmentedEnumerator,
    check_token, check_page_size
)

if t.TYPE_CHECKING:
    from .share import ShareReference
    from .directory import ShareDirectory


def mutating_operation(name: str):
    """Reject the wrapped call when the owner is a read-only share snapshot."""

    def _decorator(cb):

        @functools.wraps(cb)
        def _inner(self, *args, **kwargs):
            if self.is_snapshot:
                raise InvalidOperationError(
                    f"Operation [{name}] is not supported against a share snapshot",
                    1600,
                    error_code="CannotModifyShareSnapshot"
                )
            return cb(self, *args, **kwargs)

        return _inner

    return _decorator


class ShareItem:
    """Common behaviour of directories and files within a share.

        A node is only an address plus locally staged state. Building one never
        calls the service; the remote resource may or may not exist.
    """

    kind: ItemKind = None
    properties_class: type[PropertySet] = DirectoryProperties
    logger_name: str = "shareclient.item"

    # Properties sent on create and on set_properties
    create_tags: tuple[PropertyTag, ...] = SMB_TAGS
    settable_tags: tuple[PropertyTag, ...] = SMB_TAGS

    def __init__(self, share: ShareReference, address: ShareAddress, halt_flag: HaltFlag = None):
        self.share = share
        self.address = address
        self.properties = self.properties_class()
        self.metadata = MetadataMap()
        self._halt_flag = halt_flag if halt_flag is not None else share.halt_flag
        self._log = zrlog.get_logger(self.logger_name)

    def __str__(self):
        return self.path()

    def __repr__(self):
        return f"{self.__class__.__name__}({self.uri!r})"

    def __eq__(self, other):
        if not isinstance(other, ShareItem):
            return NotImplemented
        return self.kind == other.kind and self.share == other.share and self.address == other.address

    def __hash__(self):
        return hash((self.kind, self.share, self.address))

    @property
    def endpoint(self) -> ServiceEndpoint:
        return self.share.endpoint

    @property
    def is_snapshot(self) -> bool:
        return self.share.is_snapshot

    @property
    def name(self) -> str:
        return self.address.name

    @property
    def uri(self) -> str:
        return self.address.uri

    @property
    def parent(self) -> t.Optional[ShareDirectory]:
        """The directory holding this item, or None for the share root."""
        parent_address = self.address.parent()
        if parent_address is None:
            return None
        return self.share.directory_at(parent_address, halt_flag=self._halt_flag)

    def path(self) -> str:
        """Get a string representation of this item that could be used to rebuild it."""
        return self.uri

    @property
    def file_permission(self) -> t.Optional[str]:
        """Literal SDDL permission to send with the next create or set_properties call."""
        return self.properties.pending(PropertyTag.PERMISSION)

    @file_permission.setter
    def file_permission(self, permission: t.Optional[str]):
        self.properties.stage(PropertyTag.PERMISSION, permission)

    def _breakpoint(self):
        if self._halt_flag is not None:
            self._halt_flag.check_continue(True)

    def _validate_name(self):
        raise NotImplementedError

    def _outgoing_properties(self, tags: t.Iterable[PropertyTag]) -> dict[PropertyTag, t.Any]:
        values = self.properties.pending_values(tags)
        if PropertyTag.PERMISSION in values and PropertyTag.PERMISSION_KEY in values:
            raise InvalidArgumentError(
                f"Only one of file permission or permission key may be set on [{self}]",
                1500
            )
        return values

    def _create(self, extra_properties: t.Optional[dict[PropertyTag, t.Any]] = None):
        if not self.address.is_root:
            self._validate_name()
        properties = self._outgoing_properties(self.create_tags)
        if extra_properties:
            properties.update(extra_properties)
        self.metadata.validate()
        self._breakpoint()
        self._log.debug(f"Creating {self.kind.value} [{self}]")
        result = self.endpoint.create_resource(self.address, self.kind, properties, self.metadata.to_dict())
        self.properties.commit_from_server(result)

    @mutating_operation("delete")
    def delete(self):
        """Remove the item. Directories must be empty."""
        self._breakpoint()
        self._log.debug(f"Deleting {self.kind.value} [{self}]")
        self.endpoint.delete_resource(self.address, self.kind)

    @mutating_operation("delete")
    def delete_if_exists(self) -> bool:
        try:
            self.delete()
            return True
        except NotFoundError:
            self._log.debug(f"{self.kind.value.capitalize()} [{self}] does not exist, nothing to delete")
            return False

    def exists(self) -> bool:
        """Check if the item exists, refreshing properties and metadata when it does."""
        try:
            self.fetch_attributes()
            return True
        except NotFoundError:
            self._log.debug(f"{self.kind.value.capitalize()} [{self}] does not exist")
            return False

    def fetch_attributes(self):
        """Replace the confirmed properties and metadata with the service's view."""
        self._breakpoint()
        self._log.debug(f"Fetching attributes of {self.kind.value} [{self}]")
        properties, metadata = self.endpoint.fetch_resource(self.address, self.kind, self.share.snapshot)
        self.properties.commit_from_server(properties, replace=True)
        self.metadata.replace_from_server(metadata)

    @mutating_operation("set_properties")
    def set_properties(self):
        """Send the staged properties; anything not staged keeps its value on the service."""
        properties = self._outgoing_properties(self.settable_tags)
        self._breakpoint()
        self._log.debug(f"Setting properties [{','.join(x.value for x in properties)}] on {self.kind.value} [{self}]")
        result = self.endpoint.set_properties(self.address, self.kind, properties)
        self.properties.commit_from_server(result)

    @mutating_operation("set_metadata")
    def set_metadata(self):
        """Replace all metadata on the service with the local map."""
        self.metadata.validate()
        self._breakpoint()
        self._log.debug(f"Setting [{len(self.metadata)}] metadata entries on {self.kind.value} [{self}]")
        result = self.endpoint.set_metadata(self.address, self.kind, self.metadata.to_dict())
        self.properties.update_confirmed({
            x: result[x]
            for x in (PropertyTag.ETAG, PropertyTag.LAST_MODIFIED)
            if x in result
        })

    def list_handles_segmented(self,
                               token: t.Optional[ContinuationToken] = None,
                               page_size: t.Optional[int] = None,
                               recursive: bool = False) -> ResultSegment:
        marker = check_token(token, SegmentKind.HANDLES)
        check_page_size(page_size)
        self._breakpoint()
        self._log.debug(f"Listing open handles on {self.kind.value} [{self}]")
        handles, next_marker = self.endpoint.list_open_handles(
            self.address,
            self.kind,
            marker=marker,
            page_size=page_size,
            recursive=recursive,
            snapshot=self.share.snapshot
        )
        return ResultSegment(list(handles), ContinuationToken.from_marker(SegmentKind.HANDLES, next_marker))

    def list_handles(self, page_size: t.Optional[int] = None, recursive: bool = False) -> SegmentedEnumerator:
        """Iterate over every open handle, one page per round trip."""
        return SegmentedEnumerator(
            lambda token, size: self.list_handles_segmented(token, size, recursive),
            SegmentKind.HANDLES,
            page_size=page_size,
            halt_flag=self._halt_flag
        )

    @mutating_operation("close_handles")
    def close_all_handles_segmented(self,
                                    token: t.Optional[ContinuationToken] = None,
                                    recursive: bool = False) -> CloseHandlesSegment:
        return self._close_handles_segment(ALL_HANDLES, token, recursive)

    @mutating_operation("close_handle")
    def close_handle_segmented(self,
                               handle_id: str,
                               token: t.Optional[ContinuationToken] = None) -> CloseHandlesSegment:
        if handle_id is None or handle_id == "":
            raise InvalidArgumentError("Handle id may not be empty", 1501)
        return self._close_handles_segment(handle_id, token, False)

    def _close_handles_segment(self, handle_id: str, token: t.Optional[ContinuationToken], recursive: bool) -> CloseHandlesSegment:
        marker = check_token(token, SegmentKind.CLOSE_HANDLES)
        self._breakpoint()
        self._log.debug(f"Closing handle [{handle_id}] on {self.kind.value} [{self}]")
        closed, next_marker = self.endpoint.close_handles(
            self.address,
            self.kind,
            handle_id,
            marker=marker,
            recursive=recursive
        )
        return CloseHandlesSegment(
            results=[],
            continuation_token=ContinuationToken.from_marker(SegmentKind.CLOSE_HANDLES, next_marker),
            num_handles_closed=closed
        )

    @mutating_operation("close_handles")
    def close_all_handles(self, recursive: bool = False) -> int:
        """Close every open handle and return how many were closed."""
        return self._drive_close(lambda token, _: self.close_all_handles_segmented(token, recursive))

    @mutating_operation("close_handle")
    def close_handle(self, handle_id: str) -> int:
        return self._drive_close(lambda token, _: self.close_handle_segmented(handle_id, token))

    def _drive_close(self, fetch) -> int:
        total = 0
        for segment in SegmentedEnumerator(fetch, SegmentKind.CLOSE_HANDLES, halt_flag=self._halt_flag).pages():
            total += segment.num_handles_closed
        return total
