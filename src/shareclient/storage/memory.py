"""In-process file share service.

InMemoryFileService keeps the same rules as the real service for namespace
operations: parents must exist, non-empty directories cannot be deleted,
snapshots are frozen copies, and so on. It is used by the test suite and
through the memory:// scheme of the ShareController.
"""
from __future__ import annotations
import copy
import datetime
import functools
import threading
import typing as t

import zirconium as zr
import zrlog
from autoinject import injector

from .endpoint import ItemKind, ChildEntry, FileHandle, ALL_HANDLES
from .errors import StorageError, NotFoundError, ParentNotFoundError, ConflictError, ErrorStatus
from .paths import ShareAddress
from .properties import PropertyTag, NtfsAttributes, CONTENT_TAGS

DEFAULT_PERMISSION = "O:SYG:SYD:(A;;FA;;;WD)"

MAX_FILE_SIZE = 1 << 40


class _Resource:

    def __init__(self, name: str, kind: ItemKind, properties: dict, metadata: dict):
        self.name = name
        self.kind = kind
        self.properties = properties
        self.metadata = metadata
        self.children: dict[str, _Resource] = {}
        self.handles: list[FileHandle] = []

    def descendants(self) -> t.Iterable[_Resource]:
        yield self
        for key in sorted(self.children):
            yield from self.children[key].descendants()


class _ShareState:

    def __init__(self, share_uri: str, root: _Resource):
        self.share_uri = share_uri
        self.root = root
        self.permissions: dict[str, str] = {}
        self.default_permission_key: t.Optional[str] = None
        self.snapshots: dict[str, _Resource] = {}


def _round_trip(cb):
    """Serialize access to the service state and count the request."""

    @functools.wraps(cb)
    def _inner(self, *args, **kwargs):
        with self._lock:
            self.request_count += 1
            return cb(self, *args, **kwargs)

    return _inner


class InMemoryFileService:
    """A complete file share service held in memory. Safe to share across threads."""

    config: zr.ApplicationConfig = None

    @injector.construct
    def __init__(self):
        self._lock = threading.RLock()
        self._shares: dict[str, _ShareState] = {}
        self._id_counter = 0
        self._last_time: t.Optional[datetime.datetime] = None
        self.request_count = 0
        self.max_page_size = self.config.as_int(("shareclient", "memory", "max_page_size"), default=5000)
        self._log = zrlog.get_logger("shareclient.memory")

    def _next_id(self) -> int:
        self._id_counter += 1
        return self._id_counter

    def _now(self) -> datetime.datetime:
        now = datetime.datetime.now(datetime.timezone.utc)
        if self._last_time is not None and now <= self._last_time:
            now = self._last_time + datetime.timedelta(microseconds=1)
        self._last_time = now
        return now

    def _new_etag(self) -> str:
        return f'"0x{self._next_id():016X}"'

    def _share(self, share_uri: str) -> _ShareState:
        key = share_uri.rstrip('/')
        if key not in self._shares:
            raise NotFoundError(f"The specified share does not exist [{key}]", 2000, error_code="ShareNotFound")
        return self._shares[key]

    def _tree(self, share_uri: str, snapshot: t.Optional[str] = None) -> _Resource:
        share = self._share(share_uri)
        if snapshot is None:
            return share.root
        if snapshot not in share.snapshots:
            raise NotFoundError(f"The specified share snapshot does not exist [{snapshot}]", 2001, error_code="ShareNotFound")
        return share.snapshots[snapshot]

    @staticmethod
    def _parent_directory(root: _Resource, address: ShareAddress) -> _Resource:
        current = root
        for segment in address.segments[:-1]:
            current = current.children.get(segment.lower())
            if current is None or current.kind != ItemKind.DIRECTORY:
                raise ParentNotFoundError(f"The specified parent path does not exist [{address.uri}]", 2002)
        return current

    def _existing(self, root: _Resource, address: ShareAddress, kind: ItemKind) -> _Resource:
        if address.is_root:
            if kind != ItemKind.DIRECTORY:
                raise NotFoundError(f"The specified resource does not exist [{address.uri}]", 2003, error_code="ResourceNotFound")
            return root
        parent = self._parent_directory(root, address)
        resource = parent.children.get(address.name.lower())
        if resource is None or resource.kind != kind:
            raise NotFoundError(f"The specified resource does not exist [{address.uri}]", 2003, error_code="ResourceNotFound")
        return resource

    @staticmethod
    def _check_metadata(metadata: dict[str, str]):
        for key in metadata:
            if not key or not metadata[key]:
                raise StorageError(
                    f"Metadata entry [{key}] must have a non-empty key and value",
                    2004,
                    error_code="EmptyMetadataKey",
                    status=ErrorStatus.UNUSED
                )

    @staticmethod
    def _check_size(size):
        if size < 0 or size > MAX_FILE_SIZE:
            raise StorageError(f"File size [{size}] is out of range", 2005, error_code="OutOfRangeInput")

    def _store_permission(self, share: _ShareState, permission: str) -> str:
        for key in share.permissions:
            if share.permissions[key] == permission:
                return key
        key = f"{self._next_id():020d}*{len(share.permissions)}"
        share.permissions[key] = permission
        return key

    def _permission_key(self, share: _ShareState, properties: dict) -> t.Optional[str]:
        if PropertyTag.PERMISSION in properties and PropertyTag.PERMISSION_KEY in properties:
            raise StorageError("File permission and permission key cannot both be specified", 2006, error_code="InvalidHeaderValue")
        if PropertyTag.PERMISSION in properties:
            return self._store_permission(share, properties[PropertyTag.PERMISSION])
        if PropertyTag.PERMISSION_KEY in properties:
            key = properties[PropertyTag.PERMISSION_KEY]
            if key not in share.permissions:
                raise StorageError(f"File permission key [{key}] does not exist", 2007, error_code="InvalidHeaderValue")
            return key
        return None

    def _new_properties(self, share: _ShareState, kind: ItemKind, given: dict, parent: t.Optional[_Resource]) -> dict:
        now = self._now()
        default_attributes = NtfsAttributes.DIRECTORY if kind == ItemKind.DIRECTORY else NtfsAttributes.ARCHIVE
        properties = {
            PropertyTag.CREATION_TIME: given.get(PropertyTag.CREATION_TIME, now),
            PropertyTag.LAST_WRITE_TIME: given.get(PropertyTag.LAST_WRITE_TIME, now),
            PropertyTag.CHANGE_TIME: now,
            PropertyTag.NTFS_ATTRIBUTES: given.get(PropertyTag.NTFS_ATTRIBUTES, default_attributes),
            PropertyTag.PERMISSION_KEY: self._permission_key(share, given) or share.default_permission_key,
            PropertyTag.FILE_ID: str(self._next_id()),
            PropertyTag.PARENT_ID: parent.properties[PropertyTag.FILE_ID] if parent is not None else "0",
            PropertyTag.ETAG: self._new_etag(),
            PropertyTag.LAST_MODIFIED: now,
        }
        if kind == ItemKind.FILE:
            properties[PropertyTag.LENGTH] = given.get(PropertyTag.LENGTH, 0)
            for tag in CONTENT_TAGS:
                if tag in given:
                    properties[tag] = given[tag]
        return properties

    def _touch(self, resource: _Resource):
        now = self._now()
        resource.properties[PropertyTag.CHANGE_TIME] = now
        resource.properties[PropertyTag.LAST_MODIFIED] = now
        resource.properties[PropertyTag.ETAG] = self._new_etag()

    @_round_trip
    def create_share(self, share_uri: str):
        key = share_uri.rstrip('/')
        if key in self._shares:
            raise ConflictError(f"The specified share already exists [{key}]", 2010, error_code="ShareAlreadyExists")
        share = _ShareState(key, None)
        share.default_permission_key = self._store_permission(share, DEFAULT_PERMISSION)
        share.root = _Resource("", ItemKind.DIRECTORY, self._new_properties(share, ItemKind.DIRECTORY, {}, None), {})
        self._shares[key] = share
        self._log.debug(f"Created in-memory share [{key}]")

    @_round_trip
    def delete_share(self, share_uri: str, snapshot: t.Optional[str] = None):
        share = self._share(share_uri)
        if snapshot is not None:
            if snapshot not in share.snapshots:
                raise NotFoundError(f"The specified share snapshot does not exist [{snapshot}]", 2001, error_code="ShareNotFound")
            del share.snapshots[snapshot]
        else:
            del self._shares[share.share_uri]

    @_round_trip
    def share_exists(self, share_uri: str, snapshot: t.Optional[str] = None) -> bool:
        key = share_uri.rstrip('/')
        if key not in self._shares:
            return False
        return snapshot is None or snapshot in self._shares[key].snapshots

    @_round_trip
    def snapshot_share(self, share_uri: str) -> str:
        share = self._share(share_uri)
        snapshot = self._now().strftime("%Y-%m-%dT%H:%M:%S.%f0Z")
        frozen = copy.deepcopy(share.root)
        # Open handles belong to the live share only
        for resource in frozen.descendants():
            resource.handles = []
        share.snapshots[snapshot] = frozen
        return snapshot

    @_round_trip
    def create_permission(self, share_uri: str, permission: str) -> str:
        return self._store_permission(self._share(share_uri), permission)

    @_round_trip
    def create_resource(self, address: ShareAddress, kind: ItemKind, properties: dict, metadata: dict[str, str]) -> dict:
        share = self._share(address.share_uri)
        if address.is_root:
            raise ConflictError(f"The specified resource already exists [{address.uri}]", 2011, error_code="ResourceAlreadyExists")
        parent = self._parent_directory(share.root, address)
        existing = parent.children.get(address.name.lower())
        if existing is not None and existing.kind != kind:
            raise ConflictError(f"The specified resource type does not match [{address.uri}]", 2012, error_code="ResourceTypeMismatch")
        if existing is not None and kind == ItemKind.DIRECTORY:
            raise ConflictError(f"The specified resource already exists [{address.uri}]", 2011, error_code="ResourceAlreadyExists")
        if kind == ItemKind.FILE:
            self._check_size(properties.get(PropertyTag.LENGTH, 0))
        self._check_metadata(metadata)
        resource = _Resource(
            address.name,
            kind,
            self._new_properties(share, kind, properties, parent),
            dict(metadata)
        )
        parent.children[address.name.lower()] = resource
        return dict(resource.properties)

    @_round_trip
    def delete_resource(self, address: ShareAddress, kind: ItemKind):
        share = self._share(address.share_uri)
        if address.is_root:
            raise StorageError(f"The root directory cannot be deleted [{address.uri}]", 2013, error_code="InvalidResourceName")
        resource = self._existing(share.root, address, kind)
        if resource.children:
            raise ConflictError(f"The specified directory is not empty [{address.uri}]", 2014, error_code="DirectoryNotEmpty")
        del self._parent_directory(share.root, address).children[address.name.lower()]

    @_round_trip
    def fetch_resource(self, address: ShareAddress, kind: ItemKind, snapshot: t.Optional[str] = None) -> tuple[dict, dict]:
        resource = self._existing(self._tree(address.share_uri, snapshot), address, kind)
        return dict(resource.properties), dict(resource.metadata)

    @_round_trip
    def set_properties(self, address: ShareAddress, kind: ItemKind, properties: dict) -> dict:
        share = self._share(address.share_uri)
        resource = self._existing(share.root, address, kind)
        permission_key = self._permission_key(share, properties)
        if permission_key is not None:
            resource.properties[PropertyTag.PERMISSION_KEY] = permission_key
        tags = [PropertyTag.CREATION_TIME, PropertyTag.LAST_WRITE_TIME, PropertyTag.NTFS_ATTRIBUTES]
        if kind == ItemKind.FILE:
            tags.extend(CONTENT_TAGS)
        for tag in tags:
            if tag in properties:
                resource.properties[tag] = properties[tag]
        self._touch(resource)
        return dict(resource.properties)

    @_round_trip
    def set_metadata(self, address: ShareAddress, kind: ItemKind, metadata: dict[str, str]) -> dict:
        resource = self._existing(self._share(address.share_uri).root, address, kind)
        self._check_metadata(metadata)
        resource.metadata = dict(metadata)
        self._touch(resource)
        return {
            PropertyTag.ETAG: resource.properties[PropertyTag.ETAG],
            PropertyTag.LAST_MODIFIED: resource.properties[PropertyTag.LAST_MODIFIED],
        }

    @_round_trip
    def resize_file(self, address: ShareAddress, size: int) -> dict:
        resource = self._existing(self._share(address.share_uri).root, address, ItemKind.FILE)
        self._check_size(size)
        resource.properties[PropertyTag.LENGTH] = size
        self._touch(resource)
        return dict(resource.properties)

    def _page_limit(self, page_size: t.Optional[int]) -> int:
        if page_size is None:
            return self.max_page_size
        return min(page_size, self.max_page_size)

    @staticmethod
    def _marker_index(marker: t.Optional[str]) -> int:
        if not marker:
            return 0
        try:
            return int(marker)
        except ValueError as ex:
            raise StorageError(f"Invalid marker [{marker}]", 2015, error_code="InvalidMarker") from ex

    @_round_trip
    def list_children(self,
                      address: ShareAddress,
                      prefix: t.Optional[str] = None,
                      page_size: t.Optional[int] = None,
                      marker: t.Optional[str] = None,
                      snapshot: t.Optional[str] = None) -> tuple[list[ChildEntry], str]:
        directory = self._existing(self._tree(address.share_uri, snapshot), address, ItemKind.DIRECTORY)
        entries = sorted(directory.children.values(), key=lambda x: x.name)
        if prefix:
            entries = [x for x in entries if x.name.lower().startswith(prefix.lower())]
        if marker:
            entries = [x for x in entries if x.name >= marker]
        limit = self._page_limit(page_size)
        results = []
        for entry in entries[:limit]:
            properties = {PropertyTag.FILE_ID: entry.properties[PropertyTag.FILE_ID]}
            if entry.kind == ItemKind.FILE:
                properties[PropertyTag.LENGTH] = entry.properties[PropertyTag.LENGTH]
            results.append(ChildEntry(entry.name, entry.kind, properties))
        # The end of a listing is an empty marker, not a missing one
        next_marker = entries[limit].name if len(entries) > limit else ""
        return results, next_marker

    def open_handle(self,
                    address: ShareAddress,
                    kind: ItemKind,
                    session_id: t.Optional[str] = None,
                    client_ip: str = "127.0.0.1") -> FileHandle:
        """Simulate an SMB client opening the given file or directory."""
        with self._lock:
            resource = self._existing(self._share(address.share_uri).root, address, kind)
            now = self._now()
            handle = FileHandle(
                handle_id=str(self._next_id()),
                path=address.relative_path,
                file_id=resource.properties[PropertyTag.FILE_ID],
                parent_id=resource.properties[PropertyTag.PARENT_ID],
                session_id=session_id or str(self._next_id()),
                client_ip=client_ip,
                open_time=now,
                last_reconnect_time=None,
            )
            resource.handles.append(handle)
            return handle

    @staticmethod
    def _handle_owners(resource: _Resource, recursive: bool) -> list[_Resource]:
        if recursive:
            return list(resource.descendants())
        return [resource]

    @_round_trip
    def list_open_handles(self,
                          address: ShareAddress,
                          kind: ItemKind,
                          marker: t.Optional[str] = None,
                          page_size: t.Optional[int] = None,
                          recursive: bool = False,
                          snapshot: t.Optional[str] = None) -> tuple[list[FileHandle], t.Optional[str]]:
        resource = self._existing(self._tree(address.share_uri, snapshot), address, kind)
        handles = [h for owner in self._handle_owners(resource, recursive) for h in owner.handles]
        start = self._marker_index(marker)
        end = start + self._page_limit(page_size)
        return handles[start:end], (str(end) if end < len(handles) else None)

    @_round_trip
    def close_handles(self,
                      address: ShareAddress,
                      kind: ItemKind,
                      handle_id: str,
                      marker: t.Optional[str] = None,
                      recursive: bool = False) -> tuple[int, t.Optional[str]]:
        resource = self._existing(self._share(address.share_uri).root, address, kind)
        owners = self._handle_owners(resource, recursive)
        if handle_id != ALL_HANDLES:
            for owner in owners:
                for handle in owner.handles:
                    if handle.handle_id == handle_id:
                        owner.handles.remove(handle)
                        return 1, None
            return 0, None
        # Closes at most one page per request; the marker counts what was closed before
        budget = self.max_page_size
        closed = 0
        for owner in owners:
            while owner.handles and closed < budget:
                owner.handles.pop(0)
                closed += 1
        remaining = sum(len(x.handles) for x in owners)
        if remaining:
            return closed, str(self._marker_index(marker) + closed)
        return closed, None
