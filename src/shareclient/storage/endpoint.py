"""The service endpoint capability consumed by share nodes.

Nodes never talk to a transport directly. Every round trip goes through an
object that implements ServiceEndpoint; status mapping to the error kinds in
shareclient.storage.errors is the endpoint's job.
"""
from __future__ import annotations
import dataclasses
import datetime
import enum
import typing as t

from .paths import ShareAddress
from .properties import PropertyTag


class ItemKind(enum.Enum):

    DIRECTORY = 'directory'
    FILE = 'file'


# Handle id that closes every handle on the item
ALL_HANDLES = '*'


@dataclasses.dataclass(frozen=True)
class ChildEntry:
    """One raw entry from a directory listing."""

    name: str
    kind: ItemKind
    properties: dict = dataclasses.field(default_factory=dict)


@dataclasses.dataclass(frozen=True)
class FileHandle:
    """An open SMB handle on a file or directory."""

    handle_id: str
    path: str
    file_id: t.Optional[str] = None
    parent_id: t.Optional[str] = None
    session_id: t.Optional[str] = None
    client_ip: t.Optional[str] = None
    open_time: t.Optional[datetime.datetime] = None
    last_reconnect_time: t.Optional[datetime.datetime] = None


class ServiceEndpoint(t.Protocol):

    def create_resource(self,
                        address: ShareAddress,
                        kind: ItemKind,
                        properties: dict[PropertyTag, t.Any],
                        metadata: dict[str, str]) -> dict[PropertyTag, t.Any]:
        """Create a file or directory and return its confirmed properties."""
        raise NotImplementedError

    def delete_resource(self, address: ShareAddress, kind: ItemKind):
        raise NotImplementedError

    def fetch_resource(self,
                       address: ShareAddress,
                       kind: ItemKind,
                       snapshot: t.Optional[str] = None) -> tuple[dict[PropertyTag, t.Any], dict[str, str]]:
        """Return the properties and metadata of the resource."""
        raise NotImplementedError

    def set_properties(self,
                       address: ShareAddress,
                       kind: ItemKind,
                       properties: dict[PropertyTag, t.Any]) -> dict[PropertyTag, t.Any]:
        """Update only the given properties and return the full confirmed set."""
        raise NotImplementedError

    def set_metadata(self,
                     address: ShareAddress,
                     kind: ItemKind,
                     metadata: dict[str, str]) -> dict[PropertyTag, t.Any]:
        """Replace all metadata. Returns at least the new ETag and last-modified time."""
        raise NotImplementedError

    def resize_file(self, address: ShareAddress, size: int) -> dict[PropertyTag, t.Any]:
        raise NotImplementedError

    def list_children(self,
                      address: ShareAddress,
                      prefix: t.Optional[str] = None,
                      page_size: t.Optional[int] = None,
                      marker: t.Optional[str] = None,
                      snapshot: t.Optional[str] = None) -> tuple[list[ChildEntry], t.Optional[str]]:
        raise NotImplementedError

    def list_open_handles(self,
                          address: ShareAddress,
                          kind: ItemKind,
                          marker: t.Optional[str] = None,
                          page_size: t.Optional[int] = None,
                          recursive: bool = False,
                          snapshot: t.Optional[str] = None) -> tuple[list[FileHandle], t.Optional[str]]:
        raise NotImplementedError

    def close_handles(self,
                      address: ShareAddress,
                      kind: ItemKind,
                      handle_id: str,
                      marker: t.Optional[str] = None,
                      recursive: bool = False) -> tuple[int, t.Optional[str]]:
        """Close one handle, or all of them when handle_id is ALL_HANDLES."""
        raise NotImplementedError

    def create_share(self, share_uri: str):
        raise NotImplementedError

    def delete_share(self, share_uri: str, snapshot: t.Optional[str] = None):
        """Delete a share with its snapshots, or only the given snapshot."""
        raise NotImplementedError

    def share_exists(self, share_uri: str, snapshot: t.Optional[str] = None) -> bool:
        raise NotImplementedError

    def snapshot_share(self, share_uri: str) -> str:
        """Take a snapshot and return its identifier."""
        raise NotImplementedError

    def create_permission(self, share_uri: str, permission: str) -> str:
        """Store an SDDL permission and return its key."""
        raise NotImplementedError
