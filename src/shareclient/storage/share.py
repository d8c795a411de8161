from __future__ import annotations
import typing as t

import zirconium as zr
import zrlog
from autoinject import injector

from shareclient.util import HaltFlag
from .base import mutating_operation
from .directory import ShareDirectory
from .endpoint import ServiceEndpoint
from .errors import ConflictError, InvalidArgumentError, NotFoundError
from .file import ShareFile
from .paths import ShareAddress


class ShareReference:
    """A share, or a read-only snapshot of one, reached through a service endpoint.

        All nodes created from a reference share its endpoint, snapshot id and
        halt flag. Nothing is sent to the service until an operation is called.
    """

    config: zr.ApplicationConfig = None

    @injector.construct
    def __init__(self,
                 share_uri: str,
                 endpoint: ServiceEndpoint,
                 snapshot: t.Optional[str] = None,
                 halt_flag: HaltFlag = None):
        self.share_uri = share_uri.rstrip('/')
        self.endpoint = endpoint
        self.snapshot = snapshot or None
        self.halt_flag = halt_flag
        self._log = zrlog.get_logger("shareclient.share")

    def __str__(self):
        return self.uri

    def __repr__(self):
        return f"ShareReference({self.share_uri!r}, snapshot={self.snapshot!r})"

    def __eq__(self, other):
        if not isinstance(other, ShareReference):
            return NotImplemented
        return self.share_uri == other.share_uri and self.snapshot == other.snapshot

    def __hash__(self):
        return hash((self.share_uri, self.snapshot))

    @property
    def name(self) -> str:
        return self.share_uri[self.share_uri.rfind('/') + 1:]

    @property
    def uri(self) -> str:
        return self.share_uri

    @property
    def snapshot_qualified_uri(self) -> str:
        if self.snapshot is None:
            return self.share_uri
        return f"{self.share_uri}?sharesnapshot={self.snapshot}"

    @property
    def is_snapshot(self) -> bool:
        return self.snapshot is not None

    @property
    def list_page_size(self) -> t.Optional[int]:
        """Default page size for directory listings, if configured."""
        return self.config.as_int(("shareclient", "list_page_size"), default=None)

    def root_directory(self) -> ShareDirectory:
        return self.directory_at(ShareAddress.root(self.share_uri))

    def get_directory(self, path: str) -> ShareDirectory:
        return self.root_directory().subdir(path)

    def get_file(self, path: str) -> ShareFile:
        return self.root_directory().child(path)

    def directory_at(self, address: ShareAddress, halt_flag: HaltFlag = None) -> ShareDirectory:
        return ShareDirectory(self, address, halt_flag=halt_flag)

    def file_at(self, address: ShareAddress, halt_flag: HaltFlag = None) -> ShareFile:
        return ShareFile(self, address, halt_flag=halt_flag)

    def snapshot_reference(self, snapshot: t.Optional[str]) -> ShareReference:
        """Reference the same share at the given snapshot (or the live share for None)."""
        return ShareReference(self.share_uri, self.endpoint, snapshot=snapshot, halt_flag=self.halt_flag)

    @mutating_operation("create")
    def create(self):
        self._log.debug(f"Creating share [{self}]")
        self.endpoint.create_share(self.share_uri)

    @mutating_operation("create")
    def create_if_not_exists(self) -> bool:
        try:
            self.create()
            return True
        except ConflictError:
            self._log.debug(f"Share [{self}] already exists")
            return False

    def delete(self):
        """Delete the share and all of its snapshots, or only the snapshot this references."""
        self._log.debug(f"Deleting share [{self.snapshot_qualified_uri}]")
        self.endpoint.delete_share(self.share_uri, self.snapshot)

    def delete_if_exists(self) -> bool:
        try:
            self.delete()
            return True
        except NotFoundError:
            self._log.debug(f"Share [{self}] does not exist, nothing to delete")
            return False

    def exists(self) -> bool:
        return self.endpoint.share_exists(self.share_uri, self.snapshot)

    @mutating_operation("create_snapshot")
    def create_snapshot(self) -> ShareReference:
        """Take a point-in-time snapshot and return a read-only reference to it."""
        self._log.debug(f"Creating snapshot of share [{self}]")
        snapshot = self.endpoint.snapshot_share(self.share_uri)
        return self.snapshot_reference(snapshot)

    @mutating_operation("create_permission")
    def create_permission(self, permission: str) -> str:
        """Store an SDDL permission on the share and return the key to reference it."""
        if permission is None or permission.strip() == "":
            raise InvalidArgumentError("File permission may not be empty", 1700)
        self._log.debug(f"Creating file permission on share [{self}]")
        return self.endpoint.create_permission(self.share_uri, permission)
