from __future__ import annotations
import typing as t
from urllib.parse import urlparse, parse_qs

from autoinject import injector

from shareclient.util import HaltFlag
from .azure_files import AzureFilesEndpoint
from .base import ShareItem
from .endpoint import ServiceEndpoint
from .errors import InvalidArgumentError
from .memory import InMemoryFileService
from .share import ShareReference

MEMORY_SCHEME = "memory"


@injector.injectable_global
class ShareController:
    """Controller class that identifies the correct endpoint for a given share URL.

        https://ACCOUNT.file.core.windows.net/SHARE -> AzureFilesEndpoint
        memory://SHARE -> InMemoryFileService (one per controller)
    """

    def __init__(self):
        self._memory_service: t.Optional[InMemoryFileService] = None
        self._azure_endpoint: t.Optional[AzureFilesEndpoint] = None

    @property
    def memory_service(self) -> InMemoryFileService:
        if self._memory_service is None:
            self._memory_service = InMemoryFileService()
        return self._memory_service

    @property
    def azure_endpoint(self) -> AzureFilesEndpoint:
        if self._azure_endpoint is None:
            self._azure_endpoint = AzureFilesEndpoint()
        return self._azure_endpoint

    @staticmethod
    def split_url(url: str) -> tuple[str, str]:
        """Split a URL into the share URI and the path within the share."""
        parts = urlparse(url)
        if not parts.scheme:
            raise InvalidArgumentError(f"Share URL [{url}] has no scheme", 1800)
        if parts.scheme == MEMORY_SCHEME:
            share_name = parts.netloc
            path = parts.path.lstrip('/')
        else:
            pieces = parts.path.lstrip('/').split('/', 1)
            share_name = f"{parts.netloc}/{pieces[0]}" if pieces[0] else ""
            path = pieces[1] if len(pieces) > 1 else ""
        if not share_name:
            raise InvalidArgumentError(f"Share URL [{url}] has no share name", 1801)
        return f"{parts.scheme}://{share_name}", path

    def endpoint_for(self, share_uri: str) -> ServiceEndpoint:
        if share_uri.startswith(f"{MEMORY_SCHEME}://"):
            return self.memory_service
        if AzureFilesEndpoint.supports(share_uri):
            return self.azure_endpoint
        raise InvalidArgumentError(f"No share endpoint supports [{share_uri}]", 1802)

    def get_share(self, url: str, snapshot: t.Optional[str] = None, halt_flag: HaltFlag = None) -> ShareReference:
        """Build a share reference for the share named in the URL.

            A sharesnapshot query parameter selects a snapshot when none is given.
        """
        share_uri, _ = self.split_url(url)
        if snapshot is None:
            snapshot = parse_qs(urlparse(url).query).get("sharesnapshot", [None])[0]
        return ShareReference(share_uri, self.endpoint_for(share_uri), snapshot=snapshot, halt_flag=halt_flag)

    def get_item(self, url: str, snapshot: t.Optional[str] = None, halt_flag: HaltFlag = None) -> ShareItem:
        """Build a node for the URL: a directory if it ends with a slash, else a file."""
        share = self.get_share(url, snapshot, halt_flag)
        _, path = self.split_url(url)
        if path.strip('/') == "":
            return share.root_directory()
        if path.endswith('/'):
            return share.get_directory(path)
        return share.get_file(path)
