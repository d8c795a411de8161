from __future__ import annotations
import base64
import functools
import typing as t
from urllib.parse import urlparse

import azure.core.exceptions as ace
import requests
import urllib3.exceptions
import zirconium as zr
import zrlog
from autoinject import injector
from azure.identity import DefaultAzureCredential
from azure.storage.fileshare import (
    ShareServiceClient, ShareClient, ShareDirectoryClient, ShareFileClient, ContentSettings,
    FileProperties, DirectoryProperties
)

from .endpoint import ItemKind, ChildEntry, FileHandle, ALL_HANDLES
from .errors import (
    StorageError, NotFoundError, ParentNotFoundError, ConflictError, PreconditionFailedError,
    TransportError, InvalidArgumentError
)
from .paths import ShareAddress
from .properties import PropertyTag, NtfsAttributes

AZURE_FILES_SUFFIX = ".file.core.windows.net"


def translate_azure_error(ex: ace.AzureError) -> StorageError:
    """Map an Azure SDK exception onto the share client's error kinds."""
    message = f"Azure: {ex.__class__.__name__}: {str(ex)}"
    error_code = getattr(ex, 'error_code', None)
    status_code = getattr(ex, 'status_code', None)
    if ex.inner_exception is not None:
        if isinstance(ex.inner_exception, urllib3.exceptions.ConnectTimeoutError):
            return TransportError(f"Azure: Connection timeout error: {message}", 3001, error_code, is_recoverable=True)
        elif isinstance(ex.inner_exception, requests.ConnectionError):
            return TransportError(f"Azure: Connection error: {message}", 3002, error_code, is_recoverable=True)
    if isinstance(ex, ace.ServiceRequestError):
        return TransportError(message, 3003, error_code, is_recoverable=True)
    if isinstance(ex, ace.ClientAuthenticationError):
        return TransportError(message, 3004, error_code, is_recoverable=True)
    if isinstance(ex, ace.ResourceNotFoundError) or status_code == 404:
        if error_code == "ParentNotFound":
            return ParentNotFoundError(message, 3005)
        return NotFoundError(message, 3006, error_code)
    if isinstance(ex, ace.ResourceExistsError) or status_code == 409:
        return ConflictError(message, 3007, error_code)
    if isinstance(ex, ace.ResourceModifiedError) or status_code == 412:
        return PreconditionFailedError(message, 3008, error_code)
    if isinstance(ex, ace.HttpResponseError) and status_code == 400:
        return StorageError(message, 3009, error_code)
    return TransportError(message, 3000, error_code)


def wrap_azure_errors(cb):

    @functools.wraps(cb)
    def _inner(*args, **kwargs):
        try:
            return cb(*args, **kwargs)
        except ace.AzureError as ex:
            raise translate_azure_error(ex) from ex

    return _inner


def _properties_from_azure(props: t.Union[FileProperties, DirectoryProperties], kind: ItemKind) -> dict[PropertyTag, t.Any]:
    values = {
        PropertyTag.CREATION_TIME: props.creation_time,
        PropertyTag.LAST_WRITE_TIME: props.last_write_time,
        PropertyTag.CHANGE_TIME: props.change_time,
        PropertyTag.NTFS_ATTRIBUTES: NtfsAttributes.parse(props.file_attributes),
        PropertyTag.PERMISSION_KEY: props.permission_key,
        PropertyTag.FILE_ID: props.file_id,
        PropertyTag.PARENT_ID: props.parent_id,
        PropertyTag.ETAG: props.etag,
        PropertyTag.LAST_MODIFIED: props.last_modified,
    }
    if kind == ItemKind.FILE:
        values[PropertyTag.LENGTH] = props.size
        settings = props.content_settings
        if settings is not None:
            values[PropertyTag.CONTENT_TYPE] = settings.content_type
            values[PropertyTag.CONTENT_ENCODING] = settings.content_encoding
            values[PropertyTag.CONTENT_LANGUAGE] = settings.content_language
            values[PropertyTag.CONTENT_DISPOSITION] = settings.content_disposition
            values[PropertyTag.CACHE_CONTROL] = settings.cache_control
            if settings.content_md5:
                values[PropertyTag.CONTENT_MD5] = base64.b64encode(bytes(settings.content_md5)).decode('ascii')
    return {x: values[x] for x in values if values[x] is not None}


def _content_settings(properties: dict[PropertyTag, t.Any], current: t.Optional[ContentSettings] = None) -> ContentSettings:
    """Build the content headers, keeping current values for anything not given."""
    def _pick(tag: PropertyTag, attr: str):
        if tag in properties:
            return properties[tag]
        return getattr(current, attr, None) if current is not None else None
    md5 = properties[PropertyTag.CONTENT_MD5] if PropertyTag.CONTENT_MD5 in properties else None
    return ContentSettings(
        content_type=_pick(PropertyTag.CONTENT_TYPE, 'content_type'),
        content_encoding=_pick(PropertyTag.CONTENT_ENCODING, 'content_encoding'),
        content_language=_pick(PropertyTag.CONTENT_LANGUAGE, 'content_language'),
        content_disposition=_pick(PropertyTag.CONTENT_DISPOSITION, 'content_disposition'),
        cache_control=_pick(PropertyTag.CACHE_CONTROL, 'cache_control'),
        content_md5=bytearray(base64.b64decode(md5)) if md5 else getattr(current, 'content_md5', None),
    )


def _smb_kwargs(properties: dict[PropertyTag, t.Any], permission_key_arg: str = "permission_key") -> dict:
    kwargs = {}
    if PropertyTag.NTFS_ATTRIBUTES in properties:
        kwargs["file_attributes"] = properties[PropertyTag.NTFS_ATTRIBUTES].to_string()
    if PropertyTag.CREATION_TIME in properties:
        kwargs["file_creation_time"] = properties[PropertyTag.CREATION_TIME]
    if PropertyTag.LAST_WRITE_TIME in properties:
        kwargs["file_last_write_time"] = properties[PropertyTag.LAST_WRITE_TIME]
    if PropertyTag.PERMISSION in properties:
        kwargs["file_permission"] = properties[PropertyTag.PERMISSION]
    if PropertyTag.PERMISSION_KEY in properties:
        kwargs[permission_key_arg] = properties[PropertyTag.PERMISSION_KEY]
    return kwargs


def _handle_from_azure(handle) -> FileHandle:
    return FileHandle(
        handle_id=handle.id,
        path=handle.path,
        file_id=handle.file_id,
        parent_id=handle.parent_id,
        session_id=handle.session_id,
        client_ip=handle.client_ip,
        open_time=handle.open_time,
        last_reconnect_time=handle.last_reconnect_time,
    )


class AzureFilesEndpoint:
    """Service endpoint backed by Azure Files.

        Share URIs look like https://ACCOUNT.file.core.windows.net/SHARE. A
        connection string is read from azure.storage.ACCOUNT.connection_string
        when configured, otherwise DefaultAzureCredential is used.
    """

    config: zr.ApplicationConfig = None

    @injector.construct
    def __init__(self):
        self._service_clients: dict[str, ShareServiceClient] = {}
        self._log = zrlog.get_logger("shareclient.azure_files")

    @staticmethod
    def supports(url: str) -> bool:
        parts = urlparse(url)
        return parts.scheme in ("http", "https") and bool(parts.hostname) and parts.hostname.endswith(AZURE_FILES_SUFFIX)

    def get_connection_details(self, share_uri: str) -> dict:
        url_parts = urlparse(share_uri)
        domain = url_parts.hostname
        if not domain or not domain.endswith(AZURE_FILES_SUFFIX):
            raise InvalidArgumentError(f"Invalid hostname [{domain}]", 3020)
        path_parts = [x for x in url_parts.path.lstrip('/').split('/')]
        if len(path_parts) < 1 or path_parts[0] == "":
            raise InvalidArgumentError(f"Missing share name in [{share_uri}]", 3021)
        account = domain[:-len(AZURE_FILES_SUFFIX)]
        return {
            "storage_account": account,
            "account_url": f"{url_parts.scheme}://{domain}",
            "share_name": path_parts[0],
            "connection_string": self.config.as_str(("azure", "storage", account, "connection_string"), default=None),
        }

    def service_client(self, share_uri: str) -> ShareServiceClient:
        details = self.get_connection_details(share_uri)
        key = details["account_url"]
        if key not in self._service_clients:
            try:
                if details["connection_string"]:
                    client = ShareServiceClient.from_connection_string(details["connection_string"])
                else:
                    client = ShareServiceClient(key, credential=DefaultAzureCredential(), token_intent="backup")
            except ValueError as ex:
                raise InvalidArgumentError(f"Could not create share service client for [{key}]", 3022) from ex
            self._service_clients[key] = client
        return self._service_clients[key]

    def share_client(self, share_uri: str, snapshot: t.Optional[str] = None) -> ShareClient:
        details = self.get_connection_details(share_uri)
        return self.service_client(share_uri).get_share_client(details["share_name"], snapshot=snapshot)

    def directory_client(self, address: ShareAddress, snapshot: t.Optional[str] = None) -> ShareDirectoryClient:
        return self.share_client(address.share_uri, snapshot).get_directory_client(address.relative_path)

    def file_client(self, address: ShareAddress, snapshot: t.Optional[str] = None) -> ShareFileClient:
        if address.is_root:
            raise InvalidArgumentError(f"Cannot make file client on the share root [{address.uri}]", 3023)
        return self.share_client(address.share_uri, snapshot).get_file_client(address.relative_path)

    def _client(self, address: ShareAddress, kind: ItemKind, snapshot: t.Optional[str] = None):
        if kind == ItemKind.DIRECTORY:
            return self.directory_client(address, snapshot)
        return self.file_client(address, snapshot)

    def _get_properties(self, client, kind: ItemKind):
        if kind == ItemKind.DIRECTORY:
            return client.get_directory_properties()
        return client.get_file_properties()

    @wrap_azure_errors
    def create_share(self, share_uri: str):
        self.share_client(share_uri).create_share()

    @wrap_azure_errors
    def delete_share(self, share_uri: str, snapshot: t.Optional[str] = None):
        if snapshot is not None:
            self.share_client(share_uri, snapshot).delete_share()
        else:
            self.share_client(share_uri).delete_share(delete_snapshots=True)

    @wrap_azure_errors
    def share_exists(self, share_uri: str, snapshot: t.Optional[str] = None) -> bool:
        try:
            self.share_client(share_uri, snapshot).get_share_properties()
            return True
        except ace.ResourceNotFoundError:
            return False

    @wrap_azure_errors
    def snapshot_share(self, share_uri: str) -> str:
        return self.share_client(share_uri).create_snapshot()["snapshot"]

    @wrap_azure_errors
    def create_permission(self, share_uri: str, permission: str) -> str:
        return self.share_client(share_uri).create_permission_for_share(permission)

    @wrap_azure_errors
    def create_resource(self, address: ShareAddress, kind: ItemKind, properties: dict, metadata: dict[str, str]) -> dict:
        if address.is_root:
            # The root always exists with its share; this raises if the share is missing
            self.share_client(address.share_uri).get_share_properties()
            raise ConflictError(f"The specified resource already exists [{address.uri}]", 3010, "ResourceAlreadyExists")
        client = self._client(address, kind)
        if kind == ItemKind.DIRECTORY:
            client.create_directory(metadata=metadata or None, **_smb_kwargs(properties, "file_permission_key"))
        else:
            client.create_file(
                properties.get(PropertyTag.LENGTH, 0),
                content_settings=_content_settings(properties),
                metadata=metadata or None,
                **_smb_kwargs(properties)
            )
        return _properties_from_azure(self._get_properties(client, kind), kind)

    @wrap_azure_errors
    def delete_resource(self, address: ShareAddress, kind: ItemKind):
        client = self._client(address, kind)
        if kind == ItemKind.DIRECTORY:
            client.delete_directory()
        else:
            client.delete_file()

    @wrap_azure_errors
    def fetch_resource(self, address: ShareAddress, kind: ItemKind, snapshot: t.Optional[str] = None) -> tuple[dict, dict]:
        props = self._get_properties(self._client(address, kind, snapshot), kind)
        return _properties_from_azure(props, kind), dict(props.metadata or {})

    @wrap_azure_errors
    def set_properties(self, address: ShareAddress, kind: ItemKind, properties: dict) -> dict:
        client = self._client(address, kind)
        if kind == ItemKind.DIRECTORY:
            client.set_http_headers(**_smb_kwargs(properties))
        else:
            # Content headers are replaced as a group on the service
            current = client.get_file_properties().content_settings
            client.set_http_headers(_content_settings(properties, current), **_smb_kwargs(properties))
        return _properties_from_azure(self._get_properties(client, kind), kind)

    @wrap_azure_errors
    def set_metadata(self, address: ShareAddress, kind: ItemKind, metadata: dict[str, str]) -> dict:
        client = self._client(address, kind)
        if kind == ItemKind.DIRECTORY:
            result = client.set_directory_metadata(metadata)
        else:
            result = client.set_file_metadata(metadata)
        return {
            PropertyTag.ETAG: result.get("etag"),
            PropertyTag.LAST_MODIFIED: result.get("last_modified"),
        }

    @wrap_azure_errors
    def resize_file(self, address: ShareAddress, size: int) -> dict:
        client = self.file_client(address)
        client.resize_file(size)
        return _properties_from_azure(client.get_file_properties(), ItemKind.FILE)

    @wrap_azure_errors
    def list_children(self,
                      address: ShareAddress,
                      prefix: t.Optional[str] = None,
                      page_size: t.Optional[int] = None,
                      marker: t.Optional[str] = None,
                      snapshot: t.Optional[str] = None) -> tuple[list[ChildEntry], t.Optional[str]]:
        client = self.directory_client(address, snapshot)
        pages = client.list_directories_and_files(
            name_starts_with=prefix,
            results_per_page=page_size
        ).by_page(continuation_token=marker)
        results = []
        for item in next(pages, []):
            if isinstance(item, FileProperties):
                results.append(ChildEntry(item.name, ItemKind.FILE, {
                    x: y for x, y in ((PropertyTag.LENGTH, item.size), (PropertyTag.FILE_ID, item.file_id)) if y is not None
                }))
            elif isinstance(item, DirectoryProperties):
                results.append(ChildEntry(item.name, ItemKind.DIRECTORY, {
                    x: y for x, y in ((PropertyTag.FILE_ID, item.file_id),) if y is not None
                }))
            else:
                raise TransportError(f"Unknown type of file listing results [{item.__class__.__name__}]", 3011)
        return results, pages.continuation_token

    @wrap_azure_errors
    def list_open_handles(self,
                          address: ShareAddress,
                          kind: ItemKind,
                          marker: t.Optional[str] = None,
                          page_size: t.Optional[int] = None,
                          recursive: bool = False,
                          snapshot: t.Optional[str] = None) -> tuple[list[FileHandle], t.Optional[str]]:
        client = self._client(address, kind, snapshot)
        if kind == ItemKind.DIRECTORY:
            paged = client.list_handles(recursive=recursive, results_per_page=page_size)
        else:
            paged = client.list_handles(results_per_page=page_size)
        pages = paged.by_page(continuation_token=marker)
        return [_handle_from_azure(x) for x in next(pages, [])], pages.continuation_token

    @wrap_azure_errors
    def close_handles(self,
                      address: ShareAddress,
                      kind: ItemKind,
                      handle_id: str,
                      marker: t.Optional[str] = None,
                      recursive: bool = False) -> tuple[int, t.Optional[str]]:
        # The SDK follows close markers itself, so every call completes the sequence
        client = self._client(address, kind)
        if handle_id != ALL_HANDLES:
            result = client.close_handle(handle_id)
        elif kind == ItemKind.DIRECTORY:
            result = client.close_all_handles(recursive=recursive)
        else:
            result = client.close_all_handles()
        self._log.debug(f"Closed [{result.get('closed_handles_count', 0)}] handles on [{address}]")
        return result.get("closed_handles_count", 0), None
