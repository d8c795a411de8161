"""Two-phase property containers for share items.

Each tracked attribute has a confirmed slot, filled only from a service
response, and a pending slot, filled by local assignment. The pending slots
are sent with the next create or set-properties call and cleared once that
call succeeds.
"""
from __future__ import annotations
import datetime
import enum
import functools
import typing as t

from .errors import InvalidArgumentError


class PropertyTag(enum.Enum):

    CREATION_TIME = 'creation_time'
    LAST_WRITE_TIME = 'last_write_time'
    CHANGE_TIME = 'change_time'
    NTFS_ATTRIBUTES = 'ntfs_attributes'
    PERMISSION_KEY = 'permission_key'
    PERMISSION = 'permission'
    FILE_ID = 'file_id'
    PARENT_ID = 'parent_id'
    ETAG = 'etag'
    LAST_MODIFIED = 'last_modified'
    LENGTH = 'length'
    CONTENT_TYPE = 'content_type'
    CONTENT_ENCODING = 'content_encoding'
    CONTENT_LANGUAGE = 'content_language'
    CONTENT_DISPOSITION = 'content_disposition'
    CACHE_CONTROL = 'cache_control'
    CONTENT_MD5 = 'content_md5'


# Attributes a caller may stage for the SMB side of an item
SMB_TAGS = (
    PropertyTag.CREATION_TIME,
    PropertyTag.LAST_WRITE_TIME,
    PropertyTag.NTFS_ATTRIBUTES,
    PropertyTag.PERMISSION_KEY,
    PropertyTag.PERMISSION,
)

CONTENT_TAGS = (
    PropertyTag.CONTENT_TYPE,
    PropertyTag.CONTENT_ENCODING,
    PropertyTag.CONTENT_LANGUAGE,
    PropertyTag.CONTENT_DISPOSITION,
    PropertyTag.CACHE_CONTROL,
    PropertyTag.CONTENT_MD5,
)


class NtfsAttributes(enum.Flag):

    NONE = 0
    READ_ONLY = 1
    HIDDEN = 2
    SYSTEM = 4
    DIRECTORY = 16
    ARCHIVE = 32
    TEMPORARY = 256
    OFFLINE = 4096
    NOT_CONTENT_INDEXED = 8192
    NO_SCRUB_DATA = 131072

    def to_string(self) -> str:
        """Convert to the service format, e.g. Directory|Archive"""
        if self == NtfsAttributes.NONE:
            return "None"
        return "|".join(
            _ATTRIBUTE_NAMES[x]
            for x in NtfsAttributes
            if x in _ATTRIBUTE_NAMES and x != NtfsAttributes.NONE and x in self
        )

    @staticmethod
    def parse(value: t.Union[str, NtfsAttributes, None]) -> t.Optional[NtfsAttributes]:
        if value is None or isinstance(value, NtfsAttributes):
            return value
        result = NtfsAttributes.NONE
        lookup = {v.lower(): k for k, v in _ATTRIBUTE_NAMES.items()}
        for piece in str(value).split('|'):
            piece = piece.strip().lower()
            if piece == "":
                continue
            if piece not in lookup:
                raise InvalidArgumentError(f"Unknown NTFS attribute [{piece}]", 1300)
            result |= lookup[piece]
        return result


_ATTRIBUTE_NAMES = {
    NtfsAttributes.NONE: "None",
    NtfsAttributes.READ_ONLY: "ReadOnly",
    NtfsAttributes.HIDDEN: "Hidden",
    NtfsAttributes.SYSTEM: "System",
    NtfsAttributes.DIRECTORY: "Directory",
    NtfsAttributes.ARCHIVE: "Archive",
    NtfsAttributes.TEMPORARY: "Temporary",
    NtfsAttributes.OFFLINE: "Offline",
    NtfsAttributes.NOT_CONTENT_INDEXED: "NotContentIndexed",
    NtfsAttributes.NO_SCRUB_DATA: "NoScrubData",
}


def to_datetime(dt):
    if isinstance(dt, str):
        dt = datetime.datetime.fromisoformat(dt)
    if isinstance(dt, datetime.datetime) and dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    return dt


class PropertySet:
    """Confirmed and pending values for one share item.

        Reads through the attribute properties always return the confirmed
        value; assignments only stage a pending value. Not safe for use from
        several threads without outside locking.
    """

    def __init__(self):
        self._confirmed: dict[PropertyTag, t.Any] = {}
        self._pending: dict[PropertyTag, t.Any] = {}

    def __str__(self):
        s = f"{self.__class__.__name__}: "
        s += "; ".join(f"{x.value}={self._confirmed[x]}" for x in self._confirmed)
        s += " [pending:"
        s += ";".join(x.value for x in self._pending)
        s += "]"
        return s

    def confirmed(self, tag: PropertyTag, default=None):
        if tag in self._confirmed and self._confirmed[tag] is not None:
            return self._confirmed[tag]
        return default

    def pending(self, tag: PropertyTag, default=None):
        return self._pending.get(tag, default)

    def stage(self, tag: PropertyTag, value):
        if value is None:
            self._pending.pop(tag, None)
        else:
            self._pending[tag] = value

    def has_pending(self) -> bool:
        return bool(self._pending)

    def pending_values(self, tags: t.Optional[t.Iterable[PropertyTag]] = None) -> dict[PropertyTag, t.Any]:
        if tags is None:
            return dict(self._pending)
        return {x: self._pending[x] for x in tags if x in self._pending}

    def confirmed_values(self) -> dict[PropertyTag, t.Any]:
        return dict(self._confirmed)

    def discard_pending(self):
        self._pending.clear()

    def commit_from_server(self, values: dict[PropertyTag, t.Any], replace: bool = False):
        """Accept a service response and clear every pending slot."""
        if replace:
            self._confirmed.clear()
        self._confirmed.update(values)
        self._pending.clear()

    def update_confirmed(self, values: dict[PropertyTag, t.Any]):
        """Refresh confirmed slots, leaving staged values alone."""
        self._confirmed.update(values)

    def _get(self, tag: PropertyTag):
        return self.confirmed(tag)

    def _set(self, value, tag: PropertyTag, coerce=None, readonly: bool = False):
        if readonly:
            raise AttributeError(f"{tag.value} is read-only")
        if coerce is not None and value is not None:
            value = coerce(value)
        self.stage(tag, value)

    @classmethod
    def make_property(cls, tag: PropertyTag, coerce=None, readonly: bool = False):
        return property(
            functools.partial(PropertySet._get, tag=tag),
            functools.partial(PropertySet._set, tag=tag, coerce=coerce, readonly=readonly)
        )


class DirectoryProperties(PropertySet):

    creation_time: t.Optional[datetime.datetime] = PropertySet.make_property(PropertyTag.CREATION_TIME, coerce=to_datetime)
    last_write_time: t.Optional[datetime.datetime] = PropertySet.make_property(PropertyTag.LAST_WRITE_TIME, coerce=to_datetime)
    ntfs_attributes: t.Optional[NtfsAttributes] = PropertySet.make_property(PropertyTag.NTFS_ATTRIBUTES, coerce=NtfsAttributes.parse)
    permission_key: t.Optional[str] = PropertySet.make_property(PropertyTag.PERMISSION_KEY, coerce=str)
    change_time: t.Optional[datetime.datetime] = PropertySet.make_property(PropertyTag.CHANGE_TIME, readonly=True)
    file_id: t.Optional[str] = PropertySet.make_property(PropertyTag.FILE_ID, readonly=True)
    parent_id: t.Optional[str] = PropertySet.make_property(PropertyTag.PARENT_ID, readonly=True)
    etag: t.Optional[str] = PropertySet.make_property(PropertyTag.ETAG, readonly=True)
    last_modified: t.Optional[datetime.datetime] = PropertySet.make_property(PropertyTag.LAST_MODIFIED, readonly=True)

    @property
    def directory_id(self) -> t.Optional[str]:
        return self.file_id


class FileProperties(DirectoryProperties):

    length: t.Optional[int] = PropertySet.make_property(PropertyTag.LENGTH, readonly=True)
    content_type: t.Optional[str] = PropertySet.make_property(PropertyTag.CONTENT_TYPE, coerce=str)
    content_encoding: t.Optional[str] = PropertySet.make_property(PropertyTag.CONTENT_ENCODING, coerce=str)
    content_language: t.Optional[str] = PropertySet.make_property(PropertyTag.CONTENT_LANGUAGE, coerce=str)
    content_disposition: t.Optional[str] = PropertySet.make_property(PropertyTag.CONTENT_DISPOSITION, coerce=str)
    cache_control: t.Optional[str] = PropertySet.make_property(PropertyTag.CACHE_CONTROL, coerce=str)
    content_md5: t.Optional[str] = PropertySet.make_property(PropertyTag.CONTENT_MD5, coerce=str)
