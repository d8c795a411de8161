"""Hierarchical addresses inside a share.

An address is the share URI plus an ordered tuple of path segments. The
empty tuple is the share root. Resolving a name never calls the service.
"""
from __future__ import annotations
import dataclasses
import typing as t
from urllib.parse import urlparse

from .errors import InvalidArgumentError


def is_absolute_uri(name: str) -> bool:
    """Check if the name looks like an absolute URI (scheme and host)."""
    parts = urlparse(name)
    return bool(parts.scheme) and bool(parts.netloc)


@dataclasses.dataclass(frozen=True)
class ShareAddress:

    share_uri: str
    segments: tuple[str, ...] = ()

    @staticmethod
    def root(share_uri: str) -> ShareAddress:
        return ShareAddress(share_uri.rstrip('/'), ())

    @property
    def is_root(self) -> bool:
        return not self.segments

    @property
    def name(self) -> str:
        return self.segments[-1] if self.segments else ""

    @property
    def relative_path(self) -> str:
        return "/".join(self.segments)

    @property
    def uri(self) -> str:
        if not self.segments:
            return self.share_uri
        return f"{self.share_uri}/{self.relative_path}"

    def resolve(self, name: t.Optional[str]) -> ShareAddress:
        """Build the address of a descendant of this address.

            Relative names may contain slashes and produce one segment per
            non-empty piece. Absolute URIs are appended as a single opaque
            segment, verbatim.
        """
        if name is None or name == "":
            raise InvalidArgumentError("Path segment may not be empty", 1000)
        if is_absolute_uri(name):
            return ShareAddress(self.share_uri, self.segments + (name,))
        pieces = tuple(x for x in name.split('/') if x != "")
        if not pieces:
            raise InvalidArgumentError(f"Path segment [{name}] has no path components", 1001)
        return ShareAddress(self.share_uri, self.segments + pieces)

    def parent(self) -> t.Optional[ShareAddress]:
        if not self.segments:
            return None
        return ShareAddress(self.share_uri, self.segments[:-1])

    def ancestors(self) -> t.Iterable[ShareAddress]:
        """Yield each ancestor, nearest first, ending with the root."""
        current = self.parent()
        while current is not None:
            yield current
            current = current.parent()

    def __str__(self):
        return self.uri
