"""Continuation-token driven pagination.

Listing, handle listing and handle closing all return one page per round
trip together with a continuation token. A sequence ends when the returned
token is None or carries an empty marker; services use both forms.
"""
from __future__ import annotations
import dataclasses
import enum
import typing as t

import zrlog

from shareclient.util import HaltFlag
from .errors import InvalidArgumentError, InvalidOperationError


class SegmentKind(enum.Enum):

    LISTING = 'listing'
    HANDLES = 'handles'
    CLOSE_HANDLES = 'close_handles'


@dataclasses.dataclass(frozen=True)
class ContinuationToken:

    kind: SegmentKind
    next_marker: t.Optional[str] = None

    @staticmethod
    def from_marker(kind: SegmentKind, marker: t.Optional[str]) -> t.Optional[ContinuationToken]:
        """Wrap a service marker; a None marker means the service sent no token."""
        if marker is None:
            return None
        return ContinuationToken(kind, marker)


def is_terminal(token: t.Optional[ContinuationToken]) -> bool:
    return token is None or not token.next_marker


def check_page_size(page_size: t.Optional[int]):
    if page_size is not None and (not isinstance(page_size, int) or page_size < 1):
        raise InvalidArgumentError(f"Page size must be a positive integer, found [{page_size}]", 1402)


def check_token_kind(token: t.Optional[ContinuationToken], kind: SegmentKind):
    if token is None:
        return
    if not isinstance(token, ContinuationToken):
        raise InvalidArgumentError(f"Invalid continuation token [{token!r}]", 1400)
    if token.kind != kind:
        raise InvalidArgumentError(f"Continuation token for [{token.kind.value}] cannot be used for [{kind.value}]", 1401)


def check_token(token: t.Optional[ContinuationToken], kind: SegmentKind) -> t.Optional[str]:
    """Return the marker to send for a token, or None to start from the first page.

        A token with an empty marker belongs to a finished sequence and
        cannot be continued.
    """
    check_token_kind(token, kind)
    if token is None:
        return None
    if is_terminal(token):
        raise InvalidOperationError(f"Segmented [{kind.value}] sequence has no more pages", 1404)
    return token.next_marker


@dataclasses.dataclass
class ResultSegment:

    results: list
    continuation_token: t.Optional[ContinuationToken] = None

    @property
    def is_last(self) -> bool:
        return is_terminal(self.continuation_token)


@dataclasses.dataclass
class CloseHandlesSegment(ResultSegment):

    num_handles_closed: int = 0


class SegmentedEnumerator:
    """Lazy view over a segmented operation.

        Each call to fetch_next() is exactly one round trip. Iterating the
        enumerator yields the items of every page in the order the service
        returned them. Only the current page is held in memory.

        If the halt flag trips before a round trip, HaltInterrupt is raised
        and the token is left as it was, so the caller can resume from it.
    """

    def __init__(self,
                 fetch: t.Callable[[t.Optional[ContinuationToken], t.Optional[int]], ResultSegment],
                 kind: SegmentKind,
                 page_size: t.Optional[int] = None,
                 token: t.Optional[ContinuationToken] = None,
                 halt_flag: HaltFlag = None):
        check_token_kind(token, kind)
        check_page_size(page_size)
        self._fetch = fetch
        self._kind = kind
        self._page_size = page_size
        self._token = token
        self._started = token is not None
        self._halt_flag = halt_flag
        self._log = zrlog.get_logger("shareclient.segments")

    @property
    def kind(self) -> SegmentKind:
        return self._kind

    @property
    def token(self) -> t.Optional[ContinuationToken]:
        return self._token

    @property
    def finished(self) -> bool:
        return self._started and is_terminal(self._token)

    def fetch_next(self) -> ResultSegment:
        if self.finished:
            raise InvalidOperationError(f"Segmented [{self._kind.value}] sequence has no more pages", 1403)
        if self._halt_flag is not None:
            self._halt_flag.check_continue(True)
        segment = self._fetch(self._token, self._page_size)
        self._started = True
        self._token = segment.continuation_token
        self._log.debug(f"Fetched [{self._kind.value}] page with [{len(segment.results)}] results, last page: [{segment.is_last}]")
        return segment

    def pages(self) -> t.Iterable[ResultSegment]:
        while not self.finished:
            yield self.fetch_next()

    def __iter__(self):
        for segment in self.pages():
            yield from segment.results
