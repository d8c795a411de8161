from __future__ import annotations
import dataclasses
import fnmatch
import typing as t

from shareclient.util import HaltFlag
from .base import ShareItem, mutating_operation
from .endpoint import ItemKind, ChildEntry
from .errors import ConflictError, InvalidOperationError
from .names import validate_directory_name
from .paths import ShareAddress
from .segments import SegmentKind, ContinuationToken, ResultSegment, SegmentedEnumerator, check_token, check_page_size

if t.TYPE_CHECKING:
    from .share import ShareReference
    from .file import ShareFile


@dataclasses.dataclass(frozen=True)
class ListedItem:
    """A file or directory as returned by a directory listing."""

    kind: ItemKind
    name: str
    address: ShareAddress
    share: ShareReference = dataclasses.field(repr=False)
    properties: dict = dataclasses.field(default_factory=dict, compare=False, repr=False)

    @property
    def uri(self) -> str:
        return self.address.uri

    @property
    def is_directory(self) -> bool:
        return self.kind == ItemKind.DIRECTORY

    @property
    def is_file(self) -> bool:
        return self.kind == ItemKind.FILE

    def to_node(self, halt_flag: HaltFlag = None) -> t.Union[ShareDirectory, ShareFile]:
        if self.is_directory:
            node = self.share.directory_at(self.address, halt_flag=halt_flag)
        else:
            node = self.share.file_at(self.address, halt_flag=halt_flag)
        node.properties.update_confirmed(self.properties)
        return node

    def as_directory(self, halt_flag: HaltFlag = None) -> ShareDirectory:
        if not self.is_directory:
            raise InvalidOperationError(f"Listed item [{self.uri}] is a file, not a directory", 1502)
        return self.to_node(halt_flag)

    def as_file(self, halt_flag: HaltFlag = None) -> ShareFile:
        if not self.is_file:
            raise InvalidOperationError(f"Listed item [{self.uri}] is a directory, not a file", 1503)
        return self.to_node(halt_flag)


class ShareDirectory(ShareItem):
    """A directory in a share, possibly the share's root directory."""

    kind = ItemKind.DIRECTORY
    logger_name = "shareclient.directory"

    def _validate_name(self):
        validate_directory_name(self.name)

    def subdir(self, name: str) -> ShareDirectory:
        """Reference a directory beneath this one. Slashes create deeper paths."""
        return self.share.directory_at(self.address.resolve(name), halt_flag=self._halt_flag)

    def child(self, name: str) -> ShareFile:
        """Reference a file beneath this one."""
        return self.share.file_at(self.address.resolve(name), halt_flag=self._halt_flag)

    @mutating_operation("create")
    def create(self):
        self._create()

    @mutating_operation("create")
    def create_if_not_exists(self) -> bool:
        """Create the directory, returning False if it was already there."""
        try:
            self._create()
            return True
        except ConflictError:
            self._log.debug(f"Directory [{self}] already exists")
            return False

    def list_items_segmented(self,
                             token: t.Optional[ContinuationToken] = None,
                             prefix: t.Optional[str] = None,
                             page_size: t.Optional[int] = None) -> ResultSegment:
        """Fetch one page of the directory's children."""
        marker = check_token(token, SegmentKind.LISTING)
        if page_size is None:
            page_size = self.share.list_page_size
        check_page_size(page_size)
        self._breakpoint()
        self._log.debug(f"Listing directory [{self}] with prefix [{prefix or ''}]")
        entries, next_marker = self.endpoint.list_children(
            self.address,
            prefix=prefix,
            page_size=page_size,
            marker=marker,
            snapshot=self.share.snapshot
        )
        return ResultSegment(
            [self._listed_item(x) for x in entries],
            ContinuationToken.from_marker(SegmentKind.LISTING, next_marker)
        )

    def list_items(self, prefix: t.Optional[str] = None, page_size: t.Optional[int] = None) -> SegmentedEnumerator:
        """Iterate over every child in service order, one page per round trip."""
        return SegmentedEnumerator(
            lambda token, size: self.list_items_segmented(token, prefix, size),
            SegmentKind.LISTING,
            page_size=page_size,
            halt_flag=self._halt_flag
        )

    def _listed_item(self, entry: ChildEntry) -> ListedItem:
        address = ShareAddress(self.address.share_uri, self.address.segments + (entry.name,))
        return ListedItem(entry.kind, entry.name, address, self.share, dict(entry.properties))

    def walk(self, recursive: bool = True, files_only: bool = True) -> t.Iterable[ShareItem]:
        """Find all files (and directories unless files_only), depth first."""
        more_work: list[ShareDirectory] = []
        for item in self.list_items():
            if item.is_file:
                yield item.to_node(self._halt_flag)
            elif recursive or not files_only:
                sub_dir = item.as_directory(self._halt_flag)
                if recursive:
                    more_work.append(sub_dir)
                if not files_only:
                    yield sub_dir
        for sub_dir in more_work:
            yield from sub_dir.walk(recursive, files_only)

    def search(self, pattern: t.Optional[str], recursive: bool = True) -> t.Iterable[ShareFile]:
        """Find all files whose name matches the given pattern."""
        for file in self.walk(recursive):
            if pattern is None or fnmatch.fnmatch(file.name, pattern):
                yield file
