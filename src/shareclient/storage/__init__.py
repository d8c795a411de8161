"""
    Client-side object model for hierarchical file shares.

    Use the ShareController to get a ShareReference for a share URL, then
    navigate to directories and files from its root directory. Navigation
    never calls the service: a ShareDirectory or ShareFile is just an address
    plus locally staged properties and metadata, and the remote resource may
    or may not exist yet.

    Properties have two sides. Reading an attribute such as
    `node.properties.creation_time` returns the last value the service
    confirmed. Assigning it only stages a pending value, which is sent by the
    next create() or set_properties() call and cleared once that call
    succeeds. Metadata is a case-insensitive mapping that replaces the whole
    service-side set on set_metadata().

    Listings and handle operations are paged by the service. The *_segmented
    methods perform one round trip and return a continuation token; the
    plain methods return a SegmentedEnumerator that drives the token loop
    lazily.

    References obtained from a share snapshot are read-only: every mutating
    call raises InvalidOperationError before anything is sent.

    As with other URL-based storage, a URL that ends with a slash is a
    directory and one without is a file, e.g.

    memory://share/dir1/ -> ShareDirectory
    memory://share/dir1/file1 -> ShareFile
"""
from .core import ShareController
from .share import ShareReference
from .directory import ShareDirectory, ListedItem
from .file import ShareFile
from .endpoint import ItemKind, ServiceEndpoint, FileHandle
from .errors import (
    StorageError, InvalidArgumentError, NotFoundError, ParentNotFoundError, ConflictError,
    PreconditionFailedError, InvalidOperationError, TransportError, ErrorStatus
)
from .segments import ContinuationToken, SegmentedEnumerator
