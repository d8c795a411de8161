"""Validation of file and directory names against the share naming rules."""
import re
import typing as t

from .errors import InvalidArgumentError


MAX_NAME_LENGTH = 255

_RESERVED_NAMES = frozenset(
    [".", "..", "CON", "PRN", "AUX", "NUL", "CLOCK$"]
    + [f"COM{x}" for x in range(1, 10)]
    + [f"LPT{x}" for x in range(1, 10)]
)

_INVALID_CHARACTERS = re.compile(r'["\\/:|<>*?\x00-\x1f]')


def _validate_name(name: t.Optional[str], kind: str):
    if name is None or name.strip() == "":
        raise InvalidArgumentError(f"Invalid {kind} name. The {kind} name may not be null, empty, or whitespace only.", 1100)
    if len(name) > MAX_NAME_LENGTH:
        raise InvalidArgumentError(f"Invalid {kind} name length. The {kind} name must be between 1 and {MAX_NAME_LENGTH} characters long.", 1101)
    if _INVALID_CHARACTERS.search(name):
        raise InvalidArgumentError(f"Invalid {kind} name. Check the service documentation for valid {kind} naming.", 1102)
    stem = name if name in (".", "..") else name.split(".")[0]
    if stem.upper() in _RESERVED_NAMES:
        raise InvalidArgumentError(f"Invalid {kind} name. This {kind} name is reserved.", 1103)


def validate_file_name(name: t.Optional[str]):
    """Raise an InvalidArgumentError if the name cannot be used for a file."""
    _validate_name(name, "file")


def validate_directory_name(name: t.Optional[str]):
    """Raise an InvalidArgumentError if the name cannot be used for a directory."""
    _validate_name(name, "directory")
