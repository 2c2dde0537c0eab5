"""
Quiver source information: where a piece of tool content came from.

A SourceInfo describes one loadable unit:
- "file": a .py tool file;
- "directory": a directory whose entries are loaded per name segment;
- "block": an in-memory callable (a registered block, or a tool body deferred
  by the DSL front end).

Sources form a chain through their parent. The chain is used to:
- resolve data files (find_data walks outward through the data directories);
- identify the unit that owns a nested block (origin), which is what a tool's
  source lock compares.

context_directory is the directory relative paths are resolved against by tools
(for config paths, the directory that holds the config file/directory).

Directory sources may carry a lib directory; apply_lib_paths() puts the lib
directories of a chain on sys.path so tool files can import helper modules.
"""
import os
import sys

from .faults import LoaderError, FaultCode
from .utils import *

EXTENSION = ".py"


def check_path(path, lenient=False, /):
    """
    Normalize a path and classify it as "file" or "directory".

    Returns
    - (absolute path, type), or (None, None) when lenient and the path is not usable.

    Raises
    - LoaderError: unreadable path, file without the tool extension, or
      anything that is neither a file nor a directory (unless lenient).
    """
    path = os.path.abspath(os.path.expanduser(path))
    if not os.access(path, os.R_OK):
        if lenient:
            return None, None
        raise LoaderError(f"cannot read: {path}", code=FaultCode.UNREADABLE_PATH, path=path)
    if os.path.isfile(path):
        if os.path.splitext(path)[1] != EXTENSION:
            if lenient:
                return None, None
            raise LoaderError(
                f"file is not a {EXTENSION} file: {path}", code=FaultCode.UNSUPPORTED_FILE, path=path
            )
        return path, "file"
    if os.path.isdir(path):
        return path, "directory"
    if lenient:
        return None, None
    raise LoaderError(f"unknown type: {path}", code=FaultCode.UNKNOWN_PATH_TYPE, path=path)


def _find_special_dir(directory, dir_name, /):
    if directory is None or dir_name is None:
        return None
    candidate = os.path.join(directory, dir_name)
    return candidate if os.path.isdir(candidate) and os.access(candidate, os.R_OK) else None


class SourceInfo(metaclass=DefinitionType):
    """
    Immutable description of one loaded unit.

    Use the factories (create_path_root / create_block_root) for roots, and the
    child builders (relative_child / absolute_child / block_child) for units
    discovered while loading.
    """
    __introspectable__ = (
        "parent",
        "priority",
        "context_directory",
        "source_type",
        "source_path",
        "source_block",
        "source_name",
        "data_dir",
        "data_dir_name",
        "lib_dir",
        "lib_dir_name",
    )
    __displayable__ = ("source_type", "source_name", "priority", "context_directory", "data_dir", "lib_dir")

    def __init__(
            self,
            parent,
            priority,
            context_directory,
            source_type,
            source_path,
            source_block,
            source_name,
            data_dir_name,
            lib_dir_name=None,
            *,
            nested=False,
    ):
        self._parent = parent
        self._priority = priority
        self._context_directory = context_directory
        self._source_type = source_type
        self._source_path = source_path
        self._source_block = source_block
        self._source_name = source_name
        self._data_dir_name = data_dir_name
        self._lib_dir_name = lib_dir_name
        self._nested = nested
        self._lib_dir = None
        if source_type == "directory":
            self._data_dir = _find_special_dir(source_path, data_dir_name)
            self._lib_dir = _find_special_dir(source_path, lib_dir_name)
        elif nested:
            self._data_dir = parent.data_dir
        else:
            self._data_dir = None

    @property
    def root(self):
        source = self
        while source._parent is not None:
            source = source._parent
        return source

    @property
    def origin(self):
        """The unit owning this source: nested blocks resolve to their enclosing file or block."""
        source = self
        while source._nested:
            source = source._parent
        return source

    @property
    def directory(self):
        """Directory used to resolve relative includes from this source."""
        if self._source_type == "directory":
            return self._source_path
        if self._source_path is not None:
            return os.path.dirname(self._source_path)
        return self._context_directory

    def find_data(self, path, /, type=None):
        """
        Find a data file or directory by relative path.

        Looks in this source's data directory first, then delegates to the parent
        chain. type may be None (any readable entry), "file" or "directory".
        Returns the absolute path, or None when the chain is exhausted.
        """
        if type not in (None, "file", "directory"):
            raise ValueError(f"{SourceInfo.__typename__} 'type' must be 'file', 'directory' or None")
        if self._data_dir is not None:
            candidate = os.path.join(self._data_dir, path)
            match type:
                case "file" if os.path.isfile(candidate):
                    return candidate
                case "directory" if os.path.isdir(candidate):
                    return candidate
                case None if os.access(candidate, os.R_OK):
                    return candidate
        if self._parent is not None:
            return self._parent.find_data(path, type=type)
        return None

    def apply_lib_paths(self):
        """
        Prepend the lib directories of this chain to sys.path, the nearest one
        first. Directories already on sys.path are left where they are.
        """
        if self._parent is not None:
            self._parent.apply_lib_paths()
        if self._lib_dir is not None and self._lib_dir not in sys.path:
            sys.path.insert(0, self._lib_dir)
        return self

    def relative_child(self, filename, /):
        """
        Child for an entry of this directory source; None when the entry is not
        loadable (unreadable, not a tool file, special file type).
        """
        if self._source_type != "directory":
            raise LoaderError(
                f"relative child requested from a non-directory source: {self._source_name}",
                code=FaultCode.NOT_A_DIRECTORY
            )
        path, type = check_path(os.path.join(self._source_path, filename), True)
        if path is None:
            return None
        return SourceInfo(
            self, self._priority, self._context_directory, type, path, None, path, self._data_dir_name, self._lib_dir_name
        )

    def absolute_child(self, path, /):
        """
        Child for any other path (includes); relative paths resolve against this
        source's directory. Strict: unusable paths raise LoaderError.
        """
        if not os.path.isabs(os.path.expanduser(path)) and (directory := self.directory) is not None:
            path = os.path.join(directory, path)
        path, type = check_path(path)
        return SourceInfo(
            self, self._priority, self._context_directory, type, path, None, path, self._data_dir_name, self._lib_dir_name
        )

    def block_child(self, block, /, name=Unset):
        """
        Child for a block nested inside this source (a deferred tool body).
        """
        return SourceInfo(
            self,
            self._priority,
            self._context_directory,
            "block",
            self._source_path,
            block,
            coalesce(name, self._source_name),
            self._data_dir_name,
            self._lib_dir_name,
            nested=True,
        )

    @classmethod
    def create_path_root(cls, path, priority, /, context_directory=Unset, data_dir_name=None, lib_dir_name=None):
        path, type = check_path(path)
        context_directory = coalesce(context_directory, path if type == "directory" else os.path.dirname(path))
        return cls(None, priority, context_directory, type, path, None, path, data_dir_name, lib_dir_name)

    @classmethod
    def create_block_root(
            cls, block, priority, /, name=Unset, context_directory=None, data_dir_name=None, lib_dir_name=None
    ):
        if not callable(block):
            raise TypeError(f"{cls.__typename__} block must be callable")
        name = coalesce(name, f"<block {getattr(block, '__qualname__', repr(block))}>")
        return cls(None, priority, context_directory, "block", None, block, name, data_dir_name, lib_dir_name)


__all__ = (
    "SourceInfo",
    "check_path",
)
