"""
Quiver loader: search roots, lazy loading and name resolution.

Scope
- Registration: add_path / add_config_path / add_block record search roots, each
  with an explicit integer priority (see Registration). High-priority roots get
  max+1, low-priority roots get min-1, and an explicit priority= is honored as is.
- Laziness: every registered source sits on a worklist with the name it is rooted
  at. A query for a prefix loads exactly the sources whose root name is on the
  path of that prefix. Directories descend only into the entry matching the next
  name segment, and everything else goes back to the worklist. A query for a name
  that is an ancestor of a source root loads that whole source.
- Resolution: lookup() returns the longest loaded candidate prefix (see
  _candidate()), following aliases, and finishes the definitions below it.
- Priorities: one ToolDefinition per (name, priority). Content is written only
  through activate_tool(): the first priority to activate a name owns it, higher
  priorities take over, and lower priorities are ignored for that name only.

The loader never evaluates tool sources itself; it hands them to a front end
(quiver.dsl.DSL by default) through load_file()/load_block().
"""
import importlib.util
import itertools
import logging
import os
import re
from collections import namedtuple

from .dsl import DSL
from .faults import QuiverException, ToolDefinitionError, ToolSourceError, FaultCode
from .middleware import Middleware
from .sources import SourceInfo, EXTENSION
from .tools import ToolDefinition, Alias
from .utils import *

logger = logging.getLogger(__name__)

DELIMITERS = ".:/"

Registration = namedtuple("Registration", ("kind", "target", "priority"))


class _Entry:
    """Every definition of one full name, keyed by priority."""
    __slots__ = ("definitions", "top_priority", "active_priority", "explicit")

    def __init__(self):
        self.definitions = {}
        self.top_priority = None
        self.active_priority = None
        self.explicit = False

    @property
    def current(self):
        priority = self.active_priority if self.active_priority is not None else self.top_priority
        return None if priority is None else self.definitions.get(priority)


def calc_remaining_words(words1, words2, /):
    """
    Compare a queried prefix (words1) with the name a source is rooted at (words2).

    Returns
    - the part of words1 below words2 when words2 is a prefix of words1;
    - [] when words1 is a prefix of words2 (the whole source is needed);
    - None when the names diverge (the source is irrelevant).
    """
    index = 0
    while True:
        if index in (len(words1), len(words2)):
            return list(words1[index:])
        if words1[index] != words2[index]:
            return None
        index += 1


def next_remaining_words(remaining, word, /):
    """
    Remaining words after descending into the child named word.

    None stays None, [] stays [] (full load), and a mismatch yields None.
    """
    if remaining is None:
        return None
    if not remaining:
        return []
    if remaining[0] == word:
        return list(remaining[1:])
    return None


def _resolve_middleware(middleware, /):
    resolved = []
    for item in middleware:
        if isinstance(item, type) and issubclass(item, Middleware):
            item = item()
        if not isinstance(item, Middleware):
            raise TypeError(f"{Loader.__typename__} middleware must be a middleware class or instance")
        resolved.append(item)
    return resolved


class Loader(metaclass=DefinitionType):
    """
    The tool resolution engine.

    Options (keyword-only, Unset means default)
    - index_file_name: file defining a directory's own tool (".quiver.py").
    - config_file_name / config_dir_name: names registered by add_config_path()
      (".quiver.py" and ".quiver").
    - data_dir_name: data directory searched by find_data (".data").
    - lib_dir_name: directory put on sys.path before a tool file below it runs (".lib").
    - preload_file_name / preload_dir_name: module file, and directory of module
      files, executed once before a directory's tools are loaded (".preload.py"
      and ".preload").
    - extra_delimiters: characters out of ".:/" splitting tool names ("").
    - middleware: middleware classes or instances applied to every tool.
    - frontend: object evaluating sources (DSL()).

    Any of the special names may be None to switch the feature off.
    """
    __introspectable__ = (
        "index_file_name",
        "config_file_name",
        "config_dir_name",
        "data_dir_name",
        "lib_dir_name",
        "preload_file_name",
        "preload_dir_name",
        "extra_delimiters",
        "middleware",
        "frontend",
    )
    __displayable__ = ("index_file_name", "data_dir_name", "extra_delimiters", "registrations")

    def __init__(
            self,
            *,
            index_file_name=Unset,
            config_file_name=Unset,
            config_dir_name=Unset,
            data_dir_name=Unset,
            lib_dir_name=Unset,
            preload_file_name=Unset,
            preload_dir_name=Unset,
            extra_delimiters=Unset,
            middleware=Unset,
            frontend=Unset,
    ):
        self._index_file_name = coalesce(index_file_name, ".quiver.py")
        self._config_file_name = coalesce(config_file_name, ".quiver.py")
        self._config_dir_name = coalesce(config_dir_name, ".quiver")
        self._data_dir_name = coalesce(data_dir_name, ".data")
        self._lib_dir_name = coalesce(lib_dir_name, ".lib")
        self._preload_file_name = coalesce(preload_file_name, ".preload.py")
        self._preload_dir_name = coalesce(preload_dir_name, ".preload")
        if self._preload_file_name and os.path.splitext(self._preload_file_name)[1] != EXTENSION:
            raise ValueError(f"{type(self).__typename__} illegal preload file name: {self._preload_file_name!r}")
        self._extra_delimiters = coalesce(extra_delimiters, "")
        if not isinstance(self._extra_delimiters, str):
            raise TypeError(f"{type(self).__typename__} 'extra_delimiters' must be a string")
        if illegal := set(self._extra_delimiters) - set(DELIMITERS):
            raise ValueError(f"{type(self).__typename__} illegal delimiters: {''.join(sorted(illegal))!r}")
        self._delimiter_pattern = (
            re.compile(f"[{re.escape(''.join(dict.fromkeys(self._extra_delimiters)))}]")
            if self._extra_delimiters else None
        )
        self._middleware = _resolve_middleware(coalesce(middleware, ()))
        self._frontend = DSL() if frontend is Unset else frontend

        self._registrations = []
        self._worklist = []
        self._entries = {}
        self._preloaded = {}
        self._max_priority = self._min_priority = 0

    # --- registration ---

    @property
    def registrations(self):
        return tuple(self._registrations)

    @property
    def preloaded(self):
        """Modules executed from preload files, keyed by path, in load order."""
        return dict(self._preloaded)

    def _assign_priority(self, high_priority, priority, /):
        if priority is not Unset:
            if not isinstance(priority, int) or isinstance(priority, bool):
                raise TypeError(f"{type(self).__typename__} 'priority' must be an integer")
            self._max_priority = max(self._max_priority, priority)
            self._min_priority = min(self._min_priority, priority)
            return priority
        if high_priority:
            self._max_priority += 1
            return self._max_priority
        self._min_priority -= 1
        return self._min_priority

    def _register(self, kind, target, source, priority, /):
        self._registrations.append(Registration(kind, target, priority))
        self._worklist.append((source, (), priority))
        logger.debug("registered %s %s at priority %d", kind, target, priority)

    def add_path(self, path, /, high_priority=False, priority=Unset, context_directory=Unset):
        """
        Register a file or directory (or a list of them, sharing one priority) as a search root.

        Raises
        - LoaderError: unreadable path, unsupported file or special file type.
        """
        paths = [path] if isinstance(path, str | os.PathLike) else list(path)
        priority = self._assign_priority(high_priority, priority)
        for path in paths:
            source = SourceInfo.create_path_root(
                os.fspath(path), priority, context_directory, self._data_dir_name, self._lib_dir_name
            )
            self._register("path", source.source_path, source, priority)
        return self

    def add_config_path(self, directory, /, high_priority=False, priority=Unset):
        """
        Register the config file and the config directory found in directory.

        Each existing item becomes its own root; the config file outranks the
        config directory. With an explicit priority both share it.
        """
        directory = os.path.abspath(os.path.expanduser(os.fspath(directory)))
        items = []
        if self._config_file_name:
            file_path = os.path.join(directory, self._config_file_name)
            if os.path.isfile(file_path) and os.access(file_path, os.R_OK):
                items.append(file_path)
        if self._config_dir_name:
            dir_path = os.path.join(directory, self._config_dir_name)
            if os.path.isdir(dir_path) and os.access(dir_path, os.R_OK):
                items.append(dir_path)
        if high_priority:
            items.reverse()
        for item in items:
            item_priority = self._assign_priority(high_priority, priority)
            source = SourceInfo.create_path_root(
                item, item_priority, directory, self._data_dir_name, self._lib_dir_name
            )
            self._register("config", item, source, item_priority)
        return self

    def add_block(self, block, /, high_priority=False, priority=Unset, name=Unset, context_directory=None):
        """
        Register an in-memory block; it is called with the front end when loaded.
        """
        priority = self._assign_priority(high_priority, priority)
        source = SourceInfo.create_block_root(
            block, priority, name, context_directory, self._data_dir_name, self._lib_dir_name
        )
        self._register("block", source.source_name, source, priority)
        return self

    # --- definitions ---

    def _entry(self, words, /):
        return self._entries.setdefault(tuple(words), _Entry())

    def _get_tool(self, words, priority, /):
        parent = self._get_tool(words[:-1], priority) if words else None
        if isinstance(parent, Alias):
            raise ToolDefinitionError(
                f"cannot define subtool {' '.join(words)!r} of alias {parent.display_name!r}",
                code=FaultCode.ALIAS_CONFLICT
            )
        entry = self._entry(words)
        if entry.top_priority is None or entry.top_priority < priority:
            entry.top_priority = priority
        if (definition := entry.definitions.get(priority)) is None:
            definition = entry.definitions[priority] = ToolDefinition(parent, words, priority, self._middleware)
        return definition

    def get_tool(self, words, priority, /):
        """
        Get or create the definition of words at priority (and its ancestors),
        marking words as a name some source addresses directly.
        """
        words = tuple(words)
        definition = self._get_tool(words, priority)
        self._entries[words].explicit = True
        return definition

    def activate_tool(self, words, priority, /):
        """
        Claim words for content at priority.

        Returns the definition to write content to, or None when a higher
        priority already owns the name.
        """
        words = tuple(words)
        entry = self._entry(words)
        if entry.active_priority == priority:
            definition = entry.definitions[priority]
        elif entry.active_priority is not None and entry.active_priority > priority:
            logger.debug(
                "ignoring content for %r at priority %d (priority %d is active)",
                " ".join(words), priority, entry.active_priority
            )
            return None
        else:
            entry.active_priority = priority
            definition = self.get_tool(words, priority)
        if isinstance(definition, Alias):
            raise ToolDefinitionError(
                f"cannot define content for {definition.display_name!r} because it is an alias",
                code=FaultCode.ALIAS_CONFLICT
            )
        return definition

    def make_alias(self, words, target, priority, /, source=None):
        """
        Make words an alias of target at priority.

        target is either a sibling name (string) or an absolute name (sequence).
        Returns the Alias, or None when a higher priority already owns the name.
        """
        words = tuple(words)
        if not words:
            raise ToolDefinitionError("cannot make the root tool an alias", code=FaultCode.ALIAS_CONFLICT)
        entry = self._entry(words)
        if entry.active_priority is not None and entry.active_priority > priority:
            logger.debug("ignoring alias %r at priority %d", " ".join(words), priority)
            return None
        existing = entry.definitions.get(priority)
        if existing is not None and existing.includes_definition():
            raise ToolDefinitionError(
                f"cannot make {' '.join(words)!r} an alias because it is already defined",
                code=FaultCode.ALIAS_CONFLICT
            )
        parent = self._get_tool(words[:-1], priority)
        alias = Alias(parent, words, target, priority, source)
        entry.definitions[priority] = alias
        entry.active_priority = priority
        if entry.top_priority is None or entry.top_priority < priority:
            entry.top_priority = priority
        entry.explicit = True
        return alias

    def tool_defined(self, words, /):
        """
        Whether anything has been loaded for words. Never triggers loading.
        """
        entry = self._entries.get(tuple(words))
        return entry is not None and bool(entry.definitions)

    # --- resolution ---

    def split_path(self, string, /):
        """
        Split a tool name on the extra delimiters; sequences are returned as lists.
        """
        if not isinstance(string, str):
            return [str(word) for word in string]
        if self._delimiter_pattern is None:
            return [string]
        return self._delimiter_pattern.split(string)

    def _find_prefix(self, args, /):
        if self._delimiter_pattern is not None and args:
            parts = self._delimiter_pattern.split(args[0])
            if len(parts) > 1 and all(parts):
                return parts, args[1:]
        prefix = list(itertools.takewhile(lambda arg: not arg.startswith("-"), args))
        return prefix, args[len(prefix):]

    def _candidate(self, words, /):
        entry = self._entries.get(words)
        if entry is None or (definition := entry.current) is None:
            return None
        if entry.explicit or definition.includes_definition():
            return definition
        return None

    def lookup(self, args, /):
        """
        Resolve command line arguments to a tool.

        Returns
        - (tool, remaining args): the most specific loaded tool for the leading
          non-flag words, and every argument after its name. Aliases are followed.

        Raises
        - ToolDefinitionError / LoaderError raised while loading a needed source.
        """
        prefix, args = self._find_prefix(list(args))
        return self._lookup(tuple(prefix), args, ())

    def _lookup(self, prefix, args, seen, /):
        self.load_for_prefix(prefix)
        words = prefix
        while (definition := self._candidate(words)) is None and words:
            words = words[:-1]
        if definition is None:
            definition = self.get_tool((), 0)
        rest = [*prefix[len(words):], *args]
        if isinstance(definition, Alias):
            if words in seen:
                raise ToolDefinitionError(
                    f"circular alias: {' -> '.join(' '.join(name) for name in (*seen, words))}",
                    code=FaultCode.CIRCULAR_ALIAS
                )
            target = tuple(definition.target_name)
            logger.debug("alias %r resolves to %r", definition.display_name, " ".join(target))
            return self._lookup((*target, *prefix[len(words):]), args, (*seen, words))
        self._finish_tree(words)
        return definition, rest

    def lookup_specific(self, words, /):
        """
        Resolve exactly words, with no fallback to a shorter prefix and no alias
        following. A single word is split on the extra delimiters.

        Returns the current definition (finished, along with everything below
        it), or None when nothing defines that name.
        """
        words = [words] if isinstance(words, str) else list(words)
        if len(words) == 1:
            words = self.split_path(words[0])
        words = tuple(words)
        self.load_for_prefix(words)
        entry = self._entries.get(words)
        if entry is None or (definition := entry.current) is None:
            return None
        self._finish_tree(words)
        return definition

    def _finish_tree(self, words, /):
        for name, entry in list(self._entries.items()):
            if name[:len(words)] == words and (definition := entry.current) is not None:
                definition.finish_definition(self)

    def list_subtools(self, words, /, recursive=False, include_hidden=False):
        """
        Current definitions below words (direct children unless recursive), sorted
        by name, parents before their children.

        Unless include_hidden, names with a segment starting with "_" are left
        out, and so is a non-runnable tool directly followed by its own subtool.
        """
        words = tuple(words)
        self.load_for_prefix(words)
        found = []
        for name, entry in self._entries.items():
            if len(name) <= len(words) or name[:len(words)] != words:
                continue
            if not recursive and len(name) != len(words) + 1:
                continue
            if (definition := entry.current) is None:
                continue
            if not include_hidden and any(word.startswith("_") for word in name[len(words):]):
                continue
            found.append(definition)
        found.sort(key=lambda definition: definition.full_name)
        if include_hidden:
            return found
        return [
            definition for definition, following in zip(found, [*found[1:], None])
            if not self._collection_hidden(definition, following)
        ]

    @staticmethod
    def _collection_hidden(definition, following, /):
        return (
            isinstance(definition, ToolDefinition) and
            not definition.is_runnable and
            following is not None and
            following.full_name[:-1] == definition.full_name
        )

    def has_subtools(self, words, /):
        words = tuple(words)
        self.load_for_prefix(words)
        return any(
            len(name) > len(words) and name[:len(words)] == words and entry.definitions
            for name, entry in self._entries.items()
        )

    # --- loading ---

    def load_for_prefix(self, prefix, /):
        """
        Load every pending source that could define prefix or something below it.
        """
        prefix = tuple(prefix)
        worklist, self._worklist = self._worklist, []
        for source, words, priority in worklist:
            if (remaining := calc_remaining_words(prefix, words)) is None:
                self._worklist.append((source, words, priority))
            else:
                self._load(source, words, remaining, priority)
        return self

    def include_path(self, source, path, words, remaining, priority, /):
        """
        Load (or defer) another path as if rooted at words.
        """
        self._load(source.absolute_child(path), tuple(words), remaining, priority)

    def load_block(self, source, block, words, remaining, priority, /, name=Unset):
        """
        Load (or defer) a block nested in source, rooted at words.
        """
        self._load(source.block_child(block, name), tuple(words), remaining, priority)

    def _load(self, source, words, remaining, priority, /):
        if remaining is None:
            logger.debug("deferring %s for %r", source.source_name, " ".join(words))
            self._worklist.append((source, words, priority))
            return
        logger.debug("loading %s for %r (priority %d)", source.source_name, " ".join(words), priority)
        self.get_tool(words, priority)
        match source.source_type:
            case "directory":
                self._preload(source)
                self._load_directory(source, words, remaining, priority)
            case "file":
                source.apply_lib_paths()
                self._evaluate(self._frontend.load_file, source, words, remaining, priority)
            case "block":
                source.apply_lib_paths()
                self._evaluate(self._frontend.load_block, source, words, remaining, priority)

    def _evaluate(self, load, source, words, remaining, priority, /):
        try:
            load(self, source, words, remaining, priority)
        except QuiverException:
            raise
        except Exception as exc:
            raise ToolSourceError(
                f"error while loading {source.source_name}: {exc}",
                code=FaultCode.SOURCE_FAILED,
                path=source.source_name,
            ) from exc

    def _preload(self, source, /):
        directory = source.source_path
        paths = []
        if self._preload_file_name:
            path = os.path.join(directory, self._preload_file_name)
            if os.path.isfile(path) and os.access(path, os.R_OK):
                paths.append(path)
        if self._preload_dir_name:
            preload_dir = os.path.join(directory, self._preload_dir_name)
            if os.path.isdir(preload_dir) and os.access(preload_dir, os.R_OK):
                for name in sorted(os.listdir(preload_dir)):
                    path = os.path.join(preload_dir, name)
                    if name.endswith(EXTENSION) and os.path.isfile(path) and os.access(path, os.R_OK):
                        paths.append(path)
        for path in paths:
            if path not in self._preloaded:
                self._preloaded[path] = self._execute_module(path)

    @staticmethod
    def _execute_module(path, /):
        logger.debug("preloading %s", path)
        name = os.path.splitext(os.path.basename(path))[0].lstrip(".") or "preload"
        spec = importlib.util.spec_from_file_location(f"quiver.preloads.{name}", path)
        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except QuiverException:
            raise
        except Exception as exc:
            raise ToolSourceError(
                f"error while preloading {path}: {exc}", code=FaultCode.SOURCE_FAILED, path=path
            ) from exc
        return module

    def _load_directory(self, source, words, remaining, priority, /):
        if self._index_file_name:
            index = source.relative_child(self._index_file_name)
            if index is not None and index.source_type == "file":
                self._load(index, words, remaining, priority)
        skipped = (
            self._index_file_name,
            self._data_dir_name,
            self._lib_dir_name,
            self._preload_file_name,
            self._preload_dir_name,
        )
        for name in sorted(os.listdir(source.source_path)):
            if name.startswith(".") or name in skipped:
                continue
            if (child := source.relative_child(name)) is None:
                continue
            word = name.removesuffix(EXTENSION) if child.source_type == "file" else name
            self._load(child, (*words, word), next_remaining_words(remaining, word), priority)

    next_remaining_words = staticmethod(next_remaining_words)


__all__ = (
    "Loader",
    "Registration",
    "calc_remaining_words",
    "next_remaining_words",
)
