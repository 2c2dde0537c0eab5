"""
Quiver DSL: the default front end evaluating tool sources.

How sources are evaluated
- .py tool files are compiled and executed with the DSL functions injected as
  globals (desc, flag, tool, ...).
- registered blocks are called with the DSL object: block(dsl).
- tool bodies declared with @tool(...) are nested blocks: they run with no
  arguments, immediately when the queried name needs them, otherwise they are
  handed back to the loader and stay on its worklist.

Every content function activates the current tool at the current priority
through the loader. When a higher priority owns the tool the call is ignored.
Otherwise the tool is locked to the source being evaluated.

Example (a .py tool file)
    desc("Greets people")
    flag("loud", "-l", "--[no-]loud", desc="Shout")
    optional_arg("name", default="world")

    @run
    def greet(context):
        print(f"hello {context['name']}")
"""
import logging
from contextlib import contextmanager

from .utils import *

logger = logging.getLogger(__name__)


class _Frame:
    __slots__ = ("loader", "source", "words", "remaining", "priority", "group")

    def __init__(self, loader, source, words, remaining, priority):
        self.loader = loader
        self.source = source
        self.words = tuple(words)
        self.remaining = remaining
        self.priority = priority
        self.group = None


class DSL:
    """
    Stateful evaluator; one frame per source being evaluated.
    """
    EXPORTS = (
        "tool",
        "alias_tool",
        "include",
        "desc",
        "long_desc",
        "flag",
        "required_arg",
        "optional_arg",
        "remaining_args",
        "flag_group",
        "all_required",
        "exactly_one",
        "at_most_one",
        "at_least_one",
        "acceptor",
        "mixin",
        "include_mixin",
        "template",
        "expand",
        "disable_argument_parsing",
        "disable_flag",
        "enforce_flags_before_args",
        "delegate_to",
        "run",
        "find_data",
        "context_directory",
        "current_tool",
    )

    def __init__(self):
        self._frames = []

    # --- front end protocol ---

    def load_file(self, loader, source, words, remaining, priority, /):
        with open(source.source_path, encoding="utf-8") as file:
            code = compile(file.read(), source.source_path, "exec")
        namespace = {
            "__name__": "__quiver__",
            "__file__": source.source_path,
        } | {name: getattr(self, name) for name in type(self).EXPORTS}
        with self._push(loader, source, words, remaining, priority):
            exec(code, namespace)

    def load_block(self, loader, source, words, remaining, priority, /):
        with self._push(loader, source, words, remaining, priority):
            if source.origin is source:
                source.source_block(self)
            else:
                source.source_block()

    @contextmanager
    def _push(self, loader, source, words, remaining, priority):
        self._frames.append(_Frame(loader, source, words, remaining, priority))
        try:
            yield self._frames[-1]
        finally:
            self._frames.pop()

    def _frame(self):
        if not self._frames:
            raise RuntimeError("dsl functions can only be called while a tool source is loading")
        return self._frames[-1]

    def _current(self, lock=True):
        frame = self._frame()
        tool = frame.loader.activate_tool(frame.words, frame.priority)
        if tool is not None and lock:
            tool.lock_source(frame.source)
        return tool

    # --- structure ---

    def tool(self, words, /):
        """
        Decorator declaring a subtool; the decorated function is its body.
        """
        frame = self._frame()
        words = frame.loader.split_path(words)

        def decorator(function):
            remaining = frame.remaining
            for word in words:
                remaining = frame.loader.next_remaining_words(remaining, word)
            frame.loader.load_block(
                frame.source,
                function,
                (*frame.words, *words),
                remaining,
                frame.priority,
                name=f"{frame.source.source_name} ({' '.join((*frame.words, *words))})",
            )
            return function

        return decorator

    def alias_tool(self, word, target, /):
        """
        Make the subtool word an alias: a string target is split on the loader's
        delimiters and names a tool below the current one (a sibling of the
        alias), a list of words an absolute tool name.
        """
        frame = self._frame()
        if isinstance(target, str):
            target = (*frame.words, *frame.loader.split_path(target))
        frame.loader.make_alias((*frame.words, word), target, frame.priority, frame.source)

    def include(self, path, /):
        frame = self._frame()
        frame.loader.include_path(frame.source, path, frame.words, frame.remaining, frame.priority)

    # --- description ---

    def desc(self, text, /):
        if (tool := self._current()) is not None:
            tool.desc = text

    def long_desc(self, *lines):
        if (tool := self._current()) is not None:
            tool.append_long_desc(*lines)

    # --- arguments ---

    def flag(
            self,
            key,
            *flags,
            accept=None,
            default=None,
            handler=None,
            report_collisions=True,
            group=Unset,
            desc=None,
            long_desc=(),
            display_name=None,
    ):
        if (tool := self._current()) is None:
            return None
        return tool.add_flag(
            key,
            flags,
            accept,
            default,
            handler,
            report_collisions,
            coalesce(group, self._frame().group),
            desc,
            long_desc,
            display_name,
        )

    def required_arg(self, key, /, accept=None, display_name=None, desc=None, long_desc=()):
        if (tool := self._current()) is not None:
            return tool.add_required_arg(key, accept, display_name, desc, long_desc)

    def optional_arg(self, key, /, default=None, accept=None, display_name=None, desc=None, long_desc=()):
        if (tool := self._current()) is not None:
            return tool.add_optional_arg(key, default, accept, display_name, desc, long_desc)

    def remaining_args(self, key, /, default=Unset, accept=None, display_name=None, desc=None, long_desc=()):
        if (tool := self._current()) is not None:
            return tool.set_remaining_args(key, default, accept, display_name, desc, long_desc)

    @contextmanager
    def flag_group(self, type=None, name=None, desc=None, long_desc=(), prepend=False):
        """
        Context manager: flags declared inside join the new group.
        """
        frame = self._frame()
        if (tool := self._current()) is None:
            yield None
            return
        group = tool.add_flag_group(type, name, desc, long_desc, prepend)
        previous, frame.group = frame.group, group
        try:
            yield group
        finally:
            frame.group = previous

    def all_required(self, name=None, desc=None, long_desc=(), prepend=False):
        return self.flag_group("required", name, desc, long_desc, prepend)

    def exactly_one(self, name=None, desc=None, long_desc=(), prepend=False):
        return self.flag_group("exactly_one", name, desc, long_desc, prepend)

    def at_most_one(self, name=None, desc=None, long_desc=(), prepend=False):
        return self.flag_group("at_most_one", name, desc, long_desc, prepend)

    def at_least_one(self, name=None, desc=None, long_desc=(), prepend=False):
        return self.flag_group("at_least_one", name, desc, long_desc, prepend)

    def disable_argument_parsing(self):
        if (tool := self._current()) is not None:
            tool.disable_argument_parsing()

    def disable_flag(self, *flags):
        if (tool := self._current()) is not None:
            tool.disable_flag(*flags)

    def enforce_flags_before_args(self, state=True):
        if (tool := self._current()) is not None:
            tool.enforce_flags_before_args(state)

    def delegate_to(self, target, /):
        """
        Run another tool (a delimited string or a list of words, both absolute)
        with this tool's arguments.
        """
        frame = self._frame()
        if (tool := self._current()) is not None:
            tool.delegate_to(frame.loader.split_path(target))

    # --- named registries ---

    def acceptor(self, name, spec=Unset, /, type_desc=Unset):
        if (tool := self._current()) is not None:
            return tool.add_acceptor(name, spec, type_desc=type_desc)

    def mixin(self, name, mixin=Unset, /):
        """
        Register a mixin class; usable as a decorator when the class is omitted.
        """
        def register(mixin):
            if (tool := self._current()) is not None:
                tool.add_mixin(name, mixin)
            return mixin

        return register if mixin is Unset else register(mixin)

    def include_mixin(self, spec, /):
        if (tool := self._current()) is not None:
            return tool.include_mixin(spec)

    def template(self, name, template=Unset, /):
        """
        Register a template, a callable receiving the DSL and its arguments;
        usable as a decorator when the callable is omitted.
        """
        def register(template):
            if (tool := self._current()) is not None:
                tool.add_template(name, template)
            return template

        return register if template is Unset else register(template)

    def expand(self, spec, /, *args, **kwargs):
        if (tool := self._current(lock=False)) is None:
            return None
        template = tool.resolve_template(spec)
        logger.debug("expanding template %r in tool %r", spec, tool.display_name)
        return template(self, *args, **kwargs)

    # --- execution ---

    def run(self, function, /):
        """
        Decorator setting the run handler of the current tool.
        """
        if (tool := self._current()) is not None:
            tool.runnable = function
        return function

    # --- context ---

    def find_data(self, path, /, type=None):
        return self._frame().source.find_data(path, type=type)

    def context_directory(self):
        return self._frame().source.context_directory

    def current_tool(self):
        return self._current(lock=False)


__all__ = (
    "DSL",
)
