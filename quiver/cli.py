"""
Quiver runner: lookup, parse and execute one invocation.

Flow of CLI.run(*args)
1. loader.lookup(args) -> (tool, remaining args); definitions below the tool are finished.
2. ArgParser(tool).parse(remaining).finish() -> data + usage errors.
3. usage errors -> trigger(UsageExit(errors), deferred=True, ...) and exit status 2.
4. no run handler -> NotRunnableError and exit status 126.
5. otherwise the handler runs inside the middleware run chain with a Context;
   its return value (None means 0) is the exit status.

Definition and loader errors (also those raised by a run handler, such as a
delegation loop) are surfaced with trigger(); in shell mode they are
printed and run() returns 1, otherwise they propagate.
"""
import logging
import os
from collections.abc import Mapping

from rich.console import Console
from rich.logging import RichHandler

from .faults import QuiverException, NotRunnableError, UsageExit, trigger
from .loader import Loader
from .parser import ArgParser
from .utils import *

logger = logging.getLogger(__name__)

DEBUG_MODE = os.environ.get("QUIVER_DEBUG", "").lower() in ("1", "true", "yes")


def setup_logging(level=None):
    """
    Attach a rich handler to the "quiver" logger.

    The level defaults to DEBUG when QUIVER_DEBUG is set, WARNING otherwise.
    Calling it again only updates the level.
    """
    if level is None:
        level = logging.DEBUG if DEBUG_MODE else logging.WARNING
    package_logger = logging.getLogger("quiver")
    package_logger.setLevel(level)
    if not any(isinstance(handler, RichHandler) for handler in package_logger.handlers):
        package_logger.addHandler(RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True))
    return package_logger


class Context(Mapping):
    """
    What a run handler receives: a read-only mapping over the parsed data plus
    the invocation around it. Included mixins are mixed into this class.
    """

    def __init__(self, cli, tool, args, data, /, delegated_from=None):
        self._cli = cli
        self._tool = tool
        self._args = list(args)
        self._data = dict(data)
        self._delegated_from = delegated_from

    def __getitem__(self, key, /):
        return self._data[key]

    def __iter__(self):
        return iter(self._data)

    def __len__(self):
        return len(self._data)

    def __repr__(self):
        return f"context(tool={self._tool.display_name!r}, data={self._data!r})"

    @property
    def cli(self):
        return self._cli

    @property
    def tool(self):
        return self._tool

    @property
    def args(self):
        return list(self._args)

    @property
    def delegated_from(self):
        """Context of the tool that delegated to this one, or None."""
        return self._delegated_from

    @property
    def logger(self):
        return logging.getLogger(".".join(("quiver", "tools", *self._tool.full_name)))

    def find_data(self, path, /, type=None):
        return self._tool.find_data(path, type=type)

    def run(self, *args):
        """Run another tool with the same CLI and return its exit status."""
        return self._cli.run(*args)


class CLI(metaclass=DefinitionType):
    """
    Command line entry point wrapping a Loader.

    Options (keyword-only)
    - prog: program name shown in fault headers ("quiver").
    - shell / fancy / colorful: fault rendering, see quiver.faults.trigger().
    - every other option is forwarded to the Loader.
    """
    __introspectable__ = ("loader", "prog", "shell", "fancy", "colorful")
    __displayable__ = ("prog", "loader")

    def __init__(
            self,
            *,
            prog=Unset,
            shell=Unset,
            fancy=Unset,
            colorful=Unset,
            **options,
    ):
        self._prog = coalesce(prog, "quiver")
        self._shell = coalesce(shell, True)
        self._fancy = coalesce(fancy, False)
        self._colorful = coalesce(colorful, False)
        self._loader = Loader(**options)

    def _options(self, **options):
        return {"prog": self._prog, "shell": self._shell, "fancy": self._fancy, "colorful": self._colorful} | options

    def add_path(self, path, /, **options):
        self._loader.add_path(path, **options)
        return self

    def add_config_path(self, directory, /, **options):
        self._loader.add_config_path(directory, **options)
        return self

    def add_block(self, block, /, **options):
        self._loader.add_block(block, **options)
        return self

    def add_search_path_hierarchy(self, start=Unset, terminate=None, high_priority=False):
        """
        Register the config items of start (default: cwd) and of every ancestor
        up to terminate (inclusive) or the file system root; nearer wins.
        """
        directory = os.path.abspath(coalesce(start, os.getcwd()))
        terminate = None if terminate is None else os.path.abspath(terminate)
        directories = []
        while True:
            directories.append(directory)
            if directory == terminate or (parent := os.path.dirname(directory)) == directory:
                break
            directory = parent
        if high_priority:
            directories.reverse()
        for directory in directories:
            self._loader.add_config_path(directory, high_priority=high_priority)
        return self

    def run(self, *args, delegated_from=None):
        """
        Run one invocation and return its exit status.

        delegated_from is the context of a delegating tool; it is handed to the
        new context so delegation loops can be detected.
        """
        try:
            tool, remaining = self._loader.lookup(args)
        except QuiverException as fault:
            trigger(fault, **self._options(deferred=True))
            return 1
        logger.debug("running %r with %r", tool.display_name, remaining)

        parser = ArgParser(tool).parse(remaining).finish()
        if errors := parser.errors:
            trigger(UsageExit(errors), **self._options(deferred=True, tool=tool.display_name))
            return 2
        if not tool.is_runnable:
            trigger(
                NotRunnableError(f'tool "{tool.display_name}" is not runnable', tool=tool.display_name),
                **self._options(deferred=True)
            )
            return 126

        context_type = type("Context", (*tool.included_mixins, Context), {})
        context = context_type(self, tool, remaining, parser.data, delegated_from=delegated_from)

        def execute():
            return tool.runnable(context)

        for middleware in self._loader.middleware:
            execute = self._make_run(middleware, context, execute)
        try:
            result = execute()
        except QuiverException as fault:
            trigger(fault, **self._options(deferred=True))
            return 1
        return 0 if result is None else int(result)

    @staticmethod
    def _make_run(middleware, context, next, /):
        @rename("execute")
        def execute():
            return middleware.run(context, next)
        return execute


__all__ = (
    "CLI",
    "Context",
    "setup_logging",
)
