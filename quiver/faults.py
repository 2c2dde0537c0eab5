"""
Quiver faults and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every user-facing issue.
  Codes are grouped by domain (usage, definition, loader) to keep logs and
  searches predictable.
- QuiverException: base type carrying message + options, able to render itself
  through rich in a friendly, lowercased way.
- ToolDefinitionError / LoaderError / UsageError families (see FaultCode groups).
- UsageExit: bundles every usage error found while parsing one invocation.
- trigger(): central entry point to surface any fault (respecting shell/deferred/fancy/colorful).

Integration
- Definition and loader errors are raised where they happen and propagate to the
  caller of Loader.lookup()/Loader.tool_defined() that triggered the load.
- Usage errors are collected by the argument parser; the runner surfaces them with
  trigger(UsageExit(errors), **ctx). In shell mode they are printed through rich,
  otherwise raised.
"""
import copy
import sys
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across quiver (stable identifiers).

    grouping (by high-level domain)
    - usage (11xxx): raised while parsing a live invocation.
    - definition (21xxx): raised while loading or constructing tools.
    - loader (31xxx): raised while touching the file system.

    normalize() allows host remapping to custom labels while keeping code-stability.
    """
    # --- usage errors (11xxx) ---
    UNKNOWN_TOOL                = 11101
    NOT_RUNNABLE                = 11102
    UNKNOWN_FLAG                = 11112
    AMBIGUOUS_FLAG              = 11113
    MISSING_FLAG_VALUE          = 11117
    UNACCEPTABLE_VALUE          = 11124
    MISSING_ARGUMENT            = 11125
    EXTRA_ARGUMENTS             = 11141
    FLAG_GROUP_VIOLATION        = 11151

    # --- definition errors (21xxx) ---
    ILLEGAL_FLAG_SYNTAX         = 21101
    FLAG_TYPE_CONFLICT          = 21102
    FLAG_COLLISION              = 21103
    UNKNOWN_HANDLER             = 21104
    TOOL_REDEFINED              = 21111
    DEFINITION_FINISHED         = 21112
    PARSING_DISABLED            = 21113
    REMAINING_REDEFINED         = 21114
    UNKNOWN_GROUP               = 21121
    DUPLICATED_GROUP            = 21122
    UNKNOWN_ACCEPTOR            = 21131
    UNKNOWN_MIXIN               = 21132
    UNKNOWN_TEMPLATE            = 21133
    ILLEGAL_ACCEPTOR            = 21134
    DUPLICATED_NAME             = 21135
    ALIAS_CONFLICT              = 21141
    CIRCULAR_ALIAS              = 21142
    DELEGATION_CONFLICT         = 21151
    UNKNOWN_DELEGATE            = 21152
    DELEGATION_LOOP             = 21153

    # --- loader errors (31xxx) ---
    UNREADABLE_PATH             = 31101
    UNSUPPORTED_FILE            = 31102
    UNKNOWN_PATH_TYPE           = 31103
    NOT_A_DIRECTORY             = 31104
    SOURCE_FAILED               = 31111

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


class QuiverException(Exception):
    code = FaultCode.SOURCE_FAILED
    title = "quiver error"

    def __init__(self, message, /, **options):
        assert isinstance(message, str)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    def __rich__(self):
        main = __import__("__main__")
        colorful = self.options.get("colorful", False)
        fancy = self.options.get("fancy", False)

        styles = defaultdict(str, {
            # header parts
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #00E5FF",  # neon cyan fault code
            "error-title": "bold #FF4DA6",  # friendly pinky title

            # body
            "error-message": "#C8C8D0",  # soft light gray message
            "hint-arrow": "#9CE19C dim",  # gentle green arrow
            "hint": "italic #9CE19C",  # gentle green hint text
        } | getattr(main, "__styles__", {}))

        def styler(style):
            return styles[style] if colorful else ""

        def text(fragment, style=""):
            if not fragment:
                return Text("")
            if not colorful:
                return Text(str(fragment))
            if isinstance(fragment, Text):
                return fragment
            return Text(str(fragment), style)

        width = console.width - 4 * fancy

        prog = text(getattr(main, "__prog__", self.options.get("prog", "quiver")), styler("prog-name"))

        header = Text.assemble(
            "[ ",
            prog,
            " - ",
            text(self.options.get("code", self.code).normalize(), styler("code")),
            " | ",
            text(self.options.get("title", self.title).title(), styler("error-title")),
            " ]"
        )
        message = text(self.message, styler("error-message"))
        parts = [message]
        if hint := self.options.get("hint"):
            parts.append(Text.assemble(text(" → ", styler("hint-arrow")), text(hint, styler("hint"))))

        if fancy:
            try:
                width = int(width * self.options["ratio"])
            except KeyError:
                width = None
            return Panel(Group(*parts), title=header, title_align="left", width=width)

        return Group(header, *parts)

    def __trigger__(self) -> None:
        if not self.options.get("shell", False):
            raise self from None
        console.print(self)
        if self.options.get("deferred", False):
            return
        sys.exit(1)

    def __replace__(self, *unused, **overrides):
        assert not unused, "unused arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class ToolDefinitionError(QuiverException):
    """Raised while loading sources or constructing definitions."""
    code = FaultCode.TOOL_REDEFINED
    title = "definition error"

    def __init__(self, message, /, **options):
        super().__init__(message, **options)
        if "code" in options:
            self.code = options["code"]


class LoaderError(QuiverException):
    """Raised when a registered path cannot be read or has the wrong type."""
    code = FaultCode.UNREADABLE_PATH
    title = "loader error"

    def __init__(self, message, /, **options):
        super().__init__(message, **options)
        if "code" in options:
            self.code = options["code"]


class ToolSourceError(LoaderError):
    """Wraps a foreign exception raised while evaluating a tool source."""
    code = FaultCode.SOURCE_FAILED
    title = "tool source failed"


class UsageError(QuiverException):
    """Base type of the errors collected while parsing one invocation."""
    code = FaultCode.UNKNOWN_FLAG
    title = "usage error"


class UnknownToolError(UsageError):
    code = FaultCode.UNKNOWN_TOOL
    title = "unknown tool"
class NotRunnableError(UsageError):
    code = FaultCode.NOT_RUNNABLE
    title = "not runnable"
class UnknownFlagError(UsageError):
    code = FaultCode.UNKNOWN_FLAG
    title = "unknown flag"
class AmbiguousFlagError(UsageError):
    code = FaultCode.AMBIGUOUS_FLAG
    title = "ambiguous flag"
class MissingFlagValueError(UsageError):
    code = FaultCode.MISSING_FLAG_VALUE
    title = "missing flag value"
class UnacceptableValueError(UsageError):
    code = FaultCode.UNACCEPTABLE_VALUE
    title = "unacceptable value"
class MissingArgumentError(UsageError):
    code = FaultCode.MISSING_ARGUMENT
    title = "missing argument"
class ExtraArgumentsError(UsageError):
    code = FaultCode.EXTRA_ARGUMENTS
    title = "extra arguments"
class FlagGroupError(UsageError):
    code = FaultCode.FLAG_GROUP_VIOLATION
    title = "flag group violation"


class UsageExit(ExceptionGroup[UsageError]):
    def __new__(cls, exceptions, **options):
        return super().__new__(cls, "usage error", tuple(exceptions))

    def __init__(self, exceptions, **options):
        super().__init__("usage error", tuple(exceptions))
        self.options = MappingProxyType(options)

    def __rich__(self):
        main = __import__("__main__")
        colorful = self.options.get("colorful", False)

        styles = defaultdict(str, {
            "prog-name": "bold #E6E6F0",  # near-white program name
            "title": "bold #FF4DA6",  # friendly pinky group title
        } | getattr(main, "__styles__", {}))

        def text(fragment, style=""):
            if not colorful:
                return Text(str(fragment))
            return Text(str(fragment), styles[style])

        prog = text(getattr(main, "__prog__", self.options.get("prog", "quiver")), "prog-name")
        header = Text.assemble("[ ", prog, " - ", text(self.message.title(), "title"), " ]")

        renders = []
        for exception in self.exceptions:
            renders.append(copy.replace(exception, ratio=2/3, **self.options))

        if self.options.get("fancy", False):
            return Panel(Group(*renders), title=header, title_align="left")

        return Group(header, *renders)

    def __trigger__(self) -> None:
        if not self.options.get("shell", False):
            raise self from None
        console.print(self)
        if self.options.get("deferred", False):
            return
        sys.exit(2)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.exceptions, **{**self.options, **overrides})


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see base classes).
    - options are merged into the fault via __replace__(**options) before triggering.
    - in shell mode, rendering happens via rich console; otherwise, exceptions are raised.

    typical options
    - prog, tool, shell, fancy, colorful, deferred, title, code, hint.
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    copy.replace(fault, **options).__trigger__()


__all__ = (
    "QuiverException",
    "ToolDefinitionError",
    "LoaderError",
    "ToolSourceError",
    "UsageError",
    "UnknownToolError",
    "NotRunnableError",
    "UnknownFlagError",
    "AmbiguousFlagError",
    "MissingFlagValueError",
    "UnacceptableValueError",
    "MissingArgumentError",
    "ExtraArgumentsError",
    "FlagGroupError",
    "UsageExit",
    "FaultCode",
    "trigger",
)
