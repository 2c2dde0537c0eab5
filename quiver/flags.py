r"""
Quiver flag definitions: syntax parsing, canonicalization and resolution.

Overview
- FlagSyntax: one literal spelling ("-a", "--abc=VALUE", "-a[FOO]", "--[no-]abc"),
  parsed into style, inferred type, value delimiter and value label.
- Flag: a synonym group of FlagSyntax entries sharing one storage key, with a
  single canonical type (boolean, or value with a required/optional value).
- FlagResolution: the outcome of resolving a string typed by the user against
  flags, with exact matches winning over prefix matches.
- SET_HANDLER / PUSH_HANDLER and resolve_handler(): how a parsed value is combined
  with the value already stored under the key.

Grammar (each form is matched against the whole string)
- short
  • "-x"             bare flag, type inferred later
  • "-x[VAL]"        optional value, delimiter ""
  • "-x [VAL]"       optional value, delimiter " "
  • "-x[ VAL]"       optional value, delimiter " "
  • "-xVAL"          required value, delimiter ""
  • "-x VAL"         required value, delimiter " "
- long
  • "--[no-]xyz"     boolean, expands to "--xyz" and "--no-xyz"
  • "--xyz"          bare flag, type inferred later
  • "--xyz=[VAL]"    optional value, delimiter "="  (also "--xyz [VAL]")
  • "--xyz[=VAL]"    optional value, delimiter "="  (also "--xyz[ VAL]")
  • "--xyz=VAL"      required value, delimiter "="  (also "--xyz VAL")
Labels are upper-cased. Anything else is a ToolDefinitionError.

Canonicalization (Flag)
- Short syntaxes are scanned before long ones. The first syntax declaring a type
  seeds the flag type, value type, label and delimiter; later typed syntaxes must
  agree. Untyped syntaxes inherit through FlagSyntax.configure_canonical().
- When no syntax declares a type the flag is boolean.
"""
import re

from .faults import ToolDefinitionError, FaultCode
from .utils import *

_SHORT_BARE = re.compile(r"-([?\w])")
_SHORT_OPTIONAL = re.compile(r"-([?\w])( ?)\[(\w+)\]")
_SHORT_OPTIONAL_INNER = re.compile(r"-([?\w])\[( )(\w+)\]")
_SHORT_REQUIRED = re.compile(r"-([?\w])( ?)(\w+)")
_LONG_NEGATABLE = re.compile(r"--\[no-\](\w[?\w-]*)")
_LONG_BARE = re.compile(r"--(\w[?\w-]*)")
_LONG_OPTIONAL = re.compile(r"--(\w[?\w-]*)([= ])\[(\w+)\]")
_LONG_OPTIONAL_INNER = re.compile(r"--(\w[?\w-]*)\[([= ])(\w+)\]")
_LONG_REQUIRED = re.compile(r"--(\w[?\w-]*)([= ])(\w+)")


class FlagSyntax(metaclass=DefinitionType):
    """
    One parsed flag spelling.

    Attributes
    - original_str: the string as written by the tool author.
    - flags: literal flags this spelling expands to (two for "--[no-]x").
    - positive_flag / negative_flag: the affirmative and negated literal flags.
    - flag_style: "short" or "long".
    - flag_type: None (untyped), "boolean" or "value".
    - value_type: None, "required" or "optional".
    - value_delim: "", " " or "=".
    - value_label: upper-cased label, or None.
    - canonical_str: spelling regenerated from the (possibly inherited) type.
    - sort_str: flag name without leading dashes.
    """
    __introspectable__ = (
        "original_str",
        "flags",
        "positive_flag",
        "negative_flag",
        "flag_style",
        "flag_type",
        "value_type",
        "value_delim",
        "value_label",
        "canonical_str",
        "sort_str",
        "str_without_value",
    )
    __displayable__ = ("original_str", "flags", "flag_type", "value_type", "value_label", "canonical_str")

    def __init__(self, string, /):
        if not isinstance(string, str):
            raise TypeError(f"{type(self).__typename__} argument must be a string")
        self._original_str = string
        if match := _SHORT_BARE.fullmatch(string):
            self._setup(["-" + match[1]], "-" + match[1], None, "short", None, None, "", None)
        elif match := _SHORT_OPTIONAL.fullmatch(string) or _SHORT_OPTIONAL_INNER.fullmatch(string):
            self._setup(["-" + match[1]], "-" + match[1], None, "short", "value", "optional", match[2], match[3])
        elif match := _SHORT_REQUIRED.fullmatch(string):
            self._setup(["-" + match[1]], "-" + match[1], None, "short", "value", "required", match[2], match[3])
        elif match := _LONG_NEGATABLE.fullmatch(string):
            positive, negative = "--" + match[1], "--no-" + match[1]
            self._setup([positive, negative], positive, negative, "long", "boolean", None, "", None)
            self._str_without_value = "--[no-]" + match[1]
        elif match := _LONG_BARE.fullmatch(string):
            self._setup(["--" + match[1]], "--" + match[1], None, "long", None, None, "", None)
        elif match := _LONG_OPTIONAL.fullmatch(string) or _LONG_OPTIONAL_INNER.fullmatch(string):
            self._setup(["--" + match[1]], "--" + match[1], None, "long", "value", "optional", match[2], match[3])
        elif match := _LONG_REQUIRED.fullmatch(string):
            self._setup(["--" + match[1]], "--" + match[1], None, "long", "value", "required", match[2], match[3])
        else:
            raise ToolDefinitionError(f"illegal flag: {string!r}", code=FaultCode.ILLEGAL_FLAG_SYNTAX)
        self._canonical_str = self._render()

    def _setup(self, flags, positive, negative, style, flag_type, value_type, delim, label):
        self._flags = flags
        self._positive_flag = positive
        self._negative_flag = negative
        self._flag_style = style
        self._flag_type = flag_type
        self._value_type = value_type
        self._value_delim = delim
        self._value_label = label.upper() if label else label
        self._str_without_value = positive
        self._sort_str = positive.lstrip("-")

    def _render(self):
        if self._flag_type != "value":
            return self._str_without_value
        label = self._value_label
        if self._value_type == "optional":
            label = f"[{label}]"
        return self._str_without_value + self._value_delim + label

    def configure_canonical(self, flag_type, value_type, value_label, value_delim, /):
        """
        Late-bind the type of an untyped spelling from its synonym group.

        Entries that declared their own type are left untouched. The delimiter
        is translated between styles: "=" becomes "" for short flags and ""
        becomes "=" for long flags.
        """
        if self._flag_type is not None:
            return
        self._flag_type = flag_type
        if flag_type == "value":
            self._value_type = value_type
            self._value_label = value_label
            if self._flag_style == "short" and value_delim == "=":
                value_delim = ""
            elif self._flag_style == "long" and value_delim == "":
                value_delim = "="
            self._value_delim = value_delim
        self._canonical_str = self._render()


def _set(value, previous, /):
    return value


def _push(value, previous, /):
    return [value] if previous is None else [*previous, value]


SET_HANDLER = _set
PUSH_HANDLER = _push


def resolve_handler(handler, /):
    """
    Resolve a handler spec into a callable(value, previous) -> stored value.

    - None, "default" or "set": the new value replaces the old one.
    - "push" or "append": the new value is appended to a list.
    - any callable: used as is.
    """
    match handler:
        case None | "default" | "set":
            return SET_HANDLER
        case "push" | "append":
            return PUSH_HANDLER
        case _ if callable(handler):
            return handler
        case _:
            raise ToolDefinitionError(f"unknown handler: {handler!r}", code=FaultCode.UNKNOWN_HANDLER)


class FlagResolution:
    """
    Outcome of resolving one user-typed flag string.

    Exact matches (on a positive or negative spelling) discard any prefix match
    found before them, and prefix matches found after an exact match are ignored.
    """

    def __init__(self, string, /):
        self._string = string
        self._flags = []
        self._found_exact = False

    @property
    def string(self):
        return self._string

    @property
    def found_exact(self):
        return self._found_exact

    @property
    def count(self):
        return len(self._flags)

    @property
    def found_unique(self):
        return len(self._flags) == 1

    @property
    def not_found(self):
        return not self._flags

    @property
    def found_multiple(self):
        return len(self._flags) > 1

    @property
    def unique_flag(self):
        return self._flags[0][0] if self.found_unique else None

    @property
    def unique_flag_syntax(self):
        return self._flags[0][1] if self.found_unique else None

    @property
    def unique_flag_negative(self):
        return self._flags[0][2] if self.found_unique else None

    @property
    def matching_flag_strings(self):
        return [syntax.negative_flag if negative else syntax.positive_flag for _, syntax, negative in self._flags]

    def add(self, flag, syntax, negative, exact, /):
        if exact and not self._found_exact:
            self._flags = []
        if exact or not self._found_exact:
            self._flags.append((flag, syntax, negative))
            self._found_exact = exact
        return self

    def merge(self, other, /):
        if other._found_exact and not self._found_exact:
            self._flags = []
        if other._found_exact or not self._found_exact:
            self._flags.extend(other._flags)
            self._found_exact = other._found_exact
        return self

    def __repr__(self):
        return f"flag-resolution(string={self._string!r}, matches={self.matching_flag_strings!r}, exact={self._found_exact!r})"


class Flag(metaclass=DefinitionType):
    """
    A logical flag: one storage key and every spelling that sets it.

    Parameters
    - key: storage key in the tool's data.
    - flags: literal spellings; when empty a default spelling is synthesized from the key.
    - used_flags: the owning tool's claimed spellings (mutated: effective spellings are added).
    - report_collisions: raise on an already-claimed spelling instead of dropping it.
    - acceptor: resolved Acceptor or None.
    - handler: handler spec (see resolve_handler()).
    - default: default value (also decides whether a synthesized spelling takes a value).
    - display_name / group / desc / long_desc: presentation metadata.

    Raises
    - ToolDefinitionError: illegal spelling, collision (when reported) or type conflict.

    Notes
    - A flag whose every spelling collided is inactive (see active) and must not be stored.
    """
    __introspectable__ = (
        "key",
        "flag_syntax",
        "acceptor",
        "handler",
        "default",
        "flag_type",
        "value_type",
        "value_label",
        "value_delim",
        "desc",
        "long_desc",
        "group",
    )
    __displayable__ = ("key", "flag_syntax", "flag_type", "value_type", "value_label", "default")

    def __init__(
            self,
            key,
            flags=(),
            used_flags=Unset,
            report_collisions=True,
            acceptor=None,
            handler=None,
            default=None,
            display_name=None,
            group=None,
            desc=None,
            long_desc=(),
    ):
        self._key = keyname(type(self), key)
        if isinstance(flags, str):
            flags = (flags,)
        self._flag_syntax = [FlagSyntax(string) for string in flags]
        self._acceptor = acceptor
        self._handler = resolve_handler(handler)
        self._default = default
        self._display_name = display_name
        self._group = group
        self._desc = None if desc is None else description(type(self), desc, "desc")
        self._long_desc = [description(type(self), line, "long_desc") for line in long_desc]
        if not self._flag_syntax and (spelling := self._default_flag()) is not None:
            self._flag_syntax.append(FlagSyntax(spelling))
        used_flags = coalesce(used_flags, [])
        self._remove_used_flags(used_flags, report_collisions)
        self._canonicalize()
        used_flags.extend(flag for flag in dict.fromkeys(self.effective_flags) if flag not in used_flags)

    def _default_flag(self):
        if len(self._key) == 1:
            if not re.fullmatch(r"[a-zA-Z0-9?]", self._key):
                return None
            spelling = "-" + self._key
        elif name := re.sub(r"[^a-z0-9-]", "", self._key.lower().replace("_", "-")).lstrip("-"):
            spelling = "--" + name
        else:
            return None
        needs_value = (
            self._acceptor is not None and self._acceptor.well_known_spec is not bool
        ) or not (self._default is None or isinstance(self._default, bool))
        return spelling + " VALUE" if needs_value else spelling

    def _remove_used_flags(self, used_flags, report_collisions):
        kept = []
        for syntax in self._flag_syntax:
            if collisions := [flag for flag in syntax.flags if flag in used_flags]:
                if report_collisions:
                    raise ToolDefinitionError(
                        f"cannot use flag {collisions[0]!r} because it is already assigned or reserved",
                        code=FaultCode.FLAG_COLLISION
                    )
                continue
            kept.append(syntax)
        self._flag_syntax = kept

    def _canonicalize(self):
        self._flag_type = self._value_type = self._value_label = None
        self._value_delim = " "
        # short spellings are scanned first; the first typed one fixes label and delimiter
        for syntax in self.short_flag_syntax + self.long_flag_syntax:
            if syntax.flag_type is None:
                continue
            if self._flag_type is None:
                self._flag_type = syntax.flag_type
                self._value_type = syntax.value_type
                self._value_label = syntax.value_label
                self._value_delim = syntax.value_delim
            elif self._flag_type != syntax.flag_type:
                raise ToolDefinitionError(
                    f"cannot have both value and boolean flags for {self._key!r}",
                    code=FaultCode.FLAG_TYPE_CONFLICT
                )
            elif self._value_type != syntax.value_type:
                raise ToolDefinitionError(
                    f"cannot have both required and optional values for flag {self._key!r}",
                    code=FaultCode.FLAG_TYPE_CONFLICT
                )
        self._flag_type = self._flag_type or "boolean"
        for syntax in self._flag_syntax:
            syntax.configure_canonical(self._flag_type, self._value_type, self._value_label, self._value_delim)

    @property
    def active(self):
        """Whether any spelling survived collision removal."""
        return bool(self._flag_syntax)

    @property
    def effective_flags(self):
        return [flag for syntax in self._flag_syntax for flag in syntax.flags]

    @property
    def short_flag_syntax(self):
        return [syntax for syntax in self._flag_syntax if syntax.flag_style == "short"]

    @property
    def long_flag_syntax(self):
        return [syntax for syntax in self._flag_syntax if syntax.flag_style == "long"]

    @property
    def display_name(self):
        if self._display_name is not None:
            return self._display_name
        if syntaxes := self.long_flag_syntax or self.short_flag_syntax:
            return syntaxes[0].canonical_str
        return self._key

    @property
    def sort_str(self):
        if syntaxes := self.long_flag_syntax or self.short_flag_syntax:
            return syntaxes[0].sort_str
        return ""

    def resolve(self, string, /):
        """
        Resolve a user-typed flag string against this flag's spellings.
        """
        resolution = FlagResolution(string)
        for syntax in self._flag_syntax:
            if syntax.positive_flag == string:
                resolution.add(self, syntax, False, True)
            elif syntax.negative_flag == string:
                resolution.add(self, syntax, True, True)
            elif syntax.positive_flag.startswith(string):
                resolution.add(self, syntax, False, False)
            elif syntax.negative_flag is not None and syntax.negative_flag.startswith(string):
                resolution.add(self, syntax, True, False)
        return resolution


__all__ = (
    "FlagSyntax",
    "Flag",
    "FlagResolution",
    "SET_HANDLER",
    "PUSH_HANDLER",
    "resolve_handler",
)
