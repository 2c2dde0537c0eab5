r"""
Quiver acceptors: validate and convert one raw argument or flag value.

Overview
- Results
  • Accepted(string, extras): the value was accepted; extras carry intermediate
    values computed while matching (function results, capture groups, enum values).
  • Rejected: sealed singleton meaning the value was refused. User functions may
    return it explicitly to reject a value.

- Acceptors
  • Acceptor: base; accepts anything and returns the string unchanged.
  • Simple: wraps a function; its result (computed once, at match time) is the
    converted value. Any exception raised by the function means rejection.
  • Pattern: regex search; convert receives the matched text plus capture groups.
  • Enum: fixed list of allowed values compared through their string form; convert
    returns the original typed value.
  • Range: integer range; converts to int and checks membership.

- Well-known acceptors
  • Resolvable by builtin type or symbolic name: None/"default", object/"object",
    str/"string", int/"integer", float/"float", "numeric", bool/"boolean",
    list/"array", re.Pattern/"regexp".

- create(spec): build an acceptor from a spec (instance, well-known spec, regex,
  Enum class, list/tuple, range or callable).

Quick example:
    >>> INTEGER.process("12")
    12
    >>> Enum([1, 2.5, "three"]).process("2.5")
    2.5
    >>> Pattern(r"^(\d+)x(\d+)$", lambda s, w, h: (int(w), int(h))).process("3x4")
    (3, 4)
"""
import collections
import enum
import functools
import operator
import re
from collections.abc import Sequence
from typing import final

from .faults import ToolDefinitionError, FaultCode
from .utils import *

Accepted = collections.namedtuple("Accepted", ("string", "extras"), defaults=((),))
Accepted.__doc__ = """
Successful match: the raw string plus the intermediate values produced by match().
"""


@final
class RejectedType:
    """
    Sealed sentinel type for a refused value.

    A single instance, Rejected, is returned by Acceptor.match() on failure and
    may be returned by user functions wrapped in Simple acceptors.
    """

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __bool__(self):
        return False

    def __repr__(self):
        return "Rejected"

    def __init_subclass__(cls, **options):
        raise TypeError("type 'RejectedType' is not an acceptable base type")


Rejected = RejectedType()

DEFAULT_TYPE_DESC = "string"


class Acceptor(metaclass=DefinitionType):
    """
    Base acceptor: accepts any value and converts it to itself.

    Contract
    - match(string) -> Accepted | Rejected
    - convert(string, *extras) -> typed value; only called after an Accepted match,
      with the Accepted's string and extras.
    - process(string) -> typed value or Rejected (match then convert).
    """
    __introspectable__ = ("type_desc", "well_known_spec")

    def __init__(self, type_desc=Unset, well_known_spec=Unset):
        if type_desc is not Unset and not isinstance(type_desc, str):
            raise TypeError(f"{type(self).__typename__} 'type_desc' must be a string")
        self._type_desc = coalesce(type_desc, DEFAULT_TYPE_DESC)
        self._well_known_spec = coalesce(well_known_spec)

    def match(self, string, /):
        return Accepted(string)

    def convert(self, string, /, *extras):
        return string

    def process(self, string, /):
        if (match := self.match(string)) is Rejected:
            return Rejected
        return self.convert(match.string, *match.extras)

    def __str__(self):
        return self._type_desc


class Simple(Acceptor):
    """
    Function-based acceptor.

    The function is invoked once, during match(); it returns the converted value,
    or Rejected. Raising any exception also rejects the value.
    """
    __introspectable__ = ("type_desc", "well_known_spec", "function")

    def __init__(self, function, /, type_desc=Unset, well_known_spec=Unset):
        if not callable(function):
            raise TypeError(f"{type(self).__typename__} 'function' must be callable")
        super().__init__(type_desc, well_known_spec)
        self._function = function

    def match(self, string, /):
        try:
            result = self._function(string)
        except Exception:
            return Rejected
        if result is Rejected:
            return Rejected
        return Accepted(string, (result,))

    def convert(self, string, /, *extras):
        return extras[0] if extras else string


class Pattern(Acceptor):
    """
    Regex acceptor: match() searches the string; convert() hands the matched
    text and the capture groups to the converter, or returns the matched text.
    """
    __introspectable__ = ("type_desc", "well_known_spec", "regex", "converter")

    def __init__(self, regex, converter=None, /, type_desc=Unset, well_known_spec=Unset):
        if isinstance(regex, str):
            regex = re.compile(regex)
        if not isinstance(regex, re.Pattern):
            raise TypeError(f"{type(self).__typename__} 'regex' must be a string or a compiled pattern")
        if converter is not None and not callable(converter):
            raise TypeError(f"{type(self).__typename__} 'converter' must be callable")
        super().__init__(type_desc, well_known_spec)
        self._regex = regex
        self._converter = converter

    def match(self, string, /):
        if string is None:
            return Accepted(None)
        if (match := self._regex.search(string)) is None:
            return Rejected
        return Accepted(match.group(0), match.groups())

    def convert(self, string, /, *extras):
        if self._converter is None:
            return string
        return self._converter(string, *extras)


class Enum(Acceptor):
    """
    Enumerated acceptor: values are compared through key(value) (str by default);
    the original typed value is the conversion result.
    """
    __introspectable__ = ("type_desc", "well_known_spec", "values")

    def __init__(self, values, /, type_desc=Unset, well_known_spec=Unset, *, key=str):
        if isinstance(values, str) or not isinstance(values, Sequence):
            raise TypeError(f"{type(self).__typename__} 'values' must be a sequence")
        if not callable(key):
            raise TypeError(f"{type(self).__typename__} 'key' must be callable")
        self._pairs = [(key(value), value) for value in values]
        super().__init__(
            coalesce(type_desc, "one of: " + ", ".join(string for string, _ in self._pairs)),
            well_known_spec
        )
        self._values = list(values)

    def match(self, string, /):
        if string is None:
            return Accepted(None, (None,))
        for candidate, value in self._pairs:
            if candidate == string:
                return Accepted(string, (value,))
        return Rejected

    def convert(self, string, /, *extras):
        return extras[0] if extras else string


class Range(Acceptor):
    """
    Integer range acceptor: the value must convert to an int inside the range.
    """
    __introspectable__ = ("type_desc", "well_known_spec")
    __displayable__ = ("type_desc", "well_known_spec", "bounds")

    def __init__(self, bounds, /, type_desc=Unset, well_known_spec=Unset):
        if not isinstance(bounds, range):
            raise TypeError(f"{type(self).__typename__} 'bounds' must be a range")
        super().__init__(
            coalesce(type_desc, f"integer from {bounds.start} to {bounds.stop - 1}"),
            well_known_spec
        )
        self._range = bounds

    @property
    def bounds(self):
        return self._range

    def match(self, string, /):
        try:
            number = int(string)
        except (TypeError, ValueError):
            return Rejected
        if number not in self._range:
            return Rejected
        return Accepted(string, (number,))

    def convert(self, string, /, *extras):
        return extras[0] if extras else string


TRUE_STRINGS = ("+", "true", "yes")
FALSE_STRINGS = ("-", "false", "no", "nil")


def _boolean(string, /):
    if string is None:
        return True
    if not string:
        return Rejected
    string = string.lower()
    if any(candidate.startswith(string) for candidate in TRUE_STRINGS):
        return True
    if any(candidate.startswith(string) for candidate in FALSE_STRINGS):
        return False
    return Rejected


def _numeric(string, /):
    try:
        return int(string)
    except ValueError:
        return float(string)


def _array(string, /):
    if string is None:
        return []
    return [element or None for element in string.split(",")]


_REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.DOTALL, "x": re.VERBOSE}


def _regexp(string, /):
    if string is None:
        return None
    if match := re.fullmatch(r"/(.*)/([imx]*)", string, re.DOTALL):
        pattern, letters = match.groups()
        return re.compile(pattern, functools.reduce(operator.or_, map(_REGEX_FLAGS.__getitem__, letters), 0))
    return re.compile(string)


DEFAULT = Acceptor(DEFAULT_TYPE_DESC, None)
OBJECT = Acceptor("any value", object)
STRING = Pattern(re.compile(r".+", re.DOTALL), None, "nonempty string", str)
INTEGER = Simple(int, "integer", int)
FLOAT = Simple(float, "floating point number", float)
NUMERIC = Simple(_numeric, "number", "numeric")
BOOLEAN = Simple(_boolean, "boolean", bool)
ARRAY = Simple(_array, "string array", list)
REGEXP = Simple(_regexp, "regular expression", re.Pattern)

_WELL_KNOWN = {
    None: DEFAULT,
    "default": DEFAULT,
    object: OBJECT,
    "object": OBJECT,
    str: STRING,
    "string": STRING,
    int: INTEGER,
    "integer": INTEGER,
    float: FLOAT,
    "float": FLOAT,
    "numeric": NUMERIC,
    bool: BOOLEAN,
    "boolean": BOOLEAN,
    list: ARRAY,
    "array": ARRAY,
    re.Pattern: REGEXP,
    "regexp": REGEXP,
}


def lookup_well_known(spec, /):
    """
    Return the builtin acceptor registered for a type or symbolic name, else Unset.
    """
    if spec is None or isinstance(spec, str | type):
        return _WELL_KNOWN.get(spec, Unset)
    return Unset


def create(spec=None, /, type_desc=Unset):
    """
    Build an acceptor from a spec.

    Dispatch (first match wins)
    - Acceptor instance -> itself.
    - None, builtin type or symbolic name registered as well-known -> that acceptor.
    - compiled regex -> Pattern.
    - enum.Enum subclass -> Enum keyed by member name.
    - list/tuple -> Enum.
    - range -> Range.
    - callable -> Simple.

    Raises
    - ToolDefinitionError: unknown symbolic name or illegal spec.
    """
    if isinstance(spec, Acceptor):
        return spec
    if (acceptor := lookup_well_known(spec)) is not Unset:
        return acceptor
    if isinstance(spec, re.Pattern):
        return Pattern(spec, None, type_desc)
    if isinstance(spec, type) and issubclass(spec, enum.Enum):
        return Enum(list(spec), type_desc, key=operator.attrgetter("name"))
    if isinstance(spec, list | tuple):
        return Enum(spec, type_desc)
    if isinstance(spec, range):
        return Range(spec, type_desc)
    if isinstance(spec, str):
        raise ToolDefinitionError(f"unknown acceptor {spec!r}", code=FaultCode.UNKNOWN_ACCEPTOR)
    if callable(spec):
        return Simple(spec, type_desc)
    raise ToolDefinitionError(f"illegal acceptor spec: {spec!r}", code=FaultCode.ILLEGAL_ACCEPTOR)


__all__ = (
    # Results
    "Accepted",
    "Rejected",
    "RejectedType",

    # Acceptor variants
    "Acceptor",
    "Simple",
    "Pattern",
    "Enum",
    "Range",

    # Well-known acceptors
    "DEFAULT",
    "OBJECT",
    "STRING",
    "INTEGER",
    "FLOAT",
    "NUMERIC",
    "BOOLEAN",
    "ARRAY",
    "REGEXP",
    "TRUE_STRINGS",
    "FALSE_STRINGS",
)
