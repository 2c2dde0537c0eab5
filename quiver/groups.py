"""
Quiver flag groups: cardinality constraints over a tool's flags.

Kinds
- FlagGroup      plain grouping ("Flags"), never violated.
- Required       every member must be supplied.
- Optional       never violated.
- ExactlyOne     exactly one member must be supplied.
- AtMostOne      at most one member may be supplied.
- AtLeastOne     at least one member must be supplied.

validation_error(seen) receives the keys the user actually supplied on one
invocation and returns a message describing the violation, or None.
"""
import builtins

from .faults import ToolDefinitionError, FaultCode
from .utils import *


class FlagGroup(metaclass=DefinitionType):
    """
    Base flag group. Members are appended as flags are added to the tool and
    sorted by their sort key when the tool definition is finished.
    """
    __introspectable__ = ("name", "desc", "long_desc", "flags")
    __displayable__ = ("name", "desc")

    DEFAULT_DESC = "Flags"
    DEFAULT_LONG_DESC = ()

    def __init__(self, name=None, desc=None, long_desc=()):
        if name is not None and not isinstance(name, str):
            raise TypeError(f"{type(self).__typename__} 'name' must be a string")
        self._name = name
        self._desc = type(self).DEFAULT_DESC if desc is None else description(type(self), desc, "desc")
        self._long_desc = [description(type(self), line, "long_desc") for line in long_desc] or list(
            type(self).DEFAULT_LONG_DESC
        )
        self._flags = []

    def append(self, flag, /):
        self._flags.append(flag)

    def sort(self):
        self._flags.sort(key=lambda flag: flag.sort_str)

    @property
    def empty(self):
        return not self._flags

    def _seen(self, seen, /):
        return [flag.display_name for flag in self._flags if flag.key in seen]

    def validation_error(self, seen, /):
        return None


class Required(FlagGroup):
    DEFAULT_DESC = "Required Flags"
    DEFAULT_LONG_DESC = ("These flags are required.",)

    def validation_error(self, seen, /):
        for flag in self._flags:
            if flag.key not in seen:
                return f'flag "{flag.display_name}" is required'
        return None


class Optional(FlagGroup):
    DEFAULT_LONG_DESC = ("These flags are optional.",)


class ExactlyOne(FlagGroup):
    DEFAULT_LONG_DESC = ("Exactly one of these flags must be set.",)

    def validation_error(self, seen, /):
        match self._seen(seen):
            case []:
                return f'exactly one flag out of group "{self._desc}" is required, but none were provided'
            case [first, second, *_]:
                return (
                    f'exactly one flag out of group "{self._desc}" is required, '
                    f'but "{first}" and "{second}" were both provided'
                )
        return None


class AtMostOne(FlagGroup):
    DEFAULT_LONG_DESC = ("At most one of these flags must be set.",)

    def validation_error(self, seen, /):
        if (names := self._seen(seen))[1:]:
            return (
                f'at most one flag out of group "{self._desc}" is allowed, '
                f'but "{names[0]}" and "{names[1]}" were both provided'
            )
        return None


class AtLeastOne(FlagGroup):
    DEFAULT_LONG_DESC = ("At least one of these flags must be set.",)

    def validation_error(self, seen, /):
        if not self._seen(seen):
            return f'at least one flag out of group "{self._desc}" is required, but none were provided'
        return None


_KINDS = {
    None: FlagGroup,
    "base": FlagGroup,
    "required": Required,
    "optional": Optional,
    "exactly_one": ExactlyOne,
    "at_most_one": AtMostOne,
    "at_least_one": AtLeastOne,
}


def create(type=None, name=None, desc=None, long_desc=()):
    """
    Build a flag group from a kind name (or FlagGroup subclass).

    Accepted kinds: None/"base", "required", "optional", "exactly_one",
    "at_most_one", "at_least_one".
    """
    if isinstance(type, builtins.type) and issubclass(type, FlagGroup):
        kind = type
    elif (kind := _KINDS.get(type) if isinstance(type, str | None) else None) is None:
        raise ToolDefinitionError(f"unknown flag group type: {type!r}", code=FaultCode.UNKNOWN_GROUP)
    return kind(name, desc, long_desc)


__all__ = (
    "FlagGroup",
    "Required",
    "Optional",
    "ExactlyOne",
    "AtMostOne",
    "AtLeastOne",
)
