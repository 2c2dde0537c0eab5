"""
Quiver positional argument definitions.

Overview
- PositionalArg: one required, optional or remaining (catch-all) argument.
  • key: storage key in the tool's data.
  • type: "required" | "optional" | "remaining".
  • acceptor: resolved Acceptor or None (raw strings are stored).
  • default: default value (optional and remaining arguments only).
  • display_name: label for messages; defaults to the key in upper snake case
    ("input-file" -> "INPUT_FILE").

Ordering
- A tool's positional grammar is always: required args (declared order), then
  optional args (declared order), then at most one remaining catch-all. The tool
  definition keeps the three kinds apart, so ordering holds by construction.
"""
import builtins
import re

from .acceptors import Rejected
from .faults import UnacceptableValueError
from .utils import *


class PositionalArg(metaclass=DefinitionType):
    __introspectable__ = ("key", "type", "acceptor", "default", "display_name", "desc", "long_desc")
    __displayable__ = ("key", "type", "default", "display_name")

    TYPES = ("required", "optional", "remaining")

    def __init__(self, key, type, acceptor=None, default=None, display_name=None, desc=None, long_desc=()):
        cls = builtins.type(self)
        self._key = keyname(cls, key)
        if type not in cls.TYPES:
            raise ValueError(f"{cls.__typename__} 'type' must be one of {', '.join(cls.TYPES)}")
        if display_name is not None and not isinstance(display_name, str):
            raise TypeError(f"{cls.__typename__} 'display_name' must be a string")
        self._type = type
        self._acceptor = acceptor
        self._default = default
        self._display_name = display_name or re.sub(r"\W", "", key.replace("-", "_")).upper()
        self._desc = None if desc is None else description(cls, desc, "desc")
        self._long_desc = [description(cls, line, "long_desc") for line in long_desc]

    def process_value(self, value, /):
        """
        Validate and convert one raw value through the acceptor.

        Raises
        - UnacceptableValueError: the acceptor rejected the value.
        """
        if self._acceptor is None:
            return value
        if (converted := self._acceptor.process(value)) is Rejected:
            raise UnacceptableValueError(
                f'unacceptable value {value!r} for argument "{self._display_name}"',
                argument=self._display_name,
                hint=f"expected {self._acceptor}",
            )
        return converted


__all__ = (
    "PositionalArg",
)
