"""
Quiver utilities shared by the definition, loader and runner layers.

Contents
- UnsetType / Unset: the "option not given" sentinel. Loader and CLI options
  default to it so that None stays a real value (a flag default of None, a
  block root without a context directory).
- coalesce(value, default): materialize an Unset option.
- rename(): give generated closures (config and run chains) readable names in tracebacks.
- mirror() / DefinitionType: read-only, copy-on-read properties for definition
  objects, plus their type name and repr.
- keyname() / description(): argument sanitization for keys and description fragments.
"""
import builtins
import functools
import operator
import re
from collections.abc import Sequence, Mapping, Set
from typing import final

from rich.text import Text


@final
class UnsetType:
    """
    Sentinel type for options the caller did not pass.

    Unset is falsy, prints as "Unset", cannot be subclassed, and there is only
    ever one instance of it.
    """

    def __or__(self, other, /):
        # str | UnsetType in annotations
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    def __ror__(self, other, /):
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __init_subclass__(cls, **options):
        raise TypeError("type 'UnsetType' is not an acceptable base type")


Unset = UnsetType()


def coalesce(object, default=None, /):
    """
    Return object, or default when object is Unset.

    Only Unset is replaced: None, 0, "" and [] are kept.

    - coalesce(Unset, ".quiver.py") -> ".quiver.py"
    - coalesce(None, ".quiver.py")  -> None
    """
    return object if object is not Unset else default


def rename(*parameters):
    """
    Rename a callable (rename(callable, name)) or build a renaming decorator
    (rename(name)). Builtins cannot be renamed and raise TypeError.
    """
    match len(parameters):
        case 2:
            callable, name = parameters
            if not builtins.callable(callable):
                raise TypeError("rename() first argument must be callable")
            if not isinstance(name, str):
                raise TypeError("rename() second argument must be a string")
            try:
                callable.__qualname__ = name
                callable.__name__ = name
            except (AttributeError, TypeError):
                raise TypeError("rename() first argument must be a updatable callable") from None
            return callable
        case 1:
            name, = parameters
            if not isinstance(name, str):
                raise TypeError("@rename() argument must be a string")

            def wrapper(callable):
                if not builtins.callable(callable):
                    raise TypeError("@rename() must be applied to a callable")
                return rename(callable, name)

            return rename(wrapper, "rename")
        case _:
            raise TypeError("rename takes 1 to 2 arguments but %d were given" % len(parameters))


def _immortalize(object):
    """
    Deep copy of nested containers: sequences become lists, mappings dicts and
    sets sets. Tuples therefore come back as lists.
    """
    if isinstance(object, Sequence) and not isinstance(object, str):
        return list(map(_immortalize, object))
    elif isinstance(object, Mapping):
        return dict(zip(object.keys(), map(_immortalize, object.values())))
    elif isinstance(object, Set):
        return set(map(_immortalize, object))
    else:
        return object


def mirror(name, /):
    """
    Define a read-only property that mirrors a private backing attribute.

    The generated property reads from "_{name}" on the instance and returns a
    fresh copy for container types, so callers cannot mutate definition state
    behind the owner's back.
    """
    if not isinstance(name, str):
        raise TypeError("mirror() argument must be a string")

    @rename(name)
    def getter(self):
        return _immortalize(getattr(self, "_" + name))

    return property(getter)


class DefinitionType(type):
    """
    Metaclass shared by every definition object (flag syntaxes, flags, groups,
    positional args, acceptors, tools, sources).

    Responsibilities
    - Derive __typename__ from the class name (camel-case split with hyphens),
      used as the prefix of sanitization messages.
    - Expose every name listed in __introspectable__ as a read-only mirror of
      the "_name" backing field.
    - Provide stable __repr__/__rich_repr__ implementations; __displayable__
      (when set) narrows the fields shown, which keeps back-references such as
      parents and owning groups out of representations.
    """
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
            **options
        )

        @rename("__repr__")
        def __repr__(self):
            """
            Return a concise, stable representation with key metadata.

            Example
            - flag(key='verbose', flags=['-v', '--verbose'], ...)
            """
            return f"{type(self).__typename__}({
                ", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__()))
            })"
        if "__repr__" not in namespace:
            self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            """
            Yield (name, object) pairs for pretty printers.
            """
            for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                yield name, getattr(self, name)
        if "__rich_repr__" not in namespace:
            self.__rich_repr__ = __rich_repr__

        return self


def keyname(cls, key, /):
    """
    Validate a storage key for a flag or a positional argument.

    Keys are plain, non-empty strings; they index the tool's default data and
    the parsed data handed to the run handler.
    """
    if not isinstance(key, str):
        raise TypeError(f"{cls.__typename__} 'key' must be a string")
    if not key.strip():
        raise ValueError(f"{cls.__typename__} 'key' cannot be empty")
    return key


def description(cls, text, field, /):
    """
    Validate a description fragment (str or rich Text); strings are trimmed.
    """
    if isinstance(text, Text):
        return text
    if not isinstance(text, str):
        raise TypeError(f"{cls.__typename__} {field!r} must be a string or a rich text")
    return text.strip()


__all__ = (
    # Functions
    "coalesce",
    "rename",
    "mirror",
    "keyname",
    "description",

    # Types
    "UnsetType",
    "DefinitionType",

    # Constants
    "Unset",
)
