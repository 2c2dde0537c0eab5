"""
Quiver argument parser: applies a finished tool definition to command line arguments.

Grammar
- "--" ends flag parsing; everything after it is positional.
- "--name=value" and "--name value" for value flags, "--name" / "--no-name" for
  booleans. Long names may be abbreviated to any unique prefix unless
  require_exact_flag_match is set.
- "-abc" is a cluster of short flags; the rest of the cluster after a value flag
  is that flag's value ("-ofile").
- A flag with an optional value takes the next argument unless it looks like a
  flag; without a value it stores True.
- Positional values fill required args, then optional args, then the remaining
  catch-all.
- When the tool enforces flags before args, the first positional value ends
  flag parsing as "--" would.

Usage errors are collected (see errors) instead of raised, so one invocation
reports every problem at once.
"""
import re

from .acceptors import Rejected
from .faults import (
    UsageError,
    UnknownToolError,
    UnknownFlagError,
    AmbiguousFlagError,
    MissingFlagValueError,
    UnacceptableValueError,
    MissingArgumentError,
    ExtraArgumentsError,
    FlagGroupError,
)

_LONG_WITH_VALUE = re.compile(r"(--\w[?\w-]*)=(.*)", re.DOTALL)


class ArgParser:
    def __init__(self, tool, /, default_data=None, require_exact_flag_match=False):
        self._tool = tool
        self._require_exact_flag_match = require_exact_flag_match
        self._data = tool.default_data | dict(default_data or {})
        self._disabled = tool.argument_parsing_disabled
        self._positional = tool.required_args + tool.optional_args
        self._required_count = len(tool.required_args)
        self._remaining_arg = tool.remaining_arg
        self._flags_allowed = not self._disabled
        self._pending = None
        self._arg_index = 0
        self._parsed_args = []
        self._unmatched_args = []
        self._seen_flag_keys = []
        self._errors = []
        self._finished = False

    @property
    def tool(self):
        return self._tool

    @property
    def data(self):
        return dict(self._data)

    @property
    def errors(self):
        return list(self._errors)

    @property
    def parsed_args(self):
        return list(self._parsed_args)

    @property
    def unmatched_args(self):
        return list(self._unmatched_args)

    @property
    def seen_flag_keys(self):
        return list(self._seen_flag_keys)

    @property
    def finished(self):
        return self._finished

    def parse(self, args, /):
        if self._finished:
            raise RuntimeError("argument parser is already finished")
        for arg in args:
            self._parsed_args.append(arg)
            if not self._disabled:
                self._handle(arg)
        return self

    def finish(self):
        """
        Close the invocation: flush a pending flag, then check required args,
        extra args and flag groups.
        """
        if self._finished:
            return self
        if self._pending is not None:
            flag, self._pending = self._pending, None
            if flag.value_type == "optional":
                self._store(flag, True)
            else:
                self._errors.append(MissingFlagValueError(
                    f'flag "{flag.display_name}" is missing a value', flag=flag.display_name
                ))
        if not self._disabled:
            for argument in self._positional[self._arg_index:self._required_count]:
                self._errors.append(MissingArgumentError(
                    f"No value given for required argument named {argument.display_name}",
                    argument=argument.display_name,
                ))
            if self._unmatched_args:
                self._errors.append(self._extra_arguments_error())
            seen = set(self._seen_flag_keys)
            for group in self._tool.flag_groups:
                if (message := group.validation_error(seen)) is not None:
                    self._errors.append(FlagGroupError(message, group=group.name))
        self._finished = True
        return self

    def _extra_arguments_error(self):
        if not self._tool.is_runnable and not self._seen_flag_keys:
            name = " ".join([*self._tool.full_name, self._unmatched_args[0]])
            return UnknownToolError(f'tool not found: "{name}"', tool=name)
        return ExtraArgumentsError(
            f"extra arguments: {' '.join(self._unmatched_args)}", args=tuple(self._unmatched_args)
        )

    def _handle(self, arg, /):
        if self._pending is not None:
            flag, self._pending = self._pending, None
            if flag.value_type == "required" or not arg.startswith("-"):
                self._store_value(flag, arg)
                return
            self._store(flag, True)
        if self._flags_allowed:
            if arg == "--":
                self._flags_allowed = False
                return
            if arg.startswith("--"):
                self._handle_long(arg)
                return
            if arg.startswith("-") and arg != "-":
                self._handle_short(arg)
                return
        self._handle_positional(arg)

    def _resolve(self, name, /):
        resolution = self._tool.resolve_flag(name)
        if resolution.found_unique and (resolution.found_exact or not self._require_exact_flag_match):
            return resolution
        if resolution.found_multiple and not self._require_exact_flag_match:
            possibilities = resolution.matching_flag_strings
            self._errors.append(AmbiguousFlagError(
                f'flag prefix "{name}" is ambiguous',
                flag=name,
                possibilities=tuple(possibilities),
                hint=f"possible matches: {', '.join(possibilities)}",
            ))
        else:
            self._errors.append(UnknownFlagError(f'flag "{name}" is not recognized', flag=name))
        return None

    def _handle_long(self, arg, /):
        if match := _LONG_WITH_VALUE.fullmatch(arg):
            name, value = match[1], match[2]
        else:
            name, value = arg, None
        if (resolution := self._resolve(name)) is None:
            return
        flag = resolution.unique_flag
        if flag.flag_type == "boolean":
            if value is not None:
                self._errors.append(UnacceptableValueError(
                    f'flag "{name}" does not take a value', flag=flag.display_name
                ))
                return
            self._store(flag, not resolution.unique_flag_negative)
        elif value is not None:
            self._store_value(flag, value)
        else:
            self._pending = flag

    def _handle_short(self, arg, /):
        index = 1
        while index < len(arg):
            name = "-" + arg[index]
            index += 1
            if (resolution := self._resolve(name)) is None:
                continue
            flag = resolution.unique_flag
            if flag.flag_type == "boolean":
                self._store(flag, not resolution.unique_flag_negative)
                continue
            if rest := arg[index:]:
                self._store_value(flag, rest)
            else:
                self._pending = flag
            return

    def _handle_positional(self, arg, /):
        if self._tool.flags_before_args_enforced:
            self._flags_allowed = False
        if self._arg_index < len(self._positional):
            argument = self._positional[self._arg_index]
            self._arg_index += 1
        elif self._remaining_arg is not None:
            argument = self._remaining_arg
        else:
            self._unmatched_args.append(arg)
            return
        try:
            value = argument.process_value(arg)
        except UsageError as error:
            self._errors.append(error)
            return
        if argument.type == "remaining":
            self._data[argument.key] = [*(self._data.get(argument.key) or ()), value]
        else:
            self._data[argument.key] = value

    def _store_value(self, flag, value, /):
        if flag.acceptor is not None:
            if (converted := flag.acceptor.process(value)) is Rejected:
                self._errors.append(UnacceptableValueError(
                    f'unacceptable value "{value}" for flag "{flag.display_name}"',
                    flag=flag.display_name,
                    hint=f"expected {flag.acceptor}",
                ))
                return
            value = converted
        self._store(flag, value)

    def _store(self, flag, value, /):
        self._data[flag.key] = flag.handler(value, self._data.get(flag.key))
        if flag.key not in self._seen_flag_keys:
            self._seen_flag_keys.append(flag.key)


__all__ = (
    "ArgParser",
)
