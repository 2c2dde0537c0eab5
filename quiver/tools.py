"""
Quiver tool definitions.

What this module provides
- ToolDefinition: the aggregate for one tool name at one priority. It owns the
  description, flags and flag groups, positional args, default data, named
  registries (acceptors, mixins, templates), included mixins, the run handler
  and the source lock.
- Alias: a name redirecting lookups to another tool (sibling-relative or absolute).

State machine
- building -> finished (terminal).
- Every mutator is legal only while building; argument mutators are also illegal
  once argument parsing was disabled.
- finish_definition(loader) runs the middleware configuration chain once (nested
  closures, the last registered middleware outermost), sorts flag group members
  and locks the tool. Calling it again is a no-op.

Mutation surface
- desc / long_desc / runnable (writable properties), append_long_desc,
  add_flag, add_flag_group, add_required_arg, add_optional_arg,
  set_remaining_args, add_acceptor, add_mixin, add_template, include_mixin,
  disable_argument_parsing, disable_flag, enforce_flags_before_args,
  delegate_to, lock_source.

Name resolution
- lookup_acceptor/lookup_mixin/lookup_template search this tool, then the parent
  chain (nearest wins); resolve_* additionally raise on unknown names.
"""
import logging

from rich.text import Text

from . import acceptors
from . import groups
from .arguments import PositionalArg
from .faults import ToolDefinitionError, FaultCode
from .flags import Flag, FlagResolution
from .utils import *

logger = logging.getLogger(__name__)


def _delegation(target, /):
    """
    Run handler of a delegating tool: run target with the same arguments,
    refusing to re-enter a tool already on the delegation chain.
    """
    def delegate(context):
        chain = [target]
        walk = context
        while walk is not None:
            chain.append(tuple(walk.tool.full_name))
            if chain[-1] == target:
                raise ToolDefinitionError(
                    f"delegation loop: {' <- '.join(' '.join(name) for name in chain)}",
                    code=FaultCode.DELEGATION_LOOP
                )
            walk = walk.delegated_from
        loader = context.cli.loader
        loader.load_for_prefix(target)
        if not loader.tool_defined(target):
            raise ToolDefinitionError(
                f"delegate target not found: {' '.join(target)!r}", code=FaultCode.UNKNOWN_DELEGATE
            )
        return context.cli.run(*target, *context.args, delegated_from=context)

    return delegate


class ToolDefinition(metaclass=DefinitionType):
    __introspectable__ = (
        "parent",
        "full_name",
        "priority",
        "source_info",
        "flags",
        "flag_groups",
        "required_args",
        "optional_args",
        "remaining_arg",
        "default_data",
        "used_flags",
        "included_mixins",
        "middleware",
    )
    __displayable__ = ("full_name", "priority", "desc", "flags", "required_args", "optional_args", "remaining_arg")

    def __init__(self, parent, full_name, priority, /, middleware=()):
        if parent is not None and not isinstance(parent, ToolDefinition):
            raise TypeError(f"{type(self).__typename__} 'parent' must be a tool definition")
        self._parent = parent
        self._full_name = tuple(full_name)
        self._priority = priority
        self._middleware = list(middleware)
        self._source_info = None
        self._definition_finished = False

        self._desc = None
        self._long_desc = []

        self._default_data = {}
        self._used_flags = []
        self._flag_groups = [groups.FlagGroup()]
        self._flag_group_names = {None: self._flag_groups[0]}
        self._flags = []
        self._required_args = []
        self._optional_args = []
        self._remaining_arg = None

        self._acceptors = {}
        self._mixins = {}
        self._templates = {}
        self._included_mixins = []

        self._disable_argument_parsing = False
        self._enforce_flags_before_args = False
        self._delegate_target = None
        self._runnable = None

    # --- identity ---

    @property
    def simple_name(self):
        return self._full_name[-1] if self._full_name else None

    @property
    def display_name(self):
        return " ".join(self._full_name)

    @property
    def root(self):
        return not self._full_name

    @property
    def definition_finished(self):
        return self._definition_finished

    @property
    def argument_parsing_disabled(self):
        return self._disable_argument_parsing

    @property
    def flags_before_args_enforced(self):
        return self._enforce_flags_before_args

    @property
    def delegate_target(self):
        return None if self._delegate_target is None else list(self._delegate_target)

    @property
    def positional_args(self):
        return self._required_args + self._optional_args + [self._remaining_arg] * (self._remaining_arg is not None)

    @property
    def context_directory(self):
        return None if self._source_info is None else self._source_info.context_directory

    # --- description ---

    @property
    def desc(self):
        return self._desc

    @desc.setter
    def desc(self, desc):
        self.check_definition_state()
        self._desc = None if desc is None else description(type(self), desc, "desc")

    @property
    def long_desc(self):
        return list(self._long_desc)

    @long_desc.setter
    def long_desc(self, lines):
        self.check_definition_state()
        if isinstance(lines, str | Text):
            lines = (lines,)
        self._long_desc = [description(type(self), line, "long_desc") for line in lines]

    def append_long_desc(self, *lines):
        self.check_definition_state()
        self._long_desc.extend(description(type(self), line, "long_desc") for line in lines)
        return self

    # --- run handler ---

    @property
    def runnable(self):
        return self._runnable

    @runnable.setter
    def runnable(self, handler):
        self.check_definition_state()
        if handler is not None and not callable(handler):
            raise TypeError(f"{type(self).__typename__} run handler must be callable")
        self._runnable = handler

    @property
    def is_runnable(self):
        return self._runnable is not None

    # --- content queries ---

    def includes_arguments(self):
        return bool(
            self._default_data or self._flags or self._required_args or self._optional_args or self._remaining_arg
        )

    def includes_description(self):
        return bool(self._desc or self._long_desc)

    def includes_definition(self):
        return (
            self.includes_arguments() or
            self._runnable is not None or
            self._disable_argument_parsing or
            bool(self._included_mixins) or
            self.includes_description()
        )

    # --- state machine ---

    def check_definition_state(self, *, argument=False):
        """
        Raise unless the tool may still be mutated.

        argument=True additionally rejects mutations of the argument model
        once argument parsing has been disabled.
        """
        if self._definition_finished:
            raise ToolDefinitionError(
                f"definition of tool {self.display_name!r} is already finished",
                code=FaultCode.DEFINITION_FINISHED
            )
        if argument and self._disable_argument_parsing:
            raise ToolDefinitionError(
                f"tool {self.display_name!r} has disabled argument parsing",
                code=FaultCode.PARSING_DISABLED
            )
        return self

    def lock_source(self, source, /):
        """
        Record the unit defining this tool's content.

        Nested blocks of one file count as that file. A second, different unit
        raises ToolDefinitionError.
        """
        if self._source_info is not None and self._source_info.origin is not source.origin:
            raise ToolDefinitionError(
                f"cannot redefine tool {self.display_name!r} in {source.source_name} "
                f"(already defined in {self._source_info.source_name})",
                code=FaultCode.TOOL_REDEFINED,
                tool=self.display_name,
            )
        if self._source_info is None:
            self._source_info = source
        return self

    def finish_definition(self, loader, /):
        if self._definition_finished:
            return self

        def config():
            pass

        for middleware in self._middleware:
            config = self._make_config(middleware, loader, config)
        config()

        for group in self._flag_groups:
            group.sort()
        self._definition_finished = True
        return self

    def _make_config(self, middleware, loader, next, /):
        @rename("config")
        def config():
            logger.debug("configuring tool %r with %s", self.display_name, type(middleware).__name__)
            middleware.config(self, loader, next)
        return config

    # --- argument model ---

    def add_flag_group(
            self,
            type=None,
            name=None,
            desc=None,
            long_desc=(),
            prepend=False,
    ):
        self.check_definition_state(argument=True)
        if name is not None and name in self._flag_group_names:
            raise ToolDefinitionError(
                f"flag group {name!r} already exists in tool {self.display_name!r}",
                code=FaultCode.DUPLICATED_GROUP
            )
        group = groups.create(type, name, desc, long_desc)
        if prepend:
            self._flag_groups.insert(0, group)
        else:
            self._flag_groups.append(group)
        if name is not None:
            self._flag_group_names[name] = group
        return group

    def add_flag(
            self,
            key,
            flags=(),
            accept=None,
            default=None,
            handler=None,
            report_collisions=True,
            group=None,
            desc=None,
            long_desc=(),
            display_name=None,
    ):
        """
        Add a flag definition.

        Parameters
        - key: storage key; the default value is recorded in default_data even
          when every spelling collided.
        - flags: literal spellings; a default spelling is synthesized from the key when empty.
        - accept: acceptor spec (resolved through resolve_acceptor()).
        - handler: None/"set", "push"/"append" or a callable(value, previous).
        - report_collisions: raise on claimed spellings instead of dropping them.
        - group: a FlagGroup of this tool, a group name, or None for the default group.

        Returns
        - the Flag (possibly inactive, in which case it is not stored).
        """
        if not isinstance(group, groups.FlagGroup):
            if group not in self._flag_group_names:
                raise ToolDefinitionError(f"no such flag group: {group!r}", code=FaultCode.UNKNOWN_GROUP)
            group = self._flag_group_names[group]
        self.check_definition_state(argument=True)
        flag = Flag(
            key,
            flags,
            self._used_flags,
            report_collisions,
            self.resolve_acceptor(accept),
            handler,
            default,
            display_name,
            group,
            desc,
            long_desc,
        )
        if flag.active:
            self._flags.append(flag)
            group.append(flag)
        self._default_data[key] = default
        return flag

    def disable_flag(self, *flags):
        """
        Reserve flag spellings so later flags cannot claim them.
        """
        self.check_definition_state(argument=True)
        flags = list(dict.fromkeys(flags))
        if used := [flag for flag in flags if flag in self._used_flags]:
            raise ToolDefinitionError(
                f"cannot disable flags already used: {', '.join(used)}",
                code=FaultCode.FLAG_COLLISION
            )
        self._used_flags.extend(flags)
        return self

    def add_required_arg(self, key, accept=None, display_name=None, desc=None, long_desc=()):
        self.check_definition_state(argument=True)
        argument = PositionalArg(key, "required", self.resolve_acceptor(accept), None, display_name, desc, long_desc)
        self._required_args.append(argument)
        self._default_data[key] = None
        return argument

    def add_optional_arg(self, key, default=None, accept=None, display_name=None, desc=None, long_desc=()):
        self.check_definition_state(argument=True)
        argument = PositionalArg(key, "optional", self.resolve_acceptor(accept), default, display_name, desc, long_desc)
        self._optional_args.append(argument)
        self._default_data[key] = default
        return argument

    def set_remaining_args(self, key, default=Unset, accept=None, display_name=None, desc=None, long_desc=()):
        self.check_definition_state(argument=True)
        if self._remaining_arg is not None:
            raise ToolDefinitionError(
                f"remaining arguments of tool {self.display_name!r} are already defined",
                code=FaultCode.REMAINING_REDEFINED
            )
        default = coalesce(default, [])
        self._remaining_arg = PositionalArg(
            key, "remaining", self.resolve_acceptor(accept), default, display_name, desc, long_desc
        )
        self._default_data[key] = default
        return self._remaining_arg

    def disable_argument_parsing(self):
        self.check_definition_state()
        if self.includes_arguments():
            raise ToolDefinitionError(
                f"cannot disable argument parsing for tool {self.display_name!r} "
                "because arguments have already been defined",
                code=FaultCode.PARSING_DISABLED
            )
        self._disable_argument_parsing = True
        return self

    def enforce_flags_before_args(self, state=True):
        """
        Stop recognizing flags once the first positional argument is seen.
        """
        self.check_definition_state()
        if self._disable_argument_parsing:
            raise ToolDefinitionError(
                f"cannot enforce flags before args for tool {self.display_name!r} "
                "because argument parsing is disabled",
                code=FaultCode.PARSING_DISABLED
            )
        self._enforce_flags_before_args = bool(state)
        return self

    def delegate_to(self, target, /):
        """
        Make this tool run target (an absolute name) with its own arguments.

        Argument parsing is disabled and the run handler is replaced. Delegating
        again to the same target is a no-op.

        Raises
        - ToolDefinitionError: another target was already set, or arguments or a
          run handler were already defined.
        """
        self.check_definition_state()
        target = (target,) if isinstance(target, str) else tuple(target)
        if not target or not all(isinstance(word, str) and word for word in target):
            raise TypeError(f"{type(self).__typename__} delegate target must be a non-empty name")
        if self._delegate_target is not None:
            if self._delegate_target == target:
                return self
            raise ToolDefinitionError(
                f"cannot delegate tool {self.display_name!r} to {' '.join(target)!r} because it "
                f"already delegates to {' '.join(self._delegate_target)!r}",
                code=FaultCode.DELEGATION_CONFLICT
            )
        if self.includes_arguments():
            raise ToolDefinitionError(
                f"cannot delegate tool {self.display_name!r} because arguments have already been defined",
                code=FaultCode.DELEGATION_CONFLICT
            )
        if self._runnable is not None:
            raise ToolDefinitionError(
                f"cannot delegate tool {self.display_name!r} because its run handler is already defined",
                code=FaultCode.DELEGATION_CONFLICT
            )
        self._disable_argument_parsing = True
        self._runnable = _delegation(target)
        self._delegate_target = target
        return self

    def set_default(self, key, value, /):
        self.check_definition_state()
        self._default_data[keyname(type(self), key)] = value
        return self

    def resolve_flag(self, string, /):
        """
        Resolve a user-typed flag string against every flag (exact matches win).
        """
        resolution = FlagResolution(string)
        for flag in self._flags:
            resolution.merge(flag.resolve(string))
        return resolution

    # --- named registries ---

    def _register(self, registry, kind, name, object):
        self.check_definition_state()
        if not isinstance(name, str) or not name:
            raise TypeError(f"{type(self).__typename__} {kind} name must be a non-empty string")
        if name in registry:
            raise ToolDefinitionError(
                f"a {kind} named {name!r} has already been defined in tool {self.display_name!r}",
                code=FaultCode.DUPLICATED_NAME
            )
        registry[name] = object
        return object

    def add_acceptor(self, name, spec=Unset, /, type_desc=Unset):
        return self._register(self._acceptors, "acceptor", name, acceptors.create(coalesce(spec, name), type_desc))

    def add_mixin(self, name, mixin, /):
        if not isinstance(mixin, type):
            raise TypeError(f"{type(self).__typename__} mixin must be a class")
        return self._register(self._mixins, "mixin", name, mixin)

    def add_template(self, name, template, /):
        if not callable(template):
            raise TypeError(f"{type(self).__typename__} template must be callable")
        return self._register(self._templates, "template", name, template)

    def lookup_acceptor(self, name, /):
        tool = self
        while tool is not None:
            if name in tool._acceptors:
                return tool._acceptors[name]
            tool = tool._parent
        return None

    def lookup_mixin(self, name, /):
        tool = self
        while tool is not None:
            if name in tool._mixins:
                return tool._mixins[name]
            tool = tool._parent
        return None

    def lookup_template(self, name, /):
        tool = self
        while tool is not None:
            if name in tool._templates:
                return tool._templates[name]
            tool = tool._parent
        return None

    def resolve_acceptor(self, spec, /):
        """
        Resolve an acceptor spec: None stays None, names are looked up in this
        tool and its ancestors before the builtin registry, anything else goes
        through acceptors.create().
        """
        if spec is None:
            return None
        if isinstance(spec, str) and (acceptor := self.lookup_acceptor(spec)) is not None:
            return acceptor
        return acceptors.create(spec)

    def resolve_mixin(self, spec, /):
        if isinstance(spec, type):
            return spec
        if (mixin := self.lookup_mixin(spec)) is None:
            raise ToolDefinitionError(f"mixin not found: {spec!r}", code=FaultCode.UNKNOWN_MIXIN)
        return mixin

    def resolve_template(self, spec, /):
        if not isinstance(spec, str) and callable(spec):
            return spec
        if (template := self.lookup_template(spec)) is None:
            raise ToolDefinitionError(f"template not found: {spec!r}", code=FaultCode.UNKNOWN_TEMPLATE)
        return template

    def include_mixin(self, spec, /):
        self.check_definition_state()
        mixin = self.resolve_mixin(spec)
        if mixin not in self._included_mixins:
            self._included_mixins.append(mixin)
        return mixin

    # --- data ---

    def find_data(self, path, /, type=None):
        if self._source_info is None:
            return None
        return self._source_info.find_data(path, type=type)


class Alias(metaclass=DefinitionType):
    """
    A tool name that redirects to another tool.

    target may be a string (the single word of a sibling of the alias) or a
    sequence of words (an absolute name).
    """
    __introspectable__ = ("parent", "full_name", "target", "priority", "source_info")
    __displayable__ = ("full_name", "target", "priority")

    def __init__(self, parent, full_name, target, priority, /, source_info=None):
        if isinstance(target, str):
            target = [target]
            self._absolute = False
        else:
            target = list(target)
            self._absolute = True
        if not target or not all(isinstance(word, str) and word for word in target):
            raise TypeError(f"{type(self).__typename__} target must be a non-empty name")
        self._parent = parent
        self._full_name = tuple(full_name)
        self._target = target
        self._priority = priority
        self._source_info = source_info

    @property
    def simple_name(self):
        return self._full_name[-1]

    @property
    def display_name(self):
        return " ".join(self._full_name)

    @property
    def target_name(self):
        """Absolute target name."""
        if self._absolute:
            return list(self._target)
        return [*self._full_name[:-1], *self._target]

    def includes_definition(self):
        return True

    def finish_definition(self, loader, /):
        return self


__all__ = (
    "ToolDefinition",
    "Alias",
)
