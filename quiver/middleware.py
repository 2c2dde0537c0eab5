"""
Quiver middleware: hooks around tool configuration and execution.

A middleware sees every tool twice:
- config(tool, loader, next): while the tool definition is being finished. It
  may still mutate the tool before and after calling next().
- run(context, next): around the run handler. It returns the exit status.

Chains nest so that the last registered middleware is the outermost one.
"""
from .utils import *


class Middleware:
    """Base middleware: forwards to the rest of the chain."""

    def config(self, tool, loader, next, /):
        next()

    def run(self, context, next, /):
        return next()

    def __repr__(self):
        return f"{type(self).__name__}()"


class SetDefaultDescriptions(Middleware):
    """
    Fill in descriptions the tool author left empty.

    The runnable default applies to tools with a run handler, the collection
    default to every other tool.
    """
    DEFAULT_TOOL_DESC = "(No description available)"
    DEFAULT_COLLECTION_DESC = "(A collection of tools)"

    def __init__(self, tool_desc=Unset, collection_desc=Unset, long_desc=Unset):
        self.tool_desc = coalesce(tool_desc, type(self).DEFAULT_TOOL_DESC)
        self.collection_desc = coalesce(collection_desc, type(self).DEFAULT_COLLECTION_DESC)
        self.default_long_desc = coalesce(long_desc, None)

    def config(self, tool, loader, next, /):
        if tool.desc is None or not str(tool.desc):
            tool.desc = self.tool_desc if tool.is_runnable else self.collection_desc
        if not tool.long_desc and self.default_long_desc is not None:
            tool.long_desc = self.default_long_desc
        next()


__all__ = (
    "Middleware",
    "SetDefaultDescriptions",
)
