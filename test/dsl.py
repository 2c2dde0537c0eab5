# python
"""
DSL front end behavioral tests (blocks, nested tools, groups, registries, locks).

Scope
- Validate root blocks receiving the DSL and nested tool bodies loading lazily.
- Validate flag group context managers and argument declarations.
- Validate acceptors, mixins and templates declared through the DSL.
- Validate aliases (with delimited targets), delegation, includes and priority
  overrides from blocks.
- Validate source locks across blocks and the no-frame guard.

Conventions
- Test method names follow CamelCase per project convention.
- Sources are registered with Loader.add_block() unless a fixture path is needed.
"""

from __future__ import annotations

import os
import re
import unittest
from unittest import TestCase

from quiver import acceptors
from quiver import groups
from quiver.dsl import DSL
from quiver.faults import ToolDefinitionError, FaultCode
from quiver.loader import Loader

CASES = os.path.join(os.path.dirname(os.path.abspath(__file__)), "lookup-cases")


def greeter(dsl):
    dsl.desc("greeting tools")

    @dsl.tool("greet")
    def greet():
        dsl.desc("Greets people")
        dsl.long_desc("Prints a greeting.", "Loudly if asked.")
        dsl.flag("loud", "-l", "--[no-]loud", desc="Shout")
        dsl.optional_arg("name", default="world")

        @dsl.run
        def run(context):
            return 0

    @dsl.tool("wave")
    def wave():
        dsl.desc("Waves")


class TestBlock(TestCase):
    """Behavioral tests for root blocks and nested tool bodies."""

    def setUp(self):
        self.loader = Loader()
        self.loader.add_block(greeter, name="greeter")

    def testRootBlockReceivesDsl(self):
        tool, _ = self.loader.lookup([])
        self.assertEqual(tool.desc, "greeting tools")

    def testNestedToolBody(self):
        tool, _ = self.loader.lookup(["greet"])
        self.assertEqual(tool.desc, "Greets people")
        self.assertEqual(tool.long_desc, ["Prints a greeting.", "Loudly if asked."])
        self.assertEqual([flag.key for flag in tool.flags], ["loud"])
        self.assertEqual(tool.default_data, {"loud": None, "name": "world"})
        self.assertTrue(tool.is_runnable)

    def testNestedToolBodiesAreDeferred(self):
        self.loader.lookup(["greet"])
        self.assertFalse(self.loader.tool_defined(["wave"]))
        self.assertEqual([tool.simple_name for tool in self.loader.list_subtools([])], ["greet", "wave"])

    def testMultiWordTool(self):
        def block(dsl):
            @dsl.tool(["deploy", "staging"])
            def staging():
                dsl.desc("to staging")

        loader = Loader()
        loader.add_block(block)
        tool, _ = loader.lookup(["deploy", "staging"])
        self.assertEqual(tool.desc, "to staging")

    def testDelimitedToolName(self):
        def block(dsl):
            @dsl.tool("deploy:prod")
            def prod():
                dsl.desc("to production")

        loader = Loader(extra_delimiters=":")
        loader.add_block(block)
        self.assertEqual(loader.lookup(["deploy", "prod"])[0].desc, "to production")

    def testNoFrameOutsideLoading(self):
        with self.assertRaises(RuntimeError):
            DSL().desc("nowhere")


class TestArgumentDeclaration(TestCase):
    """Behavioral tests for flags, groups and positionals declared through the DSL."""

    def load(self, body):
        def block(dsl):
            @dsl.tool("foo")
            def foo():
                body(dsl)

        loader = Loader()
        loader.add_block(block)
        return loader.lookup(["foo"])[0]

    def testFlagGroupContext(self):
        def body(dsl):
            with dsl.exactly_one(name="mode", desc="Mode") as group:
                dsl.flag("fast")
                dsl.flag("slow")
            dsl.flag("verbose")
            self.assertIsInstance(group, groups.ExactlyOne)

        tool = self.load(body)
        mode = tool.flag_groups[1]
        self.assertEqual(mode.name, "mode")
        self.assertEqual([flag.key for flag in mode.flags], ["fast", "slow"])
        self.assertEqual([flag.key for flag in tool.flag_groups[0].flags], ["verbose"])

    def testFlagIntoNamedGroup(self):
        def body(dsl):
            with dsl.at_least_one(name="targets"):
                pass
            dsl.flag("all", group="targets")

        tool = self.load(body)
        self.assertEqual([flag.key for flag in tool.flag_groups[1].flags], ["all"])

    def testPositionals(self):
        def body(dsl):
            dsl.required_arg("src", accept=int)
            dsl.optional_arg("dest")
            dsl.remaining_args("rest")

        tool = self.load(body)
        self.assertEqual([argument.key for argument in tool.positional_args], ["src", "dest", "rest"])
        self.assertIs(tool.required_args[0].acceptor, acceptors.INTEGER)

    def testDisableArgumentParsing(self):
        tool = self.load(lambda dsl: dsl.disable_argument_parsing())
        self.assertTrue(tool.argument_parsing_disabled)

    def testEnforceFlagsBeforeArgs(self):
        tool = self.load(lambda dsl: dsl.enforce_flags_before_args())
        self.assertTrue(tool.flags_before_args_enforced)

    def testDisableFlag(self):
        def body(dsl):
            dsl.disable_flag("-h")
            dsl.flag("host", "-h", "--host=HOST", report_collisions=False)

        tool = self.load(body)
        self.assertEqual(tool.flags[0].effective_flags, ["--host"])


class TestRegistry(TestCase):
    """Behavioral tests for acceptors, mixins and templates declared through the DSL."""

    def testAcceptorVisibleToSubtools(self):
        def block(dsl):
            dsl.acceptor("digits", re.compile(r"\d+"))

            @dsl.tool("count")
            def count():
                dsl.required_arg("n", accept="digits")

        loader = Loader()
        loader.add_block(block)
        tool, _ = loader.lookup(["count"])
        self.assertIsInstance(tool.required_args[0].acceptor, acceptors.Pattern)

    def testTemplateExpansion(self):
        def block(dsl):
            @dsl.template("verbosity")
            def verbosity(dsl, short):
                dsl.flag("verbose", short, "--verbose")
                return "expanded"

            @dsl.tool("foo")
            def foo():
                self.assertEqual(dsl.expand("verbosity", "-V"), "expanded")

        loader = Loader()
        loader.add_block(block)
        tool, _ = loader.lookup(["foo"])
        self.assertEqual(tool.used_flags, ["-V", "--verbose"])

    def testMixinDecorator(self):
        def block(dsl):
            @dsl.mixin("helpers")
            class Helpers:
                pass

            @dsl.tool("foo")
            def foo():
                dsl.include_mixin("helpers")

        loader = Loader()
        loader.add_block(block)
        tool, _ = loader.lookup(["foo"])
        self.assertEqual([mixin.__name__ for mixin in tool.included_mixins], ["Helpers"])

    def testCurrentToolAndContextDirectory(self):
        seen = {}

        def block(dsl):
            @dsl.tool("foo")
            def foo():
                seen["tool"] = dsl.current_tool()
                seen["directory"] = dsl.context_directory()

        loader = Loader()
        loader.add_block(block, context_directory=CASES)
        tool, _ = loader.lookup(["foo"])
        self.assertIs(seen["tool"], tool)
        self.assertEqual(seen["directory"], CASES)


class TestStructure(TestCase):
    """Behavioral tests for aliases, delegation, includes and overrides from blocks."""

    def testAliasOverContentConflicts(self):
        def block(dsl):
            dsl.alias_tool("a", "b")

            @dsl.tool("a")
            def a():
                dsl.desc("content")

        loader = Loader()
        loader.add_block(block)
        with self.assertRaises(ToolDefinitionError) as context:
            loader.lookup(["a"])
        self.assertEqual(context.exception.code, FaultCode.ALIAS_CONFLICT)

    def testContentThenAliasConflicts(self):
        def block(dsl):
            @dsl.tool("a")
            def a():
                dsl.desc("content")

            dsl.alias_tool("a", "b")

        loader = Loader()
        loader.add_block(block)
        with self.assertRaises(ToolDefinitionError) as context:
            loader.lookup([])
        self.assertEqual(context.exception.code, FaultCode.ALIAS_CONFLICT)

    def testIncludeFromBlock(self):
        def block(dsl):
            @dsl.tool("files")
            def files():
                dsl.include("normal-file-hierarchy")

        loader = Loader()
        loader.add_block(block, context_directory=CASES)
        tool, _ = loader.lookup(["files", "tool-2"])
        self.assertEqual(tool.desc, "file tool-2")
        self.assertEqual(tool.find_data("root.txt"), os.path.join(CASES, "normal-file-hierarchy", ".data", "root.txt"))

    def testBlockOverridesPath(self):
        def block(dsl):
            @dsl.tool("tool-2")
            def tool_2():
                dsl.desc("overridden")

        loader = Loader()
        loader.add_path(os.path.join(CASES, "normal-file-hierarchy"))
        loader.add_block(block, high_priority=True)
        self.assertEqual(loader.lookup(["tool-2"])[0].desc, "overridden")
        self.assertEqual(loader.lookup(["tool-1"])[0].desc, "file tool-1")

    def testSameBlockMayReopenTool(self):
        def block(dsl):
            @dsl.tool("foo")
            def first():
                dsl.desc("foo")

            @dsl.tool("foo")
            def second():
                dsl.long_desc("more")

        loader = Loader()
        loader.add_block(block)
        tool, _ = loader.lookup(["foo"])
        self.assertEqual((tool.desc, tool.long_desc), ("foo", ["more"]))

    def testDelimitedAliasTarget(self):
        def block(dsl):
            @dsl.tool("ns")
            def ns():
                dsl.desc("namespace")

                @dsl.tool("inner")
                def inner():
                    dsl.desc("inner tool")

                dsl.alias_tool("short", "inner")

            dsl.alias_tool("a", "ns:inner")

        loader = Loader(extra_delimiters=":")
        loader.add_block(block)
        tool, rest = loader.lookup(["a", "arg"])
        self.assertEqual(tool.full_name, ["ns", "inner"])
        self.assertEqual(rest, ["arg"])
        self.assertEqual(loader.lookup(["ns", "short"])[0].full_name, ["ns", "inner"])

    def testDelegateTo(self):
        def block(dsl):
            @dsl.tool("old")
            def old():
                dsl.delegate_to("ns:new")

        loader = Loader(extra_delimiters=":")
        loader.add_block(block)
        tool, _ = loader.lookup(["old"])
        self.assertEqual(tool.delegate_target, ["ns", "new"])
        self.assertTrue(tool.argument_parsing_disabled)

    def testTwoBlocksAtOnePriorityCollide(self):
        def first(dsl):
            dsl.desc("first")

        def second(dsl):
            dsl.desc("second")

        loader = Loader()
        loader.add_block(first, priority=0)
        loader.add_block(second, priority=0)
        with self.assertRaises(ToolDefinitionError) as context:
            loader.lookup([])
        self.assertEqual(context.exception.code, FaultCode.TOOL_REDEFINED)


if __name__ == "__main__":
    unittest.main()
