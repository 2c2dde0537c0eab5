# python
"""
Positional arguments behavioral tests (display names, value processing, validation).

Scope
- Validate PositionalArg construction and the upper snake case display name.
- Validate process_value() through acceptors and its usage error.

Conventions
- Test method names follow CamelCase per project convention.
"""

from __future__ import annotations

import unittest
from unittest import TestCase

from quiver import acceptors
from quiver.arguments import PositionalArg
from quiver.faults import UnacceptableValueError


class TestPositionalArg(TestCase):
    """Behavioral tests for positional argument declarations."""

    def testDisplayNameDefault(self):
        self.assertEqual(PositionalArg("input-file", "required").display_name, "INPUT_FILE")
        self.assertEqual(PositionalArg("out_dir", "optional").display_name, "OUT_DIR")

    def testDisplayNameExplicit(self):
        self.assertEqual(PositionalArg("src", "required", display_name="SOURCE").display_name, "SOURCE")

    def testUnknownType(self):
        with self.assertRaises(ValueError):
            PositionalArg("src", "mandatory")

    def testBlankKey(self):
        with self.assertRaises(ValueError):
            PositionalArg(" ", "required")

    def testProcessValueWithoutAcceptor(self):
        self.assertEqual(PositionalArg("src", "required").process_value("a"), "a")

    def testProcessValueConverts(self):
        argument = PositionalArg("count", "required", acceptors.INTEGER)
        self.assertEqual(argument.process_value("7"), 7)

    def testProcessValueRejects(self):
        argument = PositionalArg("count", "required", acceptors.INTEGER)
        with self.assertRaises(UnacceptableValueError) as context:
            argument.process_value("seven")
        self.assertIn("COUNT", context.exception.message)
        self.assertEqual(context.exception.options["argument"], "COUNT")


if __name__ == "__main__":
    unittest.main()
