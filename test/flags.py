# python
"""
Flags module behavioral tests (syntax grammar, canonicalization, collisions, resolution).

Scope
- Validate the FlagSyntax grammar table: accepted shapes, inferred types, delimiters, labels.
- Validate Flag canonicalization across synonyms and type conflicts.
- Validate default spelling synthesis from keys.
- Validate collision handling against the used-flags list.
- Validate handlers and prefix resolution.

Conventions
- Test method names follow CamelCase per project convention.
"""

from __future__ import annotations

import unittest
from unittest import TestCase

from quiver import acceptors
from quiver.faults import ToolDefinitionError, FaultCode
from quiver.flags import FlagSyntax, Flag, SET_HANDLER, PUSH_HANDLER, resolve_handler


class TestFlagSyntax(TestCase):
    """Behavioral tests for single flag spellings."""

    def testShortBare(self):
        syntax = FlagSyntax("-a")
        self.assertEqual(syntax.flags, ["-a"])
        self.assertEqual(syntax.flag_style, "short")
        self.assertIsNone(syntax.flag_type)
        self.assertIsNone(syntax.value_label)

    def testShortAttachedRequiredValue(self):
        syntax = FlagSyntax("-aFOO")
        self.assertEqual(syntax.flag_type, "value")
        self.assertEqual(syntax.value_type, "required")
        self.assertEqual(syntax.value_delim, "")
        self.assertEqual(syntax.value_label, "FOO")

    def testShortSpacedRequiredValue(self):
        syntax = FlagSyntax("-a foo")
        self.assertEqual(syntax.value_delim, " ")
        self.assertEqual(syntax.value_label, "FOO")
        self.assertEqual(syntax.canonical_str, "-a FOO")

    def testShortOptionalValue(self):
        syntax = FlagSyntax("-a[FOO]")
        self.assertEqual(syntax.value_type, "optional")
        self.assertEqual(syntax.value_delim, "")
        self.assertEqual(syntax.canonical_str, "-a[FOO]")

    def testShortSpacedOptionalValue(self):
        for string in ("-a [FOO]", "-a[ FOO]"):
            syntax = FlagSyntax(string)
            self.assertEqual(syntax.value_type, "optional", string)
            self.assertEqual(syntax.value_delim, " ", string)

    def testLongRequiredValue(self):
        syntax = FlagSyntax("--abc=FOO")
        self.assertEqual(syntax.flags, ["--abc"])
        self.assertEqual(syntax.flag_style, "long")
        self.assertEqual(syntax.value_type, "required")
        self.assertEqual(syntax.value_delim, "=")
        self.assertEqual(syntax.value_label, "FOO")

    def testLongSpacedRequiredValue(self):
        syntax = FlagSyntax("--abc foo")
        self.assertEqual(syntax.value_delim, " ")
        self.assertEqual(syntax.canonical_str, "--abc FOO")

    def testLongOptionalValue(self):
        for string in ("--abc=[FOO]", "--abc[=FOO]"):
            syntax = FlagSyntax(string)
            self.assertEqual(syntax.value_type, "optional", string)
            self.assertEqual(syntax.value_delim, "=", string)
            self.assertEqual(syntax.canonical_str, "--abc=[FOO]", string)

    def testNegatableLongBoolean(self):
        syntax = FlagSyntax("--[no-]aa")
        self.assertEqual(syntax.flags, ["--aa", "--no-aa"])
        self.assertEqual(syntax.flag_type, "boolean")
        self.assertEqual(syntax.positive_flag, "--aa")
        self.assertEqual(syntax.negative_flag, "--no-aa")
        self.assertEqual(syntax.canonical_str, "--[no-]aa")

    def testIllegalSpellings(self):
        for string in ("hi", "", "-", "--", "-ab c d", "---a", "--[no-]a=B"):
            with self.assertRaises(ToolDefinitionError, msg=string) as context:
                FlagSyntax(string)
            self.assertEqual(context.exception.code, FaultCode.ILLEGAL_FLAG_SYNTAX)

    def testNonStringRejected(self):
        with self.assertRaises(TypeError):
            FlagSyntax(1)

    def testSortString(self):
        self.assertEqual(FlagSyntax("--abc=FOO").sort_str, "abc")

    def testConfigureCanonicalTranslatesDelimiters(self):
        short = FlagSyntax("-a")
        short.configure_canonical("value", "required", "VAL", "=")
        self.assertEqual(short.value_delim, "")
        self.assertEqual(short.canonical_str, "-aVAL")
        long = FlagSyntax("--bb")
        long.configure_canonical("value", "required", "VAL", "")
        self.assertEqual(long.value_delim, "=")
        self.assertEqual(long.canonical_str, "--bb=VAL")

    def testConfigureCanonicalKeepsDeclaredType(self):
        syntax = FlagSyntax("--abc=FOO")
        syntax.configure_canonical("boolean", None, None, "")
        self.assertEqual(syntax.flag_type, "value")
        self.assertEqual(syntax.canonical_str, "--abc=FOO")


class TestFlag(TestCase):
    """Behavioral tests for flag synonym groups."""

    def testCanonicalizesSynonyms(self):
        flag = Flag("aa", ["--aa VAL", "--bb", "-a"])
        self.assertEqual(flag.flag_type, "value")
        self.assertEqual(flag.value_type, "required")
        self.assertEqual(flag.value_label, "VAL")
        self.assertEqual(flag.value_delim, " ")
        self.assertEqual(
            [syntax.canonical_str for syntax in flag.flag_syntax],
            ["--aa VAL", "--bb VAL", "-a VAL"],
        )

    def testShortSyntaxSeedsType(self):
        flag = Flag("aa", ["--aa", "-a[X]"])
        self.assertEqual(flag.value_type, "optional")
        self.assertEqual(flag.long_flag_syntax[0].canonical_str, "--aa=[X]")

    def testUntypedDefaultsToBoolean(self):
        flag = Flag("aa", ["-a", "--aa"])
        self.assertEqual(flag.flag_type, "boolean")
        self.assertIsNone(flag.value_label)

    def testValueAndBooleanConflict(self):
        with self.assertRaises(ToolDefinitionError) as context:
            Flag("aa", ["--[no-]aa", "-a VAL"])
        self.assertEqual(context.exception.code, FaultCode.FLAG_TYPE_CONFLICT)

    def testRequiredAndOptionalConflict(self):
        with self.assertRaises(ToolDefinitionError) as context:
            Flag("aa", ["--aa=VAL", "-a[VAL]"])
        self.assertEqual(context.exception.code, FaultCode.FLAG_TYPE_CONFLICT)

    def testDefaultSpellingForLongKey(self):
        flag = Flag("dry_run")
        self.assertEqual(flag.effective_flags, ["--dry-run"])
        self.assertEqual(flag.flag_type, "boolean")

    def testDefaultSpellingForShortKey(self):
        self.assertEqual(Flag("v").effective_flags, ["-v"])

    def testKeyWithoutUsableCharactersHasNoDefaultSpelling(self):
        used = []
        for key in ("__", "_", "!!"):
            flag = Flag(key, used_flags=used)
            self.assertFalse(flag.active, key)
            self.assertEqual(flag.effective_flags, [], key)
            self.assertEqual(flag.display_name, key)
        self.assertEqual(used, [])

    def testFirstTypedShortSpellingFixesLabelAndDelimiter(self):
        flag = Flag("aa", ["-a VAL", "--bb=FOO"])
        self.assertEqual(flag.value_label, "VAL")
        self.assertEqual(flag.value_delim, " ")
        self.assertEqual(flag.long_flag_syntax[0].canonical_str, "--bb=FOO")

    def testDefaultSpellingTakesValueForValueAcceptor(self):
        flag = Flag("count", acceptor=acceptors.INTEGER)
        self.assertEqual(flag.flag_type, "value")
        self.assertEqual(flag.long_flag_syntax[0].canonical_str, "--count VALUE")

    def testDefaultSpellingTakesValueForNonBooleanDefault(self):
        self.assertEqual(Flag("name", default="x").flag_type, "value")
        self.assertEqual(Flag("quiet", default=False).flag_type, "boolean")

    def testDefaultSpellingStaysBooleanForBooleanAcceptor(self):
        self.assertEqual(Flag("force", acceptor=acceptors.BOOLEAN).flag_type, "boolean")

    def testRegistersUsedFlags(self):
        used = []
        Flag("aa", ["--[no-]aa", "-a"], used)
        self.assertEqual(used, ["--aa", "--no-aa", "-a"])

    def testCollisionReported(self):
        used = ["-a"]
        with self.assertRaises(ToolDefinitionError) as context:
            Flag("aa", ["-a", "--aa"], used)
        self.assertEqual(context.exception.code, FaultCode.FLAG_COLLISION)

    def testCollisionSilentlyDropped(self):
        used = ["-a"]
        flag = Flag("aa", ["-a", "--aa"], used, report_collisions=False)
        self.assertTrue(flag.active)
        self.assertEqual(flag.effective_flags, ["--aa"])
        self.assertEqual(used, ["-a", "--aa"])

    def testEveryCollisionMakesInactive(self):
        flag = Flag("aa", ["-a"], ["-a"], report_collisions=False)
        self.assertFalse(flag.active)

    def testDisplayNameAndSortString(self):
        flag = Flag("aa", ["-a", "--bb=VAL"])
        self.assertEqual(flag.display_name, "--bb=VAL")
        self.assertEqual(flag.sort_str, "bb")
        self.assertEqual(Flag("c", ["-c"]).sort_str, "c")

    def testResolveExactBeatsPrefix(self):
        flag = Flag("aa", ["--aa", "--aab"])
        resolution = flag.resolve("--aa")
        self.assertTrue(resolution.found_exact)
        self.assertTrue(resolution.found_unique)
        self.assertEqual(resolution.matching_flag_strings, ["--aa"])

    def testResolvePrefixMatches(self):
        flag = Flag("aa", ["--[no-]aardvark"])
        self.assertTrue(flag.resolve("--aar").found_unique)
        negative = flag.resolve("--no-a")
        self.assertTrue(negative.unique_flag_negative)
        self.assertTrue(flag.resolve("--zz").not_found)


class TestHandler(TestCase):
    """Behavioral tests for the well-known flag value handlers."""

    def testSetHandler(self):
        self.assertIs(resolve_handler(None), SET_HANDLER)
        self.assertIs(resolve_handler("set"), SET_HANDLER)
        self.assertEqual(SET_HANDLER(2, 1), 2)

    def testPushHandler(self):
        self.assertIs(resolve_handler("push"), PUSH_HANDLER)
        self.assertEqual(PUSH_HANDLER("a", None), ["a"])
        self.assertEqual(PUSH_HANDLER("b", ["a"]), ["a", "b"])

    def testCustomHandler(self):
        def handler(value, previous):
            return (previous or 0) + 1

        self.assertIs(resolve_handler(handler), handler)

    def testUnknownHandler(self):
        with self.assertRaises(ToolDefinitionError) as context:
            resolve_handler("bogus")
        self.assertEqual(context.exception.code, FaultCode.UNKNOWN_HANDLER)


if __name__ == "__main__":
    unittest.main()
