# python
"""
Utilities module behavioral tests (Unset sentinel, coalesce, mirror, definition metaclass).

Scope
- Validate the Unset singleton: identity, falsiness, representation, copying, finality.
- Validate coalesce() keeps legitimate falsey values.
- Validate mirror() copies containers and DefinitionType builds typenames and reprs.
- Validate keyname()/description() sanitization.

Conventions
- Test method names follow CamelCase per project convention.
"""

from __future__ import annotations

import copy
import pickle
import unittest
from threading import Thread, Lock
from unittest import TestCase

from rich.text import Text

from quiver.utils import Unset, UnsetType, DefinitionType, coalesce, rename, keyname, description


class Sample(metaclass=DefinitionType):
    pass


class TestUnset(TestCase):
    """Behavioral tests for the Unset sentinel."""

    def testSingleton(self):
        self.assertIs(Unset, UnsetType())
        self.assertIs(UnsetType(), UnsetType())

    def testFalsy(self):
        self.assertFalse(Unset)
        self.assertNotEqual(Unset, None)
        self.assertNotEqual(Unset, False)  # noqa: E712

    def testRepr(self):
        self.assertEqual(repr(Unset), "Unset")

    def testCopyAndPicklePreserveIdentity(self):
        self.assertIs(copy.copy(Unset), Unset)
        self.assertIs(copy.deepcopy(Unset), Unset)
        self.assertIs(pickle.loads(pickle.dumps(Unset)), Unset)

    def testThreadSafetySingleton(self):
        results = []
        lock = Lock()

        def worker():
            instance = UnsetType()
            with lock:
                results.append(instance)

        threads = [Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        self.assertEqual(len(results), 8)
        for instance in results:
            self.assertIs(instance, Unset)

    def testFinalClass(self):
        with self.assertRaises(TypeError):
            type("UnsetSubtype", (UnsetType,), {})


class TestCoalesce(TestCase):
    """coalesce() only replaces Unset."""

    def testReplacesUnset(self):
        self.assertEqual(coalesce(Unset, ".quiver.py"), ".quiver.py")

    def testKeepsFalseyValues(self):
        self.assertIsNone(coalesce(None, "fallback"))
        self.assertEqual(coalesce(0, 1), 0)
        self.assertEqual(coalesce("", "x"), "")
        self.assertEqual(coalesce([], [1]), [])

    def testDefaultIsNone(self):
        self.assertIsNone(coalesce(Unset))


class TestRename(TestCase):
    """Behavioral tests for the rename() decorator."""

    def testRenameCallable(self):
        def function():
            pass

        rename(function, "renamed")
        self.assertEqual(function.__name__, "renamed")
        self.assertEqual(function.__qualname__, "renamed")

    def testRenameDecorator(self):
        @rename("decorated")
        def function():
            pass

        self.assertEqual(function.__name__, "decorated")

    def testRenameRejectsNonCallable(self):
        with self.assertRaises(TypeError):
            rename(42, "name")


class TestDefinitionType(TestCase):
    """Mirrors, typenames and representations generated by the metaclass."""

    def setUp(self):
        class SampleDefinition(metaclass=DefinitionType):
            __introspectable__ = ("name", "items")

            def __init__(self, name, items):
                self._name = name
                self._items = items

        self.Sample = SampleDefinition

    def testTypename(self):
        self.assertEqual(self.Sample.__typename__, "sample-definition")

    def testMirrorIsReadOnly(self):
        sample = self.Sample("a", [1, 2])
        with self.assertRaises(AttributeError):
            sample.name = "b"

    def testMirrorCopiesContainers(self):
        sample = self.Sample("a", [1, 2])
        items = sample.items
        items.append(3)
        self.assertEqual(sample.items, [1, 2])

    def testRepr(self):
        self.assertEqual(repr(self.Sample("a", [1])), "sample-definition(name='a', items=[1])")


class TestSanitization(TestCase):
    """Behavioral tests for key and description sanitization."""

    def testKeynameRejectsNonStrings(self):
        with self.assertRaises(TypeError):
            keyname(Sample, 1)

    def testKeynameRejectsBlank(self):
        with self.assertRaises(ValueError):
            keyname(Sample, "  ")

    def testDescriptionStripsStrings(self):
        self.assertEqual(description(Sample, "  text  ", "desc"), "text")

    def testDescriptionKeepsRichText(self):
        text = Text("styled", style="bold")
        self.assertIs(description(Sample, text, "desc"), text)

    def testDescriptionRejectsOtherTypes(self):
        with self.assertRaises(TypeError):
            description(Sample, 3, "desc")


if __name__ == "__main__":
    unittest.main()
