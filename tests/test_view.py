# -*- coding: utf-8 -
#
# This file is part of chill released under the MIT license.
# See the NOTICE for more information.
#

import unittest

from chill.document import Document
from chill.exceptions import BadRequest, DecodeError, \
MultipleResultsFound, NoResultFound
from chill.path import DatabasePath
from chill.view import ViewOptions, ViewResponse, ViewRow, GroupRow, \
UNREDUCED, GROUPED, REDUCED


class ViewOptionsTestCase(unittest.TestCase):

    def testShape(self):
        self.assertEqual(ViewOptions().shape, UNREDUCED)
        self.assertEqual(ViewOptions(reduce=False).shape, UNREDUCED)
        self.assertEqual(ViewOptions(group=False).shape, UNREDUCED)
        self.assertEqual(ViewOptions(include_docs=True).shape, UNREDUCED)
        self.assertEqual(ViewOptions(group=True).shape, GROUPED)
        self.assertEqual(ViewOptions(group_level=0).shape, GROUPED)
        self.assertEqual(ViewOptions(reduce=True, group_level=2).shape,
                GROUPED)
        self.assertEqual(ViewOptions(reduce=True).shape, REDUCED)
        self.assertEqual(ViewOptions(reduce=True, group=False).shape, REDUCED)

    def testInvalidCombinations(self):
        invalid = [
            dict(reduce=False, group=True),
            dict(reduce=False, group_level=1),
            dict(include_docs=True, reduce=True),
            dict(include_docs=True, group=True),
            dict(include_docs=True, group_level=1),
            dict(group=False, group_level=1),
            dict(key="a", keys=["a"]),
            dict(key="a", start_key="a"),
            dict(key="a", end_key="z"),
            dict(keys=["a"], start_key="a"),
        ]
        for options in invalid:
            self.assertRaises(BadRequest, ViewOptions, **options)

    def testInvalidTypes(self):
        invalid = [
            dict(limit=-1),
            dict(limit=True),
            dict(skip="10"),
            dict(group_level=1.5),
            dict(descending="true"),
            dict(include_docs=1),
            dict(keys="a"),
            dict(startkey="a"),
            dict(stale="ok"),
        ]
        for options in invalid:
            self.assertRaises(BadRequest, ViewOptions, **options)

    def testNoneIsIgnored(self):
        options = ViewOptions(limit=None, reduce=None, keys=None)
        self.assertEqual(options, ViewOptions())
        # a json null key is a real key
        self.assertIn("key", ViewOptions(key=None))

    def testQuery(self):
        options = ViewOptions(start_key=["a", 1], end_key="b",
                descending=True, limit=10)
        self.assertEqual(options.query(), [
            ("startkey", '["a", 1]'),
            ("endkey", '"b"'),
            ("descending", "true"),
            ("limit", "10"),
            ("reduce", "false"),
        ])

    def testQueryReduce(self):
        self.assertEqual(ViewOptions(reduce=True).query(),
                [("reduce", "true")])
        self.assertEqual(ViewOptions(group=True).query(),
                [("group", "true")])
        self.assertEqual(ViewOptions(reduce=False).query(),
                [("reduce", "false")])
        self.assertEqual(ViewOptions(key=None).query(),
                [("key", "null"), ("reduce", "false")])
        self.assertEqual(ViewOptions(inclusive_end=False).query(
            implicit_reduce=False), [("inclusive_end", "false")])

    def testKeysAreNotInTheQuery(self):
        options = ViewOptions(keys=["a", "b"])
        self.assertEqual(options.keys, ["a", "b"])
        self.assertEqual(options.query(), [("reduce", "false")])

    def testKeysAreCopied(self):
        keys = ["a", ["b"]]
        options = ViewOptions(keys=keys)
        keys[1].append("c")
        options.keys.append("d")
        options.keys[1].append("e")
        self.assertEqual(options.keys, ["a", ["b"]])

        start = ["a"]
        options = ViewOptions(start_key=start)
        start.append("b")
        options.get("start_key").append("c")
        self.assertEqual(options.query(), [("startkey", '["a"]'),
            ("reduce", "false")])

    def testKeysMustBeJson(self):
        for options in (dict(key=set([1])), dict(start_key=object()),
                dict(keys=[{"a": set()}])):
            self.assertRaises(BadRequest, ViewOptions, **options)

    def testReplace(self):
        options = ViewOptions(limit=10, descending=True)
        other = options.replace(limit=None, skip=5)
        self.assertEqual(other, ViewOptions(descending=True, skip=5))
        self.assertEqual(options.get("limit"), 10)
        self.assertRaises(BadRequest, options.replace, reduce=True,
                include_docs=True)


class DecodeTestCase(unittest.TestCase):

    def setUp(self):
        self.db = DatabasePath("blog")

    def decode(self, body, **options):
        return ViewResponse.decode(body, ViewOptions(**options), self.db)

    def testUnreduced(self):
        resp = self.decode({"total_rows": 10, "offset": 2, "rows": [
            {"id": "c", "key": 3, "value": None},
            {"id": "b", "key": 2, "value": {"n": 2}},
            {"id": "a/1", "key": 1, "value": "x"},
        ]}, descending=True)
        self.assertTrue(resp.is_unreduced)
        self.assertEqual(resp.keys(), [3, 2, 1])
        self.assertEqual(resp.values(), [None, {"n": 2}, "x"])
        self.assertEqual(resp.total_rows, 10)
        self.assertEqual(resp.offset, 2)
        self.assertEqual(len(resp), 3)
        self.assertEqual(resp[2].path, self.db.document("a/1"))
        self.assertEqual(resp[0].id, "c")
        self.assertIsNone(resp[0].doc)
        self.assertRaises(TypeError, lambda: resp.value)

    def testIncludeDocs(self):
        resp = self.decode({"total_rows": 2, "offset": 0, "rows": [
            {"id": "a", "key": "a", "value": 1,
             "doc": {"_id": "a", "_rev": "1-x", "title": "A"}},
            {"id": "b", "key": "b", "value": 1, "doc": None},
        ]}, include_docs=True)
        doc = resp.first().doc
        self.assertIsInstance(doc, Document)
        self.assertEqual(doc.rev, "1-x")
        self.assertEqual(doc["title"], "A")
        self.assertIsNone(resp[1].doc)
        self.assertEqual(resp.documents(), [doc])

    def testDocsOnlyWhenRequested(self):
        resp = self.decode({"rows": [{"id": "a", "key": "a", "value": 1,
            "doc": {"_id": "a", "_rev": "1-x"}}]})
        self.assertIsNone(resp[0].doc)
        self.assertEqual(resp.total_rows, 1)
        self.assertEqual(resp.offset, 0)

    def testErrorRows(self):
        resp = self.decode({"total_rows": 1, "rows": [
            {"key": "missing", "error": "not_found"},
        ]}, keys=["missing"])
        self.assertEqual(resp[0].error, "not_found")
        self.assertIsNone(resp[0].id)

    def testGrouped(self):
        resp = self.decode({"rows": [
            {"key": ["a"], "value": 2},
            {"key": ["b"], "value": 1},
        ]}, group_level=1)
        self.assertTrue(resp.is_grouped)
        self.assertEqual(resp.all(), [GroupRow(["a"], 2), GroupRow(["b"], 1)])
        self.assertEqual(resp.first().value, 2)

    def testReduced(self):
        resp = self.decode({"rows": [{"key": None, "value": 42}]},
                reduce=True)
        self.assertTrue(resp.is_reduced)
        self.assertEqual(resp.value, 42)
        self.assertTrue(resp)
        self.assertRaises(TypeError, lambda: resp.rows)
        self.assertRaises(TypeError, len, resp)

    def testReducedHasNoPosition(self):
        resp = self.decode({"rows": [{"key": None, "value": 42}]},
                reduce=True)
        self.assertIsNone(resp.total_rows)
        self.assertIsNone(resp.offset)

    def testReducedEmpty(self):
        resp = self.decode({"rows": []}, reduce=True)
        self.assertIsNone(resp.value)
        self.assertFalse(resp)

    def testShapeMismatch(self):
        invalid = [
            ({"rows": [{"key": 1, "value": 1}]}, {}),
            ({"rows": [{"key": None, "value": 3}]}, {}),
            ({"rows": [{"id": "a", "key": 1, "value": 1}]}, {"group": True}),
            ({"rows": [{"key": 1}]}, {"group": True}),
            ({"rows": [{"key": None, "value": 1}, {"key": None, "value": 2}]},
                {"reduce": True}),
            ({"rows": [{"key": "a", "value": 1}]}, {"reduce": True}),
            ({"rows": [{"key": None, "id": "a", "value": 1}]},
                {"reduce": True}),
            ({"rows": {}}, {}),
            ({}, {}),
            ([], {}),
            ({"total_rows": "3", "rows": []}, {}),
            ({"rows": [{"id": "a", "key": 1, "value": 1,
                "doc": {"_id": "a"}}]}, {"include_docs": True}),
        ]
        for body, options in invalid:
            self.assertRaises(DecodeError, self.decode, body, **options)


class ViewResponseTestCase(unittest.TestCase):

    def setUp(self):
        db = DatabasePath("blog")
        self.rows = [ViewRow("k%s" % i, i, id="d%s" % i,
            path=db.document("d%s" % i)) for i in range(3)]

    def testOne(self):
        resp = ViewResponse(UNREDUCED, rows=self.rows[:1])
        self.assertEqual(resp.one(), self.rows[0])
        self.assertRaises(MultipleResultsFound,
                ViewResponse(UNREDUCED, rows=self.rows).one)

        empty = ViewResponse(UNREDUCED)
        self.assertIsNone(empty.one())
        self.assertIsNone(empty.first())
        self.assertRaises(NoResultFound, empty.one, except_all=True)

    def testIteration(self):
        resp = ViewResponse(UNREDUCED, rows=self.rows)
        self.assertEqual([row.key for row in resp], ["k0", "k1", "k2"])
        self.assertEqual(resp.all(), self.rows)
        self.assertEqual(resp.total_rows, 3)

    def testReducedHasNoRows(self):
        self.assertRaises(ValueError, ViewResponse, REDUCED, rows=self.rows)
        self.assertRaises(ValueError, ViewResponse, "other")

    def testGroupedHasNoDocuments(self):
        resp = ViewResponse(GROUPED, rows=[GroupRow("a", 1)])
        self.assertRaises(TypeError, resp.documents)


if __name__ == '__main__':
    unittest.main()
