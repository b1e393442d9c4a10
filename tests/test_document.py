# -*- coding: utf-8 -
#
# This file is part of chill released under the MIT license.
# See the NOTICE for more information.
#

import unittest

from chill.design import Design
from chill.document import Attachment, Document, WriteResult
from chill.exceptions import BadRequest, DecodeError, InvalidAttachment
from chill.path import DatabasePath, DesignDocumentPath, DocumentPath


class AttachmentTestCase(unittest.TestCase):

    def testInline(self):
        att = Attachment.inline(b"hello", name="hello.txt")
        self.assertEqual(att.content_type, "text/plain")
        self.assertEqual(att.length, 5)
        self.assertFalse(att.is_stub)
        self.assertEqual(att.to_json(), {"content_type": "text/plain",
            "data": "aGVsbG8="})

    def testInlineText(self):
        att = Attachment.inline(u"h\xe9", content_type="text/plain")
        self.assertEqual(att.data, b"h\xc3\xa9")
        self.assertEqual(Attachment.inline(b"x").content_type,
                "application/octet-stream")

    def testStub(self):
        att = Attachment.wrap("a.txt", {"content_type": "text/plain",
            "length": 5, "stub": True, "digest": "md5-abc", "revpos": 2})
        self.assertTrue(att.is_stub)
        self.assertIsNone(att.data)
        self.assertEqual(att.length, 5)
        self.assertEqual(att.revpos, 2)
        self.assertEqual(att.to_json(), {"stub": True})

    def testWrapData(self):
        att = Attachment.wrap("a.txt", {"content_type": "text/plain",
            "data": "aGVsbG8=", "revpos": 1})
        self.assertEqual(att.data, b"hello")
        self.assertEqual(att.length, 5)

    def testInvalid(self):
        self.assertRaises(InvalidAttachment, Attachment, "text/plain")
        self.assertRaises(InvalidAttachment, Attachment, "text/plain",
                data=u"not bytes")
        self.assertRaises(DecodeError, Attachment.wrap, "a", {"data": "!!!"})
        self.assertRaises(DecodeError, Attachment.wrap, "a",
                {"content_type": "text/plain"})
        self.assertRaises(DecodeError, Attachment.wrap, "a", "stub")


class DocumentTestCase(unittest.TestCase):

    def setUp(self):
        self.db = DatabasePath("blog")

    def testNewDocument(self):
        doc = Document("/blog/first-post", {"title": "Hello"})
        self.assertEqual(doc.path, self.db.document("first-post"))
        self.assertEqual(doc.id, "first-post")
        self.assertEqual(doc.database, self.db)
        self.assertTrue(doc.new_document)
        self.assertEqual(doc["title"], "Hello")
        self.assertEqual(doc.to_json(), {"_id": "first-post",
            "title": "Hello"})

    def testToJson(self):
        doc = Document(self.db.document("a"), {"n": 1}, rev="1-abc")
        doc.put_attachment("notes.txt", b"draft")
        body = doc.to_json()
        self.assertEqual(body["_rev"], "1-abc")
        self.assertEqual(body["_attachments"]["notes.txt"],
                {"content_type": "text/plain", "data": "ZHJhZnQ="})
        self.assertNotIn("_rev", doc.to_json(with_rev=False))

    def testReservedFields(self):
        doc = Document(self.db.document("a"), {"_deleted": True})
        self.assertRaises(BadRequest, doc.to_json)
        doc = Document(self.db.document("a"), {1: "x"})
        self.assertRaises(BadRequest, doc.validate)

    def testWrap(self):
        doc = Document.wrap(self.db, {
            "_id": "_design/posts",
            "_rev": "3-xyz",
            "views": {},
            "_attachments": {
                "index.html": {"content_type": "text/html", "length": 10,
                    "stub": True, "digest": "md5-x", "revpos": 2}
            }
        })
        self.assertEqual(doc.path, DesignDocumentPath(self.db, "posts"))
        self.assertEqual(doc.rev, "3-xyz")
        self.assertEqual(dict(doc), {"views": {}})
        self.assertTrue(doc.attachments["index.html"].is_stub)

    def testWrapInvalid(self):
        for body in ([], {"_rev": "1-a"}, {"_id": "a"},
                {"_id": "", "_rev": "1-a"}, {"_id": "a", "_rev": 1},
                {"_id": "a", "_rev": "1-a", "_attachments": []}):
            self.assertRaises(DecodeError, Document.wrap, self.db, body)

    def testAttachments(self):
        doc = Document(self.db.document("a"))
        self.assertRaises(InvalidAttachment, doc.put_attachment, "", b"x")
        doc.put_attachment("pic.png", b"\x89PNG")
        self.assertEqual(doc.attachments["pic.png"].content_type, "image/png")
        doc.delete_attachment("pic.png")
        self.assertEqual(doc.attachments, {})
        self.assertRaises(InvalidAttachment, doc.delete_attachment, "pic.png")

    def testCopy(self):
        doc = Document(self.db.document("a"), {"n": 1}, rev="1-a")
        doc.put_attachment("a.txt", b"a")
        other = doc.copy()
        self.assertEqual(doc, other)
        other["n"] = 2
        other.put_attachment("b.txt", b"b")
        self.assertEqual(doc["n"], 1)
        self.assertEqual(list(doc.attachments), ["a.txt"])
        self.assertNotEqual(doc, other)

    def testEquality(self):
        a = Document(self.db.document("a"), {"n": 1}, rev="1-a")
        self.assertNotEqual(a, Document(self.db.document("a"), {"n": 1},
            rev="2-b"))
        self.assertNotEqual(a, Document(self.db.document("b"), {"n": 1},
            rev="1-a"))

    def testWriteResult(self):
        result = WriteResult(self.db.document("a"), "1-a")
        self.assertEqual(result.id, "a")
        self.assertEqual(result.rev, "1-a")


class DesignTestCase(unittest.TestCase):

    def testNew(self):
        design = Design.new("blog", "posts")
        self.assertEqual(design.name, "posts")
        self.assertEqual(design.id, "_design/posts")
        self.assertEqual(design["language"], "javascript")
        self.assertTrue(design.new_document)

    def testViews(self):
        design = Design.new("blog", "posts")
        design.add_view("by_date", "function(doc) { emit(doc.date); }")
        design.add_view("count", "function(doc) { emit(doc.tag, 1); }",
                "_sum")
        self.assertTrue(design.has_view("by_date"))
        self.assertFalse(design.has_view("by_tag"))
        self.assertFalse(design.has_reducer("by_date"))
        self.assertTrue(design.has_reducer("count"))
        self.assertRaises(KeyError, design.has_reducer, "by_tag")
        self.assertEqual(design.view_path("count"),
                DatabasePath("blog").view("posts", "count"))
        self.assertRaises(BadRequest, design.view_path, "by_tag")
        self.assertEqual(design.to_json()["views"]["count"],
                {"map": "function(doc) { emit(doc.tag, 1); }",
                 "reduce": "_sum"})

    def testDesignPathRequired(self):
        self.assertRaises(BadRequest, Design, "/blog/posts")
        design = Design(DocumentPath("blog", "_design/posts"))
        self.assertIsInstance(design.path, DesignDocumentPath)

    def testFromDocument(self):
        doc = Document.wrap(DatabasePath("blog"), {"_id": "_design/posts",
            "_rev": "1-a", "views": {"v": {"map": "f"}}})
        design = Design.from_document(doc)
        self.assertTrue(design.has_view("v"))
        self.assertEqual(design.rev, "1-a")


if __name__ == '__main__':
    unittest.main()
