# -*- coding: utf-8 -
#
# This file is part of chill released under the MIT license.
# See the NOTICE for more information.

"""
In-memory representation of CouchDB documents and their attachments.

A `Document` is a dict of its content fields. The identity (database
and id), the revision token and the attachments are kept apart from
the content and only merged back into the `_id`, `_rev` and
`_attachments` members when the document is serialized:

    >>> doc = Document("/blog/first-post", {"title": "Hello"})
    >>> doc.put_attachment("notes.txt", b"draft")
    >>> sorted(doc.to_json())
    ['_attachments', '_id', 'title']

The revision token is opaque, it is only ever compared for equality.
"""

import base64
from collections import namedtuple
from mimetypes import guess_type

from .exceptions import BadRequest, DecodeError, InvalidAttachment
from .path import DocumentPath, to_document_path

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def validate_content(content):
    """ check the field names of document content. Names starting with
    `_` are reserved by CouchDB """
    for key in content:
        if not isinstance(key, str):
            raise BadRequest("field name should be a string: %r" % (key,))
        if key.startswith("_"):
            raise BadRequest("field name %r is reserved" % key)
    return content


class Attachment(object):
    """ attachment metadata, with its content when it's inline.

    An attachment read from the server is a *stub*: only its content
    type, length, digest and revpos are known, the bytes stay on the
    server. An attachment created by the application is *inline* and
    sent base64 encoded with the document.
    """

    def __init__(self, content_type, data=None, length=None, stub=False,
            digest=None, revpos=None):
        if data is None and not stub:
            raise InvalidAttachment("an attachment needs data or a stub")
        if data is not None and not isinstance(data, (bytes, bytearray)):
            raise InvalidAttachment("attachment data should be bytes")
        self.content_type = content_type or DEFAULT_CONTENT_TYPE
        self.data = bytes(data) if data is not None else None
        self.stub = stub and data is None
        if length is None and self.data is not None:
            length = len(self.data)
        self.length = length
        self.digest = digest
        self.revpos = revpos

    @classmethod
    def inline(cls, data, content_type=None, name=None):
        """ create an inline attachment. The content type is guessed
        from `name` when not given """
        if isinstance(data, str):
            data = data.encode("utf-8")
        if content_type is None and name is not None:
            content_type = guess_type(name)[0]
        return cls(content_type, data=data)

    @classmethod
    def wrap(cls, name, obj):
        """ build an attachment from its json representation """
        if not isinstance(obj, dict):
            raise DecodeError("attachment %r isn't an object" % name)
        data = obj.get("data")
        if data is not None:
            try:
                data = base64.b64decode(data, validate=True)
            except (TypeError, ValueError) as e:
                raise DecodeError("attachment %r: invalid data: %s" % (name, e)) \
                        from e
        elif not obj.get("stub", False):
            raise DecodeError("attachment %r has neither data nor stub" % name)
        length = obj.get("length")
        if length is not None and not isinstance(length, int):
            raise DecodeError("attachment %r: invalid length %r" % (name, length))
        return cls(obj.get("content_type"), data=data, length=length,
                stub=data is None, digest=obj.get("digest"),
                revpos=obj.get("revpos"))

    @property
    def is_stub(self):
        return self.stub

    def to_json(self):
        if self.stub:
            return {"stub": True}
        return {
            "content_type": self.content_type,
            "data": base64.b64encode(self.data).decode("ascii")
        }

    def __eq__(self, other):
        if not isinstance(other, Attachment):
            return NotImplemented
        return (self.content_type, self.data, self.length, self.stub) == \
                (other.content_type, other.data, other.length, other.stub)

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    __hash__ = None

    def __repr__(self):
        if self.stub:
            return "<Attachment %s stub length=%s>" % (self.content_type,
                    self.length)
        return "<Attachment %s length=%s>" % (self.content_type, self.length)


class Document(dict):
    """ a CouchDB document. Items are the content fields of the
    document.

    @param path: `DocumentPath` or rendered document path
    @param content: dict, content fields
    @param rev: str, revision token. None for a new document.
    @param attachments: dict, attachment name -> `Attachment`
    """

    def __init__(self, path, content=None, rev=None, attachments=None):
        dict.__init__(self, content or {})
        self.path = to_document_path(path)
        self.rev = rev
        self.attachments = dict(attachments or {})

    @classmethod
    def wrap(cls, database, body):
        """ build a document from the json body returned by the
        server """
        if not isinstance(body, dict):
            raise DecodeError("document body isn't an object")
        docid = body.get("_id")
        rev = body.get("_rev")
        if not isinstance(docid, str) or not docid:
            raise DecodeError("document body has no valid _id")
        if not isinstance(rev, str) or not rev:
            raise DecodeError("document %r has no valid _rev" % docid)

        attachments = body.get("_attachments")
        if attachments is None:
            attachments = {}
        if not isinstance(attachments, dict):
            raise DecodeError("document %r: _attachments isn't an object"
                    % docid)
        attachments = dict((name, Attachment.wrap(name, obj))
                for name, obj in attachments.items())

        content = dict((k, v) for k, v in body.items()
                if not k.startswith("_"))
        try:
            path = DocumentPath(database, docid)
        except BadRequest as e:
            raise DecodeError(e) from e
        return cls(path, content, rev=rev, attachments=attachments)

    @property
    def id(self):
        return self.path.id

    @property
    def database(self):
        return self.path.database

    new_document = property(lambda self: self.rev is None)

    def validate(self):
        validate_content(self)

    def to_json(self, with_rev=True):
        """ serialize the document to its wire representation """
        self.validate()
        body = dict(self)
        body["_id"] = self.id
        if with_rev and self.rev is not None:
            body["_rev"] = self.rev
        if self.attachments:
            body["_attachments"] = dict((name, att.to_json())
                    for name, att in self.attachments.items())
        return body

    def put_attachment(self, name, content, content_type=None):
        """ add an inline attachment, sent with the next update """
        if not name:
            raise InvalidAttachment('You should provide a valid attachment name')
        self.attachments[name] = Attachment.inline(content,
                content_type=content_type, name=name)

    def delete_attachment(self, name):
        """ drop an attachment, removed on the server with the next
        update """
        try:
            del self.attachments[name]
        except KeyError:
            raise InvalidAttachment("no attachment named %r" % name)

    def copy(self):
        return self.__class__(self.path, dict(self), rev=self.rev,
                attachments=self.attachments)

    def __eq__(self, other):
        if not isinstance(other, Document):
            return dict.__eq__(self, other)
        return (dict.__eq__(self, other) and self.path == other.path
                and self.rev == other.rev
                and self.attachments == other.attachments)

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    __hash__ = None

    def __repr__(self):
        return "<%s %s rev=%s %s>" % (self.__class__.__name__,
                self.path.render(), self.rev, dict.__repr__(self))


class WriteResult(namedtuple("WriteResult", "path rev")):
    """ result of a write: path of the written document and its new
    revision token """

    __slots__ = ()

    @property
    def id(self):
        return self.path.id
