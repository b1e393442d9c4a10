# -*- coding: utf-8 -
#
# This file is part of chill released under the MIT license.
# See the NOTICE for more information.

"""
Structured paths to CouchDB resources.

A path is built from its constituent names, never by concatenating
strings, so that percent-encoding is always done once and only once:

    >>> from chill.path import DatabasePath
    >>> doc = DatabasePath("foo").document("bar/qux")
    >>> doc.render()
    '/foo/bar%2Fqux'
    >>> doc.attachment("photo.png").render()
    '/foo/bar%2Fqux/photo.png'
    >>> DatabasePath("foo").view("bar", "by_date").render()
    '/foo/_design/bar/_view/by_date'

The application never observes a percent-encoded character: names are
given decoded, and `parse_path` decodes a rendered target.

Paths are immutable. Equality, hashing and ordering only depend on the
segments, so two paths are equal iff they render to the same target, no
matter how they were derived.
"""

from functools import total_ordering
from urllib.parse import quote, unquote

from .exceptions import BadRequest
from .utils import validate_dbname, validate_name

DESIGN_PREFIX = "_design"
LOCAL_PREFIX = "_local"
VIEW_SEGMENT = "_view"
ALL_DOCS = "_all_docs"
DATABASE_VIEWS = (ALL_DOCS, "_design_docs", "_local_docs",)


def quote_segment(segment):
    """ percent-encode one path segment, `/` included """
    return quote(segment, safe="")


@total_ordering
class _Value(object):
    """ immutable value compared on its segments """

    __slots__ = ()

    # values of different families never compare equal
    family = None

    @property
    def segments(self):
        raise NotImplementedError

    def __setattr__(self, name, value):
        raise AttributeError("%s is immutable" % self.__class__.__name__)

    def __delattr__(self, name):
        raise AttributeError("%s is immutable" % self.__class__.__name__)

    def _set(self, **fields):
        for name, value in fields.items():
            object.__setattr__(self, name, value)

    def __eq__(self, other):
        if not isinstance(other, _Value) or other.family != self.family:
            return NotImplemented
        return self.segments == other.segments

    def __lt__(self, other):
        if not isinstance(other, _Value) or other.family != self.family:
            return NotImplemented
        return self.segments < other.segments

    def __hash__(self):
        return hash(self.segments)

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self


class DocumentId(_Value):
    """ identifier of a document within its database.

    A document id is made of a kind (normal, design or local) and a
    name. The kind is read from the `_design/` or `_local/` prefix
    unless given explicitly:

        >>> str(DocumentId("_design/blog"))
        '_design/blog'
        >>> DocumentId("blog", kind=DocumentId.DESIGN).name
        'blog'
    """

    NORMAL = "normal"
    DESIGN = "design"
    LOCAL = "local"

    PREFIXES = {DESIGN: DESIGN_PREFIX, LOCAL: LOCAL_PREFIX}
    family = "document_id"

    __slots__ = ("kind", "name",)

    def __init__(self, name, kind=None):
        if kind is None:
            kind, name = self._split(name)
        elif kind not in (self.NORMAL, self.DESIGN, self.LOCAL):
            raise BadRequest("unknown document kind: %r" % (kind,))
        self._set(kind=kind, name=validate_name(name, "document name"))

    @classmethod
    def _split(cls, docid):
        validate_name(docid, "document id")
        for kind, prefix in cls.PREFIXES.items():
            if docid.startswith(prefix + "/"):
                return kind, docid[len(prefix) + 1:]
        return cls.NORMAL, docid

    @property
    def prefix(self):
        return self.PREFIXES.get(self.kind)

    @property
    def segments(self):
        if self.kind == self.NORMAL:
            return (self.name,)
        return (self.prefix, self.name)

    def is_design(self):
        return self.kind == self.DESIGN

    def __str__(self):
        return "/".join(self.segments)

    def __repr__(self):
        return "<%s %s>" % (self.__class__.__name__, self)


def to_document_id(value):
    if isinstance(value, DocumentId):
        return value
    return DocumentId(value)


class Path(_Value):
    """ base class of all resource paths """

    __slots__ = ()
    family = "path"

    def render(self):
        """ return the request target of this path: each segment
        percent-encoded and joined with `/` """
        return "/" + "/".join(quote_segment(s) for s in self.segments)

    def __str__(self):
        return self.render()

    def __repr__(self):
        return "<%s %s>" % (self.__class__.__name__, self.render())


class RootPath(Path):
    """ the server root, `/` """

    __slots__ = ()

    @property
    def segments(self):
        return ()

    def database(self, name):
        return DatabasePath(name)


class DatabasePath(Path):

    __slots__ = ("name",)

    def __init__(self, name):
        self._set(name=validate_dbname(name))

    @property
    def segments(self):
        return (self.name,)

    @property
    def parent(self):
        return RootPath()

    def document(self, doc_id):
        return DocumentPath(self, doc_id)

    def design_document(self, design_name):
        return DesignDocumentPath(self, design_name)

    def local_document(self, name):
        return DocumentPath(self, DocumentId(name, kind=DocumentId.LOCAL))

    def view(self, design_name, view_name):
        return ViewPath(self, design_name, view_name)

    def all_documents(self):
        return DatabaseViewPath(self, ALL_DOCS)


def to_database_path(value):
    """ coerce a `DatabasePath`, a database name or a rendered
    database path into a `DatabasePath` """
    if isinstance(value, DatabasePath):
        return value
    if isinstance(value, str) and value.startswith("/"):
        return _expect(parse_path(value), DatabasePath)
    return DatabasePath(value)


class DocumentPath(Path):

    __slots__ = ("database", "doc_id",)

    def __init__(self, database, doc_id):
        self._set(database=to_database_path(database),
                  doc_id=to_document_id(doc_id))

    @property
    def segments(self):
        return self.database.segments + self.doc_id.segments

    @property
    def id(self):
        """ document id as a string, eg. `_design/blog` """
        return str(self.doc_id)

    @property
    def parent(self):
        return self.database

    def attachment(self, name):
        return AttachmentPath(self, name)


class DesignDocumentPath(DocumentPath):

    __slots__ = ()

    def __init__(self, database, design_name):
        DocumentPath.__init__(self, database,
                DocumentId(design_name, kind=DocumentId.DESIGN))

    @property
    def design_name(self):
        return self.doc_id.name

    def view(self, view_name):
        return ViewPath(self.database, self.design_name, view_name)


def to_document_path(value):
    if isinstance(value, DocumentPath):
        return value
    if isinstance(value, str):
        return _expect(parse_path(value), DocumentPath)
    raise BadRequest("not a document path: %r" % (value,))


class AttachmentPath(Path):

    __slots__ = ("document", "name",)

    def __init__(self, document, name):
        self._set(document=to_document_path(document),
                  name=validate_name(name, "attachment name"))

    @property
    def segments(self):
        return self.document.segments + (self.name,)

    @property
    def database(self):
        return self.document.database

    @property
    def parent(self):
        return self.document


def to_attachment_path(value):
    if isinstance(value, AttachmentPath):
        return value
    if isinstance(value, str):
        return _expect(parse_path(value), AttachmentPath)
    raise BadRequest("not an attachment path: %r" % (value,))


class ViewPath(Path):
    """ path of a view defined in a design document,
    `/db/_design/ddoc/_view/view` """

    __slots__ = ("database", "design_name", "view_name",)

    def __init__(self, database, design_name, view_name):
        self._set(database=to_database_path(database),
                  design_name=validate_name(design_name, "design name"),
                  view_name=validate_name(view_name, "view name"))

    @property
    def segments(self):
        return self.database.segments + (DESIGN_PREFIX, self.design_name,
                VIEW_SEGMENT, self.view_name)

    @property
    def design_document(self):
        return DesignDocumentPath(self.database, self.design_name)

    @property
    def parent(self):
        return self.design_document


class DatabaseViewPath(Path):
    """ path of a view built in the database, like `/db/_all_docs` """

    __slots__ = ("database", "view_name",)

    def __init__(self, database, view_name):
        validate_name(view_name, "view name")
        if not view_name.startswith("_"):
            raise BadRequest("database view name should start with '_': %r"
                    % view_name)
        self._set(database=to_database_path(database), view_name=view_name)

    @property
    def segments(self):
        return self.database.segments + (self.view_name,)

    @property
    def parent(self):
        return self.database


def to_view_path(value):
    if isinstance(value, (ViewPath, DatabaseViewPath)):
        return value
    if isinstance(value, str):
        return _expect(parse_path(value), (ViewPath, DatabaseViewPath))
    raise BadRequest("not a view path: %r" % (value,))


def _expect(path, kinds):
    if not isinstance(path, kinds):
        raise BadRequest("unexpected path %s" % path.render())
    return path


def parse_path(target):
    """ parse a rendered request target back into the most specific
    path. Each segment is percent-decoded:

        >>> parse_path("/foo/bar%2Fqux") == DocumentPath("foo", "bar/qux")
        True
    """
    if not isinstance(target, str) or not target.startswith("/"):
        raise BadRequest("path should start with '/': %r" % (target,))
    if target == "/":
        return RootPath()
    if "?" in target or "#" in target:
        raise BadRequest("path contains a query or fragment: %r" % target)

    segments = []
    for raw in target[1:].split("/"):
        if not raw:
            raise BadRequest("empty segment in path %r" % target)
        try:
            segments.append(unquote(raw, errors="strict"))
        except UnicodeDecodeError:
            raise BadRequest("invalid percent-encoding in path %r" % target)

    db = DatabasePath(segments[0])
    rest = segments[1:]
    if not rest:
        return db

    kinds = {DESIGN_PREFIX: DocumentId.DESIGN, LOCAL_PREFIX: DocumentId.LOCAL}
    head = rest[0]
    if len(rest) == 1:
        if head in DATABASE_VIEWS:
            return DatabaseViewPath(db, head)
        return DocumentPath(db, DocumentId(head, kind=DocumentId.NORMAL))
    elif len(rest) == 2:
        if head == DESIGN_PREFIX:
            return DesignDocumentPath(db, rest[1])
        elif head == LOCAL_PREFIX:
            return db.local_document(rest[1])
        doc = DocumentPath(db, DocumentId(head, kind=DocumentId.NORMAL))
        return doc.attachment(rest[1])
    elif len(rest) == 3 and head in kinds:
        doc = DocumentPath(db, DocumentId(rest[1], kind=kinds[head]))
        return doc.attachment(rest[2])
    elif len(rest) == 4 and head == DESIGN_PREFIX and rest[2] == VIEW_SEGMENT:
        return ViewPath(db, rest[1], rest[3])
    raise BadRequest("can't parse path %r" % target)
