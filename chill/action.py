# -*- coding: utf-8 -
#
# This file is part of chill released under the MIT license.
# See the NOTICE for more information.

"""
chill.action
~~~~~~~~~~~~

Actions describe one request to the server. An action is an immutable
value: it knows how to build its request and how to turn a successful
response into a typed result, and holds no connection state. `execute`
runs the exchange through a transport:

    >>> from chill.resource import CouchdbResource
    >>> from chill.path import DatabasePath
    >>> resource = CouchdbResource()
    >>> action = ReadDocument(DatabasePath("blog").document("first-post"))
    >>> doc = execute(resource, action)
    >>> doc.rev
    '1-967a00dff5e02add41819138abb3284d'

Each action maps to exactly one HTTP exchange. Nothing is retried and
errors are raised as `chill.exceptions` instances:

- 404: `ResourceNotFound`
- 409: `ResourceConflict`
- 401, 403: `Unauthorized`
- 400: `BadRequest`
- 412: `PreconditionFailed`
- any other non 2xx status: `ServerError`

A successful response whose body doesn't have the expected shape raises
`DecodeError`.
"""

import copy
from collections import namedtuple
import logging
from mimetypes import guess_type
from types import MappingProxyType
from urllib.parse import urlencode

from .document import Attachment, Document, WriteResult, \
DEFAULT_CONTENT_TYPE, validate_content
from .exceptions import BadRequest, DecodeError, ResourceConflict, \
ResourceNotFound, PreconditionFailed, ServerError, \
TransportError, Unauthorized
from .path import DatabaseViewPath, DocumentPath, \
to_attachment_path, to_database_path, to_document_id, to_document_path, \
to_view_path
from .utils import check_json, json_body, json_payload
from .view import ViewOptions, ViewResponse

log = logging.getLogger(__name__)

JSON_HEADERS = {"Content-Type": "application/json"}

ERRORS = {
    400: BadRequest,
    401: Unauthorized,
    403: Unauthorized,
    404: ResourceNotFound,
    409: ResourceConflict,
    412: PreconditionFailed,
}


class Request(namedtuple("Request", "method path query headers body")):
    """ a request ready to be sent: method, `Path`, list of query
    parameters, headers and body bytes """

    __slots__ = ()

    def __new__(cls, method, path, query=None, headers=None, body=None):
        return super(Request, cls).__new__(cls, method, path,
                tuple(query or ()), dict(headers or {}), body)

    @property
    def target(self):
        """ rendered path and query string """
        target = self.path.render()
        if self.query:
            target = "%s?%s" % (target, urlencode(self.query))
        return target


def classify(response):
    """ raise the exception matching a non 2xx response """
    if 200 <= response.status < 300:
        return

    error = reason = None
    try:
        body = json_body(response.body)
    except ValueError:
        body = None
    if isinstance(body, dict):
        error = body.get("error")
        reason = body.get("reason")

    klass = ERRORS.get(response.status, ServerError)
    log.debug("status %s classified as %s (%s)", response.status,
            klass.__name__, error)
    raise klass(reason or error, status=response.status, error=error,
            body=response.body)


def execute(transport, action):
    """ run `action` through `transport`: send its request, classify the
    response and return the action result """
    request = action.make_request()
    target = request.target
    try:
        response = transport.request(request.method, target,
                headers=request.headers, body=request.body)
    except OSError as e:
        raise TransportError(e) from e
    log.debug("%s %s -> %s", request.method, target, response.status)

    classify(response)
    return action.take_response(response)


def _decode_json(response):
    try:
        return json_body(response.body)
    except ValueError as e:
        raise DecodeError("invalid json body: %s" % e) from e


def _decode_write(response, database, expected=None):
    body = _decode_json(response)
    if not isinstance(body, dict):
        raise DecodeError("write response isn't an object")
    docid = body.get("id")
    rev = body.get("rev")
    if not isinstance(docid, str) or not isinstance(rev, str) or not rev:
        raise DecodeError("write response without id or rev: %r" % (body,))
    try:
        path = DocumentPath(database, docid)
    except BadRequest as e:
        raise DecodeError(e) from e
    if expected is not None and path != expected:
        raise DecodeError("wrote %s instead of %s" % (path, expected))
    return WriteResult(path, rev)


def _check_content(content):
    if not isinstance(content, dict):
        raise BadRequest("document content should be a dict, got %r"
                % (content,))
    content = validate_content(copy.deepcopy(dict(content)))
    return MappingProxyType(check_json(content, "document content"))


def _check_attachments(attachments):
    result = {}
    for name, att in (attachments or {}).items():
        if isinstance(att, Attachment):
            att = copy.deepcopy(att)
        else:
            att = Attachment.inline(att, name=name)
        result[name] = att
    return MappingProxyType(result)


def _check_rev(rev):
    if not isinstance(rev, str) or not rev:
        raise BadRequest("a revision is required, got %r" % (rev,))
    return rev


class Action(object):
    """ base class of all actions """

    __slots__ = ()

    method = None

    def make_request(self):
        """ return the `Request` of this action """
        raise NotImplementedError

    def take_response(self, response):
        """ return the result of a successful `response` """
        raise NotImplementedError


class CreateDatabase(Action, namedtuple("CreateDatabase", "path")):
    """ create a database. Raise `PreconditionFailed` if it already
    exists """

    __slots__ = ()
    method = "PUT"

    def __new__(cls, path):
        return super(CreateDatabase, cls).__new__(cls,
                to_database_path(path))

    def make_request(self):
        return Request(self.method, self.path)

    def take_response(self, response):
        return self.path


class DeleteDatabase(Action, namedtuple("DeleteDatabase", "path")):

    __slots__ = ()
    method = "DELETE"

    def __new__(cls, path):
        return super(DeleteDatabase, cls).__new__(cls,
                to_database_path(path))

    def make_request(self):
        return Request(self.method, self.path)

    def take_response(self, response):
        return self.path


class CreateDocument(Action, namedtuple("CreateDocument",
        "database content doc_id attachments")):
    """ create a document. The server assigns an id unless `doc_id`
    is given. Raise `ResourceConflict` if the id is already used. """

    __slots__ = ()
    method = "POST"

    def __new__(cls, database, content, doc_id=None, attachments=None):
        if doc_id is not None:
            doc_id = to_document_id(doc_id)
        return super(CreateDocument, cls).__new__(cls,
                to_database_path(database), _check_content(content),
                doc_id, _check_attachments(attachments))

    def make_request(self):
        body = dict(self.content)
        if self.doc_id is not None:
            body["_id"] = str(self.doc_id)
        if self.attachments:
            body["_attachments"] = dict((name, att.to_json())
                    for name, att in self.attachments.items())
        return Request(self.method, self.database, headers=JSON_HEADERS,
                body=json_payload(body))

    def take_response(self, response):
        expected = None
        if self.doc_id is not None:
            expected = DocumentPath(self.database, self.doc_id)
        return _decode_write(response, self.database, expected)


class ReadDocument(Action, namedtuple("ReadDocument",
        "path rev attachments")):
    """ read a document, at revision `rev` when given. With
    `attachments=True` attachment data is returned inline instead of
    stubs. """

    __slots__ = ()
    method = "GET"

    def __new__(cls, path, rev=None, attachments=False):
        return super(ReadDocument, cls).__new__(cls,
                to_document_path(path), rev, bool(attachments))

    def make_request(self):
        query = []
        if self.rev is not None:
            query.append(("rev", self.rev))
        if self.attachments:
            query.append(("attachments", "true"))
        return Request(self.method, self.path, query=query)

    def take_response(self, response):
        doc = Document.wrap(self.path.database, _decode_json(response))
        if doc.path != self.path:
            raise DecodeError("read %s instead of %s" % (doc.path, self.path))
        return doc


class UpdateDocument(Action, namedtuple("UpdateDocument",
        "path content rev attachments")):
    """ write a new revision of an existing document. `rev` is the
    revision being replaced; a stale one raises `ResourceConflict`. """

    __slots__ = ()
    method = "PUT"

    def __new__(cls, path, content, rev, attachments=None):
        return super(UpdateDocument, cls).__new__(cls,
                to_document_path(path), _check_content(content),
                _check_rev(rev), _check_attachments(attachments))

    @classmethod
    def from_document(cls, doc):
        """ update action writing `doc` """
        return cls(doc.path, dict(doc), doc.rev, doc.attachments)

    def make_request(self):
        body = dict(self.content)
        body["_id"] = self.path.id
        body["_rev"] = self.rev
        if self.attachments:
            body["_attachments"] = dict((name, att.to_json())
                    for name, att in self.attachments.items())
        return Request(self.method, self.path, headers=JSON_HEADERS,
                body=json_payload(body))

    def take_response(self, response):
        return _decode_write(response, self.path.database, self.path)


class DeleteDocument(Action, namedtuple("DeleteDocument", "path rev")):
    """ delete a document. The result holds the revision of the
    tombstone """

    __slots__ = ()
    method = "DELETE"

    def __new__(cls, path, rev):
        return super(DeleteDocument, cls).__new__(cls,
                to_document_path(path), _check_rev(rev))

    def make_request(self):
        return Request(self.method, self.path, query=[("rev", self.rev)])

    def take_response(self, response):
        return _decode_write(response, self.path.database, self.path)


class AttachmentContent(namedtuple("AttachmentContent", "data content_type")):
    """ bytes of an attachment and their content type """

    __slots__ = ()


class ReadAttachment(Action, namedtuple("ReadAttachment", "path rev")):

    __slots__ = ()
    method = "GET"

    def __new__(cls, path, rev=None):
        return super(ReadAttachment, cls).__new__(cls,
                to_attachment_path(path), rev)

    def make_request(self):
        query = []
        if self.rev is not None:
            query.append(("rev", self.rev))
        return Request(self.method, self.path, query=query,
                headers={"Accept": "*/*"})

    def take_response(self, response):
        return AttachmentContent(response.body,
                response.content_type or DEFAULT_CONTENT_TYPE)


class PutAttachment(Action, namedtuple("PutAttachment",
        "path rev content content_type")):
    """ add or replace an attachment. `rev` is the current revision of
    the document, None to create the document with its attachment. """

    __slots__ = ()
    method = "PUT"

    def __new__(cls, path, rev, content, content_type=None):
        path = to_attachment_path(path)
        if isinstance(content, str):
            content = content.encode("utf-8")
        if not isinstance(content, (bytes, bytearray)):
            raise BadRequest("attachment content should be bytes")
        if content_type is None:
            content_type = guess_type(path.name)[0] or DEFAULT_CONTENT_TYPE
        if rev is not None:
            rev = _check_rev(rev)
        return super(PutAttachment, cls).__new__(cls, path, rev,
                bytes(content), content_type)

    def make_request(self):
        query = []
        if self.rev is not None:
            query.append(("rev", self.rev))
        return Request(self.method, self.path, query=query,
                headers={"Content-Type": self.content_type},
                body=self.content)

    def take_response(self, response):
        return _decode_write(response, self.path.database,
                self.path.document)


class DeleteAttachment(Action, namedtuple("DeleteAttachment", "path rev")):

    __slots__ = ()
    method = "DELETE"

    def __new__(cls, path, rev):
        return super(DeleteAttachment, cls).__new__(cls,
                to_attachment_path(path), _check_rev(rev))

    def make_request(self):
        return Request(self.method, self.path, query=[("rev", self.rev)])

    def take_response(self, response):
        return _decode_write(response, self.path.database,
                self.path.document)


class ExecuteView(Action, namedtuple("ExecuteView", "path options")):
    """ query a view.

    Options are given either as a `ViewOptions` instance or as keyword
    arguments, see `chill.view.ViewOptions`. They are validated here, so
    an invalid combination raises `BadRequest` before anything is
    sent. With `keys` the view is queried with a POST.
    """

    __slots__ = ()

    def __new__(cls, path, options=None, **kwargs):
        path = to_view_path(path)
        if options is None:
            options = ViewOptions(**kwargs)
        elif kwargs:
            options = options.replace(**kwargs)
        if isinstance(path, DatabaseViewPath) and \
                ("reduce" in options or options.grouping):
            raise BadRequest("%s can't be reduced" % path)
        return super(ExecuteView, cls).__new__(cls, path, options)

    @property
    def method(self):
        if self.options.keys is not None:
            return "POST"
        return "GET"

    @property
    def database(self):
        return self.path.database

    def make_request(self):
        query = self.options.query(
                implicit_reduce=not isinstance(self.path, DatabaseViewPath))
        if self.options.keys is not None:
            return Request("POST", self.path, query=query,
                    headers=JSON_HEADERS,
                    body=json_payload({"keys": self.options.keys}))
        return Request("GET", self.path, query=query)

    def take_response(self, response):
        return ViewResponse.decode(_decode_json(response), self.options,
                self.database)


class ReadAllDocuments(ExecuteView):
    """ query the `_all_docs` view of a database. Row values hold the
    current revision of each document """

    __slots__ = ()

    def __new__(cls, database, **options):
        path = to_database_path(database).all_documents()
        return super(ReadAllDocuments, cls).__new__(cls, path, **options)


__all__ = ["Request", "Action", "AttachmentContent", "CreateDatabase",
        "DeleteDatabase", "CreateDocument", "ReadDocument", "UpdateDocument",
        "DeleteDocument", "ReadAttachment", "PutAttachment",
        "DeleteAttachment", "ExecuteView", "ReadAllDocuments", "classify",
        "execute"]
