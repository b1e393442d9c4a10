# -*- coding: utf-8 -
#
# This file is part of chill released under the MIT license.
# See the NOTICE for more information.

"""
In-memory transports for tests.

`MockTransport` replays canned responses and records the requests it
got. `FakeServer` answers like a small CouchDB: databases, documents with
revision checks, attachments and views defined with Python functions:

    >>> server = FakeServer()
    >>> server.define_view("blog", "posts", "by_tag",
    ...     lambda doc: [(tag, 1) for tag in doc.get("tags", [])], "_sum")

It's a test double, not a database: no persistence, no replication,
no changes feed.
"""

import base64
from collections import deque, namedtuple
import hashlib
import itertools
from urllib.parse import parse_qsl
import uuid

from .exceptions import BadRequest
from .path import AttachmentPath, DatabasePath, DatabaseViewPath, \
DocumentPath, RootPath, ViewPath, parse_path
from .resource import Response, Transport
from .utils import json, json_body, json_payload

JSON_HEADERS = {"Content-Type": "application/json"}


class RecordedRequest(namedtuple("RecordedRequest",
        "method target headers body")):
    """ request received by a `MockTransport` """

    __slots__ = ()

    @property
    def path(self):
        return self.target.partition("?")[0]

    @property
    def query(self):
        """ query parameters as a dict of raw values """
        return dict(parse_qsl(self.target.partition("?")[2],
            keep_blank_values=True))

    @property
    def json(self):
        """ decoded json body, None without body """
        if self.body is None:
            return None
        return json_body(self.body)


class MockTransport(Transport):
    """ transport returning queued responses in order """

    def __init__(self):
        self.responses = deque()
        self.requests = []

    def push_response(self, status, body=None, headers=None):
        """ queue a response. `body` may be bytes, a str or any json
        serializable object """
        headers = dict(headers or {})
        if body is None:
            body = b""
        elif isinstance(body, str):
            body = body.encode("utf-8")
        elif not isinstance(body, (bytes, bytearray)):
            body = json_payload(body)
            headers.setdefault("Content-Type", "application/json")
        self.responses.append(Response(status, headers, bytes(body)))

    def push_error(self, exc):
        """ queue an exception raised by the next request """
        self.responses.append(exc)

    def request(self, method, target, headers=None, body=None):
        self.requests.append(RecordedRequest(method, target,
            dict(headers or {}), body))
        if not self.responses:
            raise AssertionError("unexpected request %s %s" % (method,
                target))
        resp = self.responses.popleft()
        if isinstance(resp, BaseException):
            raise resp
        return resp

    def extract_requests(self):
        """ return the recorded requests and forget them """
        requests, self.requests = self.requests, []
        return requests


def collation_key(value):
    """ sort key following the CouchDB view collation: null, false,
    true, numbers, strings, arrays, objects. Strings are compared case
    insensitively first, lowercase before uppercase. """
    if value is None:
        return (0,)
    elif value is False:
        return (1,)
    elif value is True:
        return (2,)
    elif isinstance(value, (int, float)):
        return (3, value)
    elif isinstance(value, str):
        return (4, value.casefold(), value.swapcase())
    elif isinstance(value, (list, tuple)):
        return (5, tuple(collation_key(v) for v in value))
    elif isinstance(value, dict):
        return (6, tuple((collation_key(k), collation_key(v))
            for k, v in value.items()))
    raise TypeError("can't collate %r" % (value,))


def _raw_key(value):
    # _all_docs sorts ids by code points
    return value


def _count(keys, values, rereduce):
    return len(values)


def _sum(keys, values, rereduce):
    return sum(values)


def _stats(keys, values, rereduce):
    return {
        "sum": sum(values),
        "count": len(values),
        "min": min(values),
        "max": max(values),
        "sumsqr": sum(v * v for v in values),
    }


BUILTIN_REDUCERS = {
    "_count": _count,
    "_sum": _sum,
    "_stats": _stats,
}


class HTTPError(Exception):
    """ error answered by the fake server """

    def __init__(self, status, error, reason):
        self.status = status
        self.error = error
        self.reason = reason
        Exception.__init__(self, reason)


def _not_found(reason="missing"):
    return HTTPError(404, "not_found", reason)


def _conflict():
    return HTTPError(409, "conflict", "Document update conflict.")


def _bad_request(reason, error="bad_request"):
    return HTTPError(400, error, reason)


def _query_error(reason):
    return HTTPError(400, "query_parse_error", reason)


class _Revision(object):

    def __init__(self, rev, body, attachments, deleted=False):
        self.rev = rev
        self.body = body
        self.attachments = attachments
        self.deleted = deleted

    @property
    def number(self):
        return int(self.rev.split("-", 1)[0])


class _Database(object):

    def __init__(self, name):
        self.name = name
        self.docs = {}
        self.history = {}
        self.update_seq = 0

    def current(self, docid):
        """ current revision of a document, None if it doesn't exist or
        is deleted """
        rev = self.docs.get(docid)
        if rev is None or rev.deleted:
            return None
        return rev

    def live(self):
        for docid, rev in self.docs.items():
            if not rev.deleted:
                yield docid, rev

    def store(self, docid, body, attachments, deleted=False):
        previous = self.docs.get(docid)
        number = previous.number + 1 if previous is not None else 1
        rev = "%d-%s" % (number, uuid.uuid4().hex)
        revision = _Revision(rev, body, attachments, deleted=deleted)
        self.docs[docid] = revision
        self.history.setdefault(docid, {})[rev] = revision
        self.update_seq += 1
        return revision


class FakeServer(Transport):
    """ in-memory CouchDB subset answering the requests of chill
    actions """

    version = "3.3.3"

    def __init__(self):
        self.databases = {}
        self.views = {}
        self.requests = []

    # setup helpers

    def create_database(self, name):
        self.databases[name] = _Database(name)

    def define_view(self, dbname, design, view, map_fun, reduce_fun=None):
        """ define view `design/view` of database `dbname`.

        @param map_fun: callable taking a document body and returning an
            iterable of (key, value) pairs
        @param reduce_fun: None, `_count`, `_sum`, `_stats` or a callable
            `reduce_fun(keys, values, rereduce)`
        """
        if isinstance(reduce_fun, str):
            reduce_fun = BUILTIN_REDUCERS[reduce_fun]
        self.views[(dbname, design, view)] = (map_fun, reduce_fun)

    # transport

    def request(self, method, target, headers=None, body=None):
        self.requests.append(RecordedRequest(method, target,
            dict(headers or {}), body))
        raw_path, _, qs = target.partition("?")
        query = dict(parse_qsl(qs, keep_blank_values=True))
        try:
            try:
                path = parse_path(raw_path)
            except BadRequest as e:
                raise _bad_request(str(e))
            return self._dispatch(method, path, query, body, headers or {})
        except HTTPError as e:
            return self._response(e.status, {"error": e.error,
                "reason": e.reason})

    def _response(self, status, obj, headers=None):
        _headers = dict(JSON_HEADERS)
        _headers.update(headers or {})
        return Response(status, _headers, json_payload(obj))

    def _dispatch(self, method, path, query, body, headers):
        if isinstance(path, RootPath):
            if method != "GET":
                raise HTTPError(405, "method_not_allowed",
                        "Only GET allowed")
            return self._response(200, {"couchdb": "Welcome",
                "version": self.version})

        db = self.databases.get(path.segments[0])
        if isinstance(path, DatabasePath):
            return self._database(method, path, db, body)
        if db is None:
            raise _not_found("Database does not exist.")
        if isinstance(path, AttachmentPath):
            return self._attachment(method, path, db, query, body, headers)
        elif isinstance(path, DocumentPath):
            return self._document(method, path, db, query, body)
        elif isinstance(path, ViewPath):
            return self._view(method, path, db, query, body)
        elif isinstance(path, DatabaseViewPath):
            return self._all_docs(method, path, db, query, body)
        raise _bad_request("unsupported path %s" % path)

    def _json(self, body):
        try:
            obj = json_body(body or b"")
        except ValueError:
            raise _bad_request("invalid UTF-8 JSON")
        if not isinstance(obj, dict):
            raise _bad_request("Document must be a JSON object")
        return obj

    # databases

    def _database(self, method, path, db, body):
        if method == "PUT":
            if db is not None:
                raise HTTPError(412, "file_exists", "The database could "
                        "not be created, the file already exists.")
            self.create_database(path.name)
            return self._response(201, {"ok": True})
        if db is None:
            raise _not_found("Database does not exist.")
        if method == "GET":
            return self._response(200, {
                "db_name": db.name,
                "doc_count": len(list(db.live())),
                "doc_del_count": len(db.docs) - len(list(db.live())),
                "update_seq": db.update_seq,
            })
        elif method == "DELETE":
            del self.databases[db.name]
            return self._response(200, {"ok": True})
        elif method == "POST":
            doc = self._json(body)
            docid = doc.get("_id") or uuid.uuid4().hex
            if db.current(docid) is not None:
                raise _conflict()
            return self._write(db, docid, doc, None)
        raise HTTPError(405, "method_not_allowed",
                "Only DELETE,GET,HEAD,POST,PUT allowed")

    # documents

    def _write(self, db, docid, doc, rev):
        """ store a new revision of `docid`. `rev` is the revision
        replaced, from the body or the query """
        if not isinstance(docid, str) or not docid:
            raise _bad_request("Document id must be a string", "illegal_docid")
        rev = doc.get("_rev", rev)
        existing = db.docs.get(docid)
        if existing is None:
            if rev is not None:
                raise _not_found()
        elif existing.deleted:
            if rev is not None and rev != existing.rev:
                raise _conflict()
        elif rev != existing.rev:
            raise _conflict()

        previous = existing.attachments if existing is not None else {}
        attachments = {}
        number = existing.number + 1 if existing is not None else 1
        for name, att in (doc.get("_attachments") or {}).items():
            if not isinstance(att, dict):
                raise _bad_request("invalid attachment %r" % name)
            if att.get("stub"):
                if name not in previous:
                    raise HTTPError(412, "missing_stub",
                            "stub %s has no matching attachment" % name)
                attachments[name] = previous[name]
                continue
            try:
                data = base64.b64decode(att.get("data", ""), validate=True)
            except (TypeError, ValueError):
                raise _bad_request("invalid attachment data for %s" % name)
            attachments[name] = self._attachment_info(data,
                    att.get("content_type"), number)

        content = dict((k, v) for k, v in doc.items() if not k.startswith("_"))
        for key in doc:
            if key.startswith("_") and key not in ("_id", "_rev",
                    "_attachments", "_deleted"):
                raise HTTPError(400, "doc_validation",
                        "Bad special document member: %s" % key)

        revision = db.store(docid, content, attachments,
                deleted=bool(doc.get("_deleted")))
        return self._response(201, {"ok": True, "id": docid,
            "rev": revision.rev})

    def _attachment_info(self, data, content_type, revpos):
        digest = base64.b64encode(hashlib.md5(data).digest()).decode("ascii")
        return {
            "content_type": content_type or "application/octet-stream",
            "data": data,
            "length": len(data),
            "digest": "md5-%s" % digest,
            "revpos": revpos,
        }

    def _doc_body(self, docid, revision, inline=False):
        body = dict(revision.body)
        body["_id"] = docid
        body["_rev"] = revision.rev
        if revision.attachments:
            atts = {}
            for name, att in revision.attachments.items():
                obj = {
                    "content_type": att["content_type"],
                    "digest": att["digest"],
                    "revpos": att["revpos"],
                }
                if inline:
                    obj["data"] = base64.b64encode(att["data"]).decode(
                            "ascii")
                else:
                    obj["length"] = att["length"]
                    obj["stub"] = True
                atts[name] = obj
            body["_attachments"] = atts
        return body

    def _read(self, db, docid, rev=None):
        if rev is not None:
            revision = db.history.get(docid, {}).get(rev)
            if revision is None:
                raise _not_found()
            return revision
        revision = db.docs.get(docid)
        if revision is None:
            raise _not_found()
        elif revision.deleted:
            raise _not_found("deleted")
        return revision

    def _document(self, method, path, db, query, body):
        docid = path.id
        if method == "GET":
            revision = self._read(db, docid, query.get("rev"))
            inline = query.get("attachments") == "true"
            return self._response(200, self._doc_body(docid, revision,
                inline=inline))
        elif method == "PUT":
            doc = self._json(body)
            if doc.get("_id", docid) != docid:
                raise _bad_request("Document id doesn't match the path")
            return self._write(db, docid, doc, query.get("rev"))
        elif method == "DELETE":
            rev = query.get("rev")
            if db.current(docid) is None:
                raise _not_found("deleted" if docid in db.docs else "missing")
            if rev is None:
                raise _conflict()
            return self._write(db, docid, {"_deleted": True}, rev)
        raise HTTPError(405, "method_not_allowed",
                "Only DELETE,GET,HEAD,POST,PUT,COPY allowed")

    # attachments

    def _attachment(self, method, path, db, query, body, headers):
        docid = path.document.id
        rev = query.get("rev")
        if method == "GET":
            revision = self._read(db, docid, rev)
            att = revision.attachments.get(path.name)
            if att is None:
                raise _not_found("Document is missing attachment")
            return Response(200, {"Content-Type": att["content_type"]},
                    att["data"])

        current = db.current(docid)
        if method == "PUT":
            if current is None:
                if rev is not None:
                    raise _not_found()
                content, attachments, number = {}, {}, 1
            elif rev != current.rev:
                raise _conflict()
            else:
                content = current.body
                attachments = dict(current.attachments)
                number = current.number + 1
            attachments[path.name] = self._attachment_info(body or b"",
                    headers.get("Content-Type"), number)
            return self._store_attachments(db, docid, content, attachments)
        elif method == "DELETE":
            if current is None:
                raise _not_found()
            if rev != current.rev:
                raise _conflict()
            if path.name not in current.attachments:
                raise _not_found("Document is missing attachment")
            attachments = dict(current.attachments)
            del attachments[path.name]
            return self._store_attachments(db, docid, current.body,
                    attachments)
        raise HTTPError(405, "method_not_allowed",
                "Only DELETE,GET,HEAD,PUT allowed")

    def _store_attachments(self, db, docid, content, attachments):
        revision = db.store(docid, content, attachments)
        return self._response(201, {"ok": True, "id": docid,
            "rev": revision.rev})

    # views

    def _view_params(self, method, query, body):
        params = {}
        for name, raw in query.items():
            try:
                params[name] = json.loads(raw)
            except ValueError:
                raise _query_error("Invalid value for %s: %r" % (name, raw))
        if method == "POST":
            obj = self._json(body)
            if "keys" in obj:
                if not isinstance(obj["keys"], list):
                    raise _bad_request("`keys` member must be an array.")
                params["keys"] = obj["keys"]
        elif method != "GET":
            raise HTTPError(405, "method_not_allowed",
                    "Only GET,POST,HEAD allowed")

        for name in ("limit", "skip", "group_level"):
            value = params.get(name)
            if value is not None and (isinstance(value, bool) or
                    not isinstance(value, int) or value < 0):
                raise _query_error("Invalid value for %s" % name)
        if "key" in params:
            if "keys" in params:
                raise _query_error("`keys` is incompatible with `key`")
            params["startkey"] = params["endkey"] = params.pop("key")
            params["inclusive_end"] = True
        return params

    def _select(self, rows, params, sort_key):
        """ filter sorted (key, id, value) rows with the key options,
        return the selected rows and the offset of the first one """
        descending = params.get("descending", False)
        if descending:
            rows = list(reversed(rows))

        if "keys" in params:
            selected = []
            for key in params["keys"]:
                k = sort_key(key)
                selected.extend(r for r in rows if sort_key(r[0]) == k)
            return selected, None

        start = params.get("startkey")
        end = params.get("endkey")
        inclusive_end = params.get("inclusive_end", True)

        def before_start(row):
            if "startkey" not in params:
                return False
            k = sort_key(row[0])
            if descending:
                return k > sort_key(start)
            return k < sort_key(start)

        def after_end(row):
            if "endkey" not in params:
                return False
            k = sort_key(row[0])
            e = sort_key(end)
            if descending:
                return k < e or (k == e and not inclusive_end)
            return k > e or (k == e and not inclusive_end)

        offset = len([r for r in rows if before_start(r)])
        selected = [r for r in rows if not before_start(r)
                and not after_end(r)]
        return selected, offset

    def _page(self, rows, params):
        skip = params.get("skip", 0)
        limit = params.get("limit")
        rows = rows[skip:]
        if limit is not None:
            rows = rows[:limit]
        return rows

    def _included_doc(self, db, docid):
        revision = db.current(docid)
        if revision is None:
            return None
        return self._doc_body(docid, revision)

    def _view(self, method, path, db, query, body):
        definition = self.views.get((db.name, path.design_name,
            path.view_name))
        if definition is None:
            raise _not_found("missing_named_view")
        map_fun, reduce_fun = definition
        params = self._view_params(method, query, body)

        reduce = params.get("reduce", reduce_fun is not None)
        grouping = params.get("group", False) or "group_level" in params
        if reduce and reduce_fun is None:
            if "reduce" in params:
                raise _query_error("Reduce is invalid for map-only views.")
            reduce = False
        if not reduce and grouping:
            raise _query_error("Invalid use of grouping on a map view.")
        if reduce and params.get("include_docs"):
            raise _query_error("`include_docs` is invalid for reduce")
        if params.get("group") is False and "group_level" in params:
            raise _query_error("`group_level` is invalid with group=false")

        mapped = []
        for docid, revision in sorted(db.live()):
            if docid.startswith("_design/") or docid.startswith("_local/"):
                continue
            doc = self._doc_body(docid, revision)
            for key, value in map_fun(doc):
                mapped.append((key, docid, value))
        mapped.sort(key=lambda r: (collation_key(r[0]), r[1]))
        selected, offset = self._select(mapped, params, collation_key)

        if not reduce:
            rows = []
            for key, docid, value in self._page(selected, params):
                row = {"id": docid, "key": key, "value": value}
                if params.get("include_docs"):
                    row["doc"] = self._included_doc(db, docid)
                rows.append(row)
            result = {"total_rows": len(mapped), "rows": rows}
            if offset is not None:
                result["offset"] = offset + params.get("skip", 0)
            return self._response(200, result)

        if not grouping:
            if not selected:
                return self._response(200, {"rows": []})
            value = reduce_fun([[k, i] for k, i, _ in selected],
                    [v for _, _, v in selected], False)
            rows = self._page([{"key": None, "value": value}], params)
            return self._response(200, {"rows": rows})

        level = params.get("group_level")

        def group_key(row):
            key = row[0]
            if level is not None and isinstance(key, list):
                return key[:level]
            return key

        rows = []
        for _, group in itertools.groupby(selected,
                key=lambda r: collation_key(group_key(r))):
            group = list(group)
            value = reduce_fun([[k, i] for k, i, _ in group],
                    [v for _, _, v in group], False)
            rows.append({"key": group_key(group[0]), "value": value})
        return self._response(200, {"rows": self._page(rows, params)})

    def _all_docs(self, method, path, db, query, body):
        if path.view_name != "_all_docs":
            raise _not_found()
        params = self._view_params(method, query, body)
        for name in ("reduce", "group", "group_level"):
            if name in params:
                raise _query_error("`%s` is invalid for _all_docs" % name)

        docs = sorted((docid, None, {"rev": revision.rev})
                for docid, revision in db.live())

        if "keys" in params:
            rows = []
            for key in params["keys"]:
                revision = db.docs.get(key) if isinstance(key, str) else None
                if revision is None:
                    rows.append({"key": key, "error": "not_found"})
                    continue
                row = {"id": key, "key": key, "value": {"rev": revision.rev}}
                if revision.deleted:
                    row["value"]["deleted"] = True
                if params.get("include_docs"):
                    row["doc"] = self._included_doc(db, key)
                rows.append(row)
            if params.get("descending"):
                rows.reverse()
            return self._response(200, {"total_rows": len(docs),
                "rows": self._page(rows, params)})

        selected, offset = self._select(docs, params, _raw_key)
        rows = []
        for docid, _, value in self._page(selected, params):
            row = {"id": docid, "key": docid, "value": value}
            if params.get("include_docs"):
                row["doc"] = self._included_doc(db, docid)
            rows.append(row)
        return self._response(200, {"total_rows": len(docs),
            "offset": offset + params.get("skip", 0), "rows": rows})
