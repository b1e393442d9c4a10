# -*- coding: utf-8 -
#
# This file is part of chill released under the MIT license.
# See the NOTICE for more information.

"""
View options and view responses.

CouchDB answers a view query with rows whose structure depends on the
query: plain map rows, one row per group, or a single reduced row. The
shape is decided from the options used for the query, never guessed
from the rows:

- ``reduce=False``, or no ``reduce`` and no grouping: *unreduced* rows,
  with a document id and, with ``include_docs``, the document itself;
- ``group=True`` or ``group_level=N``: *grouped* rows, one per key;
- ``reduce=True`` without grouping: a single *reduced* value.
"""

import copy
from collections import namedtuple

from .document import Document
from .exceptions import BadRequest, DecodeError, MultipleResultsFound, \
NoResultFound
from .path import DocumentPath
from .utils import check_json, json

UNREDUCED = "unreduced"
GROUPED = "grouped"
REDUCED = "reduced"

BOOLEAN_OPTIONS = ("descending", "group", "include_docs", "inclusive_end",
        "reduce",)
INTEGER_OPTIONS = ("group_level", "limit", "skip",)
KEY_OPTIONS = ("key", "start_key", "end_key",)

# query order and wire names
QUERY_PARAMS = (
    ("key", "key"),
    ("start_key", "startkey"),
    ("end_key", "endkey"),
    ("inclusive_end", "inclusive_end"),
    ("descending", "descending"),
    ("limit", "limit"),
    ("skip", "skip"),
    ("reduce", "reduce"),
    ("group", "group"),
    ("group_level", "group_level"),
    ("include_docs", "include_docs"),
)


class ViewOptions(object):
    """ validated view query options.

    Recognized options: `descending`, `key`, `keys`, `start_key`,
    `end_key`, `inclusive_end`, `limit`, `skip`, `group`, `group_level`,
    `include_docs`, `reduce`. Boolean and integer options set to None
    are ignored; `key`, `start_key` and `end_key` may be any json value,
    None included (json null).

    Raise `BadRequest` for an unknown option, a wrong type or a
    combination CouchDB can't answer unambiguously.
    """

    def __init__(self, **options):
        opts = {}
        for name, value in options.items():
            if name in BOOLEAN_OPTIONS:
                if value is None:
                    continue
                if not isinstance(value, bool):
                    raise BadRequest("%s should be a boolean, got %r"
                            % (name, value))
            elif name in INTEGER_OPTIONS:
                if value is None:
                    continue
                if isinstance(value, bool) or not isinstance(value, int) \
                        or value < 0:
                    raise BadRequest("%s should be a positive integer, got %r"
                            % (name, value))
            elif name == "keys":
                if value is None:
                    continue
                if not isinstance(value, (list, tuple)):
                    raise BadRequest("keys should be a list, got %r"
                            % (value,))
                value = tuple(check_json(copy.deepcopy(list(value)), name))
            elif name in KEY_OPTIONS:
                value = check_json(copy.deepcopy(value), name)
            else:
                raise BadRequest("unknown view option: %r" % name)
            opts[name] = value

        self._options = opts
        self._validate()

    def _validate(self):
        opts = self._options
        reduce = opts.get("reduce")
        grouping = self.grouping

        if reduce is False and grouping:
            raise BadRequest("group and group_level need reduce")
        if opts.get("group") is False and "group_level" in opts:
            raise BadRequest("group_level can't be used with group=false")
        if opts.get("include_docs"):
            if reduce is True:
                raise BadRequest("include_docs is invalid with reduce=true")
            if grouping:
                raise BadRequest("include_docs is invalid for grouped views")
        if "key" in opts and "keys" in opts:
            raise BadRequest("key and keys can't be used together")
        if ("key" in opts or "keys" in opts) and \
                ("start_key" in opts or "end_key" in opts):
            raise BadRequest("key or keys can't be combined with a range")

    @property
    def grouping(self):
        return self._options.get("group") is True or \
                "group_level" in self._options

    @property
    def shape(self):
        """ shape of the response these options produce """
        reduce = self._options.get("reduce")
        if reduce is False:
            return UNREDUCED
        elif self.grouping:
            return GROUPED
        elif reduce is True:
            return REDUCED
        return UNREDUCED

    @property
    def keys(self):
        """ list of the keys to query, None when not given """
        keys = self._options.get("keys")
        if keys is None:
            return None
        return copy.deepcopy(list(keys))

    @property
    def include_docs(self):
        return bool(self._options.get("include_docs"))

    def get(self, name, default=None):
        return copy.deepcopy(self._options.get(name, default))

    def __contains__(self, name):
        return name in self._options

    def as_dict(self):
        return copy.deepcopy(self._options)

    def replace(self, **changes):
        """ return new options with `changes` applied. An option set to
        None is removed """
        opts = self.as_dict()
        for name, value in changes.items():
            if value is None:
                opts.pop(name, None)
            else:
                opts[name] = value
        return self.__class__(**opts)

    def query(self, implicit_reduce=True):
        """ query parameters, as a list of (name, value) pairs. Values are
        json encoded.

        When the response is expected unreduced and `reduce` wasn't
        given, `reduce=false` is sent so the server never reduces
        behind the client's back. Views without reducer, like
        `_all_docs`, don't need it: use `implicit_reduce=False`.
        """
        params = []
        for name, param in QUERY_PARAMS:
            if name in self._options:
                params.append((param, json.dumps(self._options[name])))
        if implicit_reduce and self.shape == UNREDUCED and \
                "reduce" not in self._options:
            params.append(("reduce", "false"))
        return params

    def __eq__(self, other):
        if not isinstance(other, ViewOptions):
            return NotImplemented
        return self._options == other._options

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    __hash__ = None

    def __repr__(self):
        return "<%s %s %r>" % (self.__class__.__name__, self.shape,
                self._options)


class ViewRow(object):
    """ row of an unreduced view. `doc` is the embedded document when
    the view was queried with `include_docs`. `error` is set for rows
    of `_all_docs` queried with keys that don't exist. """

    __slots__ = ("key", "value", "id", "path", "doc", "error",)

    def __init__(self, key, value, id=None, path=None, doc=None, error=None):
        self.key = key
        self.value = value
        self.id = id
        self.path = path
        self.doc = doc
        self.error = error

    @classmethod
    def wrap(cls, database, row, include_docs=False):
        if not isinstance(row, dict) or "key" not in row:
            raise DecodeError("view row without key: %r" % (row,))
        if "error" in row:
            return cls(row["key"], row.get("value"), error=row["error"])

        if "value" not in row:
            raise DecodeError("view row without value: %r" % (row,))
        docid = row.get("id")
        if not isinstance(docid, str):
            raise DecodeError("unreduced view row without document id: %r"
                    % (row,))
        try:
            path = DocumentPath(database, docid)
        except BadRequest as e:
            raise DecodeError(e) from e

        doc = None
        if include_docs and row.get("doc") is not None:
            doc = Document.wrap(database, row["doc"])
        return cls(row["key"], row["value"], id=docid, path=path, doc=doc)

    def __eq__(self, other):
        if not isinstance(other, ViewRow):
            return NotImplemented
        return all(getattr(self, name) == getattr(other, name)
                for name in self.__slots__)

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    __hash__ = None

    def __repr__(self):
        if self.error is not None:
            return '<%s key=%r, error=%r>' % (self.__class__.__name__,
                    self.key, self.error)
        return '<%s id=%r, key=%r, value=%r>' % (self.__class__.__name__,
                self.id, self.key, self.value)


class GroupRow(namedtuple("GroupRow", "key value")):
    """ row of a grouped view: a group key and its reduced value """

    __slots__ = ()

    @classmethod
    def wrap(cls, row):
        if not isinstance(row, dict) or "key" not in row or \
                "value" not in row:
            raise DecodeError("invalid grouped row: %r" % (row,))
        if "id" in row or "doc" in row:
            raise DecodeError("grouped row with a document: %r" % (row,))
        return cls(row["key"], row["value"])


class ViewResponse(object):
    """ result of a view query.

    `shape` is one of UNREDUCED, GROUPED or REDUCED. Unreduced and
    grouped responses are sequences of `ViewRow` or `GroupRow`, in the
    order returned by the server. A reduced response holds a single
    `value` and has no rows.
    """

    def __init__(self, shape, rows=None, value=None, total_rows=None,
            offset=None, update_seq=None):
        if shape not in (UNREDUCED, GROUPED, REDUCED):
            raise ValueError("unknown view shape %r" % (shape,))
        if shape == REDUCED and rows:
            raise ValueError("a reduced response has no rows")
        self.shape = shape
        self._rows = tuple(rows or ())
        self._value = value
        self._total_rows = total_rows
        self._offset = offset
        self.update_seq = update_seq

    @classmethod
    def decode(cls, body, options, database):
        """ decode the json body of a view response, in the shape
        `options` produce. Raise `DecodeError` if the body doesn't fit
        that shape. """
        if not isinstance(body, dict):
            raise DecodeError("view response isn't an object")
        rows = body.get("rows")
        if not isinstance(rows, list):
            raise DecodeError("view response without rows")

        extra = {}
        for name in ("total_rows", "offset"):
            value = body.get(name)
            if value is not None and (isinstance(value, bool) or
                    not isinstance(value, int)):
                raise DecodeError("invalid %s: %r" % (name, value))
            extra[name] = value
        extra["update_seq"] = body.get("update_seq")

        shape = options.shape
        if shape == UNREDUCED:
            rows = [ViewRow.wrap(database, row,
                        include_docs=options.include_docs) for row in rows]
            return cls(shape, rows=rows, **extra)
        elif shape == GROUPED:
            return cls(shape, rows=[GroupRow.wrap(row) for row in rows],
                    **extra)

        if len(rows) > 1:
            raise DecodeError("%s rows in a reduced view response"
                    % len(rows))
        value = None
        if rows:
            row = rows[0]
            if not isinstance(row, dict) or "value" not in row:
                raise DecodeError("invalid reduced row: %r" % (row,))
            if row.get("key") is not None or "id" in row:
                raise DecodeError("reduced row with a key: %r" % (row,))
            value = row["value"]
        return cls(shape, value=value, **extra)

    @property
    def is_unreduced(self):
        return self.shape == UNREDUCED

    @property
    def is_grouped(self):
        return self.shape == GROUPED

    @property
    def is_reduced(self):
        return self.shape == REDUCED

    @property
    def rows(self):
        if self.shape == REDUCED:
            raise TypeError("a reduced view response has no rows, "
                    "use value")
        return self._rows

    @property
    def value(self):
        """ the single reduced value """
        if self.shape != REDUCED:
            raise TypeError("a %s view response has no single value"
                    % self.shape)
        return self._value

    @property
    def total_rows(self):
        """ number of rows in the view, as reported by the server.
        Fall back on the number of returned rows. None for a reduced
        response """
        if self.shape == REDUCED:
            return None
        if self._total_rows is None:
            return len(self._rows)
        return self._total_rows

    @property
    def offset(self):
        """ current position in the view. None for a reduced response """
        if self.shape == REDUCED:
            return None
        return self._offset or 0

    def first(self):
        """
        Return the first row or None if the response doesn't contain
        any row.
        """
        try:
            return self.rows[0]
        except IndexError:
            return None

    def one(self, except_all=False):
        """
        Return exactly one row or raise an exception.

        Raises `chill.exceptions.MultipleResultsFound` if multiple rows
        are returned. If except_all is True, raises
        `chill.exceptions.NoResultFound` if the response has no rows.
        """
        length = len(self)
        if length > 1:
            raise MultipleResultsFound("%s results found." % length)

        result = self.first()
        if result is None and except_all:
            raise NoResultFound
        return result

    def all(self):
        """ return list of all rows """
        return list(self.rows)

    def keys(self):
        return [row.key for row in self.rows]

    def values(self):
        return [row.value for row in self.rows]

    def documents(self):
        """ embedded documents of an unreduced response queried with
        include_docs. Rows of deleted documents are skipped. """
        if self.shape != UNREDUCED:
            raise TypeError("a %s view response has no documents"
                    % self.shape)
        return [row.doc for row in self._rows if row.doc is not None]

    def __getitem__(self, index):
        return self.rows[index]

    def __iter__(self):
        return iter(self.rows)

    def __len__(self):
        return len(self.rows)

    def __bool__(self):
        if self.shape == REDUCED:
            return self._value is not None
        return bool(self._rows)

    def __eq__(self, other):
        if not isinstance(other, ViewResponse):
            return NotImplemented
        return (self.shape, self._rows, self._value, self._total_rows,
                self._offset, self.update_seq) == (other.shape, other._rows,
                other._value, other._total_rows, other._offset,
                other.update_seq)

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    __hash__ = None

    def __repr__(self):
        if self.shape == REDUCED:
            return "<%s reduced value=%r>" % (self.__class__.__name__,
                    self._value)
        return "<%s %s rows=%s>" % (self.__class__.__name__, self.shape,
                len(self._rows))
