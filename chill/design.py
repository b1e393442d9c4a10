# -*- coding: utf-8 -
#
# This file is part of chill released under the MIT license.
# See the NOTICE for more information.

from .document import Document
from .exceptions import BadRequest
from .path import DesignDocumentPath, to_database_path, to_document_path

__all__ = ['Design']


class Design(Document):
    """ design is a Design document object.

    It holds the views of a database as `views` member of its content:

    .. code-block:: python

        from chill.design import Design
        d = Design.new("blog", "posts")
        d.add_view("by_date", "function(doc) { emit(doc.date, null); }")
        d.add_view("count", "function(doc) { emit(doc.tag, 1); }", "_sum")
    """

    def __init__(self, path, content=None, rev=None, attachments=None):
        path = to_document_path(path)
        if not path.doc_id.is_design():
            raise BadRequest("%s isn't a design document" % path)
        path = DesignDocumentPath(path.database, path.doc_id.name)
        Document.__init__(self, path, content, rev=rev,
                attachments=attachments)
        self.setdefault("language", "javascript")

    @classmethod
    def new(cls, database, name):
        return cls(DesignDocumentPath(to_database_path(database), name))

    @classmethod
    def from_document(cls, doc):
        return cls(doc.path, dict(doc), rev=doc.rev,
                attachments=doc.attachments)

    @property
    def name(self):
        return self.path.design_name

    @property
    def views(self):
        return self.setdefault("views", {})

    def add_view(self, name, map_fun, reduce_fun=None):
        view = {"map": map_fun}
        if reduce_fun is not None:
            view["reduce"] = reduce_fun
        self.views[name] = view

    def has_view(self, view):
        return view in self.get("views", {})

    def has_reducer(self, view):
        """ True if the view has a reduce function. Raise `KeyError` if
        there is no such view """
        return "reduce" in self.get("views", {})[view]

    def view_path(self, view):
        if not self.has_view(view):
            raise BadRequest("no view %r in %s" % (view, self.path))
        return self.path.view(view)
