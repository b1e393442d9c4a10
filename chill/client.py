# -*- coding: utf-8 -
#
# This file is part of chill released under the MIT license.
# See the NOTICE for more information.

"""
Client implementation for CouchDB access. It allows you to manage
databases, documents and views of a CouchDB server. Each method runs one
action, see :mod:`chill.action`.

Example:

    >>> from chill import Server
    >>> server = Server()
    >>> db = server.create_db('chill_test')
    >>> result = db.create_doc({'string': 'test', 'number': 4})
    >>> doc = db.open_doc(result.id)
    >>> doc['string']
    'test'
    >>> db.delete_doc(doc)
    >>> result.id in db
    False
    >>> del server['chill_test']

Documents passed to a `Database` are never modified: writes return a
`WriteResult` or a new `Document` holding the new revision.
"""

from . import action
from .document import Attachment, Document
from .exceptions import PreconditionFailed, ResourceNotFound
from .design import Design
from .path import DatabasePath, DatabaseViewPath, DocumentPath, ViewPath
from .resource import CouchdbResource


class Server(object):
    """ Server object that allows you to access and manage a couchdb
    node. A Server object can be used like a `dict` of databases.
    """

    resource_class = CouchdbResource

    def __init__(self, uri='http://127.0.0.1:5984', username=None,
            password=None, timeout=None, transport=None, **client_opts):
        """ constructor for Server object

        @param uri: uri of CouchDb host
        @param username: str, basic authentication user
        @param password: str, basic authentication password
        @param timeout: timeout passed to the transport
        @param transport: object implementing `chill.resource.Transport`.
            It allows you to use a transport with custom parameters or
            an in-memory one. A `CouchdbResource` is created if None.
        @param client_opts: extra options of the `CouchdbResource`
        """
        if transport is None:
            if not uri:
                raise ValueError("Server uri is missing")
            transport = self.resource_class(uri, username=username,
                    password=password, timeout=timeout, **client_opts)
        self.res = transport

    def execute(self, act):
        """ run an action and return its result """
        return action.execute(self.res, act)

    def get_db(self, dbname):
        """ return a Database object for dbname. The database isn't
        checked nor created """
        return Database(self, dbname)

    def create_db(self, dbname):
        """ Create a database on CouchDb host

        @param dbname: str, name of db
        @return: Database instance. Raise `PreconditionFailed` if the
        database already exists.
        """
        db = self.get_db(dbname)
        self.execute(action.CreateDatabase(db.path))
        return db

    def get_or_create_db(self, dbname):
        """
        Try to return a Database object for dbname. If
        database doest't exist, it will be created.
        """
        try:
            return self.create_db(dbname)
        except PreconditionFailed:
            return self.get_db(dbname)

    def delete_db(self, dbname):
        """
        Delete database
        """
        self.execute(action.DeleteDatabase(dbname))

    def __getitem__(self, dbname):
        return self.get_db(dbname)

    def __delitem__(self, dbname):
        self.delete_db(dbname)

    def __repr__(self):
        return "<%s %r>" % (self.__class__.__name__, self.res)


class Database(object):
    """ Object that abstract access to a CouchDB database
    A Database object can act as a Dict object.
    """

    def __init__(self, server, dbname):
        """Constructor for Database

        @param server: Server instance
        @param dbname: str or `DatabasePath`, name of the database
        """
        if not isinstance(dbname, DatabasePath):
            dbname = DatabasePath(dbname)
        self.server = server
        self.path = dbname

    @property
    def dbname(self):
        return self.path.name

    def __repr__(self):
        return "<%s %s>" % (self.__class__.__name__, self.dbname)

    def _doc_path(self, docid):
        if isinstance(docid, DocumentPath):
            if docid.database != self.path:
                raise ValueError("%s isn't in %s" % (docid, self.dbname))
            return docid
        return self.path.document(docid)

    def _attachment_path(self, doc, name):
        if isinstance(doc, Document):
            doc = doc.path
        return self._doc_path(doc).attachment(name)

    def doc_exist(self, docid):
        """Test if document exists in a database

        @param docid: str, document id
        @return: boolean, True if document exist
        """
        try:
            self.open_doc(docid)
        except ResourceNotFound:
            return False
        return True

    def open_doc(self, docid, rev=None, attachments=False):
        """Get document from database

        @param docid: str or `DocumentPath`, document to retrieve
        @param rev: if specified, allow you to retrieve
        a specific revision of document
        @param attachments: bool, if True attachments data are fetched
        with the document

        @return: `Document`, or `Design` for a design document.
        Raise `ResourceNotFound` if the document doesn't exist.
        """
        path = self._doc_path(docid)
        doc = self.server.execute(action.ReadDocument(path, rev=rev,
                attachments=attachments))
        if path.doc_id.is_design():
            return Design.from_document(doc)
        return doc

    get = open_doc

    def create_doc(self, content, docid=None, attachments=None):
        """ Create a document. CouchDB assigns its id unless `docid` is
        given.

        @return: `WriteResult`
        """
        return self.server.execute(action.CreateDocument(self.path, content,
                doc_id=docid, attachments=attachments))

    def save_doc(self, doc):
        """ Save a document. A document without revision is created,
        other ones are updated with their current revision.

        @param doc: `Document`
        @return: a copy of `doc` with its new revision. Inline
        attachments are replaced by stubs.
        """
        if doc.database != self.path:
            raise ValueError("%s isn't in %s" % (doc.path, self.dbname))
        if doc.new_document:
            act = action.CreateDocument(self.path, dict(doc),
                    doc_id=doc.path.doc_id, attachments=doc.attachments)
        else:
            act = action.UpdateDocument.from_document(doc)
        result = self.server.execute(act)

        saved = doc.copy()
        saved.rev = result.rev
        saved.attachments = dict((name, Attachment(att.content_type,
                length=att.length, stub=True, digest=att.digest,
                revpos=att.revpos)) for name, att in doc.attachments.items())
        return saved

    def delete_doc(self, doc, rev=None):
        """ delete a document

        @param doc: `Document`, or document id or path with `rev`
        @return: `WriteResult` of the deletion
        """
        if isinstance(doc, Document):
            path, rev = doc.path, rev or doc.rev
        else:
            path = self._doc_path(doc)
        return self.server.execute(action.DeleteDocument(path, rev))

    def save_design(self, design):
        """ save a `Design` document, see `save_doc` """
        return self.save_doc(design)

    def view(self, view_name, **options):
        """ get view results from database. viewname is generally
        a string like `designname/viewname`, or the name of a database
        view like `_all_docs`.

        @param view_name: str or `ViewPath`
        @param options: options of the view, see
            `chill.view.ViewOptions`
        @return: `chill.view.ViewResponse`
        """
        if isinstance(view_name, (ViewPath, DatabaseViewPath)):
            path = view_name
        elif view_name.startswith("_"):
            path = DatabaseViewPath(self.path, view_name)
        else:
            try:
                dname, vname = view_name.split("/", 1)
            except ValueError:
                raise ValueError("view name should be 'design/view', got %r"
                        % view_name)
            path = self.path.view(dname, vname)
        return self.server.execute(action.ExecuteView(path, **options))

    def all_docs(self, **options):
        """ query the `_all_docs` view """
        return self.server.execute(action.ReadAllDocuments(self.path,
            **options))

    def put_attachment(self, doc, content, name, content_type=None):
        """ Add attachement to a document.

        @param doc: `Document`, document object
        @param content: bytes or str
        @param name: name or attachment (file name).
        @param content_type: string, mimetype of attachment.
        If you don't set it, it will be autodetected.

        @return: `WriteResult` with the new revision of the document
        """
        path = self._attachment_path(doc, name)
        return self.server.execute(action.PutAttachment(path, doc.rev,
                content, content_type=content_type))

    def delete_attachment(self, doc, name):
        """ delete attachement of the document

        @param doc: `Document`, document object
        @param name: name of attachement

        @return: `WriteResult` with the new revision of the document
        """
        path = self._attachment_path(doc, name)
        return self.server.execute(action.DeleteAttachment(path, doc.rev))

    def fetch_attachment(self, doc, name, rev=None):
        """ get attachment in a document

        @param doc: `Document`, document id or path
        @param name: name of attachment
        @return: `AttachmentContent` (data, content_type)
        """
        path = self._attachment_path(doc, name)
        return self.server.execute(action.ReadAttachment(path, rev=rev))

    def __contains__(self, docid):
        return self.doc_exist(docid)

    def __getitem__(self, docid):
        return self.open_doc(docid)

    def __delitem__(self, docid):
        doc = self.open_doc(docid)
        self.delete_doc(doc)
