# -*- coding: utf-8 -
#
# This file is part of chill released under the MIT license.
# See the NOTICE for more information.

import logging

from .version import version_info, __version__

from .exceptions import ChillError, ResourceError, ResourceNotFound, \
ResourceConflict, Unauthorized, BadRequest, ServerError, PreconditionFailed, \
TransportError, DecodeError, InvalidAttachment, MultipleResultsFound, \
NoResultFound
from .path import RootPath, DatabasePath, DocumentId, DocumentPath, \
DesignDocumentPath, AttachmentPath, ViewPath, DatabaseViewPath, parse_path
from .document import Attachment, Document, WriteResult
from .design import Design
from .resource import CouchdbResource, Response, Transport
from .view import ViewOptions, ViewResponse, ViewRow, GroupRow, \
UNREDUCED, GROUPED, REDUCED
from .action import execute, CreateDatabase, DeleteDatabase, \
CreateDocument, ReadDocument, UpdateDocument, DeleteDocument, \
ReadAttachment, PutAttachment, DeleteAttachment, AttachmentContent, \
ExecuteView, ReadAllDocuments
from .client import Server, Database


LOG_LEVELS = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG
}

def set_logging(level, handler=None):
    """
    Set level of logging, and choose where to display/save logs
    (file or standard output).
    """
    if not handler:
        handler = logging.StreamHandler()

    loglevel = LOG_LEVELS.get(level, logging.INFO)
    logger = logging.getLogger('chill')
    logger.setLevel(loglevel)
    format = r"%(asctime)s [%(process)d] [%(levelname)s] %(message)s"
    datefmt = r"%Y-%m-%d %H:%M:%S"

    handler.setFormatter(logging.Formatter(format, datefmt))
    logger.addHandler(handler)
