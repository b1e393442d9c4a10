# -*- coding: utf-8 -
#
# This file is part of chill released under the MIT license.
# See the NOTICE for more information.

"""
All exceptions used in chill.

Every error raised by an action derives from :class:`ChillError`. Errors
reported by the server derive from :class:`ResourceError` and keep the
HTTP status, the CouchDB ``error``/``reason`` pair and the raw body.
"""


class ChillError(Exception):
    """ base class of all chill errors """


class ResourceError(ChillError):
    """ error reported by the server, or detected before sending a
    request that the server would have refused.

    @param reason: str, human readable reason (CouchDB ``reason``)
    @param status: int, HTTP status code or None if the error was
        detected client side
    @param error: str, CouchDB ``error`` token (eg. ``not_found``)
    @param body: bytes, raw response body
    """

    def __init__(self, reason=None, status=None, error=None, body=None):
        self.reason = reason
        self.status = status
        self.error = error
        self.body = body
        ChillError.__init__(self, reason)

    def __str__(self):
        msg = self.reason or self.error or self.__class__.__name__
        if self.status is not None:
            return "%s (%s)" % (msg, self.status)
        return str(msg)


class ResourceNotFound(ResourceError):
    """ raised when the resource is not found (404) """


class ResourceConflict(ResourceError):
    """ raised on a revision mismatch or when a document already
    exists (409) """


class Unauthorized(ResourceError):
    """ raised when the client has insufficient privilege (401, 403) """


class BadRequest(ResourceError):
    """ raised when a request is invalid, either refused by the server
    (400) or rejected before being sent """


class ServerError(ResourceError):
    """ raised for any other unexpected status code. `body` holds the
    raw response for diagnostics """


class PreconditionFailed(ServerError):
    """ raised when 412 HTTP error is received in response to a
    request, eg. when creating a database that already exists """


class TransportError(ChillError):
    """ raised when the exchange with the server failed at the network
    level (connection refused, timeout, ...) """

    def __init__(self, cause):
        self.cause = cause
        ChillError.__init__(self, str(cause))


class DecodeError(ChillError):
    """ raised when a response body doesn't have the expected shape.
    The server answered correctly but not what the client expected. """

    def __init__(self, cause):
        self.cause = cause
        ChillError.__init__(self, str(cause))


class InvalidAttachment(ChillError):
    """ raised when an attachment is invalid """


class MultipleResultsFound(ChillError):
    """ exception raised when more than one object is
    returned by the one method"""


class NoResultFound(ChillError):
    """ exception returned when no results are found """
