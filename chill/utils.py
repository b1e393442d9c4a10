# -*- coding: utf-8 -
#
# This file is part of chill released under the MIT license.
# See the NOTICE for more information.


"""
Mostly utility functions chill uses internally that don't
really belong anywhere else in the modules.
"""

import re

import simplejson as json

from .exceptions import BadRequest


VALID_DB_NAME = re.compile(r'^[a-z][a-z0-9_$()+\-/]*$')
SPECIAL_DBS = ("_users", "_replicator", "_global_changes",)


def validate_dbname(name):
    """ validate dbname, return it unchanged """
    if not isinstance(name, str):
        raise BadRequest("Invalid db name: %r" % (name,))
    if name in SPECIAL_DBS:
        return name
    elif not VALID_DB_NAME.fullmatch(name):
        raise BadRequest("Invalid db name: '%s'" % name)
    return name


def validate_name(name, kind="name"):
    """ check that `name` is a non empty string that can be
    percent-encoded without ambiguity """
    if not isinstance(name, str):
        raise BadRequest("%s should be a string, got %r" % (kind, name))
    if not name:
        raise BadRequest("%s is empty" % kind)
    if "\x00" in name:
        raise BadRequest("%s contains a NUL character: %r" % (kind, name))
    try:
        name.encode("utf-8")
    except UnicodeEncodeError:
        raise BadRequest("%s can't be encoded: %r" % (kind, name))
    return name


def to_bytestring(s):
    """ convert to bytestring an unicode """
    if isinstance(s, str):
        return s.encode('utf-8')
    return s


def json_body(body):
    """ deserialize a response body. Raise `ValueError` if the body
    isn't valid json """
    if isinstance(body, (bytes, bytearray)):
        body = bytes(body).decode('utf-8')
    return json.loads(body)


def json_payload(obj):
    """ serialize `obj` to an utf-8 encoded json payload """
    return json.dumps(obj, separators=(',', ':')).encode('utf-8')


def check_json(obj, kind="value"):
    """ make sure `obj` can be sent as json. Raise `BadRequest`
    otherwise """
    try:
        json_payload(obj)
    except (TypeError, ValueError) as e:
        raise BadRequest("%s can't be encoded as json: %s" % (kind, e)) \
                from e
    return obj
