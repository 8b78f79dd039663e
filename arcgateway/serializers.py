# coding: utf-8
"""(De)serialization of requests and responses. The gateway only needs two
   things from a serializer: flatten a parameter object into a flat mapping of
   strings, and turn a response body into a typed result. Anything with those
   two methods can be handed to a gateway."""

import json

from . import endpoint
from . import errors

__all__ = ['Serializer', 'JsonSerializer']

class Serializer(object):
    """Interface for request/response conversion"""

    def as_dictionary(self, parameters):
        """Convert a CommonParameters instance into a dict of str -> str"""
        raise NotImplementedError
    def as_portal_response(self, response_type, data):
        """Deserialize the response text data as an instance of
           response_type, a PortalResponse subclass"""
        raise NotImplementedError

class JsonSerializer(Serializer):
    """Serializer built on the json module"""

    def as_dictionary(self, parameters):
        query_dict = {}
        for key, val in parameters.parameter_values():
            # Lowercase bool string
            if isinstance(val, bool):
                query_dict[key] = str(val).lower()
            # Endpoints are sent as their path
            elif isinstance(val, endpoint.Endpoint):
                query_dict[key] = val.relative_url
            # If it's a list, make it a comma-separated string
            elif isinstance(val, (list, tuple, set)):
                query_dict[key] = ",".join(str(v) for v in val)
            # If it's a dictionary, dump as JSON
            elif isinstance(val, dict):
                query_dict[key] = json.dumps(val)
            # Ignore null values, and coerce string values
            elif val is not None:
                query_dict[key] = str(val)
        return query_dict
    def as_portal_response(self, response_type, data):
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        try:
            struct = json.loads(data.strip() or '{}')
        except ValueError as e:
            raise errors.ResponseFormatError("Response is not json: %s" % e)
        if not isinstance(struct, dict):
            raise errors.ResponseFormatError("Expected a json object, got %s"
                                             % type(struct).__name__)
        try:
            return response_type.fromJson(struct)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise errors.ResponseFormatError(
                "Response does not describe a %s: %s"
                % (response_type.__name__, e)) from e
