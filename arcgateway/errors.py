# coding: utf-8
"""Exceptions raised by the gateway. Everything derives from GatewayError
   so callers can catch the lot in one place."""

__all__ = ['GatewayError', 'ConfigurationError', 'InvalidRequestError',
           'TransportError', 'AuthenticationError', 'OperationError',
           'ResponseFormatError']

class GatewayError(Exception):
    """Base class for gateway errors"""

class ConfigurationError(GatewayError):
    """The gateway or its token is set up wrong; found before any request
       is sent"""

class InvalidRequestError(GatewayError):
    """The url built for a request is not a valid absolute url"""

class TransportError(GatewayError):
    """Connection failure or non-success HTTP status"""

    def __init__(self, message, url=None, status_code=None):
        super(TransportError, self).__init__(message)
        self.url = url
        self.status_code = status_code

class AuthenticationError(GatewayError):
    """A token could not be generated"""

class ResponseFormatError(GatewayError):
    """The response body could not be turned into the expected result"""

class OperationError(GatewayError):
    """The server answered, but with an error payload"""

    def __init__(self, error, url=None):
        self.error = error
        self.url = url
        detailstring = " ".join(error.details)
        if detailstring:
            detailstring = " -- " + detailstring
        super(OperationError, self).__init__("ERROR %r: %s%s <%s>" %
                                             (error.code,
                                              error.message or 'Unspecified',
                                              detailstring,
                                              url))
    @property
    def code(self):
        return self.error.code
    @property
    def message(self):
        return self.error.message
    @property
    def details(self):
        return self.error.details
