# coding: utf-8
"""Token based authentication. A TokenProvider exchanges a username and
   password for a token with the generateToken operation, keeps the token
   and only asks for a new one when it has expired."""

import asyncio
import logging

from . import endpoint
from . import errors
from . import operation
from . import server
from . import utils

__all__ = ['GenerateToken', 'TokenProvider', 'ArcGISOnlineTokenProvider']

logger = logging.getLogger(__name__)

class GenerateToken(operation.CommonParameters, endpoint.Endpoint):
    """Generates an access token in exchange for user credentials. The call
       is only allowed over HTTPS and must be a POST, so the absolute url is
       forced to https unless dont_force_https is set."""
    __parameters__ = {'username': 'username',
                      'password': 'password',
                      'client': 'client',
                      'referer': 'referer',
                      'expiration': 'expiration'}
    __setattr__ = object.__setattr__

    def __init__(self, username, password, expiration=60, referer=None,
                 client='referer'):
        super(GenerateToken, self).__init__("tokens/generateToken")
        self.username = username
        self.password = password
        self.expiration = expiration
        self.dont_force_https = False
        self._client = None
        self._referer = None
        self.client = client
        if referer is not None:
            self.referer = referer
    @property
    def client(self):
        """The client identification type the token is granted for. Setting
           it to None also clears the referer."""
        return self._client
    @client.setter
    def client(self, value):
        self._client = value
        if value is None:
            self._referer = None
    @property
    def referer(self):
        """Base url of the web app that will use the token. Setting it forces
           client to 'referer'."""
        return self._referer
    @referer.setter
    def referer(self, value):
        self._referer = value
        if value is not None:
            self._client = 'referer'
    def build_absolute_url(self, root_url):
        root_url = utils.as_root_url(root_url)
        relative_url = self.relative_url
        # ArcGIS Online does not nest generateToken under tokens/
        if endpoint.is_ago_portal_url(root_url):
            relative_url = relative_url.replace('tokens/', '')
        if not self.dont_force_https:
            root_url = utils.force_https(root_url)
        return root_url + relative_url
    def __repr__(self):
        return "<%s(%r, client=%r)>" % (self.__class__.__name__,
                                        self.username, self.client)

class TokenProvider(object):
    """Provides a token for the secure resources of a site. The token
       service is reached through a gateway of its own which never carries a
       token."""

    def __init__(self, root_url, username, password, serializer,
                 referer=None, expiration=60, **gateway_options):
        self._gateway = server.PortalGateway(root_url, serializer,
                                             **gateway_options)
        self.token_request = GenerateToken(username, password, expiration,
                                           referer)
        self._token = None
        self._refresh_lock = asyncio.Lock()
    @property
    def root_url(self):
        return self._gateway.root_url
    @property
    def username(self):
        return self.token_request.username
    async def current_token(self):
        """Returns the cached token, generating a new one when there is none
           yet or it has expired. Concurrent callers share one exchange."""
        token = self._token
        if token is not None and not token.is_expired:
            return token
        async with self._refresh_lock:
            token = self._token
            if token is None or token.is_expired:
                token = await self._generate_token()
                self._token = token
        return token
    async def _generate_token(self):
        logger.info("Generating token for %r at %s", self.username,
                    self.root_url)
        try:
            token = await self._gateway.post_operation(self.token_request,
                                                       operation.Token)
        except (errors.OperationError,
                errors.TransportError,
                errors.ResponseFormatError) as e:
            raise errors.AuthenticationError(
                "Could not generate token for %r: %s" % (self.username, e)
            ) from e
        if not token.value:
            raise errors.AuthenticationError("No token returned for %r"
                                             % self.username)
        token.referer = self.token_request.referer
        return token
    async def close(self):
        await self._gateway.close()
    async def __aenter__(self):
        return self
    async def __aexit__(self, *exc_info):
        await self.close()
    def __repr__(self):
        return "<%s(%r, %r)>" % (self.__class__.__name__,
                                 self.root_url, self.username)

class ArcGISOnlineTokenProvider(TokenProvider):
    """Token provider for the public ArcGIS Online host"""

    def __init__(self, username, password, serializer, referer=None,
                 expiration=60, **gateway_options):
        super(ArcGISOnlineTokenProvider, self).__init__(
            endpoint.AGO_PORTAL_URL, username, password, serializer,
            referer, expiration, **gateway_options)
