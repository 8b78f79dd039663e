# coding: utf-8
"""The gateway to the ArcGIS Server and Portal REST APIs. All resources and
   operations exposed by the REST API are accessible through a hierarchy of
   endpoints relative to the root url of a site; a gateway turns a call on
   one of them into an HTTP request, attaching the format flag and, for
   secure sites, a token, and turns the answer into a typed result."""

import asyncio
import collections
import logging

import httpx

from . import endpoint
from . import errors
from . import operation
from . import tokens
from . import utils

__all__ = ['USER_AGENT', 'MAXIMUM_URL_LENGTH', 'MAXIMUM_DISCOVERY_DEPTH',
           'DEFAULT_TIMEOUT', 'PortalGateway', 'ArcGISOnlineGateway',
           'SecureArcGISServerGateway']

logger = logging.getLogger(__name__)

#: User agent to report when making requests
USER_AGENT = "Mozilla/4.0 (arcgateway)"

#: GET urls longer than this are sent as a POST instead
MAXIMUM_URL_LENGTH = 2082

#: How many folders deep site discovery will go
MAXIMUM_DISCOVERY_DEPTH = 32

#: Seconds to wait on the server
DEFAULT_TIMEOUT = 30.0

ACCEPT = "application/json, application/jsonp, text/html"

class PortalGateway(object):
    """Gateway to a site made up of scheme://host:port/site.

       A gateway owns one connection pool and sends one request at a time: a
       call made while another is in flight on the same gateway waits for it
       to finish. Use one gateway per concurrent caller if calls must
       overlap. Call close() (or use ``async with``) when done."""

    def __init__(self, root_url, serializer, token_provider=None,
                 max_url_length=MAXIMUM_URL_LENGTH,
                 max_depth=MAXIMUM_DISCOVERY_DEPTH,
                 timeout=DEFAULT_TIMEOUT, form_encoding='utf-8',
                 transport=None):
        if serializer is None:
            raise errors.ConfigurationError("Serializer has not been set.")
        try:
            self.root_url = utils.as_root_url(root_url)
        except ValueError as e:
            raise errors.ConfigurationError(str(e)) from e
        self.serializer = serializer
        self.token_provider = token_provider
        self.max_url_length = max_url_length
        self.max_depth = max_depth
        self.form_encoding = form_encoding
        self._client = httpx.AsyncClient(transport=transport,
                                         timeout=timeout,
                                         follow_redirects=True,
                                         headers={'User-Agent': USER_AGENT,
                                                  'Accept': ACCEPT})
        self._request_slot = asyncio.Lock()
        logger.debug("Created %s for %s", self.__class__.__name__,
                     self.root_url)
    def __repr__(self):
        return "<%s(%r)>" % (self.__class__.__name__, self.root_url)
    async def close(self):
        await self._client.aclose()
    @property
    def closed(self):
        return self._client.is_closed
    async def __aenter__(self):
        return self
    async def __aexit__(self, *exc_info):
        await self.close()

    async def describe_site(self):
        """Recursively walks the folders of the site and returns a
           SiteDescription of every service found and the highest version
           any folder reported."""
        result = operation.SiteDescription()
        for description in await self.describe_endpoint(
                                                endpoint.Endpoint('/')):
            if description.version > result.version:
                result.version = description.version
            for service in description.services:
                name = service.name.rstrip('/').split('/')[-1]
                result.resources.append(endpoint.Endpoint(
                    _subpath(description.path, name, service.type)))
        return result
    async def describe_endpoint(self, start):
        """Returns the SiteFolderDescription of start and of every folder
           beneath it, breadth first. Folders that can't be fetched (usually
           no access) are left out."""
        results = []
        worklist = collections.deque([(start, self.max_depth)])
        while worklist:
            folder, depth_remaining = worklist.popleft()
            try:
                description = await self.get(folder,
                                             operation.SiteFolderDescription)
            except errors.TransportError as e:
                logger.warning("Skipping folder %r: %s",
                               folder.relative_url, e)
                continue
            description.path = folder.relative_url
            results.append(description)
            if depth_remaining <= 0:
                if description.folders:
                    logger.warning("Not descending below %r, maximum depth "
                                   "of %i reached", folder.relative_url,
                                   self.max_depth)
                continue
            for foldername in description.foldernames:
                worklist.append((endpoint.Endpoint(
                                    _subpath(folder.relative_url,
                                             foldername)),
                                 depth_remaining - 1))
        return results
    async def ping(self, endpoint):
        """GET the endpoint and return the bare response. Raises like any
           other GET if there is a problem with the request."""
        return await self.get(endpoint, operation.PortalResponse)

    async def get_operation(self, request, response_type):
        """GET an operation whose parameter object is also its endpoint. The
           parameters are appended to the endpoint's query string."""
        relative_url = request.relative_url
        parameters = self.serializer.as_dictionary(request)
        if parameters:
            relative_url += (('&' if '?' in relative_url else '?') +
                             utils.encode_form(parameters))
        return await self.get(endpoint.Endpoint(relative_url), response_type)
    async def post_operation(self, request, response_type):
        """POST an operation whose parameter object is also its endpoint."""
        return await self.post(request,
                               self.serializer.as_dictionary(request),
                               response_type)

    async def get(self, endpoint, response_type=operation.PortalResponse):
        token = await self._check_generate_token()

        url = endpoint.build_absolute_url(self.root_url)
        if not utils.has_query_parameter(url, 'f'):
            url = utils.add_query_parameter(url, 'f', 'json')
        headers = self._referer_header(token)
        if _has_value(token) and not utils.has_query_parameter(url, 'token'):
            url = utils.add_query_parameter(url, 'token', token.value)
            headers['Authorization'] = 'Bearer ' + token.value
            if token.always_use_ssl:
                url = utils.force_https(url)

        # use POST if request is too long
        if len(url) > self.max_url_length:
            logger.debug("GET url is %i characters, sending as POST",
                         len(url))
            return await self.post(endpoint,
                                   utils.parse_query_string(
                                       endpoint.relative_url),
                                   response_type)
        return await self._send('GET', url, response_type, headers=headers)
    async def post(self, endpoint, parameters=None,
                   response_type=operation.PortalResponse):
        # Parameters go in the body, never in the url
        url = utils.strip_query(endpoint.build_absolute_url(self.root_url))
        token = await self._check_generate_token()

        parameters = dict(parameters or {})
        if not any(k.lower() == 'f' for k in parameters):
            parameters['f'] = 'json'
        headers = self._referer_header(token)
        if (_has_value(token) and
                not any(k.lower() == 'token' for k in parameters)):
            parameters['token'] = token.value
            headers['Authorization'] = 'Bearer ' + token.value
            if token.always_use_ssl:
                url = utils.force_https(url)

        try:
            content = utils.encode_form(parameters, self.form_encoding)
        except UnicodeEncodeError as e:
            # Some values (geometries, json blobs) won't url-encode; every
            # value goes as a text part instead
            logger.debug("Sending parameters as multipart, %s", e)
            files = [(key, (None,
                            str(value).encode('utf-8', 'surrogatepass'),
                            'text/plain; charset=utf-8'))
                     for key, value in parameters.items()]
            return await self._send('POST', url, response_type,
                                    headers=headers, files=files)
        headers['Content-Type'] = 'application/x-www-form-urlencoded'
        return await self._send('POST', url, response_type,
                                headers=headers,
                                content=content.encode('ascii'))

    async def _check_generate_token(self):
        if self.token_provider is None:
            return None
        token = await self.token_provider.current_token()
        if token is not None and token.referer and token.referer.strip():
            if not utils.is_absolute_url(token.referer):
                raise errors.ConfigurationError(
                    "Not a valid url for referrer: %s" % token.referer)
        return token
    def _referer_header(self, token):
        if token is not None and token.referer and token.referer.strip():
            return {'Referer': token.referer}
        return {}
    async def _send(self, method, url, response_type, **kwargs):
        logged_url = utils.mask_token(url)
        if not utils.is_absolute_url(url):
            raise errors.InvalidRequestError("Not a valid url: %s" %
                                             logged_url)
        logger.debug("%s %s", method, logged_url)
        async with self._request_slot:
            try:
                response = await self._client.request(method, url, **kwargs)
            except httpx.InvalidURL as e:
                raise errors.InvalidRequestError(
                    "Not a valid url: %s (%s)" % (logged_url, e)) from e
            except httpx.HTTPError as e:
                raise errors.TransportError(
                    "%s %s failed: %s" % (method, logged_url, e),
                    url=logged_url) from e
        if not response.is_success:
            raise errors.TransportError(
                "HTTP %i %s from %s" % (response.status_code,
                                        response.reason_phrase,
                                        logged_url),
                url=logged_url, status_code=response.status_code)

        logger.debug("Response from %s: %s", logged_url, response.text)
        result = self.serializer.as_portal_response(response_type,
                                                    response.text)
        if result.error is not None:
            raise errors.OperationError(result.error, logged_url)
        return result

class ArcGISOnlineGateway(PortalGateway):
    """Gateway to the public ArcGIS Online host. Pass a token_provider (see
       ArcGISOnlineTokenProvider) to reach secure resources."""

    def __init__(self, serializer, token_provider=None, **options):
        super(ArcGISOnlineGateway, self).__init__(endpoint.AGO_PORTAL_URL,
                                                  serializer,
                                                  token_provider,
                                                  **options)

class SecureArcGISServerGateway(PortalGateway):
    """ArcGIS Server gateway where the token service lives under the same
       root url. The token provider belongs to the gateway and is closed
       with it."""

    def __init__(self, root_url, username, password, serializer,
                 referer=None, **options):
        provider_options = dict((k, v) for k, v in options.items()
                                if k in ('timeout', 'transport',
                                         'form_encoding'))
        super(SecureArcGISServerGateway, self).__init__(
            root_url, serializer,
            tokens.TokenProvider(root_url, username, password, serializer,
                                 referer, **provider_options),
            **options)
    async def close(self):
        try:
            await super(SecureArcGISServerGateway, self).close()
        finally:
            await self.token_provider.close()

def _has_value(token):
    return token is not None and bool(token.value) and bool(token.value.strip())

def _subpath(*parts):
    return "/".join(part.strip('/') for part in parts if part.strip('/'))
