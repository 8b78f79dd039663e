#!/usr/bin/env python

import argparse
import asyncio
import datetime
import io
import unittest
from unittest import mock
from urllib.parse import parse_qs

import httpx

import arcgateway
from arcgateway import cmdline, utils

ROOT_URL = "http://x.com/arcgis/rest/services"

class MockServer(object):
    """Stands in for a site. Answers each request by its url path from a
       table of payloads: a dict is sent as a json body with HTTP 200, an int
       as a bare status, an exception is raised, a callable is called with
       the request. Paths not in the table get the default."""
    def __init__(self, routes=None, default=404):
        self.routes = dict(routes or {})
        self.default = default
        self.requests = []
    def __call__(self, request):
        self.requests.append(request)
        answer = self.routes.get(request.url.path, self.default)
        if callable(answer):
            answer = answer(request)
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, int):
            return httpx.Response(answer)
        if isinstance(answer, httpx.Response):
            return answer
        return httpx.Response(200, json=answer)
    @property
    def transport(self):
        return httpx.MockTransport(self)

def future_expiry(**delta):
    return utils.pythonvaluetotime(utils.utcnow() +
                                   datetime.timedelta(**delta))

def form_body(request):
    return dict((k, v[0]) for k, v in
                parse_qs(request.content.decode('ascii')).items())

class StaticTokenProvider(object):
    def __init__(self, token):
        self.token = token
        self.calls = 0
    async def current_token(self):
        self.calls += 1
        return self.token

class UtilsTests(unittest.TestCase):
    def testRootUrlHasOneTrailingSlash(self):
        self.assertEqual(utils.as_root_url(ROOT_URL),
                         "http://x.com/arcgis/rest/services/")
        self.assertEqual(utils.as_root_url("http://x.com/arcgis//rest/"),
                         "http://x.com/arcgis/rest/")
    def testRootUrlNormalizationIsIdempotent(self):
        for url in (ROOT_URL, "https://x.com:6443//arcgis/", "http://x.com"):
            once = utils.as_root_url(url)
            self.assertEqual(once, utils.as_root_url(once))
    def testEmptyRootUrl(self):
        self.assertRaises(ValueError, utils.as_root_url, "  ")
    def testJoinUrl(self):
        self.assertEqual(utils.join_url(ROOT_URL, "/Maps//A/MapServer?x=1"),
                         "http://x.com/arcgis/rest/services/Maps/A/MapServer"
                         "?x=1")
        self.assertEqual(utils.join_url(ROOT_URL + "/", "/"),
                         "http://x.com/arcgis/rest/services/")
    def testQueryParameters(self):
        url = "A/MapServer?F=pjson&where=1%3D1"
        self.assertTrue(utils.has_query_parameter(url, 'f'))
        self.assertFalse(utils.has_query_parameter(url, 'token'))
        self.assertEqual(utils.parse_query_string(url),
                         {'F': 'pjson', 'where': '1=1'})
        self.assertEqual(utils.add_query_parameter("A", 'f', 'json'),
                         "A?f=json")
        self.assertEqual(utils.add_query_parameter("A?x=1", 'token', 'a b'),
                         "A?x=1&token=a+b")
    def testForceHttps(self):
        self.assertEqual(utils.force_https("http://x.com/a"),
                         "https://x.com/a")
        self.assertEqual(utils.force_https("https://x.com/a"),
                         "https://x.com/a")
    def testAbsoluteUrls(self):
        self.assertTrue(utils.is_absolute_url("https://x.com/a?f=json"))
        self.assertFalse(utils.is_absolute_url("x.com/a"))
        self.assertFalse(utils.is_absolute_url("ftp://x.com/a"))
        self.assertFalse(utils.is_absolute_url("not a url"))
    def testTimeConversion(self):
        then = datetime.datetime(2020, 1, 1, tzinfo=datetime.timezone.utc)
        self.assertEqual(utils.pythonvaluetotime(then), 1577836800000)
        self.assertEqual(utils.timetopythonvalue(1577836800000), then)
        self.assertEqual(utils.pythonvaluetotime(datetime.date(2020, 1, 1)),
                         1577836800000)
        self.assertRaises(ValueError, utils.timetopythonvalue, "soon")
    def testFormEncodingRoundTrip(self):
        parameters = {'where': "NAME = 'A&B'",
                      'geometry': '{"x": 1, "y": 2}',
                      'text': 'café'}
        decoded = dict((k, v[0]) for k, v in
                       parse_qs(utils.encode_form(parameters)).items())
        self.assertEqual(decoded, parameters)
    def testFormEncodingFailure(self):
        self.assertRaises(UnicodeEncodeError, utils.encode_form,
                          {'text': 'café'}, 'ascii')
    def testMaskToken(self):
        self.assertEqual(utils.mask_token("http://x.com/a?f=json&token=abc"),
                         "http://x.com/a?f=json&token=***")

class EndpointTests(unittest.TestCase):
    def testBuildAbsoluteUrl(self):
        endpoint = arcgateway.Endpoint("/A/MapServer")
        self.assertEqual(endpoint.build_absolute_url(ROOT_URL),
                         "http://x.com/arcgis/rest/services/A/MapServer")
        self.assertEqual(endpoint.build_absolute_url(ROOT_URL + "/"),
                         endpoint.build_absolute_url(ROOT_URL))
    def testEndpointsAreImmutable(self):
        endpoint = arcgateway.Endpoint("A/MapServer")
        with self.assertRaises(AttributeError):
            endpoint.relative_url = "B/MapServer"
        with self.assertRaises(AttributeError):
            endpoint._relative_url = "B/MapServer"
    def testEndpointEquality(self):
        self.assertEqual(arcgateway.Endpoint("A/MapServer"),
                         arcgateway.Endpoint("A/MapServer"))
        self.assertNotEqual(arcgateway.Endpoint("A/MapServer"),
                            arcgateway.Endpoint("B/MapServer"))
        self.assertEqual(len(set([arcgateway.Endpoint("A"),
                                  arcgateway.Endpoint("A")])), 1)
    def testAGOPortalUrlMatchesAnyScheme(self):
        self.assertTrue(arcgateway.is_ago_portal_url(
            "https://WWW.arcgis.com/sharing/rest"))
        self.assertFalse(arcgateway.is_ago_portal_url(ROOT_URL))

class GenerateTokenTests(unittest.TestCase):
    def testSelfHostedTokenUrlIsForcedToHttps(self):
        request = arcgateway.GenerateToken("u", "p")
        self.assertEqual(request.build_absolute_url("http://x.com/arcgis"),
                         "https://x.com/arcgis/tokens/generateToken")
    def testAGOTokenUrlHasNoTokensSegment(self):
        request = arcgateway.GenerateToken("u", "p")
        self.assertEqual(
            request.build_absolute_url("http://www.arcgis.com/sharing/rest"),
            "https://www.arcgis.com/sharing/rest/generateToken")
    def testDontForceHttps(self):
        request = arcgateway.GenerateToken("u", "p")
        request.dont_force_https = True
        self.assertEqual(request.build_absolute_url("http://x.com/arcgis/"),
                         "http://x.com/arcgis/tokens/generateToken")
    def testDefaults(self):
        request = arcgateway.GenerateToken("u", "p")
        self.assertEqual(request.expiration, 60)
        self.assertEqual(request.client, 'referer')
        self.assertIsNone(request.referer)
    def testRefererForcesRefererClient(self):
        request = arcgateway.GenerateToken("u", "p", client='requestip')
        request.referer = "http://app.example.com/"
        self.assertEqual(request.client, 'referer')
    def testClearingClientClearsReferer(self):
        request = arcgateway.GenerateToken("u", "p",
                                           referer="http://app.example.com/")
        request.client = None
        self.assertIsNone(request.referer)
        self.assertIsNone(request.client)

class TokenTests(unittest.TestCase):
    def testTokenWithoutExpiryNeverExpires(self):
        self.assertFalse(arcgateway.Token("abc", 0).is_expired)
    def testTokenWithoutValueIsNotExpired(self):
        self.assertFalse(arcgateway.Token("", future_expiry(hours=-1))
                         .is_expired)
        self.assertFalse(arcgateway.Token(None, future_expiry(hours=-1))
                         .is_expired)
    def testPastExpiryIsExpired(self):
        self.assertTrue(arcgateway.Token("abc", future_expiry(minutes=-1))
                        .is_expired)
    def testLargeExpiryDoesNotOverflow(self):
        self.assertFalse(arcgateway.Token("abc", 2**63 - 1).is_expired)
        self.assertFalse(arcgateway.Token("abc", 2**62).is_expired)
    def testFutureExpiryIsNotExpired(self):
        self.assertFalse(arcgateway.Token("abc", future_expiry(hours=1))
                         .is_expired)
    def testFromJson(self):
        token = arcgateway.Token.fromJson({'token': 'abc',
                                           'expires': 1577836800000,
                                           'ssl': True})
        self.assertEqual((token.value, token.expiry, token.always_use_ssl),
                         ('abc', 1577836800000, True))
        self.assertIsNone(token.error)

class SerializerTests(unittest.TestCase):
    def setUp(self):
        self.serializer = arcgateway.JsonSerializer()
    def testAsDictionary(self):
        request = arcgateway.GenerateToken("u", "p")
        self.assertEqual(self.serializer.as_dictionary(request),
                         {'username': 'u', 'password': 'p',
                          'client': 'referer', 'expiration': '60'})
    def testAsDictionaryConvertsValues(self):
        class Query(arcgateway.CommonParameters):
            __parameters__ = {'returnGeometry': 'return_geometry',
                              'outFields': 'out_fields',
                              'geometry': 'geometry',
                              'where': 'where'}
            return_geometry = False
            out_fields = ['NAME', 'POP']
            geometry = {'x': 1}
            where = None
        self.assertEqual(self.serializer.as_dictionary(Query()),
                         {'returnGeometry': 'false',
                          'outFields': 'NAME,POP',
                          'geometry': '{"x": 1}'})
    def testErrorPayload(self):
        response = self.serializer.as_portal_response(
            arcgateway.PortalResponse,
            '{"error":{"code":400,"message":"Invalid token","details":[]}}')
        self.assertEqual((response.error.code, response.error.message,
                          response.error.details),
                         (400, "Invalid token", []))
    def testNullErrorIsNotAnError(self):
        response = self.serializer.as_portal_response(
            arcgateway.PortalResponse, '{"error": null}')
        self.assertIsNone(response.error)
    def testStatusErrorEnvelope(self):
        response = self.serializer.as_portal_response(
            arcgateway.PortalResponse,
            b'{"status": "error", "messages": ["No", "access"]}')
        self.assertEqual(response.error.message, "No access")
    def testEmptyBody(self):
        response = self.serializer.as_portal_response(
            arcgateway.PortalResponse, "  ")
        self.assertIsNone(response.error)
    def testBareErrorMessage(self):
        response = self.serializer.as_portal_response(
            arcgateway.PortalResponse, '{"error": "Service not started"}')
        self.assertEqual((response.error.code, response.error.message),
                         (0, "Service not started"))
    def testMalformedFolderDescription(self):
        for body in ('{"services": [{"type": "MapServer"}]}',
                     '{"services": ["A"]}',
                     '{"folders": [null]}',
                     '{"currentVersion": "ten"}'):
            self.assertRaises(arcgateway.ResponseFormatError,
                              self.serializer.as_portal_response,
                              arcgateway.SiteFolderDescription, body)
    def testNotJson(self):
        self.assertRaises(arcgateway.ResponseFormatError,
                          self.serializer.as_portal_response,
                          arcgateway.PortalResponse, "<html></html>")
        self.assertRaises(arcgateway.ResponseFormatError,
                          self.serializer.as_portal_response,
                          arcgateway.PortalResponse, "[1, 2]")

class GatewayTests(unittest.IsolatedAsyncioTestCase):
    def make_gateway(self, server, token_provider=None, **options):
        gateway = arcgateway.PortalGateway(options.pop('root_url', ROOT_URL),
                                           arcgateway.JsonSerializer(),
                                           token_provider,
                                           transport=server.transport,
                                           **options)
        self.addAsyncCleanup(gateway.close)
        return gateway
    def testSerializerIsRequired(self):
        self.assertRaises(arcgateway.ConfigurationError,
                          arcgateway.PortalGateway, ROOT_URL, None)
    async def testCloseReleasesTransport(self):
        gateway = self.make_gateway(MockServer())
        async with gateway:
            self.assertFalse(gateway.closed)
        self.assertTrue(gateway.closed)
    async def testGetAppendsFormat(self):
        server = MockServer({'/arcgis/rest/services/A/MapServer':
                                {'currentVersion': 10.1}})
        gateway = self.make_gateway(server)
        response = await gateway.ping(arcgateway.Endpoint("A/MapServer"))
        self.assertIsNone(response.error)
        request, = server.requests
        self.assertEqual(request.method, 'GET')
        self.assertEqual(request.url.params.get_list('f'), ['json'])
        self.assertIsNone(request.headers.get('authorization'))
    async def testFormatIsNotDuplicated(self):
        server = MockServer({'/arcgis/rest/services/A/MapServer': {}})
        gateway = self.make_gateway(server)
        await gateway.ping(arcgateway.Endpoint("A/MapServer?f=pjson"))
        self.assertEqual(server.requests[0].url.params.get_list('f'),
                         ['pjson'])
    async def testErrorPayloadIsOperationError(self):
        server = MockServer({'/arcgis/rest/services/A/MapServer':
                                {'error': {'code': 400,
                                           'message': 'Invalid token',
                                           'details': ['Expired']}}})
        gateway = self.make_gateway(server)
        with self.assertRaises(arcgateway.OperationError) as raised:
            await gateway.ping(arcgateway.Endpoint("A/MapServer"))
        self.assertEqual((raised.exception.code, raised.exception.message,
                          raised.exception.details),
                         (400, 'Invalid token', ['Expired']))
        self.assertIn("Expired", str(raised.exception))
    async def testHttpErrorStatusIsTransportError(self):
        server = MockServer({'/arcgis/rest/services/A/MapServer': 500})
        gateway = self.make_gateway(server)
        with self.assertRaises(arcgateway.TransportError) as raised:
            await gateway.ping(arcgateway.Endpoint("A/MapServer"))
        self.assertEqual(raised.exception.status_code, 500)
    async def testConnectionFailureIsTransportError(self):
        server = MockServer(default=httpx.ConnectError("refused"))
        gateway = self.make_gateway(server)
        with self.assertRaises(arcgateway.TransportError) as raised:
            await gateway.ping(arcgateway.Endpoint("A/MapServer"))
        self.assertIsNone(raised.exception.status_code)
    async def testHtmlResponseIsResponseFormatError(self):
        server = MockServer({'/arcgis/rest/services/A/MapServer':
                                httpx.Response(200, text="<html></html>")})
        gateway = self.make_gateway(server)
        with self.assertRaises(arcgateway.ResponseFormatError):
            await gateway.ping(arcgateway.Endpoint("A/MapServer"))
    async def testInvalidUrlIsNotSent(self):
        server = MockServer()
        gateway = self.make_gateway(server, root_url="x.com/arcgis")
        with self.assertRaises(arcgateway.InvalidRequestError):
            await gateway.ping(arcgateway.Endpoint("A/MapServer"))
        with self.assertRaises(arcgateway.InvalidRequestError):
            await gateway.post(arcgateway.Endpoint("A/MapServer"), {})
        self.assertEqual(server.requests, [])
    async def testLongGetIsSentAsPost(self):
        server = MockServer({'/arcgis/rest/services/A/MapServer/0/query':
                                {'features': []}})
        gateway = self.make_gateway(server)
        where = "OBJECTID IN (%s)" % ",".join(str(i) for i in range(600))
        endpoint = arcgateway.Endpoint("A/MapServer/0/query?" +
                                       utils.encode_form({'where': where}))
        self.assertGreater(len(endpoint.build_absolute_url(ROOT_URL)),
                           arcgateway.MAXIMUM_URL_LENGTH)
        await gateway.get(endpoint)
        request, = server.requests
        self.assertEqual(request.method, 'POST')
        self.assertEqual(request.url.query, b'')
        self.assertEqual(form_body(request), {'where': where, 'f': 'json'})
    async def testShortGetStaysGet(self):
        server = MockServer({'/arcgis/rest/services/A/MapServer/0/query': {}})
        gateway = self.make_gateway(server)
        await gateway.get(arcgateway.Endpoint("A/MapServer/0/query?where=1"))
        self.assertEqual(server.requests[0].method, 'GET')
    async def testUrlLengthLimitIsConfigurable(self):
        server = MockServer({'/arcgis/rest/services/A/MapServer/0/query': {}})
        gateway = self.make_gateway(server, max_url_length=50)
        await gateway.get(arcgateway.Endpoint("A/MapServer/0/query?where=1"))
        request, = server.requests
        self.assertEqual(request.method, 'POST')
        self.assertEqual(form_body(request), {'where': '1', 'f': 'json'})
    async def testPostIsUrlEncoded(self):
        server = MockServer({'/arcgis/rest/services/A/GPServer/execute': {}})
        gateway = self.make_gateway(server)
        parameters = {'geometry': '{"x": 1}'}
        await gateway.post(arcgateway.Endpoint("A/GPServer/execute?x=1"),
                           parameters)
        request, = server.requests
        self.assertEqual(request.url.query, b'')
        self.assertEqual(request.headers['content-type'],
                         'application/x-www-form-urlencoded')
        self.assertEqual(form_body(request), {'geometry': '{"x": 1}',
                                              'f': 'json'})
        self.assertEqual(parameters, {'geometry': '{"x": 1}'})
    async def testPostFallsBackToMultipart(self):
        server = MockServer({'/arcgis/rest/services/A/GPServer/execute': {}})
        gateway = self.make_gateway(server, form_encoding='ascii')
        await gateway.post(arcgateway.Endpoint("A/GPServer/execute"),
                           {'text': 'café', 'count': 3})
        request, = server.requests
        self.assertTrue(request.headers['content-type']
                            .startswith('multipart/form-data'))
        body = request.content
        for name in (b'text', b'count', b'f'):
            self.assertIn(b'name="' + name + b'"', body)
        self.assertIn('café'.encode('utf-8'), body)
        self.assertIn(b'json', body)
    async def testPostErrorPayloadIsOperationError(self):
        server = MockServer({'/arcgis/rest/services/A/GPServer/execute':
                                {'error': {'code': 500,
                                           'message': 'Failed'}}})
        gateway = self.make_gateway(server)
        with self.assertRaises(arcgateway.OperationError) as raised:
            await gateway.post(arcgateway.Endpoint("A/GPServer/execute"))
        self.assertEqual(raised.exception.details, [])
    async def testOverlappingCallsAreQueued(self):
        in_flight = []
        seen = []
        async def answer(request):
            in_flight.append(request)
            seen.append(len(in_flight))
            await asyncio.sleep(0.01)
            in_flight.remove(request)
            return httpx.Response(200, json={'currentVersion': 10.1})
        gateway = arcgateway.PortalGateway(ROOT_URL,
                                           arcgateway.JsonSerializer(),
                                           transport=httpx.MockTransport(
                                               answer))
        self.addAsyncCleanup(gateway.close)
        responses = await asyncio.gather(*[
            gateway.ping(arcgateway.Endpoint("A/MapServer"))
            for _ in range(5)])
        self.assertEqual(len(responses), 5)
        self.assertTrue(all(r.error is None for r in responses))
        self.assertEqual(seen, [1, 1, 1, 1, 1])
    async def testPostFormatIsNotDuplicated(self):
        server = MockServer({'/arcgis/rest/services/A/GPServer/execute': {}})
        gateway = self.make_gateway(server)
        await gateway.post(arcgateway.Endpoint("A/GPServer/execute"),
                           {'F': 'pjson'})
        self.assertEqual(form_body(server.requests[0]), {'F': 'pjson'})
    async def testMalformedResponseIsResponseFormatError(self):
        server = MockServer({'/arcgis/rest/services/':
                                {'services': [{'type': 'MapServer'}]}})
        gateway = self.make_gateway(server)
        with self.assertRaises(arcgateway.ResponseFormatError):
            await gateway.describe_site()
    async def testGetOperation(self):
        server = MockServer({'/arcgis/rest/services/tokens/generateToken':
                                {'token': 'abc'}})
        gateway = self.make_gateway(server)
        token = await gateway.get_operation(
            arcgateway.GenerateToken("u", "p"), arcgateway.Token)
        self.assertEqual(token.value, 'abc')
        params = server.requests[0].url.params
        self.assertEqual((params['username'], params['expiration'],
                          params['f']), ('u', '60', 'json'))

class GatewayOutsideLoopTests(unittest.TestCase):
    def testGatewayBuiltBeforeTheLoopRuns(self):
        server = MockServer({'/arcgis/rest/services/A/MapServer': {}})
        gateway = arcgateway.PortalGateway(ROOT_URL,
                                           arcgateway.JsonSerializer(),
                                           transport=server.transport)
        async def run():
            try:
                await asyncio.gather(
                    gateway.ping(arcgateway.Endpoint("A/MapServer")),
                    gateway.ping(arcgateway.Endpoint("A/MapServer")))
            finally:
                await gateway.close()
        asyncio.run(run())
        self.assertEqual(len(server.requests), 2)

class GatewayTokenTests(unittest.IsolatedAsyncioTestCase):
    def make_gateway(self, server, token):
        provider = StaticTokenProvider(token)
        gateway = arcgateway.PortalGateway(ROOT_URL,
                                           arcgateway.JsonSerializer(),
                                           provider,
                                           transport=server.transport)
        self.addAsyncCleanup(gateway.close)
        return gateway
    def server(self):
        return MockServer({'/arcgis/rest/services/A/MapServer': {}})
    async def testTokenIsAttached(self):
        server = self.server()
        gateway = self.make_gateway(server, arcgateway.Token("abc", 0))
        await gateway.ping(arcgateway.Endpoint("A/MapServer"))
        request = server.requests[0]
        self.assertEqual(request.url.params.get_list('token'), ['abc'])
        self.assertEqual(request.headers['authorization'], 'Bearer abc')
        self.assertEqual(request.url.scheme, 'http')
    async def testTokenIsNotDuplicated(self):
        server = self.server()
        gateway = self.make_gateway(server, arcgateway.Token("abc", 0))
        await gateway.ping(arcgateway.Endpoint("A/MapServer?token=mine"))
        request = server.requests[0]
        self.assertEqual(request.url.params.get_list('token'), ['mine'])
        self.assertIsNone(request.headers.get('authorization'))
    async def testEmptyTokenIsNotAttached(self):
        server = self.server()
        gateway = self.make_gateway(server, arcgateway.Token("", 0))
        await gateway.ping(arcgateway.Endpoint("A/MapServer"))
        self.assertNotIn('token', server.requests[0].url.params)
    async def testSslTokenForcesHttps(self):
        server = self.server()
        gateway = self.make_gateway(server, arcgateway.Token(
            "abc", 0, always_use_ssl=True))
        await gateway.ping(arcgateway.Endpoint("A/MapServer"))
        await gateway.post(arcgateway.Endpoint("A/MapServer"))
        self.assertEqual([r.url.scheme for r in server.requests],
                         ['https', 'https'])
    async def testRefererIsSent(self):
        server = self.server()
        gateway = self.make_gateway(server, arcgateway.Token(
            "abc", 0, referer="http://app.example.com/"))
        await gateway.ping(arcgateway.Endpoint("A/MapServer"))
        self.assertEqual(server.requests[0].headers['referer'],
                         "http://app.example.com/")
    async def testBadRefererFailsBeforeSending(self):
        server = self.server()
        gateway = self.make_gateway(server, arcgateway.Token(
            "abc", 0, referer="not a url"))
        with self.assertRaises(arcgateway.ConfigurationError):
            await gateway.ping(arcgateway.Endpoint("A/MapServer"))
        with self.assertRaises(arcgateway.ConfigurationError):
            await gateway.post(arcgateway.Endpoint("A/MapServer"))
        self.assertEqual(server.requests, [])
    async def testPostTokenGoesInBody(self):
        server = self.server()
        gateway = self.make_gateway(server, arcgateway.Token("abc", 0))
        await gateway.post(arcgateway.Endpoint("A/MapServer"), {'a': '1'})
        request = server.requests[0]
        self.assertNotIn('token', request.url.params)
        self.assertEqual(form_body(request), {'a': '1', 'f': 'json',
                                              'token': 'abc'})
        self.assertEqual(request.headers['authorization'], 'Bearer abc')
    async def testLongGetWithTokenIsSentAsPost(self):
        server = MockServer({'/arcgis/rest/services/A/MapServer/0/query':
                                {'features': []}})
        gateway = self.make_gateway(server, arcgateway.Token("abc", 0))
        where = "NAME = '%s'" % ('x' * 2100)
        await gateway.get(arcgateway.Endpoint(
            "A/MapServer/0/query?" + utils.encode_form({'where': where})))
        request, = server.requests
        self.assertEqual(request.method, 'POST')
        self.assertEqual(request.url.query, b'')
        self.assertEqual(form_body(request), {'where': where, 'f': 'json',
                                              'token': 'abc'})
        self.assertEqual(request.headers['authorization'], 'Bearer abc')
    async def testPostTokenIsNotDuplicated(self):
        server = self.server()
        gateway = self.make_gateway(server, arcgateway.Token("abc", 0))
        await gateway.post(arcgateway.Endpoint("A/MapServer"),
                           {'token': 'mine', 'f': 'pjson'})
        self.assertEqual(form_body(server.requests[0]),
                         {'token': 'mine', 'f': 'pjson'})

class TokenProviderTests(unittest.IsolatedAsyncioTestCase):
    TOKEN_PATH = '/arcgis/tokens/generateToken'

    def make_provider(self, server, root_url="http://x.com/arcgis", **kw):
        provider = arcgateway.TokenProvider(root_url, "u", "p",
                                            arcgateway.JsonSerializer(),
                                            transport=server.transport, **kw)
        self.addAsyncCleanup(provider.close)
        return provider
    async def testGeneratesTokenOverHttpsPost(self):
        server = MockServer({self.TOKEN_PATH:
                                {'token': 'abc',
                                 'expires': future_expiry(hours=1),
                                 'ssl': True}})
        provider = self.make_provider(server,
                                      referer="http://app.example.com/")
        token = await provider.current_token()
        self.assertEqual((token.value, token.always_use_ssl, token.referer),
                         ('abc', True, "http://app.example.com/"))
        request, = server.requests
        self.assertEqual(request.method, 'POST')
        self.assertEqual(str(request.url),
                         "https://x.com/arcgis/tokens/generateToken")
        self.assertEqual(form_body(request),
                         {'username': 'u', 'password': 'p',
                          'client': 'referer',
                          'referer': "http://app.example.com/",
                          'expiration': '60', 'f': 'json'})
    async def testTokenIsCached(self):
        server = MockServer({self.TOKEN_PATH:
                                {'token': 'abc',
                                 'expires': future_expiry(hours=1)}})
        provider = self.make_provider(server)
        first = await provider.current_token()
        second = await provider.current_token()
        self.assertIs(first, second)
        self.assertEqual(len(server.requests), 1)
    async def testExpiredTokenIsReplaced(self):
        issued = []
        def generate(request):
            issued.append('token%i' % len(issued))
            return {'token': issued[-1], 'expires': future_expiry(seconds=-1)}
        server = MockServer({self.TOKEN_PATH: generate})
        provider = self.make_provider(server)
        first = await provider.current_token()
        second = await provider.current_token()
        self.assertEqual((first.value, second.value), ('token0', 'token1'))
    async def testConcurrentCallersShareOneExchange(self):
        server = MockServer({self.TOKEN_PATH:
                                {'token': 'abc',
                                 'expires': future_expiry(hours=1)}})
        provider = self.make_provider(server)
        tokens = await asyncio.gather(*[provider.current_token()
                                        for _ in range(5)])
        self.assertEqual(set(token.value for token in tokens), set(['abc']))
        self.assertEqual(len(server.requests), 1)
    async def testErrorPayloadIsAuthenticationError(self):
        server = MockServer({self.TOKEN_PATH:
                                {'error': {'code': 400,
                                           'message': 'Unable to generate '
                                                      'token.',
                                           'details': ['Invalid username or '
                                                       'password.']}}})
        provider = self.make_provider(server)
        with self.assertRaises(arcgateway.AuthenticationError) as raised:
            await provider.current_token()
        self.assertIsInstance(raised.exception.__cause__,
                              arcgateway.OperationError)
        self.assertIn('Invalid username or password.', str(raised.exception))
    async def testTransportFailureIsAuthenticationError(self):
        provider = self.make_provider(MockServer())
        with self.assertRaises(arcgateway.AuthenticationError) as raised:
            await provider.current_token()
        self.assertIsInstance(raised.exception.__cause__,
                              arcgateway.TransportError)
    async def testMissingTokenIsAuthenticationError(self):
        provider = self.make_provider(MockServer({self.TOKEN_PATH: {}}))
        with self.assertRaises(arcgateway.AuthenticationError):
            await provider.current_token()
    async def testTokenThatNeverExpiresIsCached(self):
        server = MockServer({self.TOKEN_PATH:
                                {'token': 'abc',
                                 'expires': 9223372036854775807}})
        provider = self.make_provider(server)
        await provider.current_token()
        token = await provider.current_token()
        self.assertEqual(token.value, 'abc')
        self.assertEqual(len(server.requests), 1)
    def testSerializerIsRequired(self):
        self.assertRaises(TypeError, arcgateway.TokenProvider,
                          "http://x.com/arcgis", "u", "p")
        self.assertRaises(TypeError, arcgateway.ArcGISOnlineTokenProvider,
                          "u", "p")
    async def testArcGISOnlineTokenUrl(self):
        server = MockServer({'/sharing/rest/generateToken':
                                {'token': 'abc', 'expires': 0}})
        provider = arcgateway.ArcGISOnlineTokenProvider(
            "u", "p", arcgateway.JsonSerializer(), transport=server.transport)
        self.addAsyncCleanup(provider.close)
        await provider.current_token()
        request, = server.requests
        self.assertEqual(request.method, 'POST')
        self.assertEqual(str(request.url),
                         "https://www.arcgis.com/sharing/rest/generateToken")

class SecureGatewayTests(unittest.IsolatedAsyncioTestCase):
    async def testTokenIsGeneratedThenAttached(self):
        server = MockServer({
            '/arcgis/rest/services/tokens/generateToken':
                {'token': 'abc', 'expires': future_expiry(hours=1)},
            '/arcgis/rest/services/A/MapServer': {}})
        gateway = arcgateway.SecureArcGISServerGateway(
            ROOT_URL, "u", "p", arcgateway.JsonSerializer(),
            transport=server.transport)
        async with gateway:
            await gateway.ping(arcgateway.Endpoint("A/MapServer"))
            await gateway.ping(arcgateway.Endpoint("A/MapServer"))
        self.assertEqual([r.method for r in server.requests],
                         ['POST', 'GET', 'GET'])
        self.assertEqual(server.requests[2].url.params['token'], 'abc')
        self.assertTrue(gateway.closed)
    async def testArcGISOnlineGatewayRoot(self):
        server = MockServer({'/sharing/rest/portals/self': {}})
        async with arcgateway.ArcGISOnlineGateway(
                arcgateway.JsonSerializer(),
                transport=server.transport) as gateway:
            await gateway.ping(arcgateway.Endpoint("portals/self"))
        self.assertEqual(str(server.requests[0].url),
                         "http://www.arcgis.com/sharing/rest/portals/self"
                         "?f=json")

class CommandLineTests(unittest.IsolatedAsyncioTestCase):
    def args(self, site):
        return argparse.Namespace(site=site, username="u", password="p",
                                  token_url="http://x.com/arcgis",
                                  referer=None)
    async def testProviderIsClosedWhenSiteIsRejected(self):
        created = []
        class RecordingTokenProvider(arcgateway.TokenProvider):
            def __init__(self, *args, **kw):
                super(RecordingTokenProvider, self).__init__(*args, **kw)
                created.append(self)
        with mock.patch.object(cmdline, 'TokenProvider',
                               RecordingTokenProvider):
            with self.assertRaises(arcgateway.ConfigurationError):
                await cmdline.make_gateway(self.args("  "))
        provider, = created
        self.assertTrue(provider._gateway.closed)
    async def testGatewayKeepsProvider(self):
        gateway = await cmdline.make_gateway(self.args(ROOT_URL))
        self.addAsyncCleanup(cmdline.close_gateway, gateway)
        self.assertIsInstance(gateway.token_provider, arcgateway.TokenProvider)
    def testNarratorExitCodes(self):
        stream = io.StringIO()
        action = cmdline.ActionNarrator(stream)
        with self.assertRaises(SystemExit) as raised:
            with action("pinging A/MapServer"):
                raise arcgateway.ConfigurationError("no site")
        self.assertEqual(raised.exception.code, 2)
        with self.assertRaises(SystemExit) as raised:
            with action("describing site") as name:
                self.assertEqual(name, "describing site")
                raise ValueError("boom")
        self.assertEqual(raised.exception.code, 1)
        self.assertEqual(stream.getvalue().splitlines(),
                         ["ConfigurationError pinging A/MapServer: no site",
                          "Error describing site: boom"])
        self.assertEqual(action.pending, [])
    def testNarratorIsQuietOnSuccess(self):
        stream = io.StringIO()
        action = cmdline.ActionNarrator(stream)
        with action("pinging /"):
            pass
        self.assertEqual(stream.getvalue(), "")



if __name__ == "__main__":
    unittest.main()
