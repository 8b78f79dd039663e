#!/usr/bin/env python

import unittest

import httpx

import arcgateway
from tests import MockServer, ROOT_URL

SERVICES = '/arcgis/rest/services/'

ROOT_FOLDER = {'currentVersion': 10.1,
               'folders': ['Maps'],
               'services': [{'name': 'A', 'type': 'MapServer'}]}
MAPS_FOLDER = {'currentVersion': 10.2,
               'folders': [],
               'services': [{'name': 'B', 'type': 'FeatureServer'}]}

class DiscoveryTests(unittest.IsolatedAsyncioTestCase):
    def make_gateway(self, server, **options):
        gateway = arcgateway.PortalGateway(ROOT_URL,
                                           arcgateway.JsonSerializer(),
                                           transport=server.transport,
                                           **options)
        self.addAsyncCleanup(gateway.close)
        return gateway
    def resources(self, site):
        return [resource.relative_url for resource in site.resources]
    async def testDescribeSite(self):
        server = MockServer({SERVICES: ROOT_FOLDER,
                             SERVICES + 'Maps': MAPS_FOLDER})
        site = await self.make_gateway(server).describe_site()
        self.assertEqual(site.version, 10.2)
        self.assertEqual(self.resources(site),
                         ['A/MapServer', 'Maps/B/FeatureServer'])
        self.assertTrue(all(r.method == 'GET' and r.url.params['f'] == 'json'
                            for r in server.requests))
    async def testServiceNamesAlreadyCarryingTheirFolder(self):
        maps = dict(MAPS_FOLDER, services=[{'name': 'Maps/B',
                                            'type': 'FeatureServer'}])
        server = MockServer({SERVICES: ROOT_FOLDER, SERVICES + 'Maps': maps})
        site = await self.make_gateway(server).describe_site()
        self.assertEqual(self.resources(site),
                         ['A/MapServer', 'Maps/B/FeatureServer'])
    async def testInaccessibleFolderIsSkipped(self):
        server = MockServer({SERVICES: ROOT_FOLDER, SERVICES + 'Maps': 403})
        site = await self.make_gateway(server).describe_site()
        self.assertEqual(site.version, 10.1)
        self.assertEqual(self.resources(site), ['A/MapServer'])
    async def testInaccessibleRootGivesEmptySite(self):
        server = MockServer({SERVICES: 403})
        site = await self.make_gateway(server).describe_site()
        self.assertEqual(site.version, 0.0)
        self.assertEqual(site.resources, [])
    async def testUnreachableFolderIsSkipped(self):
        server = MockServer({SERVICES: ROOT_FOLDER,
                             SERVICES + 'Maps': httpx.ReadTimeout("slow")})
        site = await self.make_gateway(server).describe_site()
        self.assertEqual(self.resources(site), ['A/MapServer'])
    async def testErrorPayloadIsNotSkipped(self):
        server = MockServer({SERVICES: ROOT_FOLDER,
                             SERVICES + 'Maps': {'error':
                                                    {'code': 499,
                                                     'message':
                                                        'Token Required'}}})
        with self.assertRaises(arcgateway.OperationError) as raised:
            await self.make_gateway(server).describe_site()
        self.assertEqual(raised.exception.code, 499)
    async def testFoldersAreVisitedBreadthFirst(self):
        server = MockServer({
            SERVICES: dict(ROOT_FOLDER, folders=['Maps', 'Utilities']),
            SERVICES + 'Maps': dict(MAPS_FOLDER, folders=['Old']),
            SERVICES + 'Utilities': {'currentVersion': 10.1},
            SERVICES + 'Maps/Old': {'currentVersion': 9.3,
                                    'services': [{'name': 'C',
                                                  'type': 'MapServer'}]}})
        descriptions = await self.make_gateway(server).describe_endpoint(
            arcgateway.Endpoint('/'))
        self.assertEqual([d.path for d in descriptions],
                         ['/', 'Maps', 'Utilities', 'Maps/Old'])
        site = await self.make_gateway(server).describe_site()
        self.assertEqual(site.version, 10.2)
        self.assertEqual(self.resources(site),
                         ['A/MapServer', 'Maps/B/FeatureServer',
                          'Maps/Old/C/MapServer'])
    async def testSelfReferencingFoldersStopAtMaximumDepth(self):
        server = MockServer(default={'currentVersion': 10.1,
                                     'folders': ['Loop'],
                                     'services': []})
        gateway = self.make_gateway(server, max_depth=3)
        descriptions = await gateway.describe_endpoint(
            arcgateway.Endpoint('/'))
        self.assertEqual([d.path for d in descriptions],
                         ['/', 'Loop', 'Loop/Loop', 'Loop/Loop/Loop'])
        self.assertEqual(len(server.requests), 4)
    async def testPing(self):
        server = MockServer({SERVICES + 'A/MapServer': {}})
        response = await self.make_gateway(server).ping(
            arcgateway.Endpoint('A/MapServer'))
        self.assertIsInstance(response, arcgateway.PortalResponse)
        self.assertIsNone(response.error)


if __name__ == "__main__":
    unittest.main()
