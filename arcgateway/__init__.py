# coding: utf-8
"""Arcgateway is an asyncio client for the ArcGIS Server and Portal REST APIs.
   A gateway builds request urls, attaches a token when the site is secured,
   sends the request and hands back typed results, raising when the server
   reports an error.

   Getting Started with Arcgateway
   ===============================

   A simple example of connecting to a server:

      >>> import asyncio, arcgateway
      >>> async def main():
      ...     async with arcgateway.PortalGateway(
      ...             "http://sampleserver1.arcgisonline.com/arcgis/rest/services",
      ...             arcgateway.JsonSerializer()) as gateway:
      ...         return await gateway.describe_site()
      >>> site = asyncio.run(main())
      >>> site.version
      10.2
      >>> site.resources[0]
      <Endpoint('Geometry/GeometryServer')>

   Pinging a service:

      >>> response = await gateway.ping(arcgateway.Endpoint("Geometry/GeometryServer"))

   Connecting to a secured site, the token is generated on the first request
   and regenerated whenever it expires:

      >>> gateway = arcgateway.SecureArcGISServerGateway(
      ...     "https://host/arcgis/rest/services", "user", "pass",
      ...     arcgateway.JsonSerializer())

   Errors reported by the server come back as OperationError with the
   server's code, message and details:

      >>> try:
      ...     await gateway.ping(arcgateway.Endpoint("Secure/MapServer"))
      ... except arcgateway.OperationError as e:
      ...     print(e.code, e.message)
      499 Token Required

   A gateway sends one request at a time; calls that overlap on one gateway
   wait their turn. Use a gateway per concurrent caller when that matters.
   """

from arcgateway.endpoint import *
from arcgateway.errors import *
from arcgateway.operation import *
from arcgateway.serializers import *
from arcgateway.server import *
from arcgateway.tokens import *
