# coding: utf-8
"""Console commands: describe the services of a site, or ping an endpoint."""

import argparse
import asyncio
import json
import logging
import os
import sys

from . import (Endpoint, GatewayError, JsonSerializer, PortalGateway,
               TokenProvider)

__all__ = ['describesite', 'ping']

logger = logging.getLogger(__name__)

PROG_NAME = os.path.basename(sys.argv[0])

shared_args = argparse.ArgumentParser(prog=PROG_NAME, add_help=False)
shared_args.add_argument('-s', '--site',
                         required=True,
                         help='Description: REST root of the Server, '
                              'e.g. http://host:6080/arcgis/rest/services')
shared_args.add_argument('-u', '--username',
                         required=False,
                         default=None,
                         help='Description: Username for Server')
shared_args.add_argument('-p', '--password',
                         required=False,
                         default=None,
                         help='Description: Password for Server')
shared_args.add_argument('-t', '--token-url',
                         required=False,
                         default=None,
                         help='Description: Root url of the token service, '
                              'if it is not the same as the site '
                              'e.g. https://host:6443/arcgis')
shared_args.add_argument('-r', '--referer',
                         required=False,
                         default=None,
                         help='Description: Referer to bind the token to')
shared_args.add_argument('-v', '--verbose',
                         action='store_true',
                         default=False,
                         help='Description: Log requests and responses')

class ActionNarrator(object):
    """Names the step a command is on, so a failure can say what it was
       doing. Gateway errors exit with status 2, anything else with 1."""
    def __init__(self, stream=None):
        self.stream = stream or sys.stderr
        self.pending = []
    def __call__(self, action):
        self.pending.append(action)
        return self
    def __enter__(self):
        return self.pending[-1]
    def __exit__(self, t, ex, tb):
        action = self.pending.pop()
        if t is None or t is SystemExit:
            return False
        logger.debug("Failed %s", action, exc_info=(t, ex, tb))
        kind = t.__name__ if issubclass(t, GatewayError) else "Error"
        print("{0} {1}: {2}".format(kind, action, ex), file=self.stream)
        sys.exit(2 if issubclass(t, GatewayError) else 1)

def provide_narration(fn):
    def command():
        return fn(ActionNarrator())
    return command

def configure_logging(args):
    logging.basicConfig(level=logging.DEBUG if args.verbose
                                            else logging.WARNING,
                        format='%(asctime)s %(name)s %(levelname)s '
                               '%(message)s')

async def make_gateway(args):
    serializer = JsonSerializer()
    token_provider = None
    if args.username is not None and args.password is not None:
        token_provider = TokenProvider(args.token_url or args.site,
                                       args.username,
                                       args.password,
                                       serializer,
                                       referer=args.referer)
    try:
        return PortalGateway(args.site, serializer, token_provider)
    except Exception:
        if token_provider is not None:
            await token_provider.close()
        raise

async def close_gateway(gateway):
    await gateway.close()
    if gateway.token_provider is not None:
        await gateway.token_provider.close()

describesiteargs = argparse.ArgumentParser(prog=PROG_NAME,
                                           description='Lists every service '
                                                       'on a site',
                                           parents=[shared_args])
describesiteargs.add_argument('-j', '--json',
                              action='store_true',
                              default=False,
                              help='Description: Print the result as json')
describesiteargs._optionals.title = "arguments"

@provide_narration
def describesite(action):
    args = describesiteargs.parse_args()
    configure_logging(args)
    async def run():
        with action("connecting to site {0}".format(args.site)):
            gateway = await make_gateway(args)
        try:
            with action("describing site {0}".format(gateway.root_url)):
                return await gateway.describe_site()
        finally:
            await close_gateway(gateway)
    site = asyncio.run(run())
    resources = [resource.relative_url for resource in site.resources]
    if args.json:
        print(json.dumps({'version': site.version, 'resources': resources},
                         indent=2))
    else:
        print("Version {0}".format(site.version))
        for resource in resources:
            print(resource)

pingargs = argparse.ArgumentParser(prog=PROG_NAME,
                                   description='Checks an endpoint answers',
                                   parents=[shared_args])
pingargs.add_argument('-e', '--endpoint',
                      nargs='?',
                      default='/',
                      help='Endpoint relative to the site to ping')
pingargs._optionals.title = "arguments"

@provide_narration
def ping(action):
    args = pingargs.parse_args()
    configure_logging(args)
    async def run():
        with action("connecting to site {0}".format(args.site)):
            gateway = await make_gateway(args)
        try:
            with action("pinging {0}".format(args.endpoint)):
                await gateway.ping(Endpoint(args.endpoint))
        finally:
            await close_gateway(gateway)
    asyncio.run(run())
    print("OK {0}".format(args.endpoint))
