# coding: utf-8
"""Request parameter and response types shared by every operation.

   ArcGIS Server answers nearly everything with HTTP 200, including failed
   operations; a failure is signalled by an ``error`` member in the body
   instead. Every response type therefore derives from PortalResponse, which
   carries that optional error slot."""

from . import utils

__all__ = ['CommonParameters', 'ArcGISError', 'PortalResponse', 'Token',
           'ServiceDescription', 'SiteFolderDescription', 'SiteDescription']

class CommonParameters(object):
    """Base for operation parameter objects. __parameters__ maps the name sent
       to the server to the attribute holding the value; a serializer uses it
       to flatten the object into a query string or form body."""
    __parameters__ = {}

    def parameter_values(self):
        return [(name, getattr(self, attr, None))
                for name, attr in self.__parameters__.items()]

class ArcGISError(object):
    """The error member of a response"""

    def __init__(self, code=0, message=None, details=None):
        self.code = code
        self.message = message
        self.details = list(details or [])
    @classmethod
    def fromJson(cls, struct):
        # Some servers send the error as a bare message
        if not isinstance(struct, dict):
            return cls(0, str(struct))
        return cls(struct.get('code') or 0,
                   struct.get('message'),
                   [str(d) for d in struct.get('details') or []])
    def __str__(self):
        return "Code %s: %s. %s" % (self.code, self.message,
                                    " ".join(self.details))
    def __repr__(self):
        return "<%s(%r, %r)>" % (self.__class__.__name__,
                                 self.code, self.message)

class PortalResponse(object):
    """Common response object from an ArcGIS Server REST call"""
    error = None

    def __init__(self, error=None):
        self.error = error
        self._json_struct = {}
    @classmethod
    def fromJson(cls, struct):
        instance = cls()
        instance._json_struct = struct
        if struct.get('error') is not None:
            instance.error = ArcGISError.fromJson(struct['error'])
        # Admin-style envelope
        elif struct.get('status') == 'error':
            instance.error = ArcGISError(0, ' '.join(
                struct.get('messages', [struct.get('message',
                                                   'Unspecified Error')])))
        instance._load(struct)
        return instance
    def _load(self, struct):
        """Hook for subclasses to pull their own members out of the json"""

class Token(PortalResponse):
    """A token that can be used to access secure resources.
       expiry is in milliseconds since Jan 1st, 1970."""

    def __init__(self, value=None, expiry=0, referer=None,
                 always_use_ssl=False, error=None):
        super(Token, self).__init__(error)
        self.value = value
        self.expiry = expiry
        self.referer = referer
        self.always_use_ssl = always_use_ssl
    def _load(self, struct):
        self.value = struct.get('token')
        self.expiry = int(struct.get('expires') or 0)
        self.always_use_ssl = bool(struct.get('ssl', False))
    @property
    def is_expired(self):
        """If there is a token value check if it has expired. A token without
           a value or expiry has not been issued yet, so it is not expired."""
        if not self.value or not self.value.strip() or self.expiry <= 0:
            return False
        return self.expiry <= utils.pythonvaluetotime(utils.utcnow())
    def __repr__(self):
        return "<%s(expires=%r, ssl=%r)>" % (self.__class__.__name__,
                                             self.expiry,
                                             self.always_use_ssl)

class ServiceDescription(object):
    def __init__(self, name, type):
        self.name = name
        self.type = type
    def __repr__(self):
        return "<%s(%r, %r)>" % (self.__class__.__name__,
                                 self.name, self.type)

class SiteFolderDescription(PortalResponse):
    """The folders and services listed at one folder of a site"""

    def __init__(self, path=None, version=0.0, folders=None, services=None,
                 error=None):
        super(SiteFolderDescription, self).__init__(error)
        self.path = path
        self.version = version
        self.folders = list(folders or [])
        self.services = list(services or [])
    def _load(self, struct):
        self.version = float(struct.get('currentVersion') or 0.0)
        self.folders = list(struct.get('folders') or [])
        if not all(isinstance(folder, str) for folder in self.folders):
            raise ValueError("Folder names must be strings: %r"
                             % (self.folders,))
        self.services = []
        for service in struct.get('services') or []:
            if not service.get('name') or not service.get('type'):
                raise ValueError("Service without a name or type: %r"
                                 % (service,))
            self.services.append(ServiceDescription(service['name'],
                                                    service['type']))
    @property
    def foldernames(self):
        "Child folder names, with any leading path stripped."
        return [folder.strip('/').split('/')[-1] for folder in self.folders]

class SiteDescription(object):
    """Everything discovered under a site: the highest version reported by
       any folder and an endpoint for every service."""

    def __init__(self, version=0.0, resources=None):
        self.version = version
        self.resources = list(resources or [])
    def __repr__(self):
        return "<%s(version=%r, %i resources)>" % (self.__class__.__name__,
                                                   self.version,
                                                   len(self.resources))
