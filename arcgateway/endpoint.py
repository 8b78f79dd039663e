# coding: utf-8
"""Relative resource paths on a deployment of ArcGIS Server or Portal."""

from . import utils

__all__ = ['AGO_PORTAL_URL', 'Endpoint', 'is_ago_portal_url']

#: Root url of the public ArcGIS Online sharing API
AGO_PORTAL_URL = "http://www.arcgis.com/sharing/rest/"

def is_ago_portal_url(root_url):
    "True if root_url is the public ArcGIS Online host, whatever the scheme"
    def schemeless(url):
        return utils.as_root_url(url).split('://', 1)[-1].lower()
    return schemeless(root_url) == schemeless(AGO_PORTAL_URL)

class Endpoint(object):
    """A path relative to a root url, optionally with a query string. Values
       are immutable; build one per resource and share it freely."""
    __slots__ = ('_relative_url',)

    def __init__(self, relative_url):
        if relative_url is None:
            raise ValueError("relative_url is required")
        object.__setattr__(self, '_relative_url', relative_url)
    def __setattr__(self, name, value):
        raise AttributeError("%s is immutable" % self.__class__.__name__)
    @property
    def relative_url(self):
        return self._relative_url
    def build_absolute_url(self, root_url):
        """Returns the absolute url of this endpoint under the given root."""
        return utils.join_url(root_url, self._relative_url)
    def __eq__(self, other):
        return (type(self) is type(other) and
                self._relative_url == other._relative_url)
    def __ne__(self, other):
        return not self == other
    def __hash__(self):
        return hash((type(self), self._relative_url))
    def __str__(self):
        return self._relative_url
    def __repr__(self):
        return "<%s(%r)>" % (self.__class__.__name__, self._relative_url)
