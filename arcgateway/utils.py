# coding: utf-8
"""Utility functions for arcgateway"""

import calendar
import datetime
import re
from urllib.parse import parse_qs, urlencode, urlsplit, urlunsplit

__all__ = ['utcnow', 'timetopythonvalue', 'pythonvaluetotime', 'as_root_url',
           'join_url', 'parse_query_string', 'has_query_parameter',
           'add_query_parameter', 'strip_query', 'force_https',
           'is_absolute_url', 'encode_form', 'mask_token']

numeric = (int, float)

_duplicate_slashes = re.compile('/{2,}')
_token_value = re.compile('([?&]token=)[^&]*', re.IGNORECASE)

def utcnow():
    return datetime.datetime.now(datetime.timezone.utc)

def timetopythonvalue(time_val):
    "Convert a unix time in milliseconds, as the server reports it, to UTC"
    if isinstance(time_val, numeric):
        return (datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc) +
                datetime.timedelta(milliseconds=time_val))
    raise ValueError(repr(time_val))

def pythonvaluetotime(time_val):
    "Convert a Python datetime to unix time in milliseconds"
    if time_val is None:
        return None
    elif isinstance(time_val, datetime.datetime):
        if time_val.tzinfo is not None:
            time_val = time_val.astimezone(datetime.timezone.utc)
        return (calendar.timegm(time_val.timetuple()) * 1000 +
                time_val.microsecond // 1000)
    elif isinstance(time_val, datetime.date):
        return calendar.timegm(time_val.timetuple()) * 1000
    raise ValueError(repr(time_val))

def as_root_url(url):
    """Normalize a root url: exactly one trailing slash, no doubled slashes
       in the path, query and fragment dropped. Normalizing twice is the
       same as normalizing once."""
    if url is None or not url.strip():
        raise ValueError("rootUrl is required")
    scheme, netloc, path, _, _ = urlsplit(url.strip())
    path = _duplicate_slashes.sub('/', path)
    if not path.endswith('/'):
        path += '/'
    return urlunsplit((scheme, netloc, path, '', ''))

def join_url(root_url, relative_url):
    "Append a relative path (and its query string) to a normalized root url"
    path, sep, query = (relative_url or '').partition('?')
    path = _duplicate_slashes.sub('/', path).lstrip('/')
    return as_root_url(root_url) + path + sep + query

def parse_query_string(url):
    """Returns the query string of an absolute or relative url as a dict.
       parse_qs gives a list for every key; only the first value is kept."""
    query = urlsplit(url or '').query
    return dict((k, v[0]) for k, v in
                parse_qs(query, keep_blank_values=True).items())

def has_query_parameter(url, name):
    "Case-insensitive check for a query parameter"
    name = name.lower()
    return any(key.lower() == name for key in parse_query_string(url))

def add_query_parameter(url, name, value):
    return url + ('&' if '?' in url else '?') + urlencode({name: value})

def strip_query(url):
    return url.split('?')[0]

def force_https(url):
    if url[:7].lower() == 'http://':
        return 'https://' + url[7:]
    return url

def is_absolute_url(url):
    try:
        parts = urlsplit(url)
    except (TypeError, ValueError):
        return False
    return parts.scheme.lower() in ('http', 'https') and bool(parts.netloc)

def encode_form(parameters, encoding='utf-8'):
    """URL-encode a parameter mapping. Raises UnicodeEncodeError when a value
       cannot be represented in the requested encoding."""
    return urlencode(parameters, encoding=encoding, errors='strict')

def mask_token(url):
    "Hide the token value of a url before it goes into a log"
    return _token_value.sub(r'\1***', url)
