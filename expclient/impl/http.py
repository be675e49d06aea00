from os import environ
from typing import List, Optional, Tuple

import certifi
import urllib3
from urllib3.util import parse_url

from expclient.version import VERSION


def _base_headers(config) -> dict:
    return {
        'Content-Type': 'application/json',
        'User-Agent': '%s/%s' % (config.client_name, config.client_version or VERSION),
    }


def _http_factory(config) -> 'HTTPFactory':
    return HTTPFactory(_base_headers(config), config.http)


class HTTPFactory:
    """
    Builds urllib3 pools for the event endpoint from an :class:`expclient.config.HTTPConfig`.
    """

    def __init__(self, base_headers, http_config):
        self.__base_headers = base_headers
        self.__http_config = http_config
        self.__timeout = urllib3.Timeout(connect=http_config.connect_timeout, read=http_config.read_timeout)

    @property
    def base_headers(self):
        return self.__base_headers

    @property
    def http_config(self):
        return self.__http_config

    @property
    def timeout(self):
        return self.__timeout

    def create_pool_manager(self, num_pools, target_base_uri):
        options = dict(num_pools=num_pools)
        options.update(self._tls_options())
        proxy_url = self.__http_config.http_proxy or _get_proxy_url(target_base_uri)
        if proxy_url is None:
            return urllib3.PoolManager(**options)
        auth = parse_url(proxy_url).auth
        if auth is not None:
            options['proxy_headers'] = urllib3.util.make_headers(proxy_basic_auth=auth)
        return urllib3.ProxyManager(proxy_url, **options)

    def _tls_options(self) -> dict:
        if self.__http_config.disable_ssl_verification:
            return dict(cert_reqs='CERT_NONE', ca_certs=None)
        return dict(cert_reqs='CERT_REQUIRED', ca_certs=self.__http_config.ca_certs or certifi.where())


def _env(name: str) -> Optional[str]:
    value = environ.get(name)
    if value is None:
        value = environ.get(name.upper())
    return value


def _get_proxy_url(target_base_uri: Optional[str]) -> Optional[str]:
    """
    Returns the proxy to use for the target, from the ``https_proxy``/``http_proxy`` environment
    variables (either case), or None if there is none or ``no_proxy`` excludes the target.

    A ``no_proxy`` entry is a host name, optionally with a port. It matches the host itself and any
    subdomain of it; ``*`` matches everything.
    """
    if target_base_uri is None:
        return None

    host, port, is_https = _get_target_host_and_port(target_base_uri)
    proxy_url = _env('https_proxy') if is_https else _env('http_proxy')
    if not proxy_url:
        return None

    for entry_host, entry_port in _no_proxy_entries():
        if entry_host == '*':
            return None
        if entry_port is not None and entry_port != port:
            continue
        if host == entry_host or host.endswith('.' + entry_host):
            return None

    return proxy_url


def _no_proxy_entries() -> List[Tuple[str, Optional[int]]]:
    entries = []
    for raw in (_env('no_proxy') or '').split(','):
        raw = raw.strip()
        if raw == '*':
            entries.append(('*', None))
            continue
        entry_host, _, entry_port = raw.partition(':')
        entry_host = entry_host.lstrip('.').lower()
        if entry_host == '':
            continue
        entries.append((entry_host, int(entry_port) if entry_port else None))
    return entries


def _get_target_host_and_port(uri: str) -> Tuple[str, int, bool]:
    """
    Returns the host, effective port and whether the scheme is https. A URI without a scheme is
    treated as plain http.
    """
    parsed = parse_url(uri)
    is_https = parsed.scheme == 'https'
    port = parsed.port
    if port is None:
        port = 443 if is_https else 80
    return (parsed.host or '').lower(), port, is_https
