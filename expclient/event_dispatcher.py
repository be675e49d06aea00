"""
This submodule contains the default transport for event batches.
"""

from typing import Optional

import urllib3

from expclient.config import Config
from expclient.errors import DispatchError
from expclient.impl.http import _http_factory
from expclient.impl.util import log
from expclient.interfaces import EventDispatcher


class DefaultEventDispatcher(EventDispatcher):
    """
    Posts each batch as JSON with urllib3. Delivery is attempted exactly once; a connection error or
    an HTTP error status raises :class:`expclient.errors.DispatchError`.
    """

    def __init__(self, config: Optional[Config] = None, http_client=None):
        self._config = config or Config()
        factory = _http_factory(self._config)
        self._headers = factory.base_headers
        self._timeout = factory.timeout
        self._http = factory.create_pool_manager(1, self._config.events_uri) if http_client is None else http_client

    def dispatch_event(self, log_event) -> None:
        headers = dict(self._headers)
        headers.update(log_event.headers)
        body = log_event.to_json()
        log.debug('Sending events payload: ' + body)
        try:
            r = self._http.request(log_event.http_verb, log_event.url, headers=headers, body=body, timeout=self._timeout, retries=False)
        except Exception as e:
            raise DispatchError('Error sending events to %s: %s' % (log_event.url, e)) from e
        if r.status >= 400:
            raise DispatchError('Received HTTP error %d for event batch' % r.status, r.status)
        log.debug('Delivered event batch with status %d' % r.status)

    def close(self):
        if isinstance(self._http, urllib3.PoolManager):
            self._http.clear()
