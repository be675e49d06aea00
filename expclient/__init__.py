"""
The expclient module contains the most common top-level entry points for the SDK.
"""

from typing import Optional

from expclient.impl.rwlock import ReadWriteLock as _ReadWriteLock
from expclient.impl.util import Result, log
from expclient.version import VERSION

from .client import *
from .decision import *

__version__ = VERSION

__client = None  # type: Optional[ExpClient]
__config = None  # type: Optional[Config]
__datafile = None
__lock = _ReadWriteLock()


def set_config(config: Config, datafile=None):
    """Sets the configuration, and optionally the configuration document, for the shared client.

    If the shared client already exists it is replaced by a new one built from these arguments,
    and the old one is closed; existing references to the old client keep working until then.
    Otherwise the arguments are stored and used when :func:`expclient.get()` first builds the client.

    :param config: the client configuration
    :param datafile: the configuration document the shared client makes decisions with
    :raises expclient.errors.ConfigError: if a client is rebuilt and ``datafile`` is invalid
    """
    global __client, __config, __datafile
    old_client = None
    with __lock.write():
        if __client is not None:
            log.info("Reinitializing experimentation client %s with new config" % VERSION)
            old_client = __client
            __client = ExpClient(datafile=datafile, config=config)
        __config = config
        __datafile = datafile
    if old_client is not None:
        old_client.close()


def get() -> ExpClient:
    """Returns the shared client, building it on first use from the arguments given to
    :func:`expclient.set_config()`.

    Applications that need several clients with different configurations should construct
    :class:`expclient.client.ExpClient` instances directly instead.

    :raises Exception: if :func:`expclient.set_config()` has not been called
    """
    global __client
    with __lock.read():
        if __client is not None:
            return __client
        if __config is None:
            raise Exception("set_config was not called")
    with __lock.write():
        if __client is None:
            log.info("Initializing experimentation client %s" % VERSION)
            __client = ExpClient(datafile=__datafile, config=__config)
        return __client


# for testing only
def _reset_client():
    global __client
    with __lock.write():
        client = __client
        __client = None
    if client is not None:
        client.close()


__all__ = ['Config', 'DecideOption', 'DecisionSource', 'ExpClient', 'FlagDecision', 'Result', 'client', 'config', 'decision', 'errors', 'interfaces', 'notifications']
