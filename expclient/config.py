"""
This submodule contains the :class:`Config` class for custom configuration of the SDK client.

Note that the same class can also be imported from the ``expclient.client`` submodule.
"""

from typing import Callable, List, Optional

from expclient.decision import DecideOption
from expclient.impl.util import log
from expclient.interfaces import (ErrorHandler, EventDispatcher,
                                  EventProcessor, UserProfileStore)
from expclient.version import VERSION

DEFAULT_EVENTS_URI = 'https://logx.optimizely.com/v1/events'
DEFAULT_EVENT_BATCH_SIZE = 10
DEFAULT_FLUSH_INTERVAL = 30


class HTTPConfig:
    """Advanced HTTP configuration options for the SDK client.

    This class groups together HTTP/HTTPS-related configuration properties that rarely need to be changed.
    If you need to set these, construct an ``HTTPConfig`` instance and pass it as the ``http`` parameter when
    you construct the main :class:`Config` for the SDK client.
    """

    def __init__(
        self,
        connect_timeout: float = 10,
        read_timeout: float = 15,
        http_proxy: Optional[str] = None,
        ca_certs: Optional[str] = None,
        disable_ssl_verification: bool = False,
    ):
        """
        :param connect_timeout: The connect timeout for event delivery in seconds.
        :param read_timeout: The read timeout for event delivery in seconds.
        :param http_proxy: Use a proxy when delivering events. This is the full URI of the proxy; for
          example: http://my-proxy.com:1234. Setting this overrides any proxy specified by the
          ``http_proxy``/``https_proxy`` environment variables, but only for SDK connections.
        :param ca_certs: If using a custom certificate authority, set this to the file path of the
          certificate bundle.
        :param disable_ssl_verification: If true, completely disables SSL verification and certificate
          verification for secure requests. This is unsafe and should not be used in a production environment;
          instead, use a self-signed certificate and set ``ca_certs``.
        """
        self.__connect_timeout = connect_timeout
        self.__read_timeout = read_timeout
        self.__http_proxy = http_proxy
        self.__ca_certs = ca_certs
        self.__disable_ssl_verification = disable_ssl_verification

    @property
    def connect_timeout(self) -> float:
        return self.__connect_timeout

    @property
    def read_timeout(self) -> float:
        return self.__read_timeout

    @property
    def http_proxy(self) -> Optional[str]:
        return self.__http_proxy

    @property
    def ca_certs(self) -> Optional[str]:
        return self.__ca_certs

    @property
    def disable_ssl_verification(self) -> bool:
        return self.__disable_ssl_verification


class Config:
    """Advanced configuration options for the SDK client.

    To use these options, create an instance of ``Config`` and pass it to either :func:`expclient.set_config()`
    if you are using the shared client, or the :class:`expclient.client.ExpClient` constructor otherwise.
    """

    def __init__(
        self,
        events_uri: str = DEFAULT_EVENTS_URI,
        event_batch_size: int = DEFAULT_EVENT_BATCH_SIZE,
        flush_interval: float = DEFAULT_FLUSH_INTERVAL,
        send_events: bool = True,
        event_processor_class: Optional[Callable[['Config', EventDispatcher], EventProcessor]] = None,
        event_dispatcher: Optional[EventDispatcher] = None,
        user_profile_store: Optional[UserProfileStore] = None,
        error_handler: Optional[ErrorHandler] = None,
        default_decide_options: Optional[List[DecideOption]] = None,
        skip_json_validation: bool = False,
        client_name: str = 'python-sdk',
        client_version: str = VERSION,
        http: HTTPConfig = HTTPConfig(),
    ):
        """
        :param events_uri: The URL that event batches are posted to. Most users should use the default
          value.
        :param event_batch_size: The number of records buffered before a batch is sent.
        :param flush_interval: The maximum number of seconds a record waits in the buffer before its
          batch is sent.
        :param send_events: Whether or not to send impression and conversion events. By default, events
          will be sent.
        :param event_processor_class: A factory for an EventProcessor implementation taking the config and
          the event dispatcher
        :param event_dispatcher: The transport for event batches; a
          :class:`expclient.event_dispatcher.DefaultEventDispatcher` is used if this is not set.
        :param user_profile_store: A store used to keep users in the same variation across calls; see
          :class:`expclient.interfaces.UserProfileStore`.
        :param error_handler: Receives errors that the SDK recovered from; see
          :class:`expclient.interfaces.ErrorHandler`. If not set, such errors are only logged.
        :param default_decide_options: Options applied to every call to ``decide`` and ``decide_all``.
        :param skip_json_validation: If true, configuration entities that fail validation are dropped with
          a warning instead of causing the whole configuration document to be rejected.
        :param client_name: The client name reported in event batches.
        :param client_version: The client version reported in event batches.
        :param http: Optional properties for customizing the client's HTTP/HTTPS behavior. See
          :class:`HTTPConfig`.
        """
        self.__events_uri = events_uri.rstrip('/')
        if not isinstance(event_batch_size, int) or isinstance(event_batch_size, bool) or event_batch_size < 1:
            log.warning('Invalid event_batch_size %r; using default of %d' % (event_batch_size, DEFAULT_EVENT_BATCH_SIZE))
            event_batch_size = DEFAULT_EVENT_BATCH_SIZE
        self.__event_batch_size = event_batch_size
        if isinstance(flush_interval, bool) or not isinstance(flush_interval, (int, float)) or flush_interval <= 0:
            log.warning('Invalid flush_interval %r; using default of %d seconds' % (flush_interval, DEFAULT_FLUSH_INTERVAL))
            flush_interval = DEFAULT_FLUSH_INTERVAL
        self.__flush_interval = flush_interval
        self.__send_events = send_events
        self.__event_processor_class = event_processor_class
        self.__event_dispatcher = event_dispatcher
        self.__user_profile_store = user_profile_store
        self.__error_handler = error_handler
        self.__default_decide_options = list(default_decide_options or [])
        self.__skip_json_validation = skip_json_validation
        self.__client_name = client_name
        self.__client_version = client_version
        self.__http = http

    @property
    def events_uri(self) -> str:
        return self.__events_uri

    @property
    def event_batch_size(self) -> int:
        return self.__event_batch_size

    @property
    def flush_interval(self) -> float:
        return self.__flush_interval

    @property
    def send_events(self) -> bool:
        return self.__send_events

    @property
    def event_processor_class(self) -> Optional[Callable[['Config', EventDispatcher], EventProcessor]]:
        return self.__event_processor_class

    @property
    def event_dispatcher(self) -> Optional[EventDispatcher]:
        return self.__event_dispatcher

    @property
    def user_profile_store(self) -> Optional[UserProfileStore]:
        return self.__user_profile_store

    @property
    def error_handler(self) -> Optional[ErrorHandler]:
        return self.__error_handler

    @property
    def default_decide_options(self) -> List[DecideOption]:
        return self.__default_decide_options

    @property
    def skip_json_validation(self) -> bool:
        return self.__skip_json_validation

    @property
    def client_name(self) -> str:
        return self.__client_name

    @property
    def client_version(self) -> str:
        return self.__client_version

    @property
    def http(self) -> HTTPConfig:
        return self.__http


__all__ = ['Config', 'HTTPConfig']
