"""
This submodule contains a :class:`expclient.interfaces.ConfigSource` that holds whatever
configuration document the application gives it.
"""

from typing import Any, Callable, Optional, Union

from expclient.impl.listeners import Listeners
from expclient.impl.project_config import ProjectConfig
from expclient.impl.rwlock import ReadWriteLock
from expclient.impl.util import log
from expclient.interfaces import ConfigSource


class StaticConfigSource(ConfigSource):
    """
    Keeps the current configuration snapshot in memory. Each call to :func:`update` builds a new
    snapshot and swaps it in atomically; readers that already obtained the previous snapshot keep
    using it.
    """

    def __init__(self, datafile: Optional[Union[str, bytes, dict]] = None, skip_json_validation: bool = False):
        """
        :param datafile: an initial configuration document, if any
        :param skip_json_validation: see :func:`expclient.config.Config.skip_json_validation`
        :raises expclient.errors.ConfigError: if the initial document is invalid
        """
        self.__lock = ReadWriteLock()
        self.__listeners = Listeners(name='configuration update listener')
        self.__skip_json_validation = skip_json_validation
        self.__config = None  # type: Optional[ProjectConfig]
        if datafile is not None:
            self.__config = ProjectConfig.from_datafile(datafile, skip_json_validation)

    def get(self) -> Optional[ProjectConfig]:
        with self.__lock.read():
            return self.__config

    def update(self, datafile: Union[str, bytes, dict]) -> ProjectConfig:
        """
        Replaces the current snapshot. Listeners are notified unless the new document has the same
        revision as the current one.

        :raises expclient.errors.ConfigError: if the document is invalid; the current snapshot is kept
        """
        new_config = ProjectConfig.from_datafile(datafile, self.__skip_json_validation)
        with self.__lock.write():
            old_config = self.__config
            self.__config = new_config
        if old_config is not None and old_config.revision == new_config.revision:
            log.debug('Configuration revision %s is unchanged' % new_config.revision)
            return new_config
        log.info('Configuration updated to revision %s' % new_config.revision)
        self.__listeners.notify(new_config)
        return new_config

    def on_update(self, callback: Callable[[Any], None]) -> Callable[[], None]:
        listener_id = self.__listeners.add(callback)
        return lambda: self.__listeners.remove(listener_id)

    def start(self):
        pass

    def stop(self):
        self.__listeners.clear()
