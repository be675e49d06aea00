import pytest

from expclient.interfaces import (ConfigSource, ErrorHandler, EventDispatcher,
                                  EventProcessor, UserProfileStore)


@pytest.mark.parametrize('interface', [ConfigSource, ErrorHandler, EventDispatcher, EventProcessor, UserProfileStore])
def test_interfaces_cannot_be_instantiated(interface):
    with pytest.raises(TypeError):
        interface()


def test_partial_implementation_cannot_be_instantiated():
    class LookupOnlyStore(UserProfileStore):
        def lookup(self, user_id):
            return None

    with pytest.raises(TypeError):
        LookupOnlyStore()
