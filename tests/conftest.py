import pytest
from fakes import ManualTimers


@pytest.fixture
def timers():
    return ManualTimers()
