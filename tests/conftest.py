import pytest


class EventLog(list):
    def __call__(self, event, session):
        self.append(event)


@pytest.fixture
def events():
    return EventLog()
