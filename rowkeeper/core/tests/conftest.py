import logging

import pytest

from rowkeeper.core.models import Counter


@pytest.fixture
def rows(make_counter) -> Counter:
    """A row counter between 0 and 10, currently at 5."""
    return make_counter("Rows", current_value=5, min_value=0, max_value=10)


@pytest.fixture
def color_change(make_counter) -> Counter:
    return make_counter("Colour change", current_value=0, min_value=0, max_value=3)


@pytest.fixture
def other_user(make_user):
    return make_user("otheruser", "password")


@pytest.fixture
def other_project(make_project, other_user):
    return make_project("Someone else's socks", owner=other_user)


@pytest.fixture
def logged_in_client(client, user):
    client.force_login(user)
    return client


@pytest.fixture
def app_caplog(caplog):
    """caplog that sees records from the ``rowkeeper`` logger tree.

    Whether ``rowkeeper`` propagates depends on the settings in use, so
    caplog's handler is attached to it directly and propagation is switched
    off for the duration of the test.
    """
    logger = logging.getLogger("rowkeeper")
    original_propagate = logger.propagate
    logger.addHandler(caplog.handler)
    logger.propagate = False
    yield caplog
    logger.removeHandler(caplog.handler)
    logger.propagate = original_propagate
