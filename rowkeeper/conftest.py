from typing import Callable

import pytest
from django.conf import settings

from rowkeeper.core.models import Counter, CounterLink, Project


@pytest.fixture(scope="session", autouse=True)
def django_test_settings():
    """Disable DEBUG to avoid query tracking overhead."""
    settings.DEBUG = False


@pytest.fixture
def make_user(django_user_model) -> Callable[[str, str], object]:
    def make_user_(username: str, password: str) -> object:
        return django_user_model.objects.create_user(
            username=username, password=password
        )

    return make_user_


@pytest.fixture
def user(make_user):
    return make_user("testuser", "password")


@pytest.fixture
def make_project(user) -> Callable[..., Project]:
    def make_project_(name: str = "Test Sweater", owner=None, **kwargs) -> Project:
        owner = owner or user
        return Project.objects.create_with_user(
            user=owner, name=name, owner=owner, **kwargs
        )

    return make_project_


@pytest.fixture
def project(make_project) -> Project:
    return make_project()


@pytest.fixture
def make_counter(project) -> Callable[..., Counter]:
    def make_counter_(name: str, project: Project = project, **kwargs) -> Counter:
        return Counter.objects.create(
            project=project, owner=project.owner, name=name, **kwargs
        )

    return make_counter_


@pytest.fixture
def make_link() -> Callable[..., CounterLink]:
    def make_link_(
        source: Counter,
        target: Counter,
        trigger_condition: dict,
        action: dict,
        **kwargs,
    ) -> CounterLink:
        return CounterLink.objects.create(
            source_counter=source,
            target_counter=target,
            trigger_condition=trigger_condition,
            action=action,
            **kwargs,
        )

    return make_link_
