"""Shared pytest fixtures for admission webhook tests."""

import pytest

from cmstate_injector.constants import TEMPLATE_ANNOTATION

from .helpers import FakeCMStateStore, make_pod


@pytest.fixture
def store():
    """A fake store knowing the Foo_Bar template."""
    fake = FakeCMStateStore()
    fake.add_template("Foo_Bar")
    return fake


@pytest.fixture
def templated_pod():
    """The Pod from the end-to-end scenario: app-1 in ns using Foo_Bar."""
    return make_pod(annotations={TEMPLATE_ANNOTATION: "Foo_Bar"})
