from __future__ import annotations

import asyncio

import pytest

from bmdesk.plugins.bookmarks.errors import InvalidIconError
from bmdesk.plugins.bookmarks.icons import IconRegistry, favicon_url, is_data_url
from bmdesk.plugins.bookmarks.models import Node
from bmdesk.plugins.bookmarks.preferences import MemoryPreferences

PNG = "data:image/png;base64,iVBORw0KGgo="


@pytest.fixture
def registry() -> IconRegistry:
    return IconRegistry(MemoryPreferences())


def test_default_icons_depend_on_kind(registry):
    assert asyncio.run(registry.icon_for(Node(id="5", title="Folder", children=()))) == "folder"
    assert asyncio.run(registry.icon_for(Node(id="6", title="Site", url="https://x.test"))) == "default"


def test_predefined_and_custom_icons(registry):
    asyncio.run(registry.set_icon("5", name="star"))
    asyncio.run(registry.set_icon("6", data_url=PNG))
    assert asyncio.run(registry.get("5")) == "star"
    assert asyncio.run(registry.icon_for(Node(id="6", title="Site", url="https://x.test"))) == PNG

    asyncio.run(registry.clear("5"))
    assert asyncio.run(registry.get("5")) is None


@pytest.mark.parametrize(
    "kwargs",
    [
        {},
        {"name": "star", "data_url": PNG},
        {"name": "rocket"},
        {"data_url": "https://x.test/icon.png"},
    ],
)
def test_invalid_icon_requests(registry, kwargs):
    with pytest.raises(InvalidIconError):
        asyncio.run(registry.set_icon("5", **kwargs))


def test_copy_and_forget(registry):
    asyncio.run(registry.set_icon("5", name="work"))
    assert asyncio.run(registry.copy("5", "7")) is True
    assert asyncio.run(registry.copy("8", "9")) is False
    asyncio.run(registry.forget(["5", "7"]))
    assert asyncio.run(registry.get("7")) is None


def test_favicon_url_encodes_page():
    assert favicon_url("https://x.test/a?b=1") == "/_favicon/?pageUrl=https%3A%2F%2Fx.test%2Fa%3Fb%3D1&size=32"
    assert is_data_url(PNG)
    assert not is_data_url("data:image/png,raw")
