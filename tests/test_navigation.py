"""Tests for section navigation."""

import pytest

from bangumoe.constants import Section
from bangumoe.errors import ServiceError
from bangumoe.models import BindingStatus, CollectionFilter, CollectionType
from bangumoe.navigation import NavigationRouter


@pytest.fixture
def router(store, coordinator):
    return NavigationRouter(store, coordinator)


@pytest.mark.asyncio
async def test_home_has_no_side_effects(router, client):
    await router.activate(Section.HOME)

    assert router.is_active("home")
    assert client.calls == []


@pytest.mark.asyncio
async def test_collections_loads_with_current_filter(router, store, client):
    await store.load(CollectionFilter(type=CollectionType.COMPLETED))

    await router.activate("collections")

    assert router.active is Section.COLLECTIONS
    assert client.count("list_collections") == 2
    assert [e.id for e in store.snapshot] == [102]


@pytest.mark.asyncio
async def test_reentering_section_reruns_initializer(router, client):
    await router.activate(Section.BANGUMI)
    await router.activate(Section.BANGUMI)

    assert client.count("get_binding") == 2


@pytest.mark.asyncio
async def test_bangumi_fetches_status(router, coordinator):
    await router.activate(Section.BANGUMI)

    assert coordinator.status is BindingStatus.BOUND


@pytest.mark.asyncio
async def test_switch_happens_even_if_initializer_fails(router, client):
    client.fail("list_collections")
    published = []
    router.subscribe(published.append)

    with pytest.raises(ServiceError):
        await router.activate(Section.COLLECTIONS)

    assert router.active is Section.COLLECTIONS
    assert published == [Section.COLLECTIONS]


@pytest.mark.asyncio
async def test_unknown_section(router):
    with pytest.raises(ValueError):
        await router.activate("settings")
    assert router.active is Section.HOME
