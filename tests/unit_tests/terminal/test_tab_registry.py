"""
Unit tests for tab_registry.py
"""

import pytest

from itermbridge.terminal.errors import CreationFailedError, TabNotFoundError
from itermbridge.terminal.tab_registry import TabRegistry, parse_numeric_identifier


@pytest.fixture
def window(fake_channel):
    return fake_channel.open_window()


@pytest.fixture
def registry(fake_channel):
    return TabRegistry(fake_channel)


def test_parse_numeric_identifier():
    assert parse_numeric_identifier(3) == 3
    assert parse_numeric_identifier("2") == 2
    assert parse_numeric_identifier(" 1 ") == 1
    assert parse_numeric_identifier("build") is None
    assert parse_numeric_identifier("1a") is None


class TestTabRegistry:
    """Unit tests for TabRegistry."""

    @pytest.mark.asyncio
    async def test_create_tab_returns_index(self, registry, fake_channel, window):
        index = await registry.create_tab(window, name="server")

        assert index == 1
        assert fake_channel.windows[window].tabs[1].name == "server"

    @pytest.mark.asyncio
    async def test_create_tab_unparseable_index_raises(self, registry, fake_channel, window):
        fake_channel.create_tab_output = "missing value"

        with pytest.raises(CreationFailedError, match="tab index"):
            await registry.create_tab(window)

    @pytest.mark.asyncio
    async def test_list_tabs_in_order_with_aliases(self, registry, fake_channel, window):
        fake_channel.add_tab(window, "server")
        fake_channel.add_tab(window, "logs")
        registry.set_tab_alias(window, 2, "tail")

        tabs = await registry.list_tabs(window)

        assert [t.index for t in tabs] == [0, 1, 2]
        assert [t.name for t in tabs] == ["zsh", "server", "logs"]
        assert tabs[2].alias == "tail"
        assert tabs[0].alias is None
        assert tabs[1].tty.startswith("/dev/ttys")

    @pytest.mark.asyncio
    async def test_list_tabs_tolerates_separator_in_name(self, registry, fake_channel, window):
        fake_channel.add_tab(window, "a|b")

        tabs = await registry.list_tabs(window)

        assert tabs[1].name == "a|b"
        assert tabs[1].tty.startswith("/dev/ttys")

    @pytest.mark.asyncio
    async def test_resolution_order_numeric_alias_name(self, registry, fake_channel, window):
        """Alias beats name, numeric literal beats both."""
        fake_channel.windows[window].tabs[0].name = "x"
        fake_channel.add_tab(window, "one")
        fake_channel.add_tab(window, "two")
        registry.set_tab_alias(window, 2, "x")

        assert await registry.resolve_tab_index(window, "x") == 2
        assert await registry.resolve_tab_index(window, "0") == 0
        assert await registry.resolve_tab_index(window, 1) == 1
        assert await registry.resolve_tab_index(window, "one") == 1

    @pytest.mark.asyncio
    async def test_resolve_unknown_raises_not_found(self, registry, window):
        with pytest.raises(TabNotFoundError, match="Tab not found: nope"):
            await registry.resolve_tab_index(window, "nope")

    @pytest.mark.asyncio
    async def test_ensure_tab_is_idempotent(self, registry, fake_channel, window):
        first = await registry.ensure_tab(window, "build")
        second = await registry.ensure_tab(window, "build")

        assert first == second == 1
        assert len(fake_channel.windows[window].tabs) == 2

    @pytest.mark.asyncio
    async def test_alias_scoped_per_window(self, registry, fake_channel, window):
        other = fake_channel.open_window()
        fake_channel.add_tab(window, "a")
        fake_channel.add_tab(other, "b")

        registry.set_tab_alias(window, 1, "api")
        registry.set_tab_alias(other, 0, "api")

        assert registry.get_tab_index_by_alias(window, "api") == 1
        assert registry.get_tab_index_by_alias(other, "api") == 0

    def test_alias_unique_within_window(self, registry):
        registry.set_tab_alias("w", 0, "api")
        registry.set_tab_alias("w", 3, "api")

        assert registry.get_tab_index_by_alias("w", "api") == 3
        assert registry.get_tab_alias("w", 0) is None

    def test_remove_and_clear_aliases(self, registry):
        registry.set_tab_alias("w", 0, "a")
        registry.set_tab_alias("w", 1, "b")

        registry.remove_tab_alias("w", 0)
        assert registry.get_tab_alias("w", 0) is None
        assert registry.get_tab_alias("w", 1) == "b"

        registry.clear_window_aliases("w")
        assert registry.get_tab_alias("w", 1) is None

    @pytest.mark.asyncio
    async def test_close_tab_reindexes_aliases(self, registry, fake_channel, window):
        fake_channel.add_tab(window, "one")
        fake_channel.add_tab(window, "two")
        registry.set_tab_alias(window, 1, "doomed")
        registry.set_tab_alias(window, 2, "survivor")

        await registry.close_tab(window, 1)

        assert registry.get_tab_index_by_alias(window, "doomed") is None
        assert registry.get_tab_index_by_alias(window, "survivor") == 1
        tabs = await registry.list_tabs(window)
        assert tabs[1].name == "two"
        assert tabs[1].alias == "survivor"

    @pytest.mark.asyncio
    async def test_get_tab_tty(self, registry, fake_channel, window):
        fake_channel.add_tab(window, "one")

        tty = await registry.get_tab_tty(window, 1)

        assert tty == fake_channel.windows[window].tabs[1].tty
