"""Dedup engine tests: idempotence, consistency of both indices, concurrency and degradation."""

import asyncio
import re
from unittest.mock import AsyncMock, patch

import pytest

from shortener.codegen import CodeGenerator
from shortener.engine import ShortenerEngine
from shortener.errors import BackendUnavailable, ExhaustionError
from shortener.kv_store import InMemoryStore
from shortener.persistence import DatabasePersistence, DisabledPersistence

CODE_PATTERN = re.compile(r"^[a-zA-Z0-9]{6}$")


async def assert_indices_consistent(engine: ShortenerEngine, urls: list[str]) -> None:
    assert await engine.forward.size() == await engine.reverse.size()
    for url in urls:
        code = await engine.reverse.get(url)
        assert code is not None
        assert await engine.forward.get(code) == url


# ============================================================================
# ADD URL
# ============================================================================


@pytest.mark.asyncio
async def test_add_url_returns_code_and_stores_mapping(engine: ShortenerEngine) -> None:
    url = "https://example.com"
    code = await engine.add_url(url)

    assert CODE_PATTERN.match(code)
    assert await engine.resolve(code) == url
    assert await engine.size() == 1


@pytest.mark.asyncio
async def test_same_url_twice_returns_same_code(engine: ShortenerEngine) -> None:
    url = "https://example.com"
    code1 = await engine.add_url(url)
    code2 = await engine.add_url(url)

    assert code1 == code2
    assert await engine.size() == 1


@pytest.mark.asyncio
async def test_different_urls_get_different_codes(engine: ShortenerEngine) -> None:
    code1 = await engine.add_url("https://example1.com")
    code2 = await engine.add_url("https://example2.com")

    assert code1 != code2
    assert await engine.size() == 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "url1,url2",
    [
        ("https://example.com/page", "https://other.com/page"),
        ("https://example.com", "example.com"),
        ("https://example.com", "http://example.com"),
        ("https://example.com", "https://example.com/"),
        ("https://example.com?a=1&b=2", "https://example.com?b=2&a=1"),
    ],
)
async def test_urls_are_not_normalized(engine: ShortenerEngine, url1: str, url2: str) -> None:
    assert await engine.add_url(url1) != await engine.add_url(url2)


@pytest.mark.asyncio
async def test_mixed_duplicates_keep_one_entry_per_url(engine: ShortenerEngine) -> None:
    urls = ["https://test1.com", "https://test2.com", "https://test1.com"]
    codes = [await engine.add_url(url) for url in urls]

    assert await engine.size() == 2
    assert codes[0] == codes[2]
    assert codes[0] != codes[1]
    await assert_indices_consistent(engine, urls)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "url",
    [
        "https://example.com/path?query=value&foo=bar#fragment",
        "https://example.com/" + "x" * 1000,
        "https://example.com/🚀/test",
        "  https://example.com/with-spaces  ",
    ],
)
async def test_url_stored_exactly_as_submitted(engine: ShortenerEngine, url: str) -> None:
    code = await engine.add_url(url)
    assert await engine.resolve(code) == url


@pytest.mark.asyncio
async def test_empty_url_is_an_ordinary_key(engine: ShortenerEngine) -> None:
    first = await engine.add_url("")
    second = await engine.add_url("")

    assert first == second
    assert CODE_PATTERN.match(first)
    assert await engine.resolve(first) == ""
    assert await engine.size() == 1


@pytest.mark.asyncio
async def test_resolve_unknown_code_returns_none(engine: ShortenerEngine) -> None:
    assert await engine.resolve("INVALID") is None


@pytest.mark.asyncio
async def test_add_url_skips_codes_claimed_in_between(forward: InMemoryStore, reverse: InMemoryStore) -> None:
    generator = CodeGenerator(forward)
    generator.generate_code = AsyncMock(side_effect=["aaaaaa", "bbbbbb"])
    engine = ShortenerEngine(forward, reverse, generator=generator)
    # Claimed by someone else after the generator checked it
    await forward.set("aaaaaa", "https://someone-else.com")

    code = await engine.add_url("https://example.com")

    assert code == "bbbbbb"
    assert await forward.get("aaaaaa") == "https://someone-else.com"


@pytest.mark.asyncio
async def test_exhaustion_surfaces_and_leaves_indices_untouched(
    forward: InMemoryStore, reverse: InMemoryStore
) -> None:
    await forward.set("taken1", "https://existing.com")
    await reverse.set("https://existing.com", "taken1")
    engine = ShortenerEngine(forward, reverse, generator=CodeGenerator(forward, max_attempts=3))

    with patch("shortener.codegen.generate_candidate", return_value="taken1"):
        with pytest.raises(ExhaustionError):
            await engine.add_url("https://new.com")

    assert await reverse.get("https://new.com") is None
    assert await engine.size() == 1


@pytest.mark.asyncio
async def test_reverse_write_failure_releases_claimed_code(forward: InMemoryStore) -> None:
    reverse = AsyncMock()
    reverse.get = AsyncMock(return_value=None)
    reverse.set = AsyncMock(side_effect=ConnectionError("reverse index down"))
    engine = ShortenerEngine(forward, reverse)

    with pytest.raises(ConnectionError):
        await engine.add_url("https://example.com")

    assert await forward.size() == 0


@pytest.mark.asyncio
async def test_failed_release_keeps_original_error() -> None:
    forward = InMemoryStore("forward")
    forward.delete = AsyncMock(side_effect=ConnectionError("forward down"))
    reverse = AsyncMock()
    reverse.get = AsyncMock(return_value=None)
    reverse.set = AsyncMock(side_effect=ConnectionError("reverse index down"))
    engine = ShortenerEngine(forward, reverse)

    with pytest.raises(ConnectionError, match="reverse index down"):
        await engine.add_url("https://example.com")

    forward.delete.assert_awaited_once()


# ============================================================================
# CONCURRENCY
# ============================================================================


@pytest.mark.asyncio
async def test_concurrent_distinct_urls_get_unique_codes(engine: ShortenerEngine) -> None:
    urls = [f"https://url{i}.com" for i in range(50)]
    codes = await asyncio.gather(*(engine.add_url(url) for url in urls))

    assert len(set(codes)) == 50
    assert await engine.size() == 50
    await assert_indices_consistent(engine, urls)


@pytest.mark.asyncio
async def test_concurrent_distinct_urls_with_suspending_store(yielding_engine: ShortenerEngine) -> None:
    urls = [f"https://url{i}.com" for i in range(50)]
    codes = await asyncio.gather(*(yielding_engine.add_url(url) for url in urls))

    assert len(set(codes)) == 50
    assert await yielding_engine.size() == 50
    await assert_indices_consistent(yielding_engine, urls)


@pytest.mark.asyncio
async def test_concurrent_same_url_yields_one_code(yielding_engine: ShortenerEngine) -> None:
    url = "https://same.example.com"
    codes = await asyncio.gather(*(yielding_engine.add_url(url) for _ in range(25)))

    assert len(set(codes)) == 1
    assert await yielding_engine.size() == 1
    await assert_indices_consistent(yielding_engine, [url])


# ============================================================================
# PERSISTENCE INTERACTION
# ============================================================================


@pytest.mark.asyncio
async def test_new_url_is_persisted_in_background(forward: InMemoryStore, reverse: InMemoryStore) -> None:
    persistence = AsyncMock()
    engine = ShortenerEngine(forward, reverse, persistence=persistence)

    code = await engine.add_url("https://example.com")
    await engine.add_url("https://example.com")
    await engine.drain()

    persistence.save_record.assert_awaited_once_with(code, "https://example.com")
    assert engine.pending_tasks == 0


@pytest.mark.asyncio
async def test_failing_adapter_does_not_break_add_url(forward: InMemoryStore, reverse: InMemoryStore) -> None:
    persistence = AsyncMock()
    persistence.save_record = AsyncMock(side_effect=BackendUnavailable("save_record"))
    engine = ShortenerEngine(forward, reverse, persistence=persistence)

    code = await engine.add_url("https://example.com")
    await engine.drain()

    assert CODE_PATTERN.match(code)
    assert await engine.resolve(code) == "https://example.com"
    await assert_indices_consistent(engine, ["https://example.com"])


@pytest.mark.asyncio
async def test_backend_outage_does_not_affect_indices(
    forward: InMemoryStore, reverse: InMemoryStore, unreachable_persistence: DatabasePersistence
) -> None:
    engine = ShortenerEngine(forward, reverse, persistence=unreachable_persistence)
    urls = ["https://a.com", "https://b.com", "https://a.com"]

    codes = [await engine.add_url(url) for url in urls]
    await engine.drain()

    assert codes[0] == codes[2]
    assert await engine.size() == 2
    await assert_indices_consistent(engine, urls)
    assert await engine.record_visit(codes[0]) == 0


@pytest.mark.asyncio
async def test_scenario_with_enabled_backend(persistent_engine: ShortenerEngine) -> None:
    code = await persistent_engine.add_url("https://example.com")
    assert len(code) == 6
    assert await persistent_engine.add_url("https://example.com") == code
    assert await persistent_engine.resolve(code) == "https://example.com"
    await persistent_engine.drain()

    stats = await persistent_engine.persistence.get_stats(code)
    assert stats is not None
    assert stats.clicks == 0

    assert await persistent_engine.record_visit(code) == 1
    stats = await persistent_engine.persistence.get_stats(code)
    assert stats.clicks == 1


@pytest.mark.asyncio
async def test_scenario_with_disabled_backend(engine: ShortenerEngine) -> None:
    code = await engine.add_url("https://example.com")
    assert await engine.add_url("https://example.com") == code
    assert await engine.resolve(code) == "https://example.com"
    assert await engine.record_visit(code) == 0
    assert await engine.persistence.get_stats(code) is None


@pytest.mark.asyncio
async def test_redirect_counts_visit_in_background(persistent_engine: ShortenerEngine) -> None:
    code = await persistent_engine.add_url("https://python.org")
    await persistent_engine.drain()

    for _ in range(3):
        assert await persistent_engine.redirect(code) == "https://python.org"
        await persistent_engine.drain()

    stats = await persistent_engine.persistence.get_stats(code)
    assert stats.clicks == 3


@pytest.mark.asyncio
async def test_redirect_unknown_code_schedules_nothing(engine: ShortenerEngine) -> None:
    assert await engine.redirect("nope00") is None
    assert engine.pending_tasks == 0


# ============================================================================
# SHORTEN AND RESET
# ============================================================================


@pytest.mark.asyncio
async def test_shorten_composes_display_link(forward: InMemoryStore, reverse: InMemoryStore) -> None:
    engine = ShortenerEngine(forward, reverse, base_url="https://sho.rt/")
    result = await engine.shorten("https://example.com")

    assert result.original_url == "https://example.com"
    assert result.short_url == f"https://sho.rt/s/{result.short_code}"


@pytest.mark.asyncio
async def test_shorten_without_base_url(engine: ShortenerEngine) -> None:
    result = await engine.shorten("https://example.com")
    assert result.short_url is None


@pytest.mark.asyncio
async def test_reset_clears_indices_only_by_default(persistent_engine: ShortenerEngine) -> None:
    code = await persistent_engine.add_url("https://example.com")
    await persistent_engine.reset()

    assert await persistent_engine.size() == 0
    assert await persistent_engine.reverse.size() == 0
    assert await persistent_engine.resolve(code) is None
    assert await persistent_engine.persistence.get_stats(code) is not None


@pytest.mark.asyncio
async def test_reset_can_clear_persistent_records(persistent_engine: ShortenerEngine) -> None:
    code = await persistent_engine.add_url("https://example.com")
    await persistent_engine.reset(clear_persistent=True)

    assert await persistent_engine.size() == 0
    assert await persistent_engine.persistence.get_stats(code) is None
    assert await persistent_engine.persistence.list_all() == []


@pytest.mark.asyncio
async def test_reset_default_follows_configuration(forward: InMemoryStore, reverse: InMemoryStore) -> None:
    persistence = AsyncMock()
    engine = ShortenerEngine(forward, reverse, persistence=persistence, reset_clears_persistence=True)
    await engine.add_url("https://example.com")

    await engine.reset()

    persistence.clear.assert_awaited_once()


@pytest.mark.asyncio
async def test_disabled_persistence_is_default(forward: InMemoryStore, reverse: InMemoryStore) -> None:
    engine = ShortenerEngine(forward, reverse)
    assert isinstance(engine.persistence, DisabledPersistence)
    assert engine.persistence.enabled is False
