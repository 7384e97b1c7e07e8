import pytest

from nebula.services.llm_client import (
    LLMCallError,
    close_llm_client,
    get_llm_client,
    parse_json_object,
)


class _FakeAsyncClient:
    def __init__(self):
        self.closed = False

    async def close(self):
        self.closed = True


@pytest.fixture
def fresh_client_cache():
    get_llm_client.cache_clear()
    yield
    get_llm_client.cache_clear()


def test_provider_reuses_one_client_per_process(fresh_client_cache):
    assert get_llm_client() is get_llm_client()


@pytest.mark.anyio("asyncio")
async def test_close_releases_the_cached_client(fresh_client_cache):
    client = get_llm_client()
    underlying = _FakeAsyncClient()
    client._client = underlying

    await close_llm_client()

    assert underlying.closed is True
    assert client._client is None
    assert get_llm_client() is not client


@pytest.mark.anyio("asyncio")
async def test_close_without_a_client_is_a_no_op(fresh_client_cache):
    await close_llm_client()
    assert get_llm_client.cache_info().currsize == 0


def test_parse_json_object_rejects_non_objects():
    assert parse_json_object('{"summary": "ok"}') == {"summary": "ok"}
    with pytest.raises(LLMCallError):
        parse_json_object("[]")
    with pytest.raises(LLMCallError):
        parse_json_object("not json")
