import pytest
from loguru import logger
from veo_studio_client.errors import ServiceUnavailable
from veo_studio_client.models import PromptFields, TextGenerationConfig
from veo_studio_client.text_generation_client import TextGenerationClient

KEYS = ["key-a", "key-b", "key-c"]
AUDIO_NOTE = "Note that output audio must be in burmese language."


def make_client(base_url, clock, keys=KEYS, secondary=True) -> TextGenerationClient:
    config = TextGenerationConfig(
        gemini_api_keys=keys,
        gemini_base_url=base_url,
        deepseek_api_key="ds-key" if secondary else None,
        deepseek_base_url=base_url,
    )
    return TextGenerationClient.from_config(config, sleep=clock.sleep)


@pytest.fixture
def fields() -> PromptFields:
    return PromptFields(
        location="Shwedagon Pagoda at sunset",
        character1="Aung, a young reporter in a blue longyi",
        character2="Daw Mya, an elderly flower seller",
        dialogue1="How long have you worked here?",
        dialogue2="For forty years.",
        prompt_type="interview",
    )


@pytest.mark.asyncio
async def test_translate_uses_first_key(server, clock):
    """Test a healthy first key answers with trimmed text."""
    server_instance, base_url = server
    client = make_client(base_url, clock)

    result = await client.translate("မင်္ဂလာပါ")

    assert result == "gemini:key-a"
    assert server_instance.calls_to("gemini") == ["key-a"]

    payload = server_instance.requests[0]
    parts = payload["contents"][0]["parts"]
    assert len(parts) == 2
    assert "Myanmar to English translator" in parts[0]["text"]
    assert "မင်္ဂလာပါ" in parts[1]["text"]
    assert payload["generationConfig"] == {
        "temperature": 0.3,
        "topK": 20,
        "topP": 0.8,
        "maxOutputTokens": 512,
    }
    assert len(payload["safetySettings"]) == 4


@pytest.mark.asyncio
async def test_rotation_continues_across_operations(server, clock, fields):
    """Test consecutive calls start from the next key, whatever the operation."""
    server_instance, base_url = server
    client = make_client(base_url, clock)

    assert await client.translate("one") == "gemini:key-a"
    assert await client.generate_structured_prompt(fields) == "gemini:key-b"
    assert await client.translate("three") == "gemini:key-c"
    assert await client.translate("four") == "gemini:key-a"

    assert server_instance.calls_to("gemini") == ["key-a", "key-b", "key-c", "key-a"]
    assert client.rotation_cursor == 1


@pytest.mark.asyncio
async def test_clients_rotate_independently(server, clock):
    """Test two clients never share a rotation cursor."""
    server_instance, base_url = server
    first = make_client(base_url, clock)
    second = make_client(base_url, clock)

    await first.translate("one")
    await first.translate("two")
    await second.translate("three")

    assert server_instance.calls_to("gemini") == ["key-a", "key-b", "key-a"]


@pytest.mark.asyncio
@pytest.mark.parametrize("pool_size", [1, 2, 3, 5])
async def test_quota_on_every_key_then_secondary(server, clock, pool_size):
    """Test a 429 on every key touches each key once, then the secondary once."""
    server_instance, base_url = server
    keys = [f"key-{i}" for i in range(pool_size)]
    for key in keys:
        server_instance.script_gemini(key, 429)
    client = make_client(base_url, clock, keys=keys)

    result = await client.translate("hello")

    assert result == "deepseek"
    assert server_instance.calls_to("gemini") == keys
    assert server_instance.calls_to("deepseek") == ["Bearer ds-key"]
    assert clock.sleeps == []
    assert client.rotation_cursor == 0


@pytest.mark.asyncio
async def test_overload_retries_same_key_once(server, clock):
    """Test a 503 on the first attempt retries the same key after 2 seconds."""
    server_instance, base_url = server
    server_instance.script_gemini("key-a", 503)
    client = make_client(base_url, clock)

    result = await client.translate("hello")

    assert result == "gemini:key-a"
    assert server_instance.calls_to("gemini") == ["key-a", "key-a"]
    assert clock.sleeps == [2.0]


@pytest.mark.asyncio
async def test_second_overload_moves_to_next_key(server, clock):
    """Test two 503s in a row give up on the key without a further retry."""
    server_instance, base_url = server
    server_instance.script_gemini("key-a", 503, 503)
    client = make_client(base_url, clock)

    result = await client.translate("hello")

    assert result == "gemini:key-b"
    assert server_instance.calls_to("gemini") == ["key-a", "key-a", "key-b"]
    assert clock.sleeps == [2.0]


@pytest.mark.asyncio
async def test_other_errors_move_on_without_retry(server, clock):
    """Test a non-quota, non-overload error moves straight to the next key."""
    server_instance, base_url = server
    server_instance.script_gemini("key-a", 500)
    server_instance.script_gemini("key-b", 400)
    client = make_client(base_url, clock)

    result = await client.translate("hello")

    assert result == "gemini:key-c"
    assert server_instance.calls_to("gemini") == ["key-a", "key-b", "key-c"]
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_malformed_body_counts_as_failed_attempt(server, clock):
    """Test a 200 without candidates is treated like a failed attempt."""
    server_instance, base_url = server
    server_instance.script_gemini("key-a", 200, body={"candidates": []})
    client = make_client(base_url, clock)

    result = await client.translate("hello")

    assert result == "gemini:key-b"
    assert server_instance.calls_to("gemini") == ["key-a", "key-b"]


@pytest.mark.asyncio
async def test_translate_fails_loudly_on_total_outage(server, clock):
    """Test translate raises ServiceUnavailable once every provider failed."""
    server_instance, base_url = server
    for key in KEYS:
        server_instance.script_gemini(key, 429)
    server_instance.script_deepseek(500)
    client = make_client(base_url, clock)

    with pytest.raises(ServiceUnavailable, match="try again"):
        await client.translate("hello")

    assert server_instance.calls_to("gemini") == KEYS
    assert len(server_instance.calls_to("deepseek")) == 1


@pytest.mark.asyncio
async def test_translate_without_secondary(server, clock):
    """Test an exhausted pool with no secondary provider is a total outage."""
    server_instance, base_url = server
    for key in KEYS:
        server_instance.script_gemini(key, 500)
    client = make_client(base_url, clock, secondary=False)

    with pytest.raises(ServiceUnavailable):
        await client.translate("hello")

    assert server_instance.calls_to("deepseek") == []


@pytest.mark.asyncio
async def test_prompt_authoring_uses_single_attempt_per_key(server, clock, fields):
    """Test prompt authoring does not retry an overloaded key in place."""
    server_instance, base_url = server
    server_instance.script_gemini("key-a", 503)
    client = make_client(base_url, clock)

    result = await client.generate_structured_prompt(fields)

    assert result == "gemini:key-b"
    assert server_instance.calls_to("gemini") == ["key-a", "key-b"]
    assert clock.sleeps == []

    payload = server_instance.requests[-1]
    user_text = payload["contents"][0]["parts"][1]["text"]
    assert "Location: Shwedagon Pagoda at sunset" in user_text
    assert "Prompt Type: interview" in user_text
    assert payload["generationConfig"]["maxOutputTokens"] == 1024


@pytest.mark.asyncio
async def test_secondary_gets_same_messages(server, clock, fields):
    """Test the secondary provider receives the system and user messages."""
    server_instance, base_url = server
    for key in KEYS:
        server_instance.script_gemini(key, 429)
    client = make_client(base_url, clock)

    result = await client.generate_structured_prompt(fields)

    assert result == "deepseek"
    payload = server_instance.requests[-1]
    assert payload["model"] == "deepseek-chat"
    assert payload["max_tokens"] == 1024
    assert payload["temperature"] == 0.3
    assert [m["role"] for m in payload["messages"]] == ["system", "user"]
    assert "Daw Mya" in payload["messages"][1]["content"]


@pytest.mark.asyncio
async def test_prompt_authoring_falls_back_to_local_template(server, clock, fields):
    """Test prompt authoring still returns a prompt when everything is down."""
    server_instance, base_url = server
    for key in KEYS:
        server_instance.script_gemini(key, 503)
    server_instance.script_deepseek(503)
    client = make_client(base_url, clock)

    result = await client.generate_structured_prompt(fields)

    assert fields.location in result
    assert fields.character1 in result
    assert fields.character2 in result
    assert fields.dialogue1 in result
    assert fields.dialogue2 in result
    assert result.endswith(AUDIO_NOTE)


@pytest.mark.asyncio
async def test_unreachable_providers(dead_url, clock, fields):
    """Test transport errors are absorbed like any other failed attempt."""
    client = make_client(dead_url, clock, keys=["key-a", "key-b"])

    result = await client.generate_structured_prompt(fields)
    assert result.endswith(AUDIO_NOTE)
    assert client.rotation_cursor == 0

    with pytest.raises(ServiceUnavailable):
        await client.translate("hello")


@pytest.mark.asyncio
async def test_failures_log_ordinal_not_key(server, clock):
    """Test failed attempts are logged by position, never by key value."""
    server_instance, base_url = server
    server_instance.script_gemini("secret-key-1", 429)
    messages = []
    handler_id = logger.add(messages.append, level="DEBUG")
    try:
        client = make_client(base_url, clock, keys=["secret-key-1", "secret-key-2"])
        await client.translate("hello")
    finally:
        logger.remove(handler_id)

    assert any("API key 1 quota exceeded" in m for m in messages)
    assert not any("secret-key" in m for m in messages)


def test_empty_pool_rejected():
    with pytest.raises(ValueError):
        TextGenerationClient([])
