import httpx
import openai
import pytest

STRUCTURED_REPLY = """**Answer** - Use a context manager.

**Steps**
- Open the file with `with open(...)`
- Read the contents

**Citations** - Python docs"""


def _openai_error(cls, status):
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    return cls(message="vendor failure", response=httpx.Response(status, request=request), body=None)


async def test_chat_returns_completion_and_parsed_answer(client, fake_ai):
    fake_ai.content = STRUCTURED_REPLY

    response = await client.post(
        "/api/chat",
        json={"messages": [{"role": "user", "content": "How do I read a file?"}], "systemPrompt": "Be brief."},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["choices"][0]["message"] == {"role": "assistant", "content": STRUCTURED_REPLY}
    assert body["usage"] == {"promptTokens": 12, "completionTokens": 7, "totalTokens": 19}
    assert body["choices"][0]["finishReason"] == "stop"
    assert body["parsed"]["answer"] == "Use a context manager."
    assert body["parsed"]["steps"] == ["Open the file with `with open(...)`", "Read the contents"]
    assert body["parsed"]["citations"] == "Python docs"
    assert body["sessionId"] is None


async def test_system_prompt_is_prepended(client, fake_ai):
    await client.post(
        "/api/chat",
        json={
            "messages": [
                {"role": "user", "content": "Hi"},
                {"role": "assistant", "content": "Hello"},
                {"role": "user", "content": "Bye"},
            ],
            "systemPrompt": "You are terse.",
        },
    )

    sent = fake_ai.calls[0]["messages"]
    assert sent[0] == {"role": "system", "content": "You are terse."}
    assert [m["role"] for m in sent[1:]] == ["user", "assistant", "user"]


async def test_missing_system_prompt_falls_back_to_stored_default(client, fake_ai):
    await client.post("/api/prompts", json={"name": "house", "content": "House style.", "isDefault": True})

    await client.post("/api/chat", json={"messages": [{"role": "user", "content": "Hi"}]})

    assert fake_ai.calls[0]["messages"][0] == {"role": "system", "content": "House style."}


async def test_missing_system_prompt_without_default_is_empty(client, fake_ai):
    await client.post("/api/chat", json={"messages": [{"role": "user", "content": "Hi"}]})

    assert fake_ai.calls[0]["messages"][0] == {"role": "system", "content": ""}


async def test_image_attachment_becomes_multipart_content(client, fake_ai):
    await client.post(
        "/api/chat",
        json={
            "messages": [{"role": "user", "content": "What is this?", "imageData": "aGVsbG8=", "imageType": "image/jpeg"}],
            "systemPrompt": "",
        },
    )

    content = fake_ai.calls[0]["messages"][1]["content"]
    assert content[0] == {"type": "text", "text": "What is this?"}
    assert content[1]["image_url"]["url"] == "data:image/jpeg;base64,aGVsbG8="


@pytest.mark.parametrize(
    "payload",
    [
        {"messages": "not a list"},
        {"messages": [{"role": "robot", "content": "beep"}]},
        {"messages": [{"role": "user"}]},
        {"messages": [{"role": "user", "content": ""}]},
    ],
)
async def test_invalid_messages_are_rejected(client, fake_ai, payload):
    response = await client.post("/api/chat", json=payload)

    assert response.status_code == 400
    assert "message" in response.json()
    assert fake_ai.calls == []


async def test_exchange_is_recorded_in_session(client, fake_ai):
    session = (await client.post("/api/sessions", json={})).json()

    response = await client.post(
        "/api/chat",
        json={"messages": [{"role": "user", "content": "Hi"}], "systemPrompt": "", "sessionId": session["id"]},
    )
    assert response.json()["sessionId"] == session["id"]

    messages = (await client.get(f"/api/sessions/{session['id']}/messages")).json()
    assert [(m["role"], m["content"]) for m in messages] == [
        ("user", "Hi"),
        ("assistant", fake_ai.content),
    ]
    assert messages[1]["tokenCount"] == 7


async def test_unknown_session_is_not_found(client, fake_ai):
    response = await client.post(
        "/api/chat",
        json={"messages": [{"role": "user", "content": "Hi"}], "sessionId": 404},
    )
    assert response.status_code == 404
    assert fake_ai.calls == []


@pytest.mark.parametrize(
    ("error", "status", "message"),
    [
        (_openai_error(openai.AuthenticationError, 401), 401, "Invalid API key"),
        (_openai_error(openai.RateLimitError, 429), 429, "Rate limit exceeded"),
        (_openai_error(openai.InternalServerError, 500), 500, "OpenAI service error"),
        (RuntimeError("boom"), 500, "Failed to process chat request"),
    ],
)
async def test_vendor_errors_are_mapped(client, fake_ai, error, status, message):
    fake_ai.error = error

    response = await client.post("/api/chat", json={"messages": [{"role": "user", "content": "Hi"}]})

    assert response.status_code == status
    assert response.json() == {"message": message}


async def test_empty_history_sends_only_the_system_prompt(client, fake_ai):
    response = await client.post("/api/chat", json={"messages": [], "systemPrompt": "Introduce yourself."})

    assert response.status_code == 200
    assert fake_ai.calls[0]["messages"] == [{"role": "system", "content": "Introduce yourself."}]
