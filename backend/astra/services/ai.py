from typing import List, Dict, Optional

from .. import config


class AIClient:
    async def chat(self, messages: List[Dict], **kwargs) -> Dict:
        raise NotImplementedError

    async def chat_json(self, messages: List[Dict], **kwargs) -> Dict:
        """Like ``chat`` but asks the model for a single JSON object."""
        raise NotImplementedError


class OpenAIClient(AIClient):
    def __init__(self, api_key: str):
        from openai import AsyncOpenAI
        self.client = AsyncOpenAI(api_key=api_key)

    async def chat(self, messages: List[Dict], **kwargs) -> Dict:
        request = {
            "model": kwargs.get("model") or config.OPENAI_MODEL,
            "messages": messages,
            "temperature": kwargs.get("temperature", config.OPENAI_TEMPERATURE),
        }
        if kwargs.get("max_tokens"):
            request["max_tokens"] = kwargs["max_tokens"]
        if kwargs.get("response_format"):
            request["response_format"] = kwargs["response_format"]

        response = await self.client.chat.completions.create(**request)
        choice = response.choices[0] if response.choices else None
        usage = None
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens
            }
        return {
            "id": response.id,
            "model": response.model,
            "content": choice.message.content if choice else None,
            "finish_reason": choice.finish_reason if choice else None,
            "usage": usage,
        }

    async def chat_json(self, messages: List[Dict], **kwargs) -> Dict:
        return await self.chat(messages, response_format={"type": "json_object"}, **kwargs)


def get_ai_client(provider: str = "openai", api_key: Optional[str] = None) -> AIClient:
    if provider == "openai":
        # the SDK refuses to construct without a key; real calls still fail with 401
        return OpenAIClient(api_key or config.OPENAI_API_KEY or "dummy_key_for_development")
    else:
        raise ValueError(f"Unknown provider: {provider}")


def image_message(message: Dict, image_data: str, media_type: str = "image/png") -> Dict:
    """Turn a text message plus a base64 image into a multi-part vision message."""
    return {
        "role": message["role"],
        "content": [
            {"type": "text", "text": message["content"]},
            {"type": "image_url", "image_url": {"url": f"data:{media_type};base64,{image_data}"}},
        ],
    }
