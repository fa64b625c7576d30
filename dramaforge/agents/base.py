"""
Base Agent Implementation for DramaForge
Completion-provider clients and the common functionality of every agent role.
"""

import time
from abc import ABC, abstractmethod
from typing import AsyncIterator, Callable, Dict, List, Optional

from ..config import OPENAI_COMPATIBLE_PROVIDERS, LLMConfiguration, LLMProvider
from ..core.errors import MissingCredentialsError, ProviderError
from ..core.log import get_logger
from ..models import AgentEvent, AgentRole

logger = get_logger(__name__)

ChatMessages = List[Dict[str, str]]
EventCallback = Callable[[AgentEvent], None]

JSON_ONLY_INSTRUCTION = "You MUST respond with valid JSON only, no other text."


class LLMClient(ABC):
    """Chat completion capability, plain or streamed, with a JSON-mode hint."""

    model: str = ""

    @abstractmethod
    async def complete(
        self,
        messages: ChatMessages,
        json_mode: bool = False,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> str:
        pass

    @abstractmethod
    def stream(
        self,
        messages: ChatMessages,
        json_mode: bool = False,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        pass


def _split_system(messages: ChatMessages) -> tuple[str, ChatMessages]:
    system_parts = [m["content"] for m in messages if m["role"] == "system"]
    chat = [m for m in messages if m["role"] != "system"]
    return "\n\n".join(system_parts), chat


class OpenAICompatibleClient(LLMClient):
    """
    OpenAI chat-completions client; also serves OpenRouter, DeepSeek and NVIDIA NIM.

    Models without a native JSON response format get the JSON instruction in
    the system prompt instead.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: Optional[str] = None,
        timeout: float = 120,
        supports_json_mode: bool = True,
        default_headers: Optional[Dict[str, str]] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.timeout = timeout
        self.supports_json_mode = supports_json_mode
        self.default_headers = default_headers or {}
        self._client = None

    def _get_client(self):
        if self._client is None:
            from openai import AsyncOpenAI
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
                default_headers=self.default_headers or None,
            )
        return self._client

    def _kwargs(self, messages, json_mode, temperature, max_tokens) -> Dict:
        kwargs = {"model": self.model, "messages": messages, "temperature": temperature}
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        if json_mode and self.supports_json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        elif json_mode:
            system, chat = _split_system(messages)
            system = f"{system}\n\n{JSON_ONLY_INSTRUCTION}" if system else JSON_ONLY_INSTRUCTION
            kwargs["messages"] = [{"role": "system", "content": system}, *chat]
        return kwargs

    async def complete(self, messages, json_mode=False, temperature=0.7, max_tokens=None) -> str:
        client = self._get_client()
        response = await client.chat.completions.create(**self._kwargs(messages, json_mode, temperature, max_tokens))
        return response.choices[0].message.content or ""

    async def stream(self, messages, json_mode=False, temperature=0.7, max_tokens=None) -> AsyncIterator[str]:
        client = self._get_client()
        response = await client.chat.completions.create(
            **self._kwargs(messages, json_mode, temperature, max_tokens),
            stream=True,
        )
        async for chunk in response:
            if chunk.choices and chunk.choices[0].delta.content:
                yield chunk.choices[0].delta.content


class ClaudeClient(LLMClient):
    """Anthropic Claude client. JSON mode is expressed as a system instruction."""

    def __init__(self, api_key: str, model: str, max_tokens: int = 8192, timeout: float = 120):
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._client = None

    def _get_client(self):
        if self._client is None:
            from anthropic import AsyncAnthropic
            self._client = AsyncAnthropic(api_key=self.api_key, timeout=self.timeout)
        return self._client

    def _prepare(self, messages: ChatMessages, json_mode: bool) -> tuple[str, ChatMessages]:
        system, chat = _split_system(messages)
        if json_mode:
            system = f"{system}\n\n{JSON_ONLY_INSTRUCTION}" if system else JSON_ONLY_INSTRUCTION

        # roles must alternate and the first turn must come from the user
        merged: ChatMessages = []
        for m in chat:
            if merged and merged[-1]["role"] == m["role"]:
                merged[-1] = {"role": m["role"], "content": merged[-1]["content"] + "\n\n" + m["content"]}
            else:
                merged.append({"role": m["role"], "content": m["content"]})
        if not merged or merged[0]["role"] != "user":
            merged.insert(0, {"role": "user", "content": "(conversation continues)"})
        return system, merged

    async def complete(self, messages, json_mode=False, temperature=0.7, max_tokens=None) -> str:
        client = self._get_client()
        system, chat = self._prepare(messages, json_mode)
        response = await client.messages.create(
            model=self.model,
            max_tokens=max_tokens or self.max_tokens,
            system=system,
            messages=chat,
            temperature=temperature,
        )
        return "".join(block.text for block in response.content if getattr(block, "type", "") == "text")

    async def stream(self, messages, json_mode=False, temperature=0.7, max_tokens=None) -> AsyncIterator[str]:
        client = self._get_client()
        system, chat = self._prepare(messages, json_mode)
        async with client.messages.stream(
            model=self.model,
            max_tokens=max_tokens or self.max_tokens,
            system=system,
            messages=chat,
            temperature=temperature,
        ) as stream:
            async for text in stream.text_stream:
                yield text


class GeminiClient(LLMClient):
    """Google Gemini client using response_mime_type for JSON mode."""

    def __init__(self, api_key: str, model: str):
        self.api_key = api_key
        self.model = model
        self._configured = False

    def _get_model(self, system: str):
        import google.generativeai as genai
        if not self._configured:
            genai.configure(api_key=self.api_key)
            self._configured = True
        return genai.GenerativeModel(self.model, system_instruction=system or None)

    def _prepare(self, messages: ChatMessages, json_mode: bool, temperature: float, max_tokens: Optional[int]):
        system, chat = _split_system(messages)
        contents = [
            {"role": "model" if m["role"] == "assistant" else "user", "parts": [m["content"]]}
            for m in chat
        ]
        generation_config: Dict = {"temperature": temperature}
        if max_tokens:
            generation_config["max_output_tokens"] = max_tokens
        if json_mode:
            generation_config["response_mime_type"] = "application/json"
        return system, contents, generation_config

    async def complete(self, messages, json_mode=False, temperature=0.7, max_tokens=None) -> str:
        system, contents, generation_config = self._prepare(messages, json_mode, temperature, max_tokens)
        model = self._get_model(system)
        response = await model.generate_content_async(contents, generation_config=generation_config)
        return response.text

    async def stream(self, messages, json_mode=False, temperature=0.7, max_tokens=None) -> AsyncIterator[str]:
        system, contents, generation_config = self._prepare(messages, json_mode, temperature, max_tokens)
        model = self._get_model(system)
        response = await model.generate_content_async(contents, generation_config=generation_config, stream=True)
        async for chunk in response:
            if chunk.parts:
                yield chunk.text


def create_llm_client(
    provider: LLMProvider,
    config: LLMConfiguration,
    model: str,
) -> LLMClient:
    """Factory function to create the client for a provider."""
    provider_config = config.get_provider_config(provider)
    if provider_config is None or not provider_config.enabled:
        raise MissingCredentialsError(f"Missing credentials: no API key configured for provider '{provider.value}'")

    api_key = provider_config.api_key.get_secret_value()
    if not api_key:
        raise MissingCredentialsError(f"Missing credentials: empty API key for provider '{provider.value}'")

    if provider in OPENAI_COMPATIBLE_PROVIDERS:
        headers = {}
        if provider == LLMProvider.OPENROUTER and config.openrouter.app_name:
            headers["X-Title"] = config.openrouter.app_name
        return OpenAICompatibleClient(
            api_key=api_key,
            model=model,
            base_url=provider_config.base_url,
            timeout=config.timeout_seconds,
            supports_json_mode=provider_config.supports_json_mode(model),
            default_headers=headers,
        )
    if provider == LLMProvider.CLAUDE:
        return ClaudeClient(
            api_key=api_key,
            model=model,
            max_tokens=config.claude.max_tokens,
            timeout=config.timeout_seconds,
        )
    if provider == LLMProvider.GEMINI:
        return GeminiClient(api_key=api_key, model=model)

    raise ValueError(f"Unsupported provider: {provider}")


# ============================================================================
# Base Agent
# ============================================================================

def _clip(text: str, limit: int = 200) -> str:
    return text[:limit] + "..." if len(text) > limit else text


class BaseAgent:
    """
    Base class for all DramaForge agent roles.

    Provider errors are classified here, once, and re-raised as
    ProviderError. The only automatic retry is dropping a rejected
    JSON-mode hint.
    """

    role: AgentRole = AgentRole.WRITER

    def __init__(
        self,
        llm_client: LLMClient,
        system_prompt: str,
        temperature: float = 0.7,
        event_callback: Optional[EventCallback] = None,
    ):
        self.name = self.role.value
        self.llm_client = llm_client
        self.system_prompt = system_prompt
        self.temperature = temperature
        self.event_callback = event_callback

    def _messages(self, user_prompt: str, system_prompt: Optional[str] = None) -> ChatMessages:
        return [
            {"role": "system", "content": system_prompt or self.system_prompt},
            {"role": "user", "content": user_prompt},
        ]

    def _emit_event(self, action: str, messages: ChatMessages, output: str, started: float, success: bool = True) -> None:
        if self.event_callback is None:
            return
        event = AgentEvent(
            agent_name=self.name,
            action=action,
            input_summary=_clip(messages[-1]["content"] if messages else ""),
            output_summary=_clip(output),
            duration_ms=int((time.time() - started) * 1000),
            success=success,
        )
        try:
            self.event_callback(event)
        except Exception:
            logger.exception(f"[{self.name}] event callback raised")

    async def _complete(self, messages: ChatMessages, json_mode: bool = False, action: str = "complete") -> str:
        started = time.time()
        try:
            try:
                text = await self.llm_client.complete(messages, json_mode=json_mode, temperature=self.temperature)
            except Exception as e:
                if not json_mode:
                    raise
                logger.warning(f"[{self.name}] JSON mode request failed ({type(e).__name__}: {e}); retrying without it")
                text = await self.llm_client.complete(messages, json_mode=False, temperature=self.temperature)
        except Exception as e:
            error = ProviderError.from_exception(e, self.name)
            logger.error(f"[{self.name}] {action} failed: {error} ({error.kind.value})")
            self._emit_event(action, messages, str(error), started, success=False)
            raise error from e

        self._emit_event(action, messages, text, started)
        return text

    async def _stream(self, messages: ChatMessages, json_mode: bool = False, action: str = "stream") -> AsyncIterator[str]:
        started = time.time()
        use_json = json_mode
        received: List[str] = []
        while True:
            try:
                async for chunk in self.llm_client.stream(messages, json_mode=use_json, temperature=self.temperature):
                    received.append(chunk)
                    yield chunk
                break
            except Exception as e:
                if use_json and not received:
                    logger.warning(f"[{self.name}] JSON mode stream failed ({type(e).__name__}: {e}); retrying without it")
                    use_json = False
                    continue
                error = ProviderError.from_exception(e, self.name)
                logger.error(f"[{self.name}] {action} failed after {len(received)} chunks: {error}")
                self._emit_event(action, messages, str(error), started, success=False)
                raise error from e

        self._emit_event(action, messages, "".join(received), started)
