from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List

import httpx

from settings import SETTINGS, Settings

logger = logging.getLogger(__name__)


class LLMError(RuntimeError):
    pass


class LLMUnavailableError(LLMError):
    """No API key is configured for the selected provider."""


class LLMCallError(LLMError):
    """The upstream model call failed or returned nothing usable."""


@dataclass
class LLMResult:
    text: str
    provider: str
    model: str
    raw: Dict[str, Any]


class LLMRuntime:
    """Swappable chat-completion runtime (OpenAI, xAI, Anthropic) over plain HTTP."""

    OPENAI_COMPATIBLE = {"openai", "xai", "grok"}

    def __init__(self, provider: str | None = None, model: str | None = None, settings: Settings | None = None) -> None:
        self.settings = settings or SETTINGS
        self.provider = (provider or self.settings.default_llm_provider or "none").lower()
        self.model = model or self.settings.default_model

    def available(self) -> bool:
        return bool(self._api_key())

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        context: Dict[str, Any] | None = None,
        response_format: str = "text",
        temperature: float = 0.1,
        max_tokens: int = 400,
    ) -> LLMResult:
        if not self.available():
            raise LLMUnavailableError(f"llm provider '{self.provider}' is not configured")
        content = self._compose_user_content(user_prompt, context or {}, response_format)
        try:
            if self.provider == "anthropic":
                result = await self._generate_anthropic(system_prompt, content, temperature, max_tokens)
            elif self.provider in self.OPENAI_COMPATIBLE:
                result = await self._generate_openai_compatible(system_prompt, content, response_format, temperature, max_tokens)
            else:
                raise LLMUnavailableError(f"unsupported llm provider '{self.provider}'")
        except httpx.HTTPError as exc:
            raise LLMCallError(f"{self.provider} request failed: {exc}") from exc
        if not result.text:
            raise LLMCallError(f"{self.provider} returned an empty completion")
        logger.debug("llm_generate_ok", extra={"llm_provider": self.provider, "model": self.model, "chars": len(result.text)})
        return result

    def _api_key(self) -> str:
        if self.provider == "anthropic":
            return self.settings.anthropic_api_key
        if self.provider in {"xai", "grok"}:
            return self.settings.xai_api_key
        if self.provider == "openai":
            return self.settings.openai_api_key
        return ""

    def _base_url(self) -> str:
        if self.provider == "anthropic":
            return self.settings.anthropic_base_url
        if self.provider in {"xai", "grok"}:
            return self.settings.xai_base_url
        return self.settings.openai_base_url

    async def _generate_openai_compatible(
        self,
        system_prompt: str,
        content: str,
        response_format: str,
        temperature: float,
        max_tokens: int,
    ) -> LLMResult:
        body: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": content},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if response_format == "json":
            body["response_format"] = {"type": "json_object"}
        data = await self._post(
            "/chat/completions",
            headers={"Authorization": f"Bearer {self._api_key()}"},
            body=body,
        )
        return LLMResult(text=self._extract_chat_completion_text(data), provider=self.provider, model=self.model, raw=data)

    async def _generate_anthropic(self, system_prompt: str, content: str, temperature: float, max_tokens: int) -> LLMResult:
        data = await self._post(
            "/messages",
            headers={
                "x-api-key": self._api_key(),
                "anthropic-version": "2023-06-01",
                "content-type": "application/json",
            },
            body={
                "model": self.model,
                "max_tokens": max_tokens,
                "temperature": temperature,
                "system": system_prompt,
                "messages": [{"role": "user", "content": content}],
            },
        )
        parts = [
            str(block.get("text", ""))
            for block in data.get("content", [])
            if isinstance(block, dict) and block.get("type") == "text"
        ]
        return LLMResult(text="\n".join(p for p in parts if p).strip(), provider="anthropic", model=self.model, raw=data)

    async def _post(self, path: str, headers: Dict[str, str], body: Dict[str, Any]) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.settings.llm_timeout_seconds) as client:
            resp = await client.post(f"{self._base_url().rstrip('/')}{path}", headers=headers, json=body)
            resp.raise_for_status()
            return resp.json()

    def _compose_user_content(self, user_prompt: str, context: Dict[str, Any], response_format: str) -> str:
        suffix = "\nReturn valid JSON only." if response_format == "json" else ""
        if not context:
            return f"{user_prompt}{suffix}"
        blob = json.dumps(context, ensure_ascii=True, default=str)[:6000]
        return f"{user_prompt}\n\nContext JSON:\n{blob}{suffix}"

    def _extract_chat_completion_text(self, data: Dict[str, Any]) -> str:
        choices = data.get("choices") or []
        if not choices or not isinstance(choices[0], dict):
            return ""
        message = choices[0].get("message") or {}
        content = message.get("content", "") if isinstance(message, dict) else ""
        if isinstance(content, list):
            out: List[str] = [str(part.get("text", "")) for part in content if isinstance(part, dict)]
            return "\n".join(t for t in out if t).strip()
        return str(content or "").strip()
