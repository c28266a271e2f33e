from __future__ import annotations

import logging
from typing import cast

import httpx

from .provider_failures import FailureKind, ProviderFailure, raise_for_status

logger = logging.getLogger(__name__)


def _json_body(res: httpx.Response) -> object:
    try:
        return cast(object, res.json())
    except Exception as exc:
        raise ProviderFailure(FailureKind.MALFORMED_RESPONSE, f"non-json body: {exc}") from exc


class OpenAICompatibleClient:
    """Chat-completions endpoint (OpenAI, DeepSeek, Azure OpenAI, ...)."""

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        model: str,
        timeout_seconds: float = 60.0,
        auth_header_name: str | None = None,
        auth_prefix: str | None = None,
        chat_completions_path: str | None = None,
        response_format: str | None = None,
    ) -> None:
        self.base_url: str = str(base_url or "").strip()
        self.api_key: str = str(api_key or "").strip()
        self.model: str = str(model or "").strip() or "gpt-4o-mini"
        self.timeout_seconds: float = float(timeout_seconds)
        self.auth_header_name: str | None = auth_header_name
        self.auth_prefix: str | None = auth_prefix
        self.chat_completions_path: str | None = chat_completions_path
        self.response_format: str | None = response_format

    def _url(self) -> str:
        path = str(self.chat_completions_path or "/chat/completions").strip() or "/chat/completions"
        if not path.startswith("/"):
            path = "/" + path
        return self.base_url.rstrip("/") + path

    def _headers(self) -> dict[str, str]:
        if not self.base_url or not self.api_key:
            raise ProviderFailure(FailureKind.AUTH_CONFIG, "openai-compatible provider is not configured")
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self.auth_header_name:
            prefix = str(self.auth_prefix or "")
            headers[str(self.auth_header_name)] = f"{prefix}{self.api_key}"
        else:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _chat(self, messages: list[dict[str, object]], *, temperature: float, max_tokens: int, json_mode: bool) -> str:
        headers = self._headers()
        url = self._url()
        payload: dict[str, object] = {
            "model": self.model,
            "messages": messages,
            "temperature": float(temperature),
            "max_tokens": int(max_tokens),
        }

        rf = str(self.response_format or "").strip().lower()
        if json_mode and rf not in {"0", "off", "none", "disable", "disabled"}:
            payload["response_format"] = {"type": "json_object"}

        timeout = httpx.Timeout(self.timeout_seconds)
        async with httpx.AsyncClient(timeout=timeout) as client:
            res = await client.post(url, headers=headers, json=payload)
            if (int(res.status_code) in {400, 422}) and ("response_format" in payload):
                logger.warning(
                    "contract_llm response_format unsupported, fallback to prompt-only. status=%s model=%s",
                    int(res.status_code),
                    self.model,
                )
                payload2: dict[str, object] = dict(payload)
                _ = payload2.pop("response_format", None)
                res = await client.post(url, headers=headers, json=payload2)
            raise_for_status(res)
            data_obj = _json_body(res)

        if not isinstance(data_obj, dict):
            raise ProviderFailure(FailureKind.MALFORMED_RESPONSE, "chat reply is not an object")
        data = cast(dict[str, object], data_obj)

        choices_obj = data.get("choices")
        if not isinstance(choices_obj, list) or not choices_obj:
            raise ProviderFailure(FailureKind.MALFORMED_RESPONSE, "chat reply has no choices")
        first_obj = cast(list[object], choices_obj)[0]
        if not isinstance(first_obj, dict):
            raise ProviderFailure(FailureKind.MALFORMED_RESPONSE, "chat choice is not an object")
        msg_any = cast(dict[str, object], first_obj).get("message")
        if not isinstance(msg_any, dict):
            raise ProviderFailure(FailureKind.MALFORMED_RESPONSE, "chat choice has no message")
        content_any = cast(dict[str, object], msg_any).get("content")
        if not isinstance(content_any, str):
            raise ProviderFailure(FailureKind.MALFORMED_RESPONSE, "chat message has no content")
        return content_any.strip()

    async def generate(self, prompt: str) -> str:
        return await self._chat(
            [{"role": "user", "content": str(prompt)}],
            temperature=0.2,
            max_tokens=1400,
            json_mode=True,
        )

    async def read_image(self, image_base64: str, mime_type: str, prompt: str) -> str:
        content: list[dict[str, object]] = [
            {"type": "text", "text": str(prompt)},
            {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{image_base64}"}},
        ]
        return await self._chat(
            [{"role": "user", "content": content}],
            temperature=0.1,
            max_tokens=4096,
            json_mode=False,
        )


class GeminiClient:
    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        model: str,
        timeout_seconds: float = 60.0,
    ) -> None:
        self.base_url: str = str(base_url or "").strip()
        self.api_key: str = str(api_key or "").strip()
        self.model: str = str(model or "").strip() or "gemini-1.5-pro"
        self.timeout_seconds: float = float(timeout_seconds)

    async def _generate_content(self, parts: list[dict[str, object]], *, temperature: float, max_tokens: int) -> str:
        if not self.base_url or not self.api_key:
            raise ProviderFailure(FailureKind.AUTH_CONFIG, "gemini provider is not configured")
        model = self.model if self.model.startswith("models/") else f"models/{self.model}"
        url = f"{self.base_url.rstrip('/')}/{model}:generateContent"
        headers = {"Content-Type": "application/json", "x-goog-api-key": self.api_key}
        payload: dict[str, object] = {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {"temperature": float(temperature), "maxOutputTokens": int(max_tokens)},
        }

        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_seconds)) as client:
            res = await client.post(url, headers=headers, json=payload)
            raise_for_status(res)
            data_obj = _json_body(res)

        if not isinstance(data_obj, dict):
            raise ProviderFailure(FailureKind.MALFORMED_RESPONSE, "gemini reply is not an object")
        data = cast(dict[str, object], data_obj)
        candidates = data.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            feedback = data.get("promptFeedback")
            raise ProviderFailure(FailureKind.MALFORMED_RESPONSE, f"gemini reply has no candidates feedback={feedback}")
        first = cast(list[object], candidates)[0]
        content = cast(dict[str, object], first).get("content") if isinstance(first, dict) else None
        parts_out = cast(dict[str, object], content).get("parts") if isinstance(content, dict) else None
        if not isinstance(parts_out, list):
            raise ProviderFailure(FailureKind.MALFORMED_RESPONSE, "gemini candidate has no parts")
        texts: list[str] = []
        for p in cast(list[object], parts_out):
            if isinstance(p, dict):
                t = cast(dict[str, object], p).get("text")
                if isinstance(t, str):
                    texts.append(t)
        return "".join(texts).strip()

    async def generate(self, prompt: str) -> str:
        return await self._generate_content([{"text": str(prompt)}], temperature=0.2, max_tokens=2048)

    async def read_image(self, image_base64: str, mime_type: str, prompt: str) -> str:
        parts: list[dict[str, object]] = [
            {"text": str(prompt)},
            {"inline_data": {"mime_type": str(mime_type), "data": str(image_base64)}},
        ]
        return await self._generate_content(parts, temperature=0.1, max_tokens=4096)


class HuggingFaceClient:
    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        model: str,
        timeout_seconds: float = 10.0,
    ) -> None:
        self.base_url: str = str(base_url or "").strip()
        self.api_key: str = str(api_key or "").strip()
        self.model: str = str(model or "").strip()
        self.timeout_seconds: float = float(timeout_seconds)

    async def generate(self, prompt: str) -> str:
        if not self.base_url or not self.api_key or not self.model:
            raise ProviderFailure(FailureKind.AUTH_CONFIG, "huggingface provider is not configured")
        url = f"{self.base_url.rstrip('/')}/models/{self.model}"
        headers = {"Content-Type": "application/json", "Authorization": f"Bearer {self.api_key}"}
        payload: dict[str, object] = {
            "inputs": str(prompt),
            "parameters": {
                "max_new_tokens": 1024,
                "temperature": 0.7,
                "top_p": 0.9,
                "do_sample": True,
                "return_full_text": False,
            },
        }

        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_seconds)) as client:
            res = await client.post(url, headers=headers, json=payload)

        # The inference API answers 503 {"error": "... is currently loading"} while warming up.
        body: object = None
        try:
            body = cast(object, res.json())
        except Exception:
            body = None
        if isinstance(body, dict):
            err = cast(dict[str, object], body).get("error")
            if err:
                err_s = str(err)
                if "loading" in err_s.lower():
                    raise ProviderFailure(FailureKind.RATE_LIMITED, f"model loading: {err_s}")
                if int(res.status_code) < 400:
                    raise ProviderFailure(FailureKind.UNKNOWN, f"huggingface error: {err_s}")
        raise_for_status(res)

        if isinstance(body, list) and body and isinstance(body[0], dict):
            text = cast(dict[str, object], body[0]).get("generated_text")
            if isinstance(text, str):
                return text.strip()
        if isinstance(body, dict):
            text = cast(dict[str, object], body).get("generated_text")
            if isinstance(text, str):
                return text.strip()
        raise ProviderFailure(FailureKind.MALFORMED_RESPONSE, "huggingface reply has no generated_text")
