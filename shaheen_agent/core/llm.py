from __future__ import annotations
import os
import logging
import time
from typing import Optional, Dict, Any

import httpx

from .catalogue import COMPANY_NAME
from .security import validate_api_key


class GenerationError(Exception):
    """Failure reported by a generation provider; the message is shown to the user verbatim."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class GenerationProvider:
    name = "base"

    async def generate(self, prompt: str, doc_type: str) -> str:
        raise NotImplementedError


class GeminiProvider(GenerationProvider):
    name = "gemini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else os.getenv("GEMINI_API_KEY", "")
        self.model = model or os.getenv("GEMINI_MODEL", "gemini-1.5-flash-latest")
        self.base_url = (base_url or os.getenv("GEMINI_BASE", "https://generativelanguage.googleapis.com")).rstrip("/")
        self.timeout = timeout if timeout is not None else float(os.getenv("GEMINI_TIMEOUT", "60"))
        self._transport = transport
        self.logger = logging.getLogger("shaheen.llm")

    def _payload(self, prompt: str) -> Dict[str, Any]:
        return {"contents": [{"parts": [{"text": prompt.strip()}]}]}

    @staticmethod
    def _error_message(r: httpx.Response) -> str:
        try:
            data = r.json()
        except ValueError:
            return f"HTTP {r.status_code}"
        err = data.get("error") if isinstance(data, dict) else None
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str) and err:
            return err
        return f"HTTP {r.status_code}"

    @staticmethod
    def _extract_text(data: Any) -> str:
        candidates = data.get("candidates") if isinstance(data, dict) else None
        if not candidates:
            raise GenerationError("Invalid response from Gemini API")
        try:
            text = candidates[0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            raise GenerationError("No content returned from Gemini API")
        if not isinstance(text, str) or not text.strip():
            raise GenerationError("No content returned from Gemini API")
        return text

    async def generate(self, prompt: str, doc_type: str) -> str:
        if not self.api_key:
            raise GenerationError("API key not configured")
        if not validate_api_key(self.api_key):
            raise GenerationError("Invalid API key format")
        if not prompt or not prompt.strip():
            raise GenerationError("Prompt cannot be empty")

        url = f"{self.base_url}/v1beta/models/{self.model}:generateContent"
        t0 = time.time()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                r = await client.post(url, params={"key": self.api_key}, json=self._payload(prompt))
        except httpx.TimeoutException:
            raise GenerationError(f"Gemini API timed out after {self.timeout:.0f}s")
        except httpx.HTTPError as e:
            raise GenerationError(f"Network error: {e}")
        elapsed_ms = int((time.time() - t0) * 1000)

        if r.status_code >= 400:
            message = self._error_message(r)
            self.logger.warning("gemini.error status=%d doc_type=%s ms=%d message=%s", r.status_code, doc_type, elapsed_ms, message)
            raise GenerationError(message, status_code=r.status_code)
        try:
            data = r.json()
        except ValueError:
            raise GenerationError("Malformed response from Gemini API", status_code=r.status_code)
        text = self._extract_text(data)
        self.logger.debug("gemini.generate model=%s doc_type=%s ms=%d chars=%d", self.model, doc_type, elapsed_ms, len(text))
        return text


class DummyProvider(GenerationProvider):
    name = "dummy"

    async def generate(self, prompt: str, doc_type: str) -> str:
        # Offline deterministic draft when no model is configured
        return (
            f"# {COMPANY_NAME}\n\n"
            f"## {doc_type}\n\n"
            "**الطرف الأول:** شركة أعمال الشاهين للمقاولات\n\n"
            "**الطرف الثاني:** ....................\n\n"
            "### البنود\n"
            "1. يلتزم الطرفان بما ورد في هذا المستند وفق الأنظمة المعمول بها في المملكة العربية السعودية.\n"
            "2. تُعد التفاصيل المقدمة من الطرف الثاني جزءاً لا يتجزأ من هذا المستند.\n\n"
            "### التواقيع\n"
            "الطرف الأول: ............  الطرف الثاني: ............"
        )


def get_provider() -> GenerationProvider:
    # without GEMINI_API_KEY every request fails with "API key not configured"
    if os.getenv("SHAHEEN_LLM", "gemini").lower() == "dummy":
        return DummyProvider()
    return GeminiProvider()
