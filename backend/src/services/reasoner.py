from __future__ import annotations

import threading
import time
from collections import deque
from typing import Any, Deque, Dict, Optional

from google import genai
from google.genai import types as genai_types
from hello_agents import HelloAgentsLLM, ToolAwareSimpleAgent
from loguru import logger

from config import Configuration
from errors import ReasoningServiceError


class RateLimiter:
    """Sliding one-minute window shared by every reasoning call in the process."""

    def __init__(self, calls_per_minute: int, window_s: float = 60.0) -> None:
        self.calls_per_minute = max(1, calls_per_minute)
        self.window_s = window_s
        self._calls: Deque[float] = deque()
        self._lock = threading.Lock()

    def acquire(self, timeout: Optional[float] = None) -> None:
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            with self._lock:
                now = time.monotonic()
                while self._calls and now - self._calls[0] >= self.window_s:
                    self._calls.popleft()
                if len(self._calls) < self.calls_per_minute:
                    self._calls.append(now)
                    return
                wait = self.window_s - (now - self._calls[0])
            if deadline is not None and time.monotonic() + wait > deadline:
                raise ReasoningServiceError("reasoning service rate limit reached", {"calls_per_minute": self.calls_per_minute})
            time.sleep(min(wait, 1.0))


class Reasoner:
    """Single-call interface to the reasoning service; returns raw response text."""

    def complete(self, system_prompt: str, user_prompt: str, *, temperature: float, max_tokens: int) -> str:
        raise NotImplementedError


class GeminiReasoner(Reasoner):
    def __init__(self, cfg: Configuration, limiter: RateLimiter) -> None:
        self.cfg = cfg
        self.limiter = limiter
        self.model_id = cfg.llm_model_id or "gemini-2.0-flash"
        self.client = genai.Client(
            api_key=cfg.llm_api_key,
            http_options=genai_types.HttpOptions(timeout=int(cfg.strict_workflow_timeout * 1000)),
        )

    def complete(self, system_prompt: str, user_prompt: str, *, temperature: float, max_tokens: int) -> str:
        self.limiter.acquire(timeout=self.cfg.strict_workflow_timeout)
        try:
            response = self.client.models.generate_content(
                model=self.model_id,
                contents=user_prompt,
                config=genai_types.GenerateContentConfig(
                    system_instruction=system_prompt,
                    temperature=temperature,
                    max_output_tokens=max_tokens,
                    response_mime_type="application/json",
                ),
            )
        except Exception as exc:
            raise ReasoningServiceError(f"gemini call failed: {exc}", {"model": self.model_id}) from exc
        return response.text or ""


class AgentReasoner(Reasoner):
    """OpenAI-compatible / Ollama providers via hello_agents."""

    def __init__(self, cfg: Configuration, limiter: RateLimiter) -> None:
        self.cfg = cfg
        self.limiter = limiter

    def _llm_kwargs(self, temperature: float, max_tokens: int) -> Dict[str, Any]:
        cfg = self.cfg
        kw: Dict[str, Any] = {
            "temperature": temperature,
            "max_tokens": max_tokens,
            "timeout": int(cfg.strict_workflow_timeout),
            "model": cfg.llm_model_id or cfg.local_llm or cfg.strict_workflow_model,
        }
        if cfg.llm_provider:
            kw["provider"] = cfg.llm_provider
        # prefer explicit llm_base_url; for ollama, fallback to sanitized /v1
        if cfg.llm_base_url:
            kw["base_url"] = cfg.llm_base_url
        elif (cfg.llm_provider or "").lower() == "ollama":
            kw["base_url"] = cfg.sanitized_ollama_url()
        if cfg.llm_api_key:
            kw["api_key"] = cfg.llm_api_key
        return kw

    def complete(self, system_prompt: str, user_prompt: str, *, temperature: float, max_tokens: int) -> str:
        self.limiter.acquire(timeout=self.cfg.strict_workflow_timeout)
        try:
            agent = ToolAwareSimpleAgent(
                name="RoundPlanner",
                llm=HelloAgentsLLM(**self._llm_kwargs(temperature, max_tokens)),
                system_prompt=system_prompt,
                enable_tool_calling=False,
            )
            raw = agent.run(user_prompt)
            agent.clear_history()
        except Exception as exc:
            raise ReasoningServiceError(f"llm call failed: {exc}", {"provider": self.cfg.llm_provider}) from exc
        return raw or ""


def build_reasoner(cfg: Configuration, limiter: Optional[RateLimiter] = None) -> Optional[Reasoner]:
    """Gemini when the provider is google, hello_agents otherwise; None when no LLM is configured."""
    if not cfg.llm_configured():
        return None
    limiter = limiter or RateLimiter(cfg.llm_calls_per_minute)
    provider = (cfg.llm_provider or "").lower()
    if provider == "google" and cfg.llm_api_key:
        logger.debug("reasoner using Gemini model: {}", cfg.llm_model_id or "gemini-2.0-flash")
        return GeminiReasoner(cfg, limiter)
    logger.debug("reasoner using hello_agents provider={}", provider or "default")
    return AgentReasoner(cfg, limiter)
