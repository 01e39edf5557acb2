"""
Provider routing and it does:
- Picks the provider for a request (fixed mode or deterministic A/B split)
- Substitutes the fallback when the chosen provider has no credentials
- Resolves the model name per provider and request complexity

Main purpose:
Central place that decides which model answers a planning request.
"""


import hashlib
import re
from dataclasses import dataclass
from typing import Mapping, Optional

from caseboard_ai.core.config import Settings, settings as default_settings
from caseboard_ai.core.errors import ConfigurationError
from caseboard_ai.core.logging import get_logger
from caseboard_ai.llm.providers import LLMProvider
from caseboard_ai.llm.schemas import PROVIDERS

log = get_logger("llm.router")

PROVIDER_MODES = ("anthropic", "openai", "ab")
DEFAULT_PROVIDER_MODE = "anthropic"
DEFAULT_OPENAI_PERCENT = 50

MODEL_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9._:-]{1,128}$")

# Final defaults when no model name is configured: (simple, complex)
DEFAULT_MODELS = {
    "anthropic": ("claude-3-5-haiku-latest", "claude-sonnet-4-20250514"),
    "openai": ("gpt-4.1-mini", "gpt-4.1"),
}


def is_provider(value: object) -> bool:
    return isinstance(value, str) and value in PROVIDERS


def sanitize_model_name(value: object) -> Optional[str]:
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    if not trimmed or not MODEL_NAME_PATTERN.match(trimmed):
        return None
    return trimmed


def percent_bucket(seed: str) -> int:
    digest = hashlib.sha256(seed.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big") % 100


@dataclass(frozen=True)
class RouteDecision:
    primary: str
    fallback: Optional[str]
    requested: Optional[str] = None
    substituted: bool = False


class ProviderRouter:
    def __init__(self, providers: Mapping[str, LLMProvider], cfg: Settings = default_settings):
        self.providers = providers
        self.cfg = cfg

    @property
    def mode(self) -> str:
        value = (self.cfg.AI_PROVIDER_MODE or "").strip().lower()
        return value if value in PROVIDER_MODES else DEFAULT_PROVIDER_MODE

    @property
    def openai_percent(self) -> int:
        try:
            value = int(self.cfg.AI_OPENAI_PERCENT)
        except (TypeError, ValueError):
            return DEFAULT_OPENAI_PERCENT
        return max(0, min(100, value))

    def bucket(self, board_id: str, actor_id: str) -> int:
        return percent_bucket(f"{board_id}:{actor_id}")

    def choose(self, board_id: str, actor_id: str) -> str:
        mode = self.mode
        if mode != "ab":
            return mode
        return "openai" if self.bucket(board_id, actor_id) < self.openai_percent else "anthropic"

    @staticmethod
    def fallback_for(provider: str) -> str:
        return "openai" if provider == "anthropic" else "anthropic"

    def is_available(self, provider: str) -> bool:
        client = self.providers.get(provider)
        return client is not None and client.is_configured

    def get(self, provider: str) -> LLMProvider:
        return self.providers[provider]

    def route(self, board_id: str, actor_id: str, requested: Optional[str] = None) -> RouteDecision:
        primary = requested if is_provider(requested) else self.choose(board_id, actor_id)
        fallback = self.fallback_for(primary)
        substituted = False

        if not self.is_available(primary):
            if not self.is_available(fallback):
                raise ConfigurationError("No AI provider has credentials configured")
            log.warning(f"Provider {primary} is not configured; using {fallback} instead")
            primary, fallback, substituted = fallback, None, True
        elif not self.is_available(fallback):
            fallback = None

        return RouteDecision(primary=primary, fallback=fallback, requested=requested, substituted=substituted)

    def resolve_model(self, provider: str, is_complex: bool, override: Optional[str] = None) -> str:
        if override:
            return override
        if provider == "openai":
            configured = self.cfg.OPENAI_COMPLEX_MODEL if is_complex else self.cfg.OPENAI_SIMPLE_MODEL
        else:
            configured = self.cfg.ANTHROPIC_COMPLEX_MODEL if is_complex else self.cfg.ANTHROPIC_SIMPLE_MODEL
        configured = (configured or "").strip()
        if configured:
            return configured
        simple, complex_ = DEFAULT_MODELS[provider]
        return complex_ if is_complex else simple
