from __future__ import annotations

import os
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from utils import mask_secret


TIER_ORDER = ("strict", "enhanced", "basic")


class Configuration(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Workflow switches
    use_strict_workflow: bool = Field(default=False)
    use_enhanced_poi: bool = Field(default=True)
    enable_auto_fallback: bool = Field(default=True)
    log_workflow_decisions: bool = Field(default=True)
    strict_workflow_model: str = Field(default="gpt-4o-mini")
    strict_workflow_timeout: float = Field(default=60.0)

    # Geo index
    geo_backend: Literal["catalog", "geoapify"] = Field(default="catalog")
    catalog_path: Optional[str] = Field(default=None)
    geoapify_api_key: Optional[str] = Field(default=None)
    geoapify_base_url: str = Field(default="https://api.geoapify.com")
    geo_timeout: float = Field(default=10.0)
    geo_max_connections: int = Field(default=5)
    geo_acquire_timeout: float = Field(default=10.0)

    # Retrieval
    search_max_attempts: int = Field(default=3)
    search_min_results: int = Field(default=5)
    search_expansion_factor: float = Field(default=1.8)
    search_max_radius_m: int = Field(default=10000)
    island_radius_m: int = Field(default=25000)
    candidate_limit: int = Field(default=15)
    recommendation_limit: int = Field(default=5)
    default_center_lat: float = Field(default=36.4341)
    default_center_lng: float = Field(default=28.2176)

    # LLM (optional)
    local_llm: Optional[str] = Field(default=None)
    llm_provider: Optional[str] = Field(default=None)
    llm_api_key: Optional[str] = Field(default=None)
    llm_base_url: Optional[str] = Field(default=None)
    llm_model_id: Optional[str] = Field(default=None)
    # native ollama base (without /v1)
    ollama_base_url: str = Field(default="http://localhost:11434")
    llm_max_tokens: int = Field(default=1000)
    llm_calls_per_minute: int = Field(default=30)

    log_level: str = Field(default="INFO")

    @classmethod
    def from_env(cls, overrides: Optional[dict[str, Any]] = None) -> "Configuration":
        raw: dict[str, Any] = {}

        env_map = {
            "use_strict_workflow": os.getenv("USE_STRICT_AI_WORKFLOW"),
            "use_enhanced_poi": os.getenv("USE_ENHANCED_POI"),
            "enable_auto_fallback": os.getenv("ENABLE_AUTO_FALLBACK"),
            "log_workflow_decisions": os.getenv("LOG_WORKFLOW_DECISIONS"),
            "strict_workflow_model": os.getenv("STRICT_WORKFLOW_MODEL"),
            "strict_workflow_timeout": os.getenv("STRICT_WORKFLOW_TIMEOUT"),
            # Geo index
            "geo_backend": os.getenv("GEO_BACKEND"),
            "catalog_path": os.getenv("POI_CATALOG_PATH"),
            "geoapify_api_key": os.getenv("GEOAPIFY_API_KEY"),
            "geoapify_base_url": os.getenv("GEOAPIFY_BASE_URL"),
            "geo_timeout": os.getenv("GEO_TIMEOUT"),
            "geo_max_connections": os.getenv("GEO_MAX_CONNECTIONS"),
            "geo_acquire_timeout": os.getenv("GEO_ACQUIRE_TIMEOUT"),
            # Retrieval
            "search_max_attempts": os.getenv("SEARCH_MAX_ATTEMPTS"),
            "search_min_results": os.getenv("SEARCH_MIN_RESULTS"),
            "candidate_limit": os.getenv("CANDIDATE_LIMIT"),
            "default_center_lat": os.getenv("DEFAULT_CENTER_LAT"),
            "default_center_lng": os.getenv("DEFAULT_CENTER_LNG"),
            # LLM
            "local_llm": os.getenv("LOCAL_LLM"),
            "llm_provider": os.getenv("LLM_PROVIDER"),
            "llm_api_key": os.getenv("LLM_API_KEY"),
            "llm_base_url": os.getenv("LLM_BASE_URL"),
            "llm_model_id": os.getenv("LLM_MODEL_ID"),
            "ollama_base_url": os.getenv("OLLAMA_BASE_URL"),
            "llm_max_tokens": os.getenv("LLM_MAX_TOKENS"),
            "llm_calls_per_minute": os.getenv("LLM_CALLS_PER_MINUTE"),
            "log_level": os.getenv("LOG_LEVEL"),
        }

        bool_fields = {
            "use_strict_workflow",
            "use_enhanced_poi",
            "enable_auto_fallback",
            "log_workflow_decisions",
        }

        for k, v in env_map.items():
            if v is None:
                continue
            if k in bool_fields:
                raw[k] = str(v).lower() in {"1", "true", "yes", "on"}
            else:
                raw[k] = v

        if overrides:
            raw.update({k: v for k, v in overrides.items() if v is not None})

        return cls(**raw)

    @property
    def default_center(self) -> tuple[float, float]:
        """Reference point (lat, lng) used when no location is known."""
        return (self.default_center_lat, self.default_center_lng)

    def llm_configured(self) -> bool:
        return bool(self.llm_provider or self.llm_base_url or self.local_llm)

    def starting_tier(self) -> str:
        if self.use_strict_workflow:
            return "strict"
        if self.use_enhanced_poi:
            return "enhanced"
        return "basic"

    def tier_order(self) -> list[str]:
        """Tiers to attempt, from the configured starting tier downward."""
        start = TIER_ORDER.index(self.starting_tier())
        return list(TIER_ORDER[start:])

    def validate_workflow(self) -> list[str]:
        warnings: list[str] = []
        if self.use_strict_workflow and not self.llm_configured():
            warnings.append("strict workflow enabled but no LLM provider is configured")
        if self.use_strict_workflow and not self.enable_auto_fallback:
            warnings.append("strict workflow without auto fallback surfaces every tier failure")
        if self.geo_backend == "geoapify" and not self.geoapify_api_key:
            warnings.append("GEOAPIFY_API_KEY is not set; geo index will be unavailable")
        if self.geo_backend == "catalog" and not self.catalog_path:
            warnings.append("POI_CATALOG_PATH is not set; geo index will be empty")
        return warnings

    def log_summary(self) -> str:
        return (
            "tiers=%s fallback=%s geo=%s catalog=%s llm=%s model=%s api_key=%s"
            % (
                ",".join(self.tier_order()),
                self.enable_auto_fallback,
                self.geo_backend,
                self.catalog_path or "unset",
                self.llm_provider or ("local" if self.local_llm else "unset"),
                self.llm_model_id or self.strict_workflow_model,
                mask_secret(self.llm_api_key or self.geoapify_api_key),
            )
        )

    def sanitized_ollama_url(self) -> str:
        base = (self.ollama_base_url or "http://localhost:11434").rstrip("/")
        if not base.endswith("/v1"):
            base = f"{base}/v1"
        return base
