from __future__ import annotations

import asyncio
import sys
import threading
from functools import lru_cache
from typing import Any, Dict, List, Literal, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from config import Configuration
from errors import GeoIndexError, ParameterValidationError, WorkflowExhaustedError
from services.geo_index import CatalogGeoIndex, GeoIndex
from services.geoapify import GeoapifyGeoIndex
from services.preferences import build_context
from services.reasoner import build_reasoner
from services.workflow import WorkflowSelector, build_tiers


load_dotenv()

app = FastAPI(title="POI Step Planner")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def get_config() -> Configuration:
    cfg = Configuration.from_env()
    logger.remove()
    logger.add(sys.stderr, level=cfg.log_level.upper())
    for warning in cfg.validate_workflow():
        logger.warning("workflow config: {}", warning)
    logger.info("cfg: {}", cfg.log_summary())
    return cfg


def build_geo_index(cfg: Configuration) -> GeoIndex:
    if cfg.geo_backend == "geoapify":
        return GeoapifyGeoIndex(cfg)
    if not cfg.catalog_path:
        return CatalogGeoIndex([], max_connections=cfg.geo_max_connections, acquire_timeout=cfg.geo_acquire_timeout)
    try:
        return CatalogGeoIndex.from_json(
            cfg.catalog_path, max_connections=cfg.geo_max_connections, acquire_timeout=cfg.geo_acquire_timeout
        )
    except GeoIndexError as exc:
        logger.error("catalog unavailable: {}", exc)
        return CatalogGeoIndex([], max_connections=cfg.geo_max_connections, acquire_timeout=cfg.geo_acquire_timeout)


@lru_cache(maxsize=1)
def get_geo_index() -> GeoIndex:
    return build_geo_index(get_config())


@lru_cache(maxsize=1)
def get_selector() -> WorkflowSelector:
    cfg = get_config()
    return WorkflowSelector(cfg, build_tiers(cfg, get_geo_index(), build_reasoner(cfg)))


class LocationPayload(BaseModel):
    lat: float = Field(..., description="Latitude in degrees")
    lng: float = Field(..., description="Longitude in degrees")


class StepRequest(BaseModel):
    action: Literal["GET_INITIAL_RECOMMENDATIONS", "GET_NEXT_RECOMMENDATIONS"] = "GET_INITIAL_RECOMMENDATIONS"
    userLocation: Optional[LocationPayload] = None
    preferences: Dict[str, Any] = Field(default_factory=dict)
    selectedPOIs: List[Dict[str, Any]] = Field(default_factory=list)
    currentStep: int = 1
    excludeNames: List[str] = Field(default_factory=list)
    excludeIds: List[str] = Field(default_factory=list)


class CoordinatesPayload(BaseModel):
    lat: float
    lng: float


class POILocationPayload(BaseModel):
    address: Optional[str] = None
    coordinates: CoordinatesPayload


class POIDetailsPayload(BaseModel):
    openingHours: Optional[str] = None
    priceRange: str
    rating: str


class POIPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    place_id: Optional[str] = None
    name: str
    type: str
    latitude: float
    longitude: float
    address: Optional[str] = None
    rating: Optional[float] = None
    price_level: Optional[int] = None
    description: str = ""
    highlights: List[str] = Field(default_factory=list)
    local_tips: List[str] = Field(default_factory=list)
    amenities: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    distance_meters: Optional[int] = None
    aiScore: Optional[int] = None
    location: POILocationPayload
    details: POIDetailsPayload


class StepResponse(BaseModel):
    success: bool
    recommendations: List[POIPayload]
    source: str
    location: Optional[Dict[str, float]] = None
    context: Dict[str, Any] = Field(default_factory=dict)
    aiMetadata: Optional[Dict[str, Any]] = None


@app.get("/healthz")
def healthz(cfg: Configuration = Depends(get_config)) -> dict:
    logger.info("cfg: {}", cfg.log_summary())
    return {"status": "ok", "tiers": cfg.tier_order()}


@app.get("/health/geo")
def health_geo(index: GeoIndex = Depends(get_geo_index)) -> dict:
    size = len(index) if isinstance(index, CatalogGeoIndex) else None
    return {"ok": index.is_available(), "backend": type(index).__name__, "pois": size}


@app.get("/health/llm")
def health_llm(cfg: Configuration = Depends(get_config)) -> dict:
    provider = (cfg.llm_provider or "").lower()
    return {
        "ok": cfg.llm_configured(),
        "provider": provider or ("ollama" if cfg.local_llm else "unset"),
        "model": cfg.llm_model_id or cfg.local_llm or cfg.strict_workflow_model,
    }


@app.post("/poi-step", response_model=StepResponse)
async def poi_step(req: StepRequest, selector: WorkflowSelector = Depends(get_selector)) -> StepResponse:
    payload = req.model_dump()
    if req.action == "GET_INITIAL_RECOMMENDATIONS":
        payload["selectedPOIs"] = []
    elif not req.selectedPOIs:
        raise HTTPException(status_code=400, detail="selectedPOIs is required for GET_NEXT_RECOMMENDATIONS")

    cancel_event = threading.Event()
    try:
        ctx = build_context(payload, cancel_event=cancel_event)
        result = await asyncio.to_thread(selector.recommend, ctx)
    except ParameterValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.to_dict())
    except WorkflowExhaustedError as exc:
        logger.error("recommendation failed kind={} detail={}", exc.kind.value, exc.message)
        raise HTTPException(status_code=502, detail=exc.to_dict())
    except asyncio.CancelledError:
        cancel_event.set()
        raise
    except Exception as exc:
        logger.exception("recommendation failed: {}", exc)
        raise HTTPException(status_code=500, detail="internal error")

    logger.info(
        "recommendation action={} step={} source={} results={}",
        req.action,
        ctx.current_step,
        result.source,
        len(result.recommendations),
    )
    return StepResponse(**result.to_dict())
