"""Tiered recommendation workflow: strict -> enhanced -> basic."""

from __future__ import annotations

import time
from typing import Dict, List, Optional, Sequence

from loguru import logger

from config import Configuration
from errors import (
    InternalTierError,
    NoCandidatesError,
    PlannerError,
    RequestCancelledError,
    TierUnavailableError,
    WorkflowExhaustedError,
)
from models import RecommendationResult, WorkflowContext
from services.candidate_search import CandidateRetriever, SearchRequest
from services.fallback_pois import fallback_pois
from services.geo_index import GeoIndex
from services.preferences import map_budget_to_price_level, map_interests_to_types
from services.radius_policy import RadiusPolicy
from services.ranking import process_candidates, to_payload
from services.reasoner import Reasoner
from services.round_protocol import RoundProtocol
from services.travel_context import ACTIVITY_TYPES, determine_activity_type, time_of_day


STRICT_SOURCE = "strict_ai_workflow"
ENHANCED_SOURCE = "enhanced_spatial"
BASIC_SOURCE = "basic_fallback"


def _check_cancelled(ctx: WorkflowContext) -> None:
    if ctx.is_cancelled():
        raise RequestCancelledError("request cancelled", {"step": ctx.current_step})


class Tier:
    name = "tier"

    def available(self) -> bool:
        return True

    def __call__(self, ctx: WorkflowContext) -> RecommendationResult:
        raise NotImplementedError


class StrictTier(Tier):
    """Reasoning service plans the round, the index supplies candidates, the service picks one."""

    name = "strict"

    def __init__(self, cfg: Configuration, index: GeoIndex, reasoner: Optional[Reasoner]) -> None:
        self.cfg = cfg
        self.index = index
        self.reasoner = reasoner
        self.retriever = CandidateRetriever(cfg, index)

    def available(self) -> bool:
        return self.reasoner is not None and self.index.is_available()

    def __call__(self, ctx: WorkflowContext) -> RecommendationResult:
        if self.reasoner is None:
            raise TierUnavailableError("strict tier has no reasoning service configured")
        protocol = RoundProtocol(self.cfg, self.reasoner)
        strategy = protocol.plan_round(ctx)
        _check_cancelled(ctx)

        criteria = strategy.criteria
        exclusions = ctx.exclusions().with_types(list(criteria.exclude_types))
        request = SearchRequest(
            center=strategy.spatial.center,
            radius_m=strategy.spatial.radius_m,
            types=list(criteria.required_types),
            max_price_level=map_budget_to_price_level(criteria.budget_level) if criteria.budget_level else None,
        )
        retrieval = self.retriever.retrieve(request, exclusions)
        candidates = process_candidates(
            retrieval.hits,
            exclusions,
            limit=self.cfg.candidate_limit,
            quality_threshold=criteria.quality_threshold,
        )
        if not candidates:
            raise NoCandidatesError(
                "No candidate POIs found",
                {"strategy": strategy.to_dict(), **retrieval.metadata()},
            )
        _check_cancelled(ctx)

        chosen, decision = protocol.select(ctx, strategy, candidates)
        pick = decision.chosen
        payload = to_payload(chosen)
        payload.update(
            {
                "aiReasoning": pick.selection_reasoning,
                "spatialLogic": pick.spatial_logic,
                "fitScore": pick.fit_score,
                "roundNumber": strategy.round_number,
                "aiDecisionContext": {
                    "roundType": strategy.round_type,
                    "strategyReasoning": strategy.reasoning,
                    "candidatesConsidered": len(candidates),
                    "rejected": [{"poi_id": r.poi_id, "reason": r.rejection_reason} for r in decision.rejected],
                },
            }
        )
        center = strategy.spatial.center
        return RecommendationResult(
            success=True,
            recommendations=[payload],
            source=STRICT_SOURCE,
            location={"lat": center.lat, "lng": center.lng},
            context={
                "currentStep": ctx.current_step,
                "roundNumber": strategy.round_number,
                "completionStatus": decision.completion_status,
                "nextRoundHint": decision.next_round_hint,
                **retrieval.metadata(),
            },
            ai_metadata={
                "reasoning": pick.selection_reasoning,
                "fitScore": pick.fit_score,
                "strategy": strategy.to_dict(),
            },
        )


class EnhancedTier(Tier):
    """Deterministic spatial search: radius policy plus retriever, no reasoning service."""

    name = "enhanced"

    def __init__(self, cfg: Configuration, index: GeoIndex, radius_policy: Optional[RadiusPolicy] = None) -> None:
        self.cfg = cfg
        self.index = index
        self.radius_policy = radius_policy or RadiusPolicy()
        self.retriever = CandidateRetriever(cfg, index)

    def available(self) -> bool:
        return self.index.is_available()

    def __call__(self, ctx: WorkflowContext) -> RecommendationResult:
        prefs = ctx.preferences
        located = [p.coordinates for p in ctx.selected_pois if p.coordinates is not None]
        center = located[-1] if located else ctx.user_location
        radius = self.radius_policy.compute(center, prefs, ctx.selected_pois, ctx.current_step)

        activity = determine_activity_type(ctx.current_step, prefs, ctx.selected_pois)
        types = map_interests_to_types(prefs.interests) if prefs.interests else list(ACTIVITY_TYPES[activity])
        exclusions = ctx.exclusions()
        request = SearchRequest(
            center=center,
            radius_m=radius,
            types=types,
            max_price_level=map_budget_to_price_level(prefs.budget) if prefs.budget else None,
        )
        retrieval = self.retriever.retrieve(request, exclusions)
        candidates = process_candidates(retrieval.hits, exclusions, limit=self.cfg.recommendation_limit)
        if not candidates:
            raise NoCandidatesError("No POIs found near the requested location", retrieval.metadata())

        return RecommendationResult(
            success=True,
            recommendations=[to_payload(c) for c in candidates],
            source=ENHANCED_SOURCE,
            location={"lat": center.lat, "lng": center.lng} if center else None,
            context={
                "currentStep": ctx.current_step,
                "activityType": activity,
                "timeOfDay": time_of_day(ctx.current_step),
                "selectedCount": len(ctx.selected_pois),
                **retrieval.metadata(),
            },
        )


class BasicTier(Tier):
    name = "basic"

    def __init__(self, cfg: Configuration) -> None:
        self.cfg = cfg

    def __call__(self, ctx: WorkflowContext) -> RecommendationResult:
        exclusions = ctx.exclusions()
        remaining = [
            poi
            for poi in fallback_pois()
            if poi["name"].strip().lower() not in exclusions.names and poi["id"] not in exclusions.ids
        ]
        location = ctx.user_location
        return RecommendationResult(
            success=True,
            recommendations=remaining[: self.cfg.recommendation_limit],
            source=BASIC_SOURCE,
            location={"lat": location.lat, "lng": location.lng} if location else None,
            context={"currentStep": ctx.current_step, "selectedCount": len(ctx.selected_pois)},
        )


def build_tiers(
    cfg: Configuration,
    index: GeoIndex,
    reasoner: Optional[Reasoner],
    radius_policy: Optional[RadiusPolicy] = None,
) -> List[Tier]:
    available: Dict[str, Tier] = {
        "strict": StrictTier(cfg, index, reasoner),
        "enhanced": EnhancedTier(cfg, index, radius_policy),
        "basic": BasicTier(cfg),
    }
    return [available[name] for name in cfg.tier_order()]


class WorkflowSelector:
    """Runs tiers in order and returns the first success.

    With auto fallback disabled the first tier failure is terminal.
    """

    def __init__(self, cfg: Configuration, tiers: Sequence[Tier]) -> None:
        if not tiers:
            raise ValueError("at least one workflow tier is required")
        self.cfg = cfg
        self.tiers = list(tiers)

    def _log(self, message: str, *args: object) -> None:
        if self.cfg.log_workflow_decisions:
            logger.info(message, *args)
        else:
            logger.debug(message, *args)

    def recommend(self, ctx: WorkflowContext) -> RecommendationResult:
        failures: list[tuple[str, PlannerError]] = []
        for tier in self.tiers:
            _check_cancelled(ctx)
            ctx.tier = tier.name
            started = time.perf_counter()
            try:
                if not tier.available():
                    raise TierUnavailableError(f"{tier.name} tier is not available")
                result = tier(ctx)
            except RequestCancelledError:
                raise
            except PlannerError as exc:
                error = exc
            except Exception as exc:
                logger.exception("workflow tier={} crashed: {}", tier.name, exc)
                error = InternalTierError(str(exc), {"exception": type(exc).__name__})
            else:
                self._log(
                    "workflow tier={} status=success duration_ms={:.1f} step={} results={}",
                    tier.name,
                    (time.perf_counter() - started) * 1000,
                    ctx.current_step,
                    len(result.recommendations),
                )
                return result

            self._log(
                "workflow tier={} status=failed kind={} duration_ms={:.1f} step={} error={}",
                tier.name,
                error.kind.value,
                (time.perf_counter() - started) * 1000,
                ctx.current_step,
                error.message,
            )
            failures.append((tier.name, error))
            if not self.cfg.enable_auto_fallback:
                break

        raise WorkflowExhaustedError(failures)
