"""Two-phase reasoning protocol: plan a round, then pick one candidate."""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, Sequence

from loguru import logger

from config import Configuration
from errors import (
    ReasoningServiceError,
    ReferentialIntegrityError,
    ResponseFormatError,
    ResponseValidationError,
)
from models import Candidate, SearchStrategy, SelectionDecision, WorkflowContext
from services.prompts import fallback_prompt, round_planning_prompt, selection_prompt
from services.reasoner import Reasoner
from services.travel_context import analyze_plan_context
from services.validators import (
    ValidationResult,
    parse_round_decision,
    parse_selection_decision,
    validate_round_decision,
    validate_selection_decision,
)
from utils import clean_response_text, extract_json_object, sanitize_value


ROUND_TEMPERATURE = 0.3
SELECTION_TEMPERATURE = 0.2
RETRY_TEMPERATURE = 0.1


def decode_json_response(raw: str) -> Dict[str, Any]:
    """Parse a model response into a JSON object, tolerating prose around it."""
    text = clean_response_text(raw)
    if not text:
        raise ResponseFormatError("empty response from reasoning service")
    try:
        data = json.loads(text)
    except ValueError:
        candidate = extract_json_object(text)
        if candidate is None:
            raise ResponseFormatError("no JSON object found in response", {"response": text[:300]})
        try:
            data = json.loads(candidate)
        except ValueError as exc:
            raise ResponseFormatError(f"malformed JSON object: {exc}", {"response": candidate[:300]}) from exc
    if not isinstance(data, dict):
        raise ResponseFormatError("response JSON is not an object", {"response": text[:300]})
    return data


class RoundProtocol:
    def __init__(self, cfg: Configuration, reasoner: Reasoner) -> None:
        self.cfg = cfg
        self.reasoner = reasoner

    def _ask_once(
        self,
        kind: str,
        system: str,
        user: str,
        temperature: float,
        validate: Callable[[Any], ValidationResult],
    ) -> Dict[str, Any]:
        raw = self.reasoner.complete(system, user, temperature=temperature, max_tokens=self.cfg.llm_max_tokens)
        payload = sanitize_value(decode_json_response(raw))
        result = validate(payload)
        if not result.valid:
            raise ResponseValidationError(
                f"{kind} response failed validation: {result.summary()}",
                [e.to_dict() for e in result.errors],
            )
        return payload

    def _ask(
        self,
        kind: str,
        system: str,
        user: str,
        temperature: float,
        validate: Callable[[Any], ValidationResult],
    ) -> Dict[str, Any]:
        try:
            return self._ask_once(kind, system, user, temperature, validate)
        except (ReasoningServiceError, ResponseFormatError) as exc:
            # semantic validation failures are not retried
            logger.warning("{} call failed ({}), retrying with fallback prompt: {}", kind, exc.kind.value, exc.message)
            fb_system, fb_user = fallback_prompt(kind, exc.message, user)
            return self._ask_once(kind, fb_system, fb_user, RETRY_TEMPERATURE, validate)

    def plan_round(self, ctx: WorkflowContext) -> SearchStrategy:
        reference = ctx.reference_location(self.cfg.default_center)
        plan_context = analyze_plan_context(ctx.selected_pois)
        system, user = round_planning_prompt(ctx, reference, plan_context)
        payload = self._ask("round", system, user, ROUND_TEMPERATURE, validate_round_decision)
        strategy = parse_round_decision(payload)
        if strategy.round_number != ctx.round_number:
            logger.debug("round planner returned round_number={} expected {}", strategy.round_number, ctx.round_number)
        logger.info(
            "round planned round={} type={} radius={} types={}",
            strategy.round_number,
            strategy.round_type,
            strategy.spatial.radius_m,
            ",".join(strategy.criteria.required_types),
        )
        return strategy

    def select(
        self,
        ctx: WorkflowContext,
        strategy: SearchStrategy,
        candidates: Sequence[Candidate],
    ) -> tuple[Candidate, SelectionDecision]:
        system, user = selection_prompt(ctx, strategy, candidates)
        payload = self._ask("selection", system, user, SELECTION_TEMPERATURE, validate_selection_decision)
        decision = parse_selection_decision(payload)

        by_key = {c.poi.key: c for c in candidates}
        chosen_id = decision.chosen.poi_id
        if chosen_id not in by_key:
            raise ReferentialIntegrityError(
                f"selected poi_id {chosen_id!r} is not one of the offered candidates",
                {"poi_id": chosen_id, "candidates": list(by_key)},
            )
        return by_key[chosen_id], decision
