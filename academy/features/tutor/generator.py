from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from jsonschema import ValidationError, validate

from academy.common.utils import extract_json, generate_id
from academy.features.catalog.models import POINTS_BY_TIER, ProgrammingLanguage, Tier, normalise_tier
from academy.features.catalog.schemas import Mission

from .bedrock_client import BedrockGateway, GatewayError, bedrock_gateway
from .prompts import render_generation_prompt

logger = logging.getLogger("tutor.generator")

MISSIONS_SCHEMA = {
    "type": "array",
    "items": {
        "type": "object",
        "required": ["title", "description", "starter_code", "solution_hint", "difficulty"],
        "properties": {
            "title": {"type": "string"},
            "description": {"type": "string"},
            "starter_code": {"type": "string"},
            "solution_hint": {"type": "string"},
            "difficulty": {"type": "string"},
            "points": {"type": ["number", "null"]},
        },
        "additionalProperties": True,
    },
}


class GenerationError(RuntimeError):
    pass


def _normalise_mission(raw: Dict[str, Any], target: Optional[Tier]) -> Mission:
    tier = target or normalise_tier(raw.get("difficulty")) or Tier.easy
    points = raw.get("points")
    try:
        points = int(points) if points is not None else POINTS_BY_TIER[tier]
    except (TypeError, ValueError):
        points = POINTS_BY_TIER[tier]
    return Mission(
        id=generate_id("q"),
        title=str(raw.get("title") or "").strip(),
        description=str(raw.get("description") or ""),
        starter_code=str(raw.get("starter_code") or ""),
        solution_hint=str(raw.get("solution_hint") or ""),
        difficulty=tier,
        points=points,
    )


async def generate_missions(
    topic: str,
    language: ProgrammingLanguage,
    count: int = 3,
    difficulty: Optional[Tier] = None,
    *,
    gateway: BedrockGateway | None = None,
) -> List[Mission]:
    """Ask the model for ``count`` missions about ``topic`` and return them with fresh ids."""
    gateway = gateway or bedrock_gateway
    prompt = render_generation_prompt(topic, language.value, count, difficulty.value if difficulty else None)
    try:
        text = await gateway.complete(prompt)
    except GatewayError as exc:
        logger.warning("mission generation failed topic=%s: %s", topic, exc)
        raise GenerationError(str(exc)) from exc

    try:
        payload = extract_json(text)
        validate(instance=payload, schema=MISSIONS_SCHEMA)
    except json.JSONDecodeError as exc:
        raise GenerationError(f"Model returned invalid JSON: {exc}") from exc
    except ValidationError as exc:
        raise GenerationError(f"Model response failed schema validation: {exc.message}") from exc

    missions = [_normalise_mission(item, difficulty) for item in payload]
    logger.info("missions generated topic=%s language=%s count=%d", topic, language.value, len(missions))
    return missions


__all__ = ["generate_missions", "GenerationError", "MISSIONS_SCHEMA"]
