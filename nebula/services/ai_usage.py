from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from nebula.config.loader import get_ai_pricing
from nebula.models.results import AiUsageLog
from nebula.services.llm_client import LLMUsage

logger = logging.getLogger("app")


def calculate_cost_cents(prompt_tokens: int, completion_tokens: int) -> int:
    pricing = get_ai_pricing()
    dollars = (
        prompt_tokens * pricing["input_per_million_usd"]
        + completion_tokens * pricing["output_per_million_usd"]
    ) / 1_000_000
    return int(round(dollars * 100))


def log_ai_usage(
    db: Session,
    *,
    operation: str,
    model: str,
    usage: Optional[LLMUsage],
    workspace_id: Optional[str] = None,
    organization_id: Optional[str] = None,
) -> Optional[AiUsageLog]:
    """Record token spend for one LLM call. Never fails the calling operation."""
    if usage is None:
        return None
    entry = AiUsageLog(
        workspace_id=workspace_id,
        organization_id=organization_id,
        operation=operation,
        model=model,
        prompt_tokens=usage.prompt_tokens,
        completion_tokens=usage.completion_tokens,
        total_tokens=usage.total_tokens,
        cost_cents=calculate_cost_cents(usage.prompt_tokens, usage.completion_tokens),
    )
    try:
        db.add(entry)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to log AI usage for %s (workspace %s)", operation, workspace_id)
        return None
    return entry
