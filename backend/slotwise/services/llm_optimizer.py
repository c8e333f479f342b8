"""OpenAI-backed optimizer strategy and the optimizer factory."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Optional

import openai
from pydantic import BaseModel, Field

from slotwise.core.config import settings
from slotwise.observability.metrics import log_metric
from slotwise.observability.tracing import trace
from slotwise.scheduling.optimizer import (
    NullOptimizer,
    OptimizerBatch,
    OptimizerStrategy,
    PreferredWindowOptimizer,
    Proposal,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a careful scheduling assistant. You receive the free time slots for each day of a week "
    "and a list of task instances already assigned to a day. Propose a start time for each instance "
    "so that it fits entirely inside one free slot of its day and does not overlap another proposal. "
    "Instances with a fixed_time must use exactly that time. Prefer each instance's preferred window "
    "when one is given, spread demanding tasks across the day, and leave an instance out if unsure. "
    "Return only JSON."
)


class ProposalItem(BaseModel):
    instance_id: str
    start_time: Optional[str] = None
    reasoning: str = ""


class ProposalEnvelope(BaseModel):
    proposals: List[ProposalItem] = Field(default_factory=list)


def _fmt(value) -> Optional[str]:
    return value.strftime("%H:%M") if value is not None else None


def build_user_prompt(batch: OptimizerBatch) -> str:
    days: List[Dict[str, Any]] = []
    for day in batch.days:
        days.append(
            {
                "date": day.day.isoformat(),
                "weekday": day.day.strftime("%A"),
                "free_slots": [
                    {"start": _fmt(slot.start), "end": _fmt(slot.end), "minutes": slot.duration_minutes}
                    for slot in day.slots
                ],
                "instances": [
                    {
                        "instance_id": instance.instance_id,
                        "task": instance.task_name,
                        "category": instance.category,
                        "priority": instance.priority,
                        "duration_min": instance.duration_min,
                        "fixed_time": _fmt(instance.fixed_time),
                        "preferred_window": (
                            [_fmt(instance.preferred_start), _fmt(instance.preferred_end)]
                            if instance.preferred_start and instance.preferred_end
                            else None
                        ),
                        "session": f"{instance.instance_number} of {instance.total_instances}",
                    }
                    for instance in day.instances
                ],
            }
        )
    payload = {
        "week": {"start": batch.week_start.isoformat(), "end": batch.week_end.isoformat()},
        "days": days,
        "learned_preferences": list(batch.preferences),
    }
    return (
        f"{json.dumps(payload, indent=2)}\n\n"
        'Respond with {"proposals": [{"instance_id": str, "start_time": "HH:MM", "reasoning": str}]}.'
    )


class LLMOptimizer:
    """Asks a chat model for start times; the validator checks every answer."""

    name = "openai"

    def __init__(self, client: Any, *, model: str = "gpt-4o", timeout: float = 20.0) -> None:
        self._client = client
        self._model = model
        self._timeout = timeout

    def propose(self, batch: OptimizerBatch) -> Mapping[str, Proposal]:
        metadata = {
            "model": self._model,
            "days": len(batch.days),
            "instances": len(batch.instances),
            "week_start": batch.week_start.isoformat(),
        }
        with trace("optimizer.llm.propose", metadata=metadata):
            completion = self._client.chat.completions.create(
                model=self._model,
                response_format={"type": "json_object"},
                timeout=self._timeout,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_user_prompt(batch)},
                ],
            )
        content = completion.choices[0].message.content or "{}"
        envelope = ProposalEnvelope.model_validate_json(content)
        proposals = {
            item.instance_id: Proposal(start_time=item.start_time, reasoning=item.reasoning)
            for item in envelope.proposals
            if item.start_time
        }
        log_metric("optimizer.llm.proposals", len(proposals), metadata={"model": self._model})
        return proposals


def get_optimizer() -> Optional[OptimizerStrategy]:
    """Build the configured optimizer; FastAPI dependency and worker helper."""
    provider = (settings.optimizer_provider or "none").strip().lower()
    if provider == "openai":
        if not settings.openai_api_key:
            logger.warning("OPTIMIZER_PROVIDER is openai but OPENAI_API_KEY is missing; using heuristic optimizer.")
            return PreferredWindowOptimizer()
        client = openai.OpenAI(api_key=settings.openai_api_key, timeout=settings.optimizer_timeout_seconds)
        return LLMOptimizer(client, model=settings.openai_model, timeout=settings.optimizer_timeout_seconds)
    if provider == "heuristic":
        return PreferredWindowOptimizer()
    if provider != "none":
        logger.warning("Unknown optimizer provider %r; scheduling deterministically.", provider)
    return NullOptimizer()
