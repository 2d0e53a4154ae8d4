"""LLM-backed producers that create or rewrite the initiative list.

Two operations, both returning a complete replacement list:

- **Generate**: draft initiatives for an ordered list of objectives (OKRs),
  the planning context, and the capacity constraints.
- **Modify**: apply a free-text instruction to the current roadmap.

Both are opaque and may be slow or fail. Inputs are validated before any
network call (:class:`PlanValidationError`); API, JSON and shape failures
surface as :class:`LLMCallError`. Replies always pass through the normaliser
so only validated :class:`~goalstack.models.Initiative` objects leave here.
"""
from __future__ import annotations

import json
import logging
import os
from typing import Any

from goalstack.capacity import CapacityModel
from goalstack.config import get_settings
from goalstack.models import Initiative, PlanningConstraints, PlanningContext
from goalstack.normalizer import IdFactory, InitiativeParseError, normalize_initiatives
from goalstack.utils import json_parse

log = logging.getLogger(__name__)


class LLMCallError(Exception):
    """LLM call failed or returned unparseable output."""
    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class PlanValidationError(ValueError):
    """Producer input rejected before any LLM call."""


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

INITIATIVE_SCHEMA = """\
{
  "initiatives": [
    {
      "id": number,
      "title": string,
      "effortManDays": number,
      "week": number,
      "okr": string,
      "taskDependencies": string[],
      "teamDependencies": string[]
    }
  ]
}"""

GENERATE_SYSTEM_PROMPT = """\
You are an expert product manager creating a REALISTIC execution roadmap.
First, create initiatives for each OKR. Then estimate effort for each item and,
following the priority order of the OKRs, build the roadmap by mapping each
initiative to a week.

Generate a weekly product roadmap as STRICT JSON ONLY.
No markdown. No explanations outside JSON.

Rules:
- Break work into realistic initiatives
- Effort must be in man-days (integers, realistic)
- Assign each initiative to ONE OKR
- Include dependencies where relevant
- Do NOT exceed total effort
- Weeks may be reused by multiple initiatives
- Do NOT invent or rename OKRs
- Every initiative must map to an OKR EXACTLY
- Initiatives must be contextual to their OKR and realistic
- Weeks must be 1..{weeks}
- NEVER exceed weekly capacity ({capacity:.1f} MD) while mapping initiatives to weeks
- Higher-priority OKRs consume capacity first
- If work doesn't fit, move it to later weeks
- Effort estimates must be realistic and independent of capacity
- Do NOT reduce effort to fit the timeline
- If work exceeds capacity, spill to backlog
- If a task exceeds the capacity left in a week, split it and place the spillover in the next week
- List every prerequisite initiative in taskDependencies, by title rather than id
- The current team is "{team}". List every other team involved under teamDependencies, by name

Schema:
{schema}
"""

MODIFY_SYSTEM_PROMPT = """\
You are an expert product manager.

Modify the existing roadmap based on the user instruction.
Return strictly valid JSON only. Do not use markdown.

Rules:
- Preserve initiative IDs unless splitting
- Respect effort realism
- Maintain OKR alignment
- Do NOT exceed total effort
- Dependencies must remain arrays

Schema:
{schema}
"""


def _context_lines(context: PlanningContext) -> list[str]:
    return [
        "Context:",
        f"- Organisation: {context.organisation}",
        f"- Team: {context.team}",
        f"- Overarching goal: {context.goal}",
        f"- Additional context: {context.additional_context}",
    ]


def _constraint_lines(constraints: PlanningConstraints, weeks: int) -> list[str]:
    return [
        "Constraints:",
        f"- Total man-days available: {constraints.man_days:g}",
        f"- Timeline (weeks): {weeks}",
        f"- Start date: {constraints.start_date}",
    ]


def build_generate_prompt(
    objectives: list[str], context: PlanningContext, constraints: PlanningConstraints,
) -> tuple[str, str]:
    """Return ``(system, user)`` prompts for roadmap generation."""
    capacity = CapacityModel.from_inputs(constraints.man_days, constraints.timeline_weeks)
    system = GENERATE_SYSTEM_PROMPT.format(
        weeks=capacity.week_count, capacity=capacity.weekly_capacity,
        team=context.team, schema=INITIATIVE_SCHEMA,
    )
    lines = _context_lines(context)
    lines += ["", "OKRs (highest priority first):", *(f"- {o}" for o in objectives), ""]
    lines += _constraint_lines(constraints, capacity.week_count)
    return system, "\n".join(lines)


def build_modify_prompt(
    instruction: str,
    initiatives: list[Initiative],
    objectives: list[str],
    context: PlanningContext,
    constraints: PlanningConstraints,
) -> tuple[str, str]:
    """Return ``(system, user)`` prompts for an instruction-driven rewrite."""
    capacity = CapacityModel.from_inputs(constraints.man_days, constraints.timeline_weeks)
    system = MODIFY_SYSTEM_PROMPT.format(schema=INITIATIVE_SCHEMA)
    lines = _context_lines(context)
    if objectives:
        lines += ["", "OKRs:", *(f"- {o}" for o in objectives)]
    lines += [""] + _constraint_lines(constraints, capacity.week_count)
    lines += ["", "User instruction:", f'"{instruction}"', "", "Existing roadmap:"]
    lines.append(json.dumps([i.model_dump(by_alias=True) for i in initiatives], indent=2))
    return system, "\n".join(lines)


# ---------------------------------------------------------------------------
# LLM Client
# ---------------------------------------------------------------------------


class LLMClient:
    """Unified async LLM client supporting OpenAI and Anthropic."""

    def __init__(
        self,
        provider: str | None = None,
        model: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
    ):
        settings = get_settings()
        self.provider = provider or settings.llm_provider
        self.model = model or settings.llm_model
        self.temperature = settings.llm_temperature
        self.max_tokens = settings.llm_max_tokens
        self._api_key = api_key
        self._base_url = base_url
        self._client: Any = None
        self._init_client()

    def _init_client(self) -> None:
        if self.provider == "anthropic":
            import anthropic
            self.model = self.model or "claude-haiku-4-5-20251001"
            self._client = anthropic.AsyncAnthropic(
                api_key=self._api_key or os.environ.get("ANTHROPIC_API_KEY")
            )
        elif self.provider in ("openai", "openai_compatible"):
            import openai
            self.model = self.model or "gpt-4o-mini"
            kwargs: dict[str, Any] = {}
            key = self._api_key or os.environ.get("OPENAI_API_KEY")
            if key:
                kwargs["api_key"] = key
            url = self._base_url or os.environ.get("OPENAI_BASE_URL")
            if url:
                kwargs["base_url"] = url
            self._client = openai.AsyncOpenAI(**kwargs)
        else:
            raise ValueError(f"Unknown LLM provider: {self.provider!r}")

    async def call(self, system: str, user: str) -> dict[str, Any]:
        """Send system+user message to the LLM, return parsed JSON."""
        try:
            if self.provider == "anthropic":
                response = await self._client.messages.create(
                    model=self.model,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                    system=system,
                    messages=[{"role": "user", "content": user}],
                )
                text = response.content[0].text
            else:
                response = await self._client.chat.completions.create(
                    model=self.model,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                    response_format={"type": "json_object"},
                    messages=[
                        {"role": "system", "content": system},
                        {"role": "user", "content": user},
                    ],
                )
                text = response.choices[0].message.content or ""
        except Exception as exc:
            raise LLMCallError(f"LLM API call failed: {exc}", retryable=True) from exc

        if not text.strip():
            raise LLMCallError("Empty response from LLM", retryable=True)
        parsed = json_parse(text, None)
        if not isinstance(parsed, dict):
            log.warning("LLM JSON parse failed: %s", text[:500])
            raise LLMCallError("LLM returned invalid JSON", retryable=False)
        return parsed


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


def _initiatives_from_reply(raw: dict[str, Any], id_factory: IdFactory) -> list[Initiative]:
    items = raw.get("initiatives")
    if not isinstance(items, list):
        raise LLMCallError("LLM response has no 'initiatives' list")
    try:
        return normalize_initiatives(items, id_factory)
    except InitiativeParseError as exc:
        raise LLMCallError(f"LLM returned a malformed initiative: {exc}") from exc


def validate_objectives(objectives: list[str]) -> list[str]:
    objectives = [o for o in objectives if o and o.strip()]
    if not objectives:
        raise PlanValidationError("At least one OKR is required")
    return objectives


def validate_instruction(instruction: str) -> str:
    if not instruction or not instruction.strip():
        raise PlanValidationError("Command is required")
    return instruction.strip()


async def generate_initiatives(
    objectives: list[str],
    context: PlanningContext,
    constraints: PlanningConstraints,
    client: LLMClient,
    id_factory: IdFactory,
) -> list[Initiative]:
    """Draft a fresh initiative list for the given objectives."""
    objectives = validate_objectives(objectives)
    system, user = build_generate_prompt(objectives, context, constraints)
    log.info("Generating roadmap for %d OKRs with %s", len(objectives), client.model)
    raw = await client.call(system, user)
    return _initiatives_from_reply(raw, id_factory)


async def modify_initiatives(
    instruction: str,
    current: list[Initiative],
    objectives: list[str],
    context: PlanningContext,
    constraints: PlanningConstraints,
    client: LLMClient,
    id_factory: IdFactory,
) -> list[Initiative]:
    """Rewrite the current initiative list according to a free-text instruction."""
    instruction = validate_instruction(instruction)
    system, user = build_modify_prompt(instruction, current, objectives, context, constraints)
    log.info("Modifying roadmap (%d initiatives) with %s", len(current), client.model)
    raw = await client.call(system, user)
    return _initiatives_from_reply(raw, id_factory)
