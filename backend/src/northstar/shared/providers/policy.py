"""Routing policy — pure mapping of (task type, caller context) to a ranking.

Precedence, first match wins:

    1. explicit override      (caller names a known provider)
    2. domain preference      (pillar / agent tag → provider table)
    3. task-type keyword sets (reasoning-style vs narrative-style tasks)
    4. content-size heuristic (large context → narrative, else reasoning)

The remaining known providers are appended in declaration order so the
dispatcher always has a complete fallback sequence.  Availability is *not*
considered here; that is the dispatcher's job.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from northstar.domain.enums import Pillar, ProviderId
from northstar.domain.exceptions import RoutingConfigurationError
from northstar.shared.providers.types import CallerContext, RoutingDecision

REASONING_TASKS: frozenset[str] = frozenset(
    {
        "classify",
        "diagnose",
        "screen",
        "score",
        "analyze",
        "decide",
        "prioritize",
        "assess",
        "evaluate",
    }
)

NARRATIVE_TASKS: frozenset[str] = frozenset(
    {
        "coach",
        "counsel",
        "explain",
        "plan",
        "create",
        "journal",
        "reflect",
        "story",
        "guide",
    }
)

DEFAULT_DOMAIN_PREFERENCES: dict[str, ProviderId] = {
    Pillar.SLEEP.value: ProviderId.REASONING,
    Pillar.FITNESS.value: ProviderId.NARRATIVE,
    Pillar.MENTAL_HEALTH.value: ProviderId.NARRATIVE,
    Pillar.NUTRITION.value: ProviderId.REASONING,
    Pillar.FINANCES.value: ProviderId.REASONING,
    Pillar.PHYSICAL_HEALTH.value: ProviderId.REASONING,
    Pillar.SOCIAL.value: ProviderId.NARRATIVE,
    Pillar.SPIRITUALITY.value: ProviderId.NARRATIVE,
}

LARGE_CONTEXT_THRESHOLD = 2000  # characters


class RoutingPolicy:
    """Deterministic provider ranking from static, validated tables."""

    def __init__(
        self,
        *,
        domain_preferences: Mapping[str, ProviderId | str] | None = None,
        reasoning_tasks: Iterable[str] = REASONING_TASKS,
        narrative_tasks: Iterable[str] = NARRATIVE_TASKS,
        large_context_threshold: int = LARGE_CONTEXT_THRESHOLD,
        known_providers: Iterable[ProviderId] = tuple(ProviderId),
    ) -> None:
        self._known = tuple(dict.fromkeys(known_providers))
        if not self._known:
            raise RoutingConfigurationError("at least one provider identity is required")
        for required in (ProviderId.REASONING, ProviderId.NARRATIVE):
            if required not in self._known:
                raise RoutingConfigurationError(f"provider {required.value!r} must be known")

        self._domains = self._load_domains(
            DEFAULT_DOMAIN_PREFERENCES if domain_preferences is None else domain_preferences
        )
        self._reasoning = frozenset(t.strip().lower() for t in reasoning_tasks)
        self._narrative = frozenset(t.strip().lower() for t in narrative_tasks)
        overlap = self._reasoning & self._narrative
        if overlap:
            raise RoutingConfigurationError(
                f"task types listed as both reasoning and narrative: {sorted(overlap)}"
            )
        if large_context_threshold <= 0:
            raise RoutingConfigurationError("large_context_threshold must be positive")
        self._threshold = large_context_threshold

    @property
    def known_providers(self) -> tuple[ProviderId, ...]:
        return self._known

    @property
    def domain_preferences(self) -> dict[str, ProviderId]:
        return dict(self._domains)

    def decide(self, task_type: str, context: CallerContext | None = None) -> RoutingDecision:
        """Rank providers for one logical request.  Pure and side-effect free."""
        context = context or CallerContext()
        task = (task_type or "").strip().lower()
        primary, reason = self._select_primary(task, context)
        if context.explicit_override is not None and not reason.startswith("explicit override"):
            reason = f"{reason} (ignored unknown override)"
        ranked = (primary, *(p for p in self._known if p != primary))
        return RoutingDecision(ranked_candidates=ranked, reason=reason)

    # ── Rules ────────────────────────────────────────────────
    def _select_primary(self, task: str, context: CallerContext) -> tuple[ProviderId, str]:
        if context.explicit_override is not None:
            override = ProviderId.parse(context.explicit_override)
            if override is not None and override in self._known:
                return override, f"explicit override: {override.value}"

        domain = (context.domain_tag or "").strip().lower()
        if domain and domain in self._domains:
            preferred = self._domains[domain]
            return preferred, f"domain preference ({domain}): {preferred.value}"

        if task in self._reasoning:
            return ProviderId.REASONING, f"reasoning task ({task}): {ProviderId.REASONING.value}"
        if task in self._narrative:
            return ProviderId.NARRATIVE, f"narrative task ({task}): {ProviderId.NARRATIVE.value}"

        if context.context_size > self._threshold:
            return (
                ProviderId.NARRATIVE,
                f"large context ({context.context_size} chars): {ProviderId.NARRATIVE.value}",
            )
        return ProviderId.REASONING, f"default task type ({task or 'unspecified'}): {ProviderId.REASONING.value}"

    # ── Table validation ─────────────────────────────────────
    def _load_domains(self, table: Mapping[str, ProviderId | str]) -> dict[str, ProviderId]:
        domains: dict[str, ProviderId] = {}
        for tag, value in table.items():
            provider = ProviderId.parse(value)
            if provider is None or provider not in self._known:
                raise RoutingConfigurationError(
                    f"domain {tag!r} maps to unknown provider {value!r}"
                )
            domains[tag.strip().lower()] = provider
        return domains
