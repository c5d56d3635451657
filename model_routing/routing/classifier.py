"""Message-to-tier classification.

The resolver depends only on the TierClassifier protocol. The heuristic
default below is good enough out of the box and cheap (regex only, no model
calls); deployments can plug in a learned classifier behind the same
interface.

Heuristic pipeline for the trailing user message:
1. Very short messages without reasoning/code signals are "simple".
2. Otherwise a 0.0-1.0 score from length and keyword families:
   - 0.00-0.25: simple
   - 0.25-0.50: standard
   - 0.50-1.00: complex
   Formal-reasoning keywords that dominate the other families -> reasoning.
3. Momentum: a short follow-up inherits the highest recent tier, so a
   conversation does not drop to a weaker model mid-task.
4. Floor: callable tools force at least "standard".
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

import structlog

from model_routing.routing.types import TIER_ORDER, Tier

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Classification:
    """Classifier output.

    Attributes:
        tier: Selected tier
        confidence: How sure the classifier is (0.0-1.0)
        score: Raw complexity score (0.0-1.0)
        reason: Which rule decided (short_message, scored, momentum, tool_floor)
    """

    tier: Tier
    confidence: float
    score: float
    reason: str

    def __post_init__(self) -> None:
        if not 0.0 <= self.score <= 1.0:
            raise ValueError(f"Complexity score must be 0.0-1.0, got {self.score}")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be 0.0-1.0, got {self.confidence}")


class TierClassifier(Protocol):
    def classify(
        self,
        messages: Sequence[dict[str, Any]],
        tools: Sequence[dict[str, Any]] | None = None,
        tool_choice: Any = None,
        prior_tier: str | None = None,
        recent_tiers: Sequence[str] | None = None,
    ) -> Classification: ...


def _keywords(*words: str) -> re.Pattern[str]:
    return re.compile(r"\b(?:" + "|".join(words) + r")\b", re.IGNORECASE)


def _rank(tier: Tier) -> int:
    return TIER_ORDER.index(tier)


def extract_user_text(messages: Sequence[dict[str, Any]]) -> str:
    """Text of the trailing user message (string or list-of-parts content)."""
    for message in reversed(messages):
        if message.get("role") != "user":
            continue
        content = message.get("content")
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            parts = [
                part.get("text", "")
                for part in content
                if isinstance(part, dict) and part.get("type") == "text"
            ]
            return " ".join(p for p in parts if p)
        return ""
    return ""


class HeuristicTierClassifier:
    """Keyword and length based TierClassifier."""

    SHORT_MESSAGE_WORDS = 6
    MOMENTUM_MAX_WORDS = 20
    SIMPLE_THRESHOLD = 0.25
    STANDARD_THRESHOLD = 0.5
    LENGTH_SATURATION_WORDS = 150.0

    REASONING = _keywords(
        r"prove", r"proof", r"theorem", r"lemma", r"axioms?", r"corollary",
        r"derive", r"derivation", r"deduce", r"formal(?:ly)?", r"logic(?:al|ally)?",
        r"induction", r"contradiction", r"rigorous(?:ly)?",
    )
    CODE = _keywords(
        r"code", r"function", r"class", r"debug", r"refactor", r"implement",
        r"algorithm", r"compile", r"stack trace", r"api", r"sql", r"regex",
        r"python", r"typescript", r"javascript", r"bug", r"unit tests?",
    )
    ANALYTICAL = _keywords(
        r"analy[sz]e", r"analysis", r"compare", r"evaluate", r"assess", r"architecture",
        r"design", r"trade-?offs?", r"review", r"explain why", r"optimi[sz]e",
    )
    MULTI_STEP = _keywords(
        r"first", r"then", r"finally", r"next", r"after that", r"step by step",
    )
    SIMPLE = _keywords(
        r"hi", r"hello", r"hey", r"thanks", r"thank you", r"ok", r"okay",
        r"yes", r"no", r"translate",
    )

    def classify(
        self,
        messages: Sequence[dict[str, Any]],
        tools: Sequence[dict[str, Any]] | None = None,
        tool_choice: Any = None,
        prior_tier: str | None = None,
        recent_tiers: Sequence[str] | None = None,
    ) -> Classification:
        text = extract_user_text(messages)
        word_count = len(text.split())

        reasoning_hits = len(self.REASONING.findall(text))
        code_hits = len(self.CODE.findall(text))
        analytical_hits = len(self.ANALYTICAL.findall(text))
        multi_step_hits = len(self.MULTI_STEP.findall(text))
        simple_hits = len(self.SIMPLE.findall(text))

        score = self._score(
            word_count, reasoning_hits, code_hits, analytical_hits, multi_step_hits, simple_hits
        )

        if word_count <= self.SHORT_MESSAGE_WORDS and reasoning_hits == 0 and code_hits == 0:
            result = Classification(Tier.SIMPLE, 0.9, score, "short_message")
        elif (
            reasoning_hits >= 2
            and reasoning_hits >= code_hits
            and reasoning_hits >= analytical_hits
        ):
            confidence = min(0.6 + 0.1 * reasoning_hits, 0.95)
            result = Classification(Tier.REASONING, confidence, score, "scored")
        else:
            result = Classification(self._tier_for(score), self._confidence(score), score, "scored")

        result = self._apply_momentum(result, word_count, prior_tier, recent_tiers)
        result = self._apply_tool_floor(result, tools, tool_choice)

        log.debug(
            "classifier.classified",
            tier=result.tier.value,
            reason=result.reason,
            score=round(result.score, 3),
            words=word_count,
        )
        return result

    def _score(
        self,
        word_count: int,
        reasoning_hits: int,
        code_hits: int,
        analytical_hits: int,
        multi_step_hits: int,
        simple_hits: int,
    ) -> float:
        # Each family is capped so no single signal decides on its own
        score = (
            min(word_count / self.LENGTH_SATURATION_WORDS, 1.0) * 0.25
            + min(reasoning_hits * 0.2, 0.4)
            + min(code_hits * 0.12, 0.3)
            + min(analytical_hits * 0.1, 0.25)
            + min(multi_step_hits * 0.05, 0.15)
            - min(simple_hits * 0.1, 0.2)
        )
        return max(0.0, min(score, 1.0))

    def _tier_for(self, score: float) -> Tier:
        if score < self.SIMPLE_THRESHOLD:
            return Tier.SIMPLE
        if score < self.STANDARD_THRESHOLD:
            return Tier.STANDARD
        return Tier.COMPLEX

    def _confidence(self, score: float) -> float:
        # Near a threshold the call is a coin flip
        distance = min(abs(score - self.SIMPLE_THRESHOLD), abs(score - self.STANDARD_THRESHOLD))
        return round(min(0.5 + distance * 2, 0.95), 3)

    def _apply_momentum(
        self,
        result: Classification,
        word_count: int,
        prior_tier: str | None,
        recent_tiers: Sequence[str] | None,
    ) -> Classification:
        history = list(recent_tiers or [])
        if prior_tier:
            history.append(prior_tier)
        highest = _highest_tier(history)
        if highest is None or word_count > self.MOMENTUM_MAX_WORDS:
            return result
        if _rank(highest) <= _rank(result.tier):
            return result
        return Classification(highest, 0.7, result.score, "momentum")

    def _apply_tool_floor(
        self,
        result: Classification,
        tools: Sequence[dict[str, Any]] | None,
        tool_choice: Any,
    ) -> Classification:
        if not tools or tool_choice == "none":
            return result
        if _rank(result.tier) >= _rank(Tier.STANDARD):
            return result
        return Classification(Tier.STANDARD, max(result.confidence, 0.8), result.score, "tool_floor")


def _highest_tier(labels: Iterable[str]) -> Tier | None:
    highest: Tier | None = None
    for label in labels:
        try:
            tier = Tier(str(label).strip().lower())
        except ValueError:
            continue
        if highest is None or _rank(tier) > _rank(highest):
            highest = tier
    return highest
