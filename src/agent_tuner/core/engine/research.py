"""Improvement ideas from an internal knowledge base."""

import re
from typing import Dict, List, Optional, Tuple

from loguru import logger

from ...models import DetailedFeedback, FailurePattern, ResearchInsight

DEFAULT_CONFIDENCE = 0.7
BASE_APPLICABILITY = 0.5
WEAKNESS_MATCH_BONUS = 0.2
ACTION_MATCH_BONUS = 0.15
MIN_APPLICABILITY = 0.5
GENERAL_TOPIC = "general-optimization"

KNOWLEDGE_BASE: Dict[str, List[str]] = {
    "calibration": [
        "Add calibration examples spanning the full score range",
        "Add explicit scoring boundaries with calibration anchors",
    ],
    "bias-correction": [
        "Add calibration examples to correct systematic bias",
        "Use balanced few-shot examples across the score range",
    ],
    "consistency-enhancement": [
        "Lower temperature for more consistent outputs",
        "Use structured output format for consistency",
        "Add consistency checks to the prompt",
    ],
    "stability": [
        "Lower temperature to reduce variance between runs",
        "Stabilize outputs with few-shot examples",
    ],
    "correlation-improvement": [
        "Add explicit scoring criteria to the prompt",
        "Use chain-of-thought reasoning before the final score",
    ],
    "fact-extraction": [
        "Use an explicit fact extraction structure in the prompt",
        "Add a fact verification step to the instructions",
    ],
    "completeness": [
        "Add a checklist structure covering every required fact",
        "Use few-shot examples showing complete answers",
    ],
    "accuracy-optimization": [
        "Use a more powerful model for difficult samples",
        "Add domain-specific few-shot examples",
    ],
    GENERAL_TOPIC: [
        "Iterate on prompt wording and instruction clarity",
        "Test different temperature settings",
        "Add few-shot examples",
    ],
}

# (knowledge keyword, confidence, implementation hint)
CONFIDENCE_RULES: List[Tuple[str, float, str]] = [
    ("calibration", 0.9, "Add calibration examples to prompt"),
    ("temperature", 0.85, "Adjust temperature parameter"),
    ("few-shot", 0.8, "Add few-shot examples to prompt"),
    ("structure", 0.75, "Use structured output format in prompt"),
]

WEAKNESS_TOPICS: List[Tuple[str, str]] = [
    ("correlation", "correlation-improvement"),
    ("bias", "bias-correction"),
    ("consistency", "consistency-enhancement"),
    ("fact", "fact-extraction"),
    ("accuracy", "accuracy-optimization"),
]

PATTERN_TOPICS: List[Tuple[str, str]] = [
    ("overestim", "calibration"),
    ("underestim", "calibration"),
    ("missing", "completeness"),
    ("variance", "stability"),
]

PATTERN_STRATEGIES: Dict[str, List[str]] = {
    "consistent-overestimation": [
        "Implement calibration with lower bound examples",
        "Reduce model confidence through temperature adjustment",
        "Add explicit scoring boundaries in prompt",
    ],
    "consistent-underestimation": [
        "Implement calibration with upper bound examples",
        "Add explicit scoring boundaries in prompt",
    ],
    "high-variance": [
        "Stabilize with few-shot examples",
        "Use structured output format",
        "Lower temperature for consistency",
    ],
    "edge-case-failures": [
        "Add edge case examples to prompt",
        "Add special handling for boundary values in prompt",
    ],
    "systematic-missing-fact": [
        "Add checklist format to prompt",
        "Add fact extraction template to prompt",
        "Use chain-of-thought for completeness",
    ],
}

PATTERN_PREFIXES = re.compile(r"^(persistent-|cross-strategy-)")
WORD = re.compile(r"[a-z][a-z\-]{3,}")
STOP_WORDS = {"with", "from", "that", "this", "than", "more", "less", "needs", "none", "identified"}


def _keywords(text: str) -> List[str]:
    return [w for w in WORD.findall(text.lower()) if w not in STOP_WORDS]


class ResearchAdvisor:
    """Maps feedback and failure patterns to ranked improvement insights."""

    def __init__(self, knowledge_base: Optional[Dict[str, List[str]]] = None):
        self.knowledge_base = knowledge_base or KNOWLEDGE_BASE
        self._cache: Dict[str, List[str]] = {}

    def extract_topics(self, feedback: DetailedFeedback) -> List[str]:
        """Research topics implied by weaknesses and pattern notes."""
        topics: List[str] = []
        for weakness in feedback.weaknesses:
            lowered = weakness.lower()
            for keyword, topic in WEAKNESS_TOPICS:
                if keyword in lowered and topic not in topics:
                    topics.append(topic)
        for pattern in feedback.patterns:
            lowered = pattern.lower()
            for keyword, topic in PATTERN_TOPICS:
                if keyword in lowered and topic not in topics:
                    topics.append(topic)
        return topics or [GENERAL_TOPIC]

    def find_strategies(self, feedback: DetailedFeedback) -> List[ResearchInsight]:
        """Applicable knowledge-base insights for the feedback, ranked."""
        insights = []
        for topic in self.extract_topics(feedback):
            for knowledge in self._lookup(topic):
                insight = self._to_insight(topic, knowledge, feedback)
                if insight.applicability > MIN_APPLICABILITY:
                    insights.append(insight)
        return self.rank(insights)

    def research_patterns(self, patterns: List[FailurePattern]) -> List[ResearchInsight]:
        """Insights for specific failure patterns, weighted by their frequency."""
        insights = []
        for pattern in patterns:
            base_type = PATTERN_PREFIXES.sub("", pattern.type)
            for strategy in PATTERN_STRATEGIES.get(base_type, [pattern.suggested_fix]):
                insights.append(ResearchInsight(
                    source=f"pattern-research-{base_type}",
                    strategy=strategy,
                    confidence=0.8 - pattern.frequency * 0.2,
                    applicability=pattern.frequency,
                    description=f"Solution for {base_type}: {strategy}",
                    implementation=strategy
                ))
        return insights

    def rank(self, insights: List[ResearchInsight], limit: Optional[int] = None) -> List[ResearchInsight]:
        ranked = sorted(insights, key=lambda i: i.rank_score, reverse=True)
        return ranked[:limit] if limit is not None else ranked

    def clear_cache(self) -> None:
        self._cache = {}

    def _lookup(self, topic: str) -> List[str]:
        if topic not in self._cache:
            self._cache[topic] = self.knowledge_base.get(topic) or self.knowledge_base.get(GENERAL_TOPIC, [])
            logger.debug(f"Researched topic '{topic}': {len(self._cache[topic])} entries")
        return self._cache[topic]

    def _to_insight(self, topic: str, knowledge: str, feedback: DetailedFeedback) -> ResearchInsight:
        confidence = DEFAULT_CONFIDENCE
        implementation = None
        lowered = knowledge.lower()
        for keyword, rule_confidence, hint in CONFIDENCE_RULES:
            if keyword in lowered:
                confidence = rule_confidence
                implementation = hint
                break

        return ResearchInsight(
            source=f"knowledge-base:{topic}",
            strategy=knowledge,
            confidence=confidence,
            applicability=self._applicability(knowledge, feedback),
            description=knowledge,
            implementation=implementation
        )

    def _applicability(self, knowledge: str, feedback: DetailedFeedback) -> float:
        """Base applicability raised for each weakness and action the insight addresses."""
        text = knowledge.lower()
        score = BASE_APPLICABILITY
        for weakness in feedback.weaknesses:
            if any(word in text for word in _keywords(weakness)):
                score += WEAKNESS_MATCH_BONUS
        for action in feedback.action_items:
            if any(word in text for word in _keywords(action)):
                score += ACTION_MATCH_BONUS
        return min(1.0, score)
