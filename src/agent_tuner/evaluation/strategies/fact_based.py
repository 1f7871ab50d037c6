"""Fact coverage evaluation for textual responses."""

import json
import re
from typing import Any, Dict, List, Optional

from ...errors import ConfigurationError
from ...models import (
    DetailedFeedback,
    EvaluationConfig,
    EvaluationContext,
    EvaluationResult,
    FailurePattern,
)
from ..base import NONE_IDENTIFIED, EvaluationStrategy
from ..stats import mean

STOP_WORDS = {"the", "and", "or", "but", "with", "from", "for", "that", "this", "have", "has"}
TEXT_FIELDS = ("response", "text", "explanation", "feedback")
SYSTEMATIC_MISSING_SHARE = 0.3
EVIDENCE_WINDOW = 50

FACT_CATEGORIES = [
    ("temporal", ("date", "time")),
    ("quantitative", ("number", "count", "amount")),
    ("identity", ("name", "person", "who")),
    ("spatial", ("location", "where", "place")),
    ("causal", ("reason", "why", "because")),
]


def response_text(item: Any) -> str:
    """Extract the textual part of an agent response."""
    if isinstance(item, str):
        return item
    if isinstance(item, dict):
        for field in TEXT_FIELDS:
            if isinstance(item.get(field), str):
                return item[field]
    return json.dumps(item, ensure_ascii=False, default=str)


def requirement_facts(item: Any) -> List[Dict[str, Any]]:
    """Normalize ground-truth fact requirements to name/description/required dicts."""
    if isinstance(item, dict):
        facts = item.get("facts") or []
    elif isinstance(item, list):
        facts = item
    else:
        facts = []

    normalized = []
    for fact in facts:
        if isinstance(fact, str):
            normalized.append({"name": fact, "description": "", "required": True})
        elif isinstance(fact, dict) and fact.get("name"):
            normalized.append({
                "name": str(fact["name"]),
                "description": str(fact.get("description") or ""),
                "required": fact.get("required", True) is not False,
            })
    return normalized


def categorize_fact(fact_name: str) -> str:
    for category, keywords in FACT_CATEGORIES:
        if any(keyword in fact_name for keyword in keywords):
            return category
    return "general"


class FactBasedStrategy(EvaluationStrategy):
    """Keyword-based check that responses cover the required facts."""

    name = "fact-based"
    type = "fact-based"
    description = "Checks responses for required and optional facts"

    def is_applicable(self, context: EvaluationContext) -> bool:
        return context.has_fact_requirements or context.has_textual_content

    async def evaluate(
        self,
        data: List[Any],
        ground_truth: List[Any],
        config: EvaluationConfig
    ) -> EvaluationResult:
        if len(data) != len(ground_truth):
            raise ConfigurationError("Responses and requirements must have the same length")

        details: List[Dict[str, Any]] = []
        missing_counts: Dict[str, int] = {}
        total_required = 0.0
        total_present = 0.0
        present_confidences: List[float] = []
        total_facts = 0

        for item, requirement in zip(data, ground_truth):
            text = response_text(item)
            facts = requirement_facts(requirement)
            checks = [self._check_fact(text, fact) for fact in facts]
            total_facts += len(checks)

            missing = []
            for fact, check in zip(facts, checks):
                if fact["required"]:
                    total_required += 1
                    if check["present"]:
                        total_present += 1
                    else:
                        missing.append(fact["name"])
                elif check["present"]:
                    total_required += 0.5
                    total_present += 0.5
                if check["present"]:
                    present_confidences.append(check["confidence"])

            for name in missing:
                missing_counts[name] = missing_counts.get(name, 0) + 1

            details.append({
                "response": text,
                "fact_checks": checks,
                "missing_facts": missing,
                "score": self._response_score(facts, checks),
            })

        coverage = total_present / total_required if total_required > 0 else 0.0
        systematic_missing = [
            name for name, count in missing_counts.items()
            if count > len(data) * SYSTEMATIC_MISSING_SHARE
        ]

        return EvaluationResult(
            score=min(1.0, coverage),
            metrics={
                "total_facts": total_facts,
                "present_facts": len(present_confidences),
                "missing_fact_count": total_facts - len(present_confidences),
                "average_confidence": mean(present_confidences),
                "fact_coverage": coverage,
                "missing_facts": systematic_missing,
            },
            details=details
        )

    def generate_feedback(self, result: EvaluationResult) -> DetailedFeedback:
        metrics = result.metrics
        missing = metrics.get("missing_facts", [])
        coverage = metrics.get("fact_coverage", result.score)
        confidence = metrics.get("average_confidence", 0.0)

        strengths: List[str] = []
        weaknesses: List[str] = []
        action_items: List[str] = []

        if coverage > 0.9:
            strengths.append("Excellent fact coverage")
        if confidence > 0.8:
            strengths.append("High confidence in fact detection")

        if coverage < 0.7:
            weaknesses.append("Poor fact coverage")
            action_items.append("Review prompt to ensure all required facts are addressed")
        if missing:
            suffix = "..." if len(missing) > 3 else ""
            weaknesses.append(f"Missing facts: {', '.join(missing[:3])}{suffix}")
            action_items.append("Add explicit instructions for missing facts in prompt")
        if 0 < confidence < 0.6:
            weaknesses.append("Low confidence in fact detection")
            action_items.append("Improve response clarity and structure")

        return DetailedFeedback(
            summary=f"Fact-based evaluation score: {result.score * 100:.1f}%",
            strengths=strengths or [NONE_IDENTIFIED],
            weaknesses=weaknesses or [NONE_IDENTIFIED],
            patterns=self._fact_patterns(result.details),
            action_items=action_items or ["Maintain current fact coverage"],
            improvements=self._improvements(result)
        )

    def analyze_patterns(self, results: List[EvaluationResult]) -> Optional[List[FailurePattern]]:
        patterns: List[FailurePattern] = []
        total_responses = sum(len(r.details) for r in results)
        if total_responses == 0:
            return patterns

        counts: Dict[str, int] = {}
        for result in results:
            for detail in result.details:
                for name in detail.get("missing_facts", []):
                    counts[name] = counts.get(name, 0) + 1

        for name, count in counts.items():
            if count > total_responses * SYSTEMATIC_MISSING_SHARE:
                patterns.append(FailurePattern(
                    type="systematic-missing-fact",
                    frequency=min(1.0, count / total_responses),
                    examples=[name],
                    suggested_fix=f"Add explicit instruction for '{name}' in prompt",
                    description=f"Fact '{name}' missing in {count}/{total_responses} responses"
                ))

        response_scores = [d.get("score", 0.0) for r in results for d in r.details]
        partial = [s for s in response_scores if 0.3 < s < 0.7]
        if len(partial) > len(response_scores) * 0.5:
            patterns.append(FailurePattern(
                type="partial-fact-coverage",
                frequency=len(partial) / len(response_scores),
                examples=[f"{s * 100:.0f}% coverage" for s in partial[:3]],
                suggested_fix="Use more structured output format to ensure all facts are addressed",
                description="Most responses cover only part of the required facts"
            ))

        return patterns

    def _check_fact(self, text: str, fact: Dict[str, Any]) -> Dict[str, Any]:
        """Keyword presence check with surrounding evidence."""
        lowered = text.lower()
        keywords = self._keywords(fact["name"], fact["description"])
        matches = [kw for kw in keywords if kw.lower() in lowered]
        if not matches:
            return {"fact_name": fact["name"], "present": False, "confidence": 0.0, "evidence": ""}

        index = lowered.find(matches[0].lower())
        start = max(0, index - EVIDENCE_WINDOW)
        end = min(len(text), index + len(matches[0]) + EVIDENCE_WINDOW)
        return {
            "fact_name": fact["name"],
            "present": True,
            "confidence": min(1.0, len(matches) / len(keywords)),
            "evidence": text[start:end],
        }

    def _keywords(self, name: str, description: str) -> List[str]:
        keywords = [w for w in re.split(r"[_\s-]+", name) if len(w) > 2]
        if description:
            words = [w for w in description.split() if len(w) > 3 and w.lower() not in STOP_WORDS]
            keywords.extend(words[:3])
        return list(dict.fromkeys(keywords)) or [name]

    def _response_score(self, facts: List[Dict[str, Any]], checks: List[Dict[str, Any]]) -> float:
        score = 0.0
        total_weight = 0.0
        for fact, check in zip(facts, checks):
            weight = 2.0 if fact["required"] else 1.0
            total_weight += weight
            if check["present"]:
                score += weight * check["confidence"]
        return score / total_weight if total_weight > 0 else 0.0

    def _fact_patterns(self, details: List[Dict[str, Any]]) -> List[str]:
        patterns: List[str] = []
        if not details:
            return patterns

        if mean([d.get("score", 0.0) for d in details]) < 0.5:
            patterns.append("Consistently low fact coverage across responses")

        missing = [name for d in details for name in d.get("missing_facts", [])]
        by_category: Dict[str, int] = {}
        for name in missing:
            category = categorize_fact(name)
            by_category[category] = by_category.get(category, 0) + 1
        for category, count in by_category.items():
            if count > len(missing) * 0.2:
                patterns.append(f"Difficulty with {category} facts")
        return patterns

    def _improvements(self, result: EvaluationResult) -> List[str]:
        metrics = result.metrics
        missing = metrics.get("missing_facts", [])
        improvements: List[str] = []

        if len(missing) > 3:
            improvements.append("Consider using a checklist format in the prompt")
        if 0 < metrics.get("average_confidence", 0.0) < 0.7:
            improvements.append("Make fact requirements more explicit in the prompt")

        by_category: Dict[str, int] = {}
        for name in missing:
            category = categorize_fact(name)
            by_category[category] = by_category.get(category, 0) + 1
        for category, count in by_category.items():
            if count > 2:
                improvements.append(f"Improve handling of {category} information")

        if metrics.get("fact_coverage", 1.0) < 0.6:
            improvements.append("Use structured output format to ensure comprehensive coverage")
        return improvements
