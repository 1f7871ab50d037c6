"""Iterative optimization engine."""

from .research import ResearchAdvisor
from .prompt_rewriter import PromptRewriter
from .proposer import ConfigurationProposer, Proposal
from .flow import FlowOrchestrator, deduplicate_insights

__all__ = [
    "ResearchAdvisor",
    "PromptRewriter",
    "ConfigurationProposer",
    "Proposal",
    "FlowOrchestrator",
    "deduplicate_insights",
]
