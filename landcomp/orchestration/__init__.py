"""
Orchestration package: agent registry, capability routing, execution-plan
handling and the orchestrator that ties them together.
"""

from .context import ContextBuilder
from .exceptions import AgentNotFoundError, NoEligibleAgentError, OrchestrationError
from .orchestrator import AgentOrchestrator
from .registry import AgentRegistry
from .routing import AgentSelector, RoutingDecision, ScoreBreakdown

__all__ = [
    "AgentNotFoundError",
    "AgentOrchestrator",
    "AgentRegistry",
    "AgentSelector",
    "ContextBuilder",
    "NoEligibleAgentError",
    "OrchestrationError",
    "RoutingDecision",
    "ScoreBreakdown",
]
