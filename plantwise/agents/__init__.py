"""
PlantWise Agents Package

Specialized agents behind a routing coordinator.

Agent Workflow:
1. Coordinator Agent - Picks an agent per request and logs the handoff
2. Image Agent - Food/non-food check, then image analysis
3. Nutrition Agent - Structured compliance verdicts (JSON)
4. Chat Agent - General conversation with protocol knowledge
"""

from .chat_agent import ChatAgent
from .image_agent import ImageAgent
from .nutrition_agent import NutritionAgent
from .handoff_log import HandoffLog
from .coordinator_agent import CoordinatorAgent, RoutingRequest, RoutingRule
from .client import create_openai_client

__all__ = [
    # Agent Classes
    "ChatAgent",
    "ImageAgent",
    "NutritionAgent",
    "CoordinatorAgent",

    # Routing
    "HandoffLog",
    "RoutingRequest",
    "RoutingRule",

    # Helpers
    "create_openai_client",
]
