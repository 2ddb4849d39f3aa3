"""
PlantWise - Nutrition Compliance Agents

Multi-agent service that answers questions about a strict plant-based
"reversal" dietary protocol.

Architecture:
- Coordinator Agent: Routes each request to one specialized agent
- Chat Agent: General conversation (gpt-4o-mini)
- Image Agent: Food image validation and analysis (gpt-4o-mini vision)
- Nutrition Agent: Structured JSON compliance verdicts (gpt-4o-mini)

Sessions, messages and agent interactions are stored in SQLite.
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
