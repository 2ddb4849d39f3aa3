"""
PlantWise Models Package

Pydantic models for API requests/responses and agent communication.
"""

from .agent_models import (
    CamelModel,
    NutritionMode,

    # Routing
    HandoffRecord,
    AgentResult,

    # Nutrition
    SodiumCheck,
    NutritionFlags,
    SuggestedSwap,
    NutritionEvaluation,
    DailyIntake,

    # Requests
    ChatRequest,
    NutritionEvaluationRequest,
    MealEvaluationRequest,
    DailyGuidanceRequest,
    NutritionModeRequest,

    # Responses
    ChatResponse,
    ImageAnalysisResponse,
    NutritionEvaluationResponse,
    DailyGuidanceResponse,
    AgentUsage,
    SessionStats,
)

__all__ = [
    "CamelModel",
    "NutritionMode",
    "HandoffRecord",
    "AgentResult",
    "SodiumCheck",
    "NutritionFlags",
    "SuggestedSwap",
    "NutritionEvaluation",
    "DailyIntake",
    "ChatRequest",
    "NutritionEvaluationRequest",
    "MealEvaluationRequest",
    "DailyGuidanceRequest",
    "NutritionModeRequest",
    "ChatResponse",
    "ImageAnalysisResponse",
    "NutritionEvaluationResponse",
    "DailyGuidanceResponse",
    "AgentUsage",
    "SessionStats",
]
