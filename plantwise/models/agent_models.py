"""
Pydantic Models for Agent Communication

Defines the data structures exchanged between the coordinator, the specialized
agents and the HTTP layer. API-facing models serialize with camelCase keys.
"""

from enum import Enum
from typing import List, Dict, Any, Optional, Literal
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase JSON keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NutritionMode(str, Enum):
    """Dietary protocol the nutrition agent evaluates against."""
    REVERSAL = "reversal"
    PREVENTION = "prevention"


# ============================================================================
# Routing Models
# ============================================================================

class HandoffRecord(CamelModel):
    """One routing decision made by the coordinator"""
    timestamp: str
    user_id: Optional[str] = None
    has_image: bool = False
    input_length: int = 0
    agent: Literal["chat", "image", "nutrition"]
    reason: str


class AgentResult(CamelModel):
    """
    Uniform result returned by every agent call.

    Failures carry success=False, a human-readable error and the agent name,
    so callers can tell who failed.
    """
    success: bool
    agent: str
    response: Optional[str] = None
    error: Optional[str] = None
    tokens_used: int = 0
    model: Optional[str] = None
    handoff: Optional[HandoffRecord] = None

    # Nutrition agent
    evaluation: Optional[Dict[str, Any]] = None
    mode: Optional[NutritionMode] = None

    # Image agent
    prompt: Optional[str] = None
    image_validation: Optional[Literal["food-related", "non-food-content"]] = None
    validation_error: Optional[str] = None
    has_context: bool = False

    # Canned responses
    suggestion: Optional[str] = None


# ============================================================================
# Nutrition Agent Models
# ============================================================================

class SodiumCheck(BaseModel):
    """Sodium rule: mg sodium per serving must not exceed calories per serving"""
    calories_per_serving: Optional[float] = None
    sodium_mg_per_serving: Optional[float] = None
    passes_rule: Optional[bool] = None


class NutritionFlags(BaseModel):
    contains_oil_or_hidden_fats: bool = False
    contains_animal_product: bool = False
    high_fat_plant_food: bool = False
    added_sugars_or_syrups: bool = False
    refined_grain_as_staple: bool = False
    smoothie_or_juice: bool = False
    caffeinated_coffee: bool = False
    soy_servings_this_week: Optional[int] = None
    fruit_servings_today: Optional[int] = None


class SuggestedSwap(BaseModel):
    swap_out: str
    swap_in: str
    why: str


class NutritionEvaluation(BaseModel):
    """Structured compliance verdict the nutrition agent asks the model for"""
    mode: NutritionMode = NutritionMode.REVERSAL
    item_type: str = "unknown"
    verdict: Literal["compliant", "non_compliant", "needs_info"]
    reasons: List[str] = Field(default_factory=list)
    fixes: List[str] = Field(default_factory=list)
    sodium_check: SodiumCheck = Field(default_factory=SodiumCheck)
    flags: NutritionFlags = Field(default_factory=NutritionFlags)
    info_needed: List[str] = Field(default_factory=list)
    notes: str = ""
    suggested_swaps: List[SuggestedSwap] = Field(default_factory=list)

    @classmethod
    def fallback(
        cls,
        mode: NutritionMode,
        item_type: str = "unknown",
        reason: str = "Unable to parse response format",
        info_needed: str = "Response format error",
        notes: str = "System error in response formatting",
    ) -> "NutritionEvaluation":
        """Evaluation substituted when the model reply is not a JSON object."""
        return cls(
            mode=mode,
            item_type=item_type,
            verdict="needs_info",
            reasons=[reason],
            info_needed=[info_needed],
            notes=notes,
        )


class DailyIntake(BaseModel):
    """What the user has consumed so far (input to daily guidance)"""
    fruits: int = Field(default=0, ge=0)
    greens: int = Field(default=0, ge=0)
    soy: int = Field(default=0, ge=0, description="Soy servings this week")
    sodium: int = Field(default=0, ge=0, description="Sodium today in mg")


# ============================================================================
# Request Models
# ============================================================================

class ChatRequest(CamelModel):
    """Chat request; message is validated by the endpoint (400 when missing)"""
    message: Optional[str] = None
    session_id: Optional[str] = None
    user_id: str = "default"

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "message": "Is oat milk allowed on reversal mode?",
                "sessionId": None,
                "userId": "default",
            }
        }
    )


class NutritionEvaluationRequest(CamelModel):
    item: Optional[str] = None
    nutrition_info: Optional[str] = None
    ingredient_list: Optional[str] = None
    serving_size: Optional[str] = None
    session_id: Optional[str] = None
    user_id: str = "default"


class MealEvaluationRequest(CamelModel):
    meal: Optional[str] = None
    items: List[str] = Field(default_factory=list)
    session_id: Optional[str] = None
    user_id: str = "default"


class DailyGuidanceRequest(CamelModel):
    fruits: int = Field(default=0, ge=0)
    greens: int = Field(default=0, ge=0)
    soy: int = Field(default=0, ge=0)
    sodium: int = Field(default=0, ge=0)
    session_id: Optional[str] = None
    user_id: str = "default"


class NutritionModeRequest(CamelModel):
    mode: Optional[str] = None


# ============================================================================
# Response Models
# ============================================================================

class ChatResponse(CamelModel):
    response: str
    agent: str
    session_id: str
    user_id: str
    tokens_used: int = 0
    handoff: Optional[HandoffRecord] = None
    timestamp: str


class ImageAnalysisResponse(CamelModel):
    analysis: str
    agent: str
    analysis_type: str
    filename: Optional[str] = None
    session_id: str
    user_id: str
    tokens_used: int = 0
    prompt: str
    timestamp: str


class NutritionEvaluationResponse(CamelModel):
    evaluation: Dict[str, Any]
    agent: str
    mode: NutritionMode
    session_id: str
    user_id: str
    tokens_used: int = 0
    timestamp: str


class DailyGuidanceResponse(CamelModel):
    guidance: str
    agent: str
    mode: NutritionMode
    session_id: str
    user_id: str
    tokens_used: int = 0
    timestamp: str


class AgentUsage(CamelModel):
    agent_name: str
    interactions: int
    tokens: int = 0


class SessionStats(CamelModel):
    session_id: str
    message_count: int = 0
    total_tokens: int = 0
    agent_usage: List[AgentUsage] = Field(default_factory=list)
    created: Optional[str] = None
    last_updated: Optional[str] = None
