"""
Nutrition Agent - Structured Compliance Evaluation

Evaluates foods, meals and daily intake against the reversal (or prevention)
dietary protocol. Evaluations are requested as JSON objects; a reply that does
not parse into an object is replaced by a fixed "needs_info" fallback.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Union

from openai import AsyncOpenAI

from plantwise.agents.client import create_openai_client, total_tokens
from plantwise.agents.prompts import DEFAULT_SODIUM_LIMIT, protocol_rules
from plantwise.config import get_settings
from plantwise.models import AgentResult, DailyIntake, NutritionEvaluation, NutritionMode

logger = logging.getLogger(__name__)


EVALUATION_PROCESS = """EVALUATION PROCESS:
1. Animal check: any animal ingredient? Non-compliant
2. Oil/fat check: any added oils/fats or oil synonyms? Non-compliant
3. High-fat plant foods: nuts, nut butters, avocado, coconut/tahini, most seeds? Non-compliant
4. Sugar/sweetener check: added sugars/syrups? Non-compliant
5. Smoothies/juices: blended or juiced calories? Non-compliant
6. Grain quality: refined grain as staple? Non-compliant
7. Sodium rule: mg sodium/serving must not exceed calories/serving
8. Soy frequency: more than 2 servings/week? Non-compliant
9. Caffeine/drinks: caffeinated coffee? Non-compliant
10. Greens protocol: encourage 6x/day cooked high-nitrate greens + vinegar"""

JSON_SCHEMA = """{
  "mode": "%(mode)s",
  "item_type": "product|ingredient|recipe|menu_item|meal|question",
  "verdict": "compliant|non_compliant|needs_info",
  "reasons": ["short bullet reason 1", "short bullet reason 2"],
  "fixes": ["simple substitution/fix 1", "simple substitution/fix 2"],
  "sodium_check": {
    "calories_per_serving": null,
    "sodium_mg_per_serving": null,
    "passes_rule": null
  },
  "flags": {
    "contains_oil_or_hidden_fats": false,
    "contains_animal_product": false,
    "high_fat_plant_food": false,
    "added_sugars_or_syrups": false,
    "refined_grain_as_staple": false,
    "smoothie_or_juice": false,
    "caffeinated_coffee": false,
    "soy_servings_this_week": null,
    "fruit_servings_today": null
  },
  "info_needed": ["only when verdict is needs_info"],
  "notes": "1-2 sentence plain-English explanation",
  "suggested_swaps": [
    {"swap_out": "item", "swap_in": "compliant alternative", "why": "brief reason"}
  ]
}"""


class NutritionAgent:
    """
    Nutrition compliance agent.

    Capabilities:
    - Food, recipe and ingredient evaluation with structured JSON verdicts
    - Whole-meal evaluation
    - Daily guidance from the current intake
    - Switching between reversal and prevention modes
    """

    name = "NutritionAgent"

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        openai_api_key: Optional[str] = None,
        model: Optional[str] = None,
        mode: Union[NutritionMode, str, None] = None,
        sodium_limit: Optional[int] = None,
        max_tokens: int = 800,
        temperature: float = 0.1,
    ):
        settings = get_settings()
        self.client = client or create_openai_client(openai_api_key)
        self.model = model or settings.openai_model
        self.mode = NutritionMode(mode or settings.nutrition_mode)
        self.sodium_limit = sodium_limit or settings.sodium_limit or DEFAULT_SODIUM_LIMIT
        self.max_tokens = max_tokens
        self.temperature = temperature

    @property
    def instructions(self) -> str:
        """System prompt for the current mode and sodium limit."""
        return f"""You are a specialized nutrition compliance agent that evaluates foods, recipes, and meals according to strict dietary protocols.

CURRENT MODE: {self.mode.value}

{protocol_rules(self.sodium_limit)}

{EVALUATION_PROCESS}

ALWAYS respond with a JSON object with this exact structure:
{JSON_SCHEMA % {"mode": self.mode.value}}"""

    # ========================================================================
    # Parsing
    # ========================================================================

    def parse_evaluation(
        self,
        text: Optional[str],
        item_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Decode a model reply into an evaluation dict.

        Valid JSON objects are returned unchanged (item_type overridden when
        given). Anything else becomes the needs_info fallback.
        """
        try:
            evaluation = json.loads((text or "").strip())
        except json.JSONDecodeError as e:
            logger.warning(f"⚠️ NutritionAgent: unparseable evaluation ({e})")
            evaluation = None

        if not isinstance(evaluation, dict):
            if item_type == "meal":
                fallback = NutritionEvaluation.fallback(
                    self.mode,
                    item_type="meal",
                    reason="Unable to parse meal evaluation",
                    info_needed="Meal evaluation format error",
                    notes="System error in meal evaluation formatting",
                )
            else:
                fallback = NutritionEvaluation.fallback(self.mode, item_type=item_type or "unknown")
            return fallback.model_dump(mode="json")

        if item_type:
            evaluation["item_type"] = item_type
        return evaluation

    async def _evaluate(self, prompt: str, item_type: Optional[str] = None) -> AgentResult:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": self.instructions},
                {"role": "user", "content": prompt},
            ],
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            response_format={"type": "json_object"},
        )

        evaluation = self.parse_evaluation(response.choices[0].message.content, item_type)
        tokens = total_tokens(response)
        logger.info(f"🥗 NutritionAgent: verdict={evaluation.get('verdict')} ({tokens} tokens)")

        return AgentResult(
            success=True,
            agent=self.name,
            evaluation=evaluation,
            tokens_used=tokens,
            model=self.model,
            mode=self.mode,
        )

    # ========================================================================
    # Operations
    # ========================================================================

    async def evaluate_food(
        self,
        item: str,
        nutrition_info: Optional[str] = None,
        ingredient_list: Optional[str] = None,
        serving_size: Optional[str] = None,
    ) -> AgentResult:
        """
        Evaluate a food item, product, recipe or question for compliance.

        Args:
            item: Free-text description of the item
            nutrition_info: Nutrition facts text (calories, sodium, ...)
            ingredient_list: Ingredient list as printed on the label
            serving_size: Serving size text
        """
        prompt = f"Evaluate this food item for {self.mode.value} mode compliance:\n\n{item}"
        if nutrition_info:
            prompt += f"\n\nNutrition Information:\n{nutrition_info}"
        if ingredient_list:
            prompt += f"\n\nIngredients:\n{ingredient_list}"
        if serving_size:
            prompt += f"\n\nServing Size: {serving_size}"
        prompt += "\n\nProvide evaluation in the required JSON format."

        try:
            return await self._evaluate(prompt)
        except Exception as e:
            logger.error(f"NutritionAgent error: {e}", exc_info=True)
            return AgentResult(success=False, agent=self.name, error=str(e))

    async def evaluate_meal(
        self,
        meal_description: str,
        items: Optional[List[str]] = None,
    ) -> AgentResult:
        """Evaluate a whole meal as one item (item_type is always "meal")."""
        prompt = f"Evaluate this complete meal for {self.mode.value} mode compliance:\n\n{meal_description}"
        if items:
            numbered = "\n".join(f"{i}. {item}" for i, item in enumerate(items, start=1))
            prompt += f"\n\nIndividual items:\n{numbered}"
        prompt += (
            "\n\nProvide overall meal evaluation in the required JSON format, "
            "considering the entire meal as one item."
        )

        try:
            return await self._evaluate(prompt, item_type="meal")
        except Exception as e:
            logger.error(f"NutritionAgent meal evaluation error: {e}", exc_info=True)
            return AgentResult(success=False, agent=self.name, error=str(e))

    async def get_daily_guidance(self, intake: Optional[DailyIntake] = None) -> AgentResult:
        """Free-text guidance for the rest of the day given current intake."""
        intake = intake or DailyIntake()
        prompt = f"""Provide daily nutrition guidance for {self.mode.value} mode.

Current intake today:
- Fruits: {intake.fruits} servings
- Greens: {intake.greens} servings
- Soy this week: {intake.soy} servings
- Sodium: {intake.sodium} mg

What should the person focus on for the rest of the day? Give specific, practical recommendations."""

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": self.instructions},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )

            return AgentResult(
                success=True,
                agent=self.name,
                response=response.choices[0].message.content,
                tokens_used=total_tokens(response),
                model=self.model,
                mode=self.mode,
            )

        except Exception as e:
            logger.error(f"NutritionAgent guidance error: {e}", exc_info=True)
            return AgentResult(success=False, agent=self.name, error=str(e))

    def set_mode(self, mode: Any) -> Dict[str, Any]:
        """Switch between reversal and prevention modes."""
        try:
            self.mode = NutritionMode(mode)
        except ValueError:
            return {"success": False, "error": 'Invalid mode. Use "reversal" or "prevention"'}

        logger.info(f"NutritionAgent mode set to {self.mode.value}")
        return {"success": True, "mode": self.mode.value}

    def get_capabilities(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": "Specialized nutrition compliance evaluation agent",
            "model": self.model,
            "mode": self.mode.value,
            "capabilities": [
                "Food compliance evaluation",
                "Recipe analysis",
                "Meal planning guidance",
                "Ingredient screening",
                "Sodium rule checking",
                "Structured JSON responses",
                "Daily nutrition tracking",
                "Substitution recommendations",
            ],
            "modes": [m.value for m in NutritionMode],
            "sodium_limit": self.sodium_limit,
        }
