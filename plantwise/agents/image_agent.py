"""
Image Agent - Food Image Analysis

Two-phase protocol per image:
1. A cheap classification call decides FOOD-RELATED vs NON-FOOD.
2. Only food-related images get the full analysis call.

Non-food images are answered with a canned redirect message, so the
expensive call is skipped entirely.
"""

import logging
import random
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from plantwise.agents.client import create_openai_client, total_tokens
from plantwise.agents.prompts import PROTOCOL_RULES
from plantwise.config import get_settings
from plantwise.models import AgentResult

logger = logging.getLogger(__name__)

DEFAULT_PROMPT = "What do you see in this image?"

# Trailing history turns sent along with an image
CONTEXT_TURNS = 5

VALIDATION_PROMPT = """Look at this image and determine if it contains any food-related content.

FOOD-RELATED CONTENT includes:
- Food items, ingredients, meals, snacks, beverages
- Food packaging, labels, nutrition facts
- Restaurant, cafe or food menus
- Refrigerator contents, pantry items, counter ingredients
- Food preparation scenes and grocery store food sections

NON-FOOD CONTENT includes people (unless eating or preparing food), landscapes,
buildings, vehicles, animals outside a food context, electronics, art and
random objects unrelated to food.

Respond with ONLY:
"FOOD-RELATED" if the image contains any food, food packaging, menus, or food preparation content.
"NON-FOOD" if the image does not contain food-related content."""

NON_FOOD_RESPONSES = [
    (
        "I'm specialized in analyzing food-related content for dietary compliance, "
        "and this image doesn't appear to contain any. Please upload an image of:\n\n"
        "• Food labels or ingredient lists\n"
        "• Your refrigerator or pantry contents\n"
        "• Restaurant menus\n"
        "• Ingredients or food items\n"
        "• Meals or food preparations\n\n"
        "I'm here to help you navigate the reversal dietary protocol with food-related images!"
    ),
    (
        "Thank you for the image! I'm designed specifically for food compliance analysis, "
        "and this appears to be a non-food image. I'd be happy to help you analyze:\n\n"
        "• Food product labels\n"
        "• Pantry or refrigerator contents\n"
        "• Restaurant menus\n"
        "• Cooking ingredients\n"
        "• Meal preparations\n\n"
        "Please upload a food-related image and I'll provide detailed compliance guidance!"
    ),
    (
        "I specialize in food compliance analysis for the reversal dietary protocol. "
        "While I can see your image, it doesn't appear to contain food-related content. "
        "I'm most helpful with:\n\n"
        "• Food packaging and labels\n"
        "• Kitchen pantry or fridge contents\n"
        "• Restaurant or cafe menus\n"
        "• Ingredients and food items\n"
        "• Meal photos for compliance checking\n\n"
        "Feel free to upload any food-related image for a detailed nutritional analysis!"
    ),
]

IMAGE_KEYWORDS = ["image", "picture", "photo", "analyze", "vision", "visual", "see", "look", "describe"]

SPECIALIZED_PROMPTS = {
    "general": "Provide a comprehensive analysis of this image, describing what you see in detail.",
    "objects": "Identify and list all objects visible in this image with their locations and descriptions.",
    "text": "Extract and transcribe any text visible in this image, maintaining the original formatting where possible.",
    "people": "Describe any people visible in this image, including their appearance, actions, and context.",
    "technical": "Analyze this image from a technical perspective, including composition, lighting, quality, and any technical details.",
    "artistic": "Analyze this image from an artistic perspective, discussing composition, style, color palette, and aesthetic elements.",
    "marketing": "Analyze this image for marketing purposes, discussing its potential effectiveness, target audience, and messaging.",
    "accessibility": "Describe this image in detail for accessibility purposes, providing a comprehensive description for visually impaired users.",
    "food_label": "Analyze this food label for reversal diet compliance. Read all ingredients carefully and apply the sodium rule if nutrition facts are visible.",
    "fridge_pantry": "Analyze this refrigerator or pantry image. Categorize all visible food items as compliant, non-compliant, or needing closer inspection for reversal diet compliance.",
    "ingredients": "Analyze these ingredients/food items on the counter. Group them by compliance status and suggest recipe modifications using only compliant ingredients.",
    "restaurant_menu": "Analyze this restaurant menu for reversal diet compliance. Identify potentially compliant items, required modifications, and specific questions to ask the server.",
}


def image_data_uri(image_data: str, mime_type: str) -> str:
    return f"data:{mime_type};base64,{image_data}"


class ImageAgent:
    """
    Image Agent for food-focused visual analysis.

    Capabilities:
    - Food vs non-food admission check before any expensive call
    - Nutrition label reading with the sodium rule
    - Fridge/pantry, counter ingredient and restaurant menu assessment
    - A fixed menu of specialized analysis prompts
    """

    name = "ImageAgent"

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        openai_api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: int = 1000,
        temperature: float = 0.3,
        validation_max_tokens: int = 50,
        validation_temperature: float = 0.1,
    ):
        """Initialize Image Agent with a vision-capable model."""
        self.client = client or create_openai_client(openai_api_key)
        self.model = model or get_settings().openai_model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.validation_max_tokens = validation_max_tokens
        self.validation_temperature = validation_temperature
        self.instructions = self._build_system_prompt()

    def _build_system_prompt(self) -> str:
        return f"""You are a specialized image analysis agent with advanced vision capabilities and expert knowledge of nutritional compliance for reversal dietary protocols.

# CORE ROLES
- Analyze images with precision and detail
- Identify objects, text, and scenes
- Answer specific questions about image content

# FOOD IMAGE ANALYSIS
When analyzing food images, ingredients, recipes, menus, or nutrition labels, apply the protocol strictly:

{PROTOCOL_RULES}

# SCENARIOS
1. Food labels (up-close): read the full ingredient list, apply the sodium rule if nutrition facts are visible, flag every non-compliant ingredient, give a verdict and alternatives.
2. Refrigerator/pantry overview: categorize items as "Compliant", "Non-compliant" or "Need closer look", list priority items to replace and give shopping guidance.
3. Counter/ingredient spread: group compliant vs non-compliant items, ask for closer photos of unclear labels, suggest compliant recipe modifications.
4. Restaurant menus: identify potentially compliant items, required modifications ("no oil", "steamed not sauteed"), questions for the server, and backup options.

# RESPONSE STRUCTURE FOR FOOD IMAGES
1. Image type (label/fridge/pantry/counter/menu/meal)
2. Compliance assessment for each visible item
3. Specific non-compliant ingredients or preparations
4. Required modifications or clarifications
5. Suggested alternatives and next steps

For non-food images, provide a standard visual analysis.
Be specific about what you observe and avoid assumptions about non-visible elements."""

    async def validate_food_image(self, image_data: str, mime_type: str = "image/jpeg") -> Dict[str, Any]:
        """
        Cheap classification call: is this image food-related?

        Returns:
            dict with is_food_related, tokens_used, and polite_response for
            non-food images. If the classification call fails the image is let
            through and validation_error is set.
        """
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": VALIDATION_PROMPT},
                            {"type": "image_url", "image_url": {"url": image_data_uri(image_data, mime_type)}},
                        ],
                    }
                ],
                max_tokens=self.validation_max_tokens,
                temperature=self.validation_temperature,
            )
        except Exception as e:
            logger.warning(f"⚠️ Image validation failed, allowing image through: {e}")
            return {"is_food_related": True, "validation_error": str(e), "tokens_used": 0}

        verdict = (response.choices[0].message.content or "").strip().lower()
        tokens = total_tokens(response)

        is_food_related = "food-related" in verdict

        if not is_food_related:
            logger.info("ImageAgent: non-food image, skipping analysis call")
            return {
                "is_food_related": False,
                "polite_response": random.choice(NON_FOOD_RESPONSES),
                "tokens_used": tokens,
            }

        return {"is_food_related": True, "tokens_used": tokens}

    async def _analyze(
        self,
        image_data: str,
        prompt: str,
        mime_type: str,
        context_messages: Optional[List[Dict[str, Any]]],
    ) -> AgentResult:
        has_context = context_messages is not None
        try:
            validation = await self.validate_food_image(image_data, mime_type)

            if not validation["is_food_related"]:
                return AgentResult(
                    success=True,
                    agent=self.name,
                    response=validation["polite_response"],
                    tokens_used=validation["tokens_used"],
                    model=self.model,
                    prompt=prompt,
                    has_context=has_context,
                    image_validation="non-food-content",
                )

            messages: List[Dict[str, Any]] = [{"role": "system", "content": self.instructions}]
            for msg in context_messages or []:
                messages.append({"role": msg.get("role", "user"), "content": msg.get("content", "")})
            messages.append({
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {"type": "image_url", "image_url": {"url": image_data_uri(image_data, mime_type)}},
                ],
            })

            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )

            tokens = validation["tokens_used"] + total_tokens(response)
            logger.info(f"ImageAgent: {tokens} tokens (including validation)")

            return AgentResult(
                success=True,
                agent=self.name,
                response=response.choices[0].message.content,
                tokens_used=tokens,
                model=self.model,
                prompt=prompt,
                has_context=has_context,
                image_validation="food-related",
                validation_error=validation.get("validation_error"),
            )

        except Exception as e:
            logger.error(f"ImageAgent error: {e}", exc_info=True)
            return AgentResult(success=False, agent=self.name, error=str(e))

    async def analyze_image(
        self,
        image_data: str,
        prompt: str = DEFAULT_PROMPT,
        mime_type: str = "image/jpeg",
    ) -> AgentResult:
        """Analyze a base64 image with an optional custom prompt."""
        return await self._analyze(image_data, prompt, mime_type, None)

    async def analyze_with_context(
        self,
        image_data: str,
        prompt: str = DEFAULT_PROMPT,
        conversation_history: Optional[List[Dict[str, Any]]] = None,
        mime_type: str = "image/jpeg",
    ) -> AgentResult:
        """Analyze a base64 image with the last few conversation turns as context."""
        context = list(conversation_history or [])[-CONTEXT_TURNS:]
        return await self._analyze(image_data, prompt or DEFAULT_PROMPT, mime_type, context)

    async def get_specialized_analysis(
        self,
        image_data: str,
        analysis_type: str = "general",
        mime_type: str = "image/jpeg",
    ) -> AgentResult:
        """Analyze with a prompt from the fixed menu; unknown types use general."""
        prompt = SPECIALIZED_PROMPTS.get(analysis_type, SPECIALIZED_PROMPTS["general"])
        return await self.analyze_image(image_data, prompt, mime_type)

    def can_handle(self, text: str, has_image: bool = False) -> bool:
        """True when an image is attached or the text asks about images."""
        if has_image:
            return True
        lowered = (text or "").lower()
        return any(keyword in lowered for keyword in IMAGE_KEYWORDS)

    def get_capabilities(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": "Specialized in image analysis and visual content processing",
            "model": self.model,
            "capabilities": [
                "Food-specific image validation",
                "Detailed food compliance analysis",
                "Nutrition label reading",
                "Restaurant menu analysis",
                "Pantry and fridge assessment",
                "Ingredient identification",
                "Polite non-food content redirection",
            ],
            "analysis_types": list(SPECIALIZED_PROMPTS),
        }
