"""
Coordinator Agent - Request Routing and Handoffs

Owns the three specialized agents and decides which one handles a request.
Routing is an ordered rule table evaluated first-match-wins:

1. Image data attached       -> ImageAgent (with conversation context)
2. Nutrition keyword in text -> NutritionAgent (structured evaluation)
3. Image keyword, no image   -> canned "please upload an image" reply
4. Anything else             -> ChatAgent

Every decision is recorded as a HandoffRecord on the result and in the
bounded HandoffLog.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from openai import AsyncOpenAI

from plantwise.agents.chat_agent import ChatAgent
from plantwise.agents.client import create_openai_client
from plantwise.agents.handoff_log import HandoffLog
from plantwise.agents.image_agent import IMAGE_KEYWORDS, ImageAgent
from plantwise.agents.nutrition_agent import NutritionAgent
from plantwise.models import AgentResult, HandoffRecord

logger = logging.getLogger(__name__)


NUTRITION_KEYWORDS = [
    "food", "eat", "recipe", "ingredient", "nutrition", "diet", "meal",
    "compliant", "allowed", "forbidden", "sodium", "oil", "fat", "sugar",
    "animal product", "dairy", "meat", "fish", "egg", "nuts", "avocado",
    "smoothie", "juice", "whole grain", "refined", "soy", "coffee",
    "greens", "vegetable", "fruit", "legume", "bean", "lentil",
    "calories", "serving", "label", "package", "brand", "restaurant",
    "plant milk", "oat milk", "almond milk", "soy milk", "rice milk",
    "gums", "emulsifier", "natural flavor", "palmitate", "lecithin",
]

UPLOAD_IMAGE_RESPONSE = (
    "I'd be happy to help analyze an image! Please upload an image file and I'll "
    "provide a detailed analysis. You can ask me to:\n\n"
    "• Describe what's in the image\n"
    "• Identify specific objects or people\n"
    "• Extract text from the image\n"
    "• Analyze it for marketing or artistic purposes\n"
    "• Provide technical details about the image\n"
    "• **Food compliance analysis** - I can evaluate foods for dietary protocol compliance\n\n"
    "Just upload an image and let me know what you'd like to know about it!"
)
UPLOAD_IMAGE_SUGGESTION = "Please upload an image to analyze"

# Flag name -> concern shown under "Key concerns"
FLAG_MESSAGES = [
    ("contains_animal_product", "Contains animal products"),
    ("contains_oil_or_hidden_fats", "Contains oils or hidden fats"),
    ("high_fat_plant_food", "High-fat plant food"),
    ("added_sugars_or_syrups", "Contains added sugars"),
    ("smoothie_or_juice", "Liquid calories (should be chewed)"),
    ("caffeinated_coffee", "Contains caffeine"),
]


def contains_keyword(text: Optional[str], keywords: List[str]) -> bool:
    lowered = (text or "").lower()
    return any(keyword in lowered for keyword in keywords)


def _as_list(value: Any) -> List[Any]:
    """Model output may hold a single string or object where a list belongs."""
    if not value:
        return []
    if isinstance(value, (str, dict)):
        return [value]
    return list(value) if isinstance(value, (list, tuple)) else [value]


@dataclass
class RoutingRequest:
    """Everything the coordinator needs to pick and call an agent."""
    text: str
    has_image: bool = False
    image_data: Optional[str] = None
    mime_type: str = "image/jpeg"
    conversation_history: List[Dict[str, Any]] = field(default_factory=list)
    user_id: str = "default"
    session_id: Optional[str] = None


@dataclass
class RoutingRule:
    agent: str
    reason: str
    predicate: Callable[[RoutingRequest], bool]
    handler: Callable[[RoutingRequest], Awaitable[AgentResult]]


class CoordinatorAgent:
    """
    Routes requests to the chat, image and nutrition agents.

    Args:
        client: Shared AsyncOpenAI client (built from the API key if omitted)
        openai_api_key: Key used when no client is given
        options: Per-agent constructor overrides, keyed "chat", "image", "nutrition"
    """

    name = "CoordinatorAgent"

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        openai_api_key: Optional[str] = None,
        options: Optional[Dict[str, Dict[str, Any]]] = None,
        handoff_log: Optional[HandoffLog] = None,
    ):
        options = options or {}
        self.client = client or create_openai_client(openai_api_key)

        self.chat_agent = ChatAgent(client=self.client, **options.get("chat", {}))
        self.image_agent = ImageAgent(client=self.client, **options.get("image", {}))
        self.nutrition_agent = NutritionAgent(client=self.client, **options.get("nutrition", {}))

        self.agents = {
            "chat": self.chat_agent,
            "image": self.image_agent,
            "nutrition": self.nutrition_agent,
        }
        self.handoff_log = handoff_log or HandoffLog()

        self.routing_rules = [
            RoutingRule("image", "Image data provided", self._has_image_data, self._route_image),
            RoutingRule("nutrition", "Food/nutrition compliance query", self._is_nutrition_request, self._route_nutrition),
            RoutingRule("image", "Image-related query without image", self._is_image_request, self._route_upload_prompt),
            RoutingRule("chat", "General conversation", lambda request: True, self._route_chat),
        ]

        logger.info("✓ CoordinatorAgent initialized with chat, image and nutrition agents")

    # ========================================================================
    # Classification
    # ========================================================================

    def is_nutrition_query(self, text: Optional[str]) -> bool:
        return contains_keyword(text, NUTRITION_KEYWORDS)

    def is_image_query(self, text: Optional[str]) -> bool:
        return contains_keyword(text, IMAGE_KEYWORDS)

    @staticmethod
    def _has_image_data(request: RoutingRequest) -> bool:
        return bool(request.image_data)

    def _is_nutrition_request(self, request: RoutingRequest) -> bool:
        return self.is_nutrition_query(request.text)

    def _is_image_request(self, request: RoutingRequest) -> bool:
        return self.image_agent.can_handle(request.text)

    def select_rule(self, request: RoutingRequest) -> RoutingRule:
        for rule in self.routing_rules:
            if rule.predicate(request):
                return rule
        # Unreachable: the last rule always matches
        raise LookupError("No routing rule matched")

    # ========================================================================
    # Handlers
    # ========================================================================

    async def _route_image(self, request: RoutingRequest) -> AgentResult:
        return await self.image_agent.analyze_with_context(
            request.image_data,
            request.text,
            request.conversation_history,
            request.mime_type,
        )

    async def _route_nutrition(self, request: RoutingRequest) -> AgentResult:
        result = await self.nutrition_agent.evaluate_food(request.text)
        if result.success:
            result.response = self.format_nutrition_response(result.evaluation)
        return result

    async def _route_upload_prompt(self, request: RoutingRequest) -> AgentResult:
        return AgentResult(
            success=True,
            agent=self.image_agent.name,
            response=UPLOAD_IMAGE_RESPONSE,
            suggestion=UPLOAD_IMAGE_SUGGESTION,
        )

    async def _route_chat(self, request: RoutingRequest) -> AgentResult:
        return await self.chat_agent.process_message(request.text, request.conversation_history)

    # ========================================================================
    # Routing
    # ========================================================================

    async def route_request(
        self,
        user_input: str,
        *,
        has_image: bool = False,
        image_data: Optional[str] = None,
        mime_type: str = "image/jpeg",
        conversation_history: Optional[List[Dict[str, Any]]] = None,
        user_id: str = "default",
        session_id: Optional[str] = None,
    ) -> AgentResult:
        """
        Pick an agent for the request and run it.

        Never raises: anything escaping an agent comes back as
        AgentResult(success=False, agent="CoordinatorAgent").
        """
        user_input = user_input or ""
        request = RoutingRequest(
            text=user_input,
            has_image=has_image,
            image_data=image_data,
            mime_type=mime_type,
            conversation_history=list(conversation_history or []),
            user_id=user_id,
            session_id=session_id,
        )

        try:
            rule = self.select_rule(request)
            handoff = HandoffRecord(
                timestamp=datetime.now().isoformat(),
                user_id=user_id,
                has_image=has_image,
                input_length=len(user_input),
                agent=rule.agent,
                reason=rule.reason,
            )
            logger.info(f"🔀 Routing to {rule.agent} agent: {rule.reason}")

            result = await rule.handler(request)
            result.handoff = handoff
            self.handoff_log.append(handoff)
            return result

        except Exception as e:
            logger.error(f"CoordinatorAgent error: {e}", exc_info=True)
            return AgentResult(success=False, agent=self.name, error=str(e))

    async def get_specialized_image_analysis(
        self,
        image_data: str,
        analysis_type: str = "general",
        mime_type: str = "image/jpeg",
    ) -> AgentResult:
        try:
            return await self.image_agent.get_specialized_analysis(image_data, analysis_type, mime_type)
        except Exception as e:
            logger.error(f"Specialized analysis error: {e}", exc_info=True)
            return AgentResult(success=False, agent=self.image_agent.name, error=str(e))

    # ========================================================================
    # Formatting
    # ========================================================================

    def format_nutrition_response(self, evaluation: Optional[Dict[str, Any]]) -> str:
        """Render an evaluation dict as a markdown reply."""
        if not evaluation:
            return "Unable to evaluate food compliance."

        verdict = str(evaluation.get("verdict") or "needs_info")
        mode = str(evaluation.get("mode") or self.nutrition_agent.mode.value)
        reasons = _as_list(evaluation.get("reasons"))
        fixes = _as_list(evaluation.get("fixes"))
        swaps = _as_list(evaluation.get("suggested_swaps"))
        flags = evaluation.get("flags")
        if not isinstance(flags, dict):
            flags = {}
        notes = evaluation.get("notes")

        lines = [f"**{verdict.upper()} for {mode.title()} Protocol**", ""]

        if verdict == "compliant":
            lines += [f"✅ This item appears to be compliant with the {mode} dietary protocol.", ""]
        else:
            lines += [f"❌ This item is NOT compliant with the {mode} dietary protocol.", ""]
            if reasons:
                lines += ["**Issues identified:**"] + [f"• {r}" for r in reasons] + [""]

        if notes:
            lines += [f"**Details:** {notes}", ""]

        if fixes:
            lines += ["**Suggested fixes:**"] + [f"• {f}" for f in fixes] + [""]

        if swaps:
            lines.append("**Better alternatives:**")
            for swap in swaps:
                if not isinstance(swap, dict):
                    lines.append(f"• {swap}")
                    continue
                lines.append(
                    f"• Replace \"{swap.get('swap_out', '')}\" with \"{swap.get('swap_in', '')}\" ({swap.get('why', '')})"
                )
            lines.append("")

        concerns = [message for flag, message in FLAG_MESSAGES if flags.get(flag)]
        if concerns:
            lines += [f"**Key concerns:** {', '.join(concerns)}", ""]

        lines.append(f"*This evaluation follows strict {mode} mode dietary guidelines for cardiovascular health.*")
        return "\n".join(lines)

    # ========================================================================
    # Introspection
    # ========================================================================

    def get_all_capabilities(self) -> Dict[str, Any]:
        return {
            "coordinator": {
                "name": self.name,
                "description": "Manages routing and handoffs between specialized agents",
                "capabilities": [
                    "Intelligent request routing",
                    "Agent handoff management",
                    "Context preservation",
                    "Multi-modal processing",
                ],
            },
            "agents": {key: agent.get_capabilities() for key, agent in self.agents.items()},
        }

    def get_handoff_stats(self) -> Dict[str, Any]:
        return self.handoff_log.stats()

    def reset_handoff_history(self) -> Dict[str, str]:
        return self.handoff_log.reset()

    async def health_check(self) -> Dict[str, Any]:
        """Live check of the chat agent; image and nutrition report static readiness."""
        health: Dict[str, Any] = {
            "coordinator": {"status": "healthy", "timestamp": datetime.now().isoformat()},
            "agents": {},
        }

        chat_test = await self.chat_agent.process_message("Hello", [])
        health["agents"]["chat"] = {
            "status": "healthy" if chat_test.success else "error",
            "model": self.chat_agent.model,
            "last_error": chat_test.error,
        }
        health["agents"]["image"] = {
            "status": "ready",
            "model": self.image_agent.model,
            "note": "Health checked on image processing",
        }
        health["agents"]["nutrition"] = {
            "status": "ready",
            "model": self.nutrition_agent.model,
            "mode": self.nutrition_agent.mode.value,
            "note": "Specialized nutrition compliance agent ready",
        }
        return health
