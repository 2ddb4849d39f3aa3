"""
Chat Agent - General Conversation

Handles free-form conversation and nutrition questions that do not need a
structured verdict. Keeps a trailing window of the conversation history.
"""

import logging
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from plantwise.agents.client import create_openai_client, total_tokens
from plantwise.agents.prompts import PROTOCOL_RULES
from plantwise.config import get_settings
from plantwise.models import AgentResult

logger = logging.getLogger(__name__)

# System message + this many trailing turns are sent to the model
MAX_HISTORY_TURNS = 20


class ChatAgent:
    """
    Chat Agent for conversational interactions.

    One system prompt, one model configuration, one completion call per message.
    """

    name = "ChatAgent"

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        openai_api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: int = 1000,
        temperature: float = 0.7,
    ):
        """Initialize Chat Agent with a shared or freshly built OpenAI client."""
        self.client = client or create_openai_client(openai_api_key)
        self.model = model or get_settings().openai_model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.instructions = self._build_system_prompt()

    def _build_system_prompt(self) -> str:
        return f"""You are a helpful and engaging conversational assistant with specialized expertise in nutritional guidance following strict reversal dietary protocols.

# CORE ROLES
- Engage in natural, helpful conversations
- Answer questions accurately and thoughtfully
- Maintain context throughout the conversation
- Be friendly, professional, and informative

# FOOD AND NUTRITION EXPERTISE
When discussing food, nutrition, recipes, or dietary questions, follow these rules:

{PROTOCOL_RULES}

When evaluating food items, give a clear compliance assessment with specific reasons and suggested swaps.

If the user wants an image analyzed, let them know they need to upload it through the image analysis feature.

Keep responses conversational while being precise about nutritional compliance."""

    def build_messages(
        self,
        message: str,
        conversation_history: Optional[List[Dict[str, Any]]] = None,
    ) -> List[Dict[str, Any]]:
        """
        System prompt + history + new user message.

        More than MAX_HISTORY_TURNS + 1 entries are cut down to the system
        message plus the last MAX_HISTORY_TURNS.
        """
        messages = [{"role": "system", "content": self.instructions}]
        for msg in conversation_history or []:
            messages.append({
                "role": msg.get("role", "user"),
                "content": msg.get("content", ""),
            })
        messages.append({"role": "user", "content": message})

        if len(messages) > MAX_HISTORY_TURNS + 1:
            messages = [messages[0]] + messages[-MAX_HISTORY_TURNS:]
        return messages

    async def process_message(
        self,
        message: str,
        conversation_history: Optional[List[Dict[str, Any]]] = None,
    ) -> AgentResult:
        """
        Generate a reply to a chat message.

        Args:
            message: User's message
            conversation_history: Previous {role, content} turns, oldest first

        Returns:
            AgentResult with the reply, or success=False and the error
        """
        try:
            logger.info(f"💬 ChatAgent: '{message[:50]}'")

            response = await self.client.chat.completions.create(
                model=self.model,
                messages=self.build_messages(message, conversation_history),
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )

            tokens = total_tokens(response)
            logger.info(f"ChatAgent: {tokens} tokens")

            return AgentResult(
                success=True,
                agent=self.name,
                response=response.choices[0].message.content,
                tokens_used=tokens,
                model=self.model,
            )

        except Exception as e:
            logger.error(f"ChatAgent error: {e}", exc_info=True)
            return AgentResult(success=False, agent=self.name, error=str(e))

    def get_capabilities(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": "Handles general conversation, questions, and text-based assistance",
            "model": self.model,
            "capabilities": [
                "Natural conversation",
                "Question answering",
                "Explanations and advice",
                "Nutrition protocol guidance",
                "General knowledge queries",
            ],
        }
