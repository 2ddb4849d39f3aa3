import asyncio
import unittest
from unittest import mock

from plantwise.agents import CoordinatorAgent
from plantwise.agents.coordinator_agent import UPLOAD_IMAGE_SUGGESTION
from plantwise.models import AgentResult

from tests.fakes import FakeOpenAI, completion, evaluation_json, png_base64


class CoordinatorRoutingTests(unittest.TestCase):
    def setUp(self) -> None:
        self.client = FakeOpenAI()
        self.coordinator = CoordinatorAgent(client=self.client)

    def route(self, text: str, **kwargs) -> AgentResult:
        return asyncio.run(self.coordinator.route_request(text, **kwargs))

    def test_image_data_beats_nutrition_keywords(self) -> None:
        self.client.queue(completion("FOOD-RELATED"), completion("Oil-free salad."))

        result = self.route("Is this olive oil dressing compliant?", has_image=True, image_data=png_base64())

        self.assertEqual("ImageAgent", result.agent)
        self.assertEqual("image", result.handoff.agent)
        self.assertEqual("Image data provided", result.handoff.reason)
        self.assertTrue(result.handoff.has_image)

    def test_nutrition_keyword_routes_to_nutrition(self) -> None:
        self.client.queue(completion(evaluation_json("non_compliant", reasons=["High-fat plant food"])))

        result = self.route("Is avocado compliant?")

        self.assertEqual("NutritionAgent", result.agent)
        self.assertEqual("nutrition", result.handoff.agent)
        self.assertIn("NON_COMPLIANT", result.response)
        self.assertIn("• High-fat plant food", result.response)

    def test_oils_question_end_to_end(self) -> None:
        self.client.queue(completion(evaluation_json(
            "non_compliant",
            item_type="question",
            reasons=["All added oils are non-compliant"],
            flags={"contains_oil_or_hidden_fats": True},
        )))

        result = self.route("What oils are allowed on reversal mode?")

        self.assertEqual("NutritionAgent", result.agent)
        self.assertIn(result.evaluation["verdict"], {"compliant", "non_compliant", "needs_info"})
        self.assertTrue(result.evaluation["flags"]["contains_oil_or_hidden_fats"])
        self.assertIn("Contains oils or hidden fats", result.response)

    def test_off_schema_evaluation_still_succeeds(self) -> None:
        self.client.queue(completion(evaluation_json(
            "non_compliant",
            suggested_swaps=["use water instead of oil"],
        )))

        result = self.route("Is olive oil allowed?")

        self.assertTrue(result.success)
        self.assertEqual("NutritionAgent", result.agent)
        self.assertIn("• use water instead of oil", result.response)

    def test_image_keyword_without_image_is_canned(self) -> None:
        result = self.route("can you analyze this picture")

        self.assertTrue(result.success)
        self.assertEqual("ImageAgent", result.agent)
        self.assertEqual(UPLOAD_IMAGE_SUGGESTION, result.suggestion)
        self.assertEqual("Image-related query without image", result.handoff.reason)
        self.assertEqual([], self.client.calls)
        self.assertEqual(1, len(self.coordinator.handoff_log))

    def test_general_conversation_routes_to_chat(self) -> None:
        self.client.queue(completion("Hi!"))
        history = [{"role": "user", "content": "earlier"}]

        result = self.route("hello there", conversation_history=history, user_id="alice")

        self.assertEqual("ChatAgent", result.agent)
        self.assertEqual("General conversation", result.handoff.reason)
        self.assertEqual("alice", result.handoff.user_id)
        self.assertEqual(len("hello there"), result.handoff.input_length)
        self.assertEqual("earlier", self.client.calls[0]["messages"][1]["content"])

    def test_has_image_flag_without_data_uses_text_rules(self) -> None:
        self.client.queue(completion("Hi!"))
        result = self.route("hello", has_image=True)
        self.assertEqual("chat", result.handoff.agent)

    def test_every_branch_is_logged(self) -> None:
        self.client.queue(completion("Hi!"), completion(evaluation_json()))
        self.route("hello")
        self.route("is quinoa allowed")
        self.route("describe it")

        stats = self.coordinator.get_handoff_stats()
        self.assertEqual(3, stats["total_handoffs"])
        self.assertEqual({"chat": 1, "nutrition": 1, "image": 1}, stats["agent_usage"])

    def test_handler_exception_never_escapes(self) -> None:
        with mock.patch.object(
            self.coordinator.chat_agent, "process_message", side_effect=RuntimeError("kaput")
        ):
            result = self.route("hello")

        self.assertFalse(result.success)
        self.assertEqual("CoordinatorAgent", result.agent)
        self.assertEqual("kaput", result.error)

    def test_failed_handler_result_still_carries_handoff(self) -> None:
        self.client.queue(RuntimeError("upstream down"))

        result = self.route("hello")

        self.assertFalse(result.success)
        self.assertEqual("ChatAgent", result.agent)
        self.assertEqual("chat", result.handoff.agent)

    def test_handoff_log_cap(self) -> None:
        for _ in range(101):
            self.route("show me a photo")
        self.assertEqual(50, len(self.coordinator.handoff_log))

    def test_reset_handoff_history(self) -> None:
        self.route("look at this")
        self.coordinator.reset_handoff_history()
        self.assertEqual(0, self.coordinator.get_handoff_stats()["total_handoffs"])


class CoordinatorHelpersTests(unittest.TestCase):
    def setUp(self) -> None:
        self.client = FakeOpenAI()
        self.coordinator = CoordinatorAgent(client=self.client)

    def test_keyword_classifiers(self) -> None:
        self.assertTrue(self.coordinator.is_nutrition_query("Does this have PALMITATE?"))
        self.assertFalse(self.coordinator.is_nutrition_query("hello there"))
        self.assertTrue(self.coordinator.is_image_query("Take a look"))
        self.assertFalse(self.coordinator.is_image_query("hello"))

    def test_format_compliant(self) -> None:
        text = self.coordinator.format_nutrition_response({"verdict": "compliant", "notes": "Plain oats."})

        self.assertTrue(text.startswith("**COMPLIANT for Reversal Protocol**"))
        self.assertIn("✅", text)
        self.assertIn("**Details:** Plain oats.", text)
        self.assertNotIn("Key concerns", text)

    def test_format_non_compliant_with_swaps_and_flags(self) -> None:
        evaluation = {
            "mode": "reversal",
            "verdict": "non_compliant",
            "reasons": ["Contains oil"],
            "fixes": ["Saute in water"],
            "suggested_swaps": [{"swap_out": "olive oil", "swap_in": "vegetable broth", "why": "no added fat"}],
            "flags": {"contains_oil_or_hidden_fats": True, "caffeinated_coffee": True},
        }

        text = self.coordinator.format_nutrition_response(evaluation)

        self.assertIn("❌", text)
        self.assertIn("**Issues identified:**\n• Contains oil", text)
        self.assertIn("**Suggested fixes:**\n• Saute in water", text)
        self.assertIn('• Replace "olive oil" with "vegetable broth" (no added fat)', text)
        self.assertIn("**Key concerns:** Contains oils or hidden fats, Contains caffeine", text)

    def test_format_tolerates_missing_fields(self) -> None:
        self.assertEqual("Unable to evaluate food compliance.", self.coordinator.format_nutrition_response(None))
        text = self.coordinator.format_nutrition_response({"verdict": "needs_info"})
        self.assertIn("NEEDS_INFO", text)

    def test_format_tolerates_off_schema_swaps_and_flags(self) -> None:
        evaluation = {
            "verdict": "non_compliant",
            "reasons": "Contains oil",
            "suggested_swaps": ["use water instead of oil", {"swap_out": "butter", "swap_in": "mashed banana"}],
            "flags": ["contains_oil_or_hidden_fats"],
        }

        text = self.coordinator.format_nutrition_response(evaluation)

        self.assertIn("**Issues identified:**\n• Contains oil", text)
        self.assertIn("• use water instead of oil", text)
        self.assertIn('• Replace "butter" with "mashed banana"', text)
        self.assertNotIn("Key concerns", text)

    def test_format_uses_agent_mode(self) -> None:
        self.coordinator.nutrition_agent.set_mode("prevention")
        text = self.coordinator.format_nutrition_response({"verdict": "compliant"})
        self.assertIn("Prevention Protocol", text)

    def test_options_reach_agents(self) -> None:
        coordinator = CoordinatorAgent(
            client=self.client,
            options={"chat": {"temperature": 0.2}, "nutrition": {"mode": "prevention", "sodium_limit": 2000}},
        )
        self.assertEqual(0.2, coordinator.chat_agent.temperature)
        self.assertEqual("prevention", coordinator.nutrition_agent.mode.value)
        self.assertEqual(2000, coordinator.nutrition_agent.sodium_limit)

    def test_capabilities(self) -> None:
        caps = self.coordinator.get_all_capabilities()
        self.assertEqual({"chat", "image", "nutrition"}, set(caps["agents"]))
        self.assertEqual("CoordinatorAgent", caps["coordinator"]["name"])

    def test_health_check(self) -> None:
        self.client.queue(completion("Hello!"))

        health = asyncio.run(self.coordinator.health_check())

        self.assertEqual("healthy", health["agents"]["chat"]["status"])
        self.assertEqual("ready", health["agents"]["image"]["status"])
        self.assertEqual("reversal", health["agents"]["nutrition"]["mode"])

    def test_health_check_reports_chat_error(self) -> None:
        self.client.queue(RuntimeError("bad key"))
        health = asyncio.run(self.coordinator.health_check())
        self.assertEqual("error", health["agents"]["chat"]["status"])
        self.assertEqual("bad key", health["agents"]["chat"]["last_error"])

    def test_specialized_analysis_exception_converted(self) -> None:
        with mock.patch.object(
            self.coordinator.image_agent, "get_specialized_analysis", side_effect=RuntimeError("nope")
        ):
            result = asyncio.run(self.coordinator.get_specialized_image_analysis("abc", "text"))
        self.assertFalse(result.success)
        self.assertEqual("nope", result.error)
