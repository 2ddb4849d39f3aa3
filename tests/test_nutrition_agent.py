import asyncio
import json
import unittest

from plantwise.agents import NutritionAgent
from plantwise.models import DailyIntake, NutritionMode

from tests.fakes import FakeOpenAI, completion, evaluation_json


class NutritionAgentTests(unittest.TestCase):
    def test_valid_json_returned_unchanged(self) -> None:
        reply = evaluation_json(
            "non_compliant",
            reasons=["Contains olive oil"],
            flags={"contains_oil_or_hidden_fats": True},
            extra_field="kept",
        )
        client = FakeOpenAI(completion(reply, total_tokens=80))
        agent = NutritionAgent(client=client)

        result = asyncio.run(agent.evaluate_food("olive oil"))

        self.assertTrue(result.success)
        self.assertEqual(json.loads(reply), result.evaluation)
        self.assertEqual(NutritionMode.REVERSAL, result.mode)
        self.assertEqual(80, result.tokens_used)

        call = client.calls[0]
        self.assertEqual({"type": "json_object"}, call["response_format"])
        self.assertEqual(0.1, call["temperature"])
        self.assertEqual(800, call["max_tokens"])

    def test_unparseable_reply_yields_fallback(self) -> None:
        client = FakeOpenAI(completion("Sorry, I cannot help with that."))
        agent = NutritionAgent(client=client)

        result = asyncio.run(agent.evaluate_food("mystery bar"))

        evaluation = result.evaluation
        self.assertTrue(result.success)
        self.assertEqual("needs_info", evaluation["verdict"])
        self.assertEqual("unknown", evaluation["item_type"])
        self.assertEqual(["Unable to parse response format"], evaluation["reasons"])
        self.assertEqual(["Response format error"], evaluation["info_needed"])
        self.assertFalse(any(v for k, v in evaluation["flags"].items() if isinstance(v, bool)))
        self.assertIsNone(evaluation["sodium_check"]["passes_rule"])

    def test_non_object_json_yields_fallback(self) -> None:
        client = FakeOpenAI(completion("[1, 2, 3]"))
        agent = NutritionAgent(client=client)

        result = asyncio.run(agent.evaluate_food("anything"))

        self.assertEqual("needs_info", result.evaluation["verdict"])

    def test_prompt_includes_optional_context(self) -> None:
        client = FakeOpenAI(completion(evaluation_json()))
        agent = NutritionAgent(client=client)

        asyncio.run(agent.evaluate_food(
            "Crackers",
            nutrition_info="120 calories, 200mg sodium",
            ingredient_list="whole wheat, salt",
            serving_size="6 crackers",
        ))

        prompt = client.calls[0]["messages"][1]["content"]
        self.assertIn("Nutrition Information:\n120 calories, 200mg sodium", prompt)
        self.assertIn("Ingredients:\nwhole wheat, salt", prompt)
        self.assertIn("Serving Size: 6 crackers", prompt)

    def test_meal_item_type_forced(self) -> None:
        client = FakeOpenAI(completion(evaluation_json(item_type="recipe")))
        agent = NutritionAgent(client=client)

        result = asyncio.run(agent.evaluate_meal("Lunch", ["rice", "beans"]))

        self.assertEqual("meal", result.evaluation["item_type"])
        prompt = client.calls[0]["messages"][1]["content"]
        self.assertIn("1. rice\n2. beans", prompt)

    def test_meal_fallback(self) -> None:
        client = FakeOpenAI(completion("not json"))
        agent = NutritionAgent(client=client)

        result = asyncio.run(agent.evaluate_meal("Dinner"))

        self.assertEqual("meal", result.evaluation["item_type"])
        self.assertEqual(["Unable to parse meal evaluation"], result.evaluation["reasons"])

    def test_completion_failure_becomes_result(self) -> None:
        agent = NutritionAgent(client=FakeOpenAI(RuntimeError("boom")))

        result = asyncio.run(agent.evaluate_food("tofu"))

        self.assertFalse(result.success)
        self.assertEqual("NutritionAgent", result.agent)
        self.assertEqual("boom", result.error)

    def test_daily_guidance_is_free_text(self) -> None:
        client = FakeOpenAI(completion("Eat two more servings of greens."))
        agent = NutritionAgent(client=client)

        result = asyncio.run(agent.get_daily_guidance(DailyIntake(fruits=2, greens=4, sodium=900)))

        self.assertEqual("Eat two more servings of greens.", result.response)
        self.assertIsNone(result.evaluation)
        call = client.calls[0]
        self.assertNotIn("response_format", call)
        self.assertIn("Greens: 4 servings", call["messages"][1]["content"])
        self.assertIn("Sodium: 900 mg", call["messages"][1]["content"])

    def test_set_mode_updates_instructions(self) -> None:
        agent = NutritionAgent(client=FakeOpenAI())
        self.assertIn("CURRENT MODE: reversal", agent.instructions)

        self.assertEqual({"success": True, "mode": "prevention"}, agent.set_mode("prevention"))
        self.assertEqual(NutritionMode.PREVENTION, agent.mode)
        self.assertIn("CURRENT MODE: prevention", agent.instructions)
        self.assertNotIn("CURRENT MODE: reversal", agent.instructions)

    def test_set_mode_rejects_unknown(self) -> None:
        agent = NutritionAgent(client=FakeOpenAI())

        result = agent.set_mode("keto")

        self.assertFalse(result["success"])
        self.assertEqual('Invalid mode. Use "reversal" or "prevention"', result["error"])
        self.assertEqual(NutritionMode.REVERSAL, agent.mode)

    def test_sodium_limit_in_instructions(self) -> None:
        agent = NutritionAgent(client=FakeOpenAI(), sodium_limit=2000)
        self.assertIn("2000 mg/day", agent.instructions)
        self.assertEqual(2000, agent.get_capabilities()["sodium_limit"])
