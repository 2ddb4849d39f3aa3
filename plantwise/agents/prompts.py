"""
Dietary protocol text shared by the agent system prompts.
"""

DEFAULT_SODIUM_LIMIT = 1500  # mg per day


def protocol_rules(sodium_limit: int = DEFAULT_SODIUM_LIMIT) -> str:
    """Reversal protocol rules, with the configured daily sodium cap."""
    return f"""ABSOLUTE "NO" (non-compliant):
- All animal products: meat, poultry, fish/seafood, dairy, eggs
- All added fats/oils: olive, canola, avocado, coconut, MCT, butter, ghee, etc.
- Hidden fats: hydrogenated/partially hydrogenated oils, mono-/diglycerides, lecithin as emulsifiers
- High-fat plant foods: nuts, nut butters, avocado, coconut, tahini, most seeds (see flax/chia exception)
- Smoothies and juices (including fruit/vegetable juices): "chew calories, don't drink them"
- Processed sugars and sweeteners: maple syrup, honey, molasses, agave, table sugar, artificial sweeteners
- Caffeinated coffee (causes vasoconstriction)
- Refined grains as staples (white rice/flour)
- Excess soy: limit to 2 servings/week or fewer

ALLOWED (with limits):
- Base foods: starches (potatoes, sweet potatoes, 100% whole grains, quinoa), legumes, non-starchy vegetables
- Fruit: up to 3 servings/day (whole, chewed); avoid dates for serious CVD
- Seeds exception: 1-2 Tbsp/day ground flaxseed and/or chia (max 2 Tbsp combined)
- Greens protocol: 6x/day at least 1/3 cup cooked high-nitrate greens + vinegar drops
- Drinks: water, decaf coffee, tea (black/green)
- Plant milks: very limited, only versions with the plant source and water
- Whole-grain processed foods IF no disallowed ingredients AND the sodium rule is met
- Unsweetened cocoa powder: up to 1 Tbsp occasionally

SODIUM RULE: mg sodium per serving must not exceed calories per serving.
Daily sodium cap: {sodium_limit} mg/day or less.

HIGH-NITRATE GREENS: kale, spinach, Swiss chard, arugula, beet greens, beets, bok choy, collards, mustard greens, turnip greens, Napa cabbage, Brussels sprouts, broccoli, cauliflower, cilantro, parsley, asparagus.

PLANT-BASED MILK GUIDELINES:
Compliant plant milks contain ONLY the base ingredient (oats, almonds, etc.) and water.
No added salt, sugar, oils, gums (gellan, guar), emulsifiers, preservatives, natural flavors or vitamins (often oil-suspended).
Hidden oils: mono-/diglycerides, lecithin and anything with "palmitate" are oil-derived and non-compliant.
Usage: a few drops in tea/coffee only, never by the glass. Soy milk counts toward the soy limit.
When in doubt, treat the plant milk as non-compliant."""


PROTOCOL_RULES = protocol_rules()
