"""Prompts and text renderings for Culinary Canvas.

Provides factory functions that build the prompt for each generation call, plus
the plain-text renderings of a recipe used for sharing and reading aloud.
"""

import re

from src.models.models import ChatTurn, GenerateRecipeOutput
from src.pipeline.state import ActiveRecipe


DETECT_FOOD_PROMPT = """You are an AI vision model that specializes in food recognition.

Analyze the image provided and identify all food items present. Return a list of food items detected in the image.
Use short, common ingredient names (e.g. "tomato", "red onion", "cheddar cheese"), one entry per distinct item.
Respond with ONLY the detected food items in the requested JSON format."""


def _join(items: list[str]) -> str:
    return ", ".join(items)


def get_suggest_recipes_prompt(
    ingredients: list[str],
    dietary_restrictions: str = "",
    preferred_cuisines: str = "",
) -> str:
    """Build the prompt that asks for 5-10 recipe ideas.

    Args:
        ingredients: Available ingredients.
        dietary_restrictions: Free-text restrictions, may be empty.
        preferred_cuisines: Free-text cuisines, may be empty.

    Returns:
        str: Prompt text
    """
    return f"""You are a creative chef who inspires people to cook with what they have.

Based on the following ingredients, suggest 5-10 diverse and interesting recipes that can be made *only* with the provided ingredients (plus basic pantry items like oil, salt, pepper, water). For each recipe, provide a name and a short (1-2 sentence) description.

Available Ingredients: {_join(ingredients)}
Dietary Restrictions: {dietary_restrictions or "None"}
Preferred Cuisines: {preferred_cuisines or "Any"}

Make sure the recipe names are distinct and sound appetizing.
Return the result in the requested JSON format.
"""


def get_generate_recipe_prompt(
    recipe_name: str,
    ingredients: list[str],
    dietary_restrictions: str = "",
) -> str:
    """Build the prompt for a full recipe."""
    return f"""You are a world-class chef. A user wants to cook "{recipe_name}".

Generate a full recipe for "{recipe_name}" using only the following available ingredients. You can assume basic pantry items like oil, salt, and pepper are available.

Available Ingredients: {_join(ingredients)}
Dietary Restrictions: {dietary_restrictions or "None"}

The generated recipe should include:
1. The exact recipe name: "{recipe_name}".
2. A list of ingredients with quantities, using only the available ingredients.
3. Clear, step-by-step instructions (one step per list entry, without leading numbers).
4. If possible, nutritional information.

Respond in the requested JSON format.
"""


def get_image_prompt(recipe_name: str) -> str:
    return f'A professional, photorealistic photograph of a finished dish of "{recipe_name}".'


def get_ask_chef_prompt(recipe: GenerateRecipeOutput, question: str, history: list[ChatTurn]) -> str:
    """Build the ask-the-chef prompt with the full recipe context and prior turns.

    The 'model' role in the history represents earlier answers from the chef.
    """
    ingredient_lines = "\n".join(f"- {item}" for item in recipe.ingredients)
    instruction_lines = "\n".join(f"{i}. {step}" for i, step in enumerate(recipe.instructions, start=1))
    nutrition = (
        f"\nNutritional Information: {recipe.nutritional_information}\n" if recipe.nutritional_information else ""
    )
    history_lines = "\n".join(f"{turn.role}: {turn.content}" for turn in history) or "(no previous messages)"

    return f"""You are an expert chef and culinary assistant. A user is asking a question about a recipe you have provided.

Your personality is helpful, friendly, and encouraging. Your goal is to provide clear, concise, and safe cooking advice. To make your answers easy to read, use **bold text** for important terms or ingredients and newlines to separate steps or list items. Do not use any other Markdown formatting.

Here is the full recipe context:
Recipe Name: {recipe.recipe_name}
Ingredients:
{ingredient_lines}

Instructions:
{instruction_lines}
{nutrition}
Here is the conversation history so far. The 'model' role represents your previous responses as the Chef, and the 'user' role is the person asking questions.
{history_lines}

User's current question: {question}

Please answer the user's question based on the recipe context and your expert knowledge. If the question is unrelated to the recipe or cooking, politely steer the conversation back to the recipe.
"""


def format_recipe_text(recipe: ActiveRecipe) -> str:
    """Render a recipe as plain text for copying or sharing."""
    parts = [
        f"Recipe for {recipe.name}",
        "Ingredients:\n" + "\n".join(f"- {item}" for item in recipe.ingredients),
        "Instructions:\n" + "\n".join(f"{i}. {step}" for i, step in enumerate(recipe.instructions, start=1)),
    ]
    if recipe.nutrition:
        parts.append(f"Nutritional Information:\n{recipe.nutrition}")
    return "\n\n".join(parts)


def recipe_speech_text(recipe: ActiveRecipe) -> str:
    """Flatten a recipe into one line of text for speech synthesis."""
    steps = " ".join(f"{i}. {step}" for i, step in enumerate(recipe.instructions, start=1))
    text = f"Now reading the recipe for {recipe.name}. "
    if recipe.ingredients:
        text += f"Ingredients: {_join(recipe.ingredients)}. "
    text += f"Instructions: {steps}"
    return re.sub(r"\s+", " ", text).strip()
