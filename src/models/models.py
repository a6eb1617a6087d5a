"""Data models and schemas for the generation client.

Defines Pydantic models for every request/response crossing the AI boundary.
Response models double as the `response_schema` sent to Gemini, so they stay
free of numeric constraints the schema converter cannot express; cleanup
happens in validators instead. All models use Pydantic v2.
"""

from typing import List, Literal, Optional, Annotated
from pydantic import BaseModel, Field, field_validator, ConfigDict


def _clean_items(items: list) -> list[str]:
    """Strip entries and drop blanks, keeping order."""
    cleaned = []
    for item in items or []:
        if not isinstance(item, str):
            raise ValueError("List entries must be strings")
        item = item.strip()
        if item:
            cleaned.append(item)
    return cleaned


class DetectFoodInput(BaseModel):
    """Input schema for ingredient detection: one captured frame as a data URI."""

    photo_data_uri: Annotated[
        str,
        Field(
            description=(
                "A photo from the camera feed, as a data URI that must include a MIME type and use "
                "Base64 encoding. Expected format: 'data:<mimetype>;base64,<encoded_data>'."
            )
        ),
    ]

    @field_validator("photo_data_uri")
    @classmethod
    def validate_data_uri(cls, v: str) -> str:
        """Require a base64 data URI."""
        if not v.startswith("data:") or ";base64," not in v:
            raise ValueError("photo_data_uri must be a base64 data URI")
        return v


class DetectFoodOutput(BaseModel):
    """Output schema for ingredient detection."""

    food_items: Annotated[List[str], Field(description="A list of food items detected in the image.")]

    @field_validator("food_items", mode="before")
    @classmethod
    def clean_food_items(cls, v: list) -> list[str]:
        return _clean_items(v)


class SuggestRecipesInput(BaseModel):
    """Input schema for recipe suggestions."""

    model_config = ConfigDict(str_strip_whitespace=True)

    ingredients: Annotated[List[str], Field(min_length=1, description="A list of ingredients available.")]
    dietary_restrictions: Annotated[str, Field("", description="Any dietary restrictions to consider.")]
    preferred_cuisines: Annotated[str, Field("", description="The preferred cuisines for the recipe.")]


class RecipeIdea(BaseModel):
    """A single text-only recipe suggestion as returned by the model."""

    model_config = ConfigDict(str_strip_whitespace=True)

    recipe_name: Annotated[str, Field(description="The name of the recipe suggestion.")]
    description: Annotated[str, Field(description="A short, enticing description of the recipe.")]


class SuggestRecipesOutput(BaseModel):
    """Output schema for recipe suggestions."""

    recipes: Annotated[List[RecipeIdea], Field(description="An array of 5 to 10 recipe suggestions.")]

    @field_validator("recipes")
    @classmethod
    def drop_unnamed(cls, v: list[RecipeIdea]) -> list[RecipeIdea]:
        """Suggestions without a name cannot be generated later."""
        return [idea for idea in v if idea.recipe_name]


class SuggestedRecipe(BaseModel):
    """A suggestion returned by suggest_recipes, optionally carrying an eager preview image."""

    recipe_name: str
    description: str
    image_url: Optional[str] = None


class GenerateRecipeInput(BaseModel):
    """Input schema for full recipe generation."""

    model_config = ConfigDict(str_strip_whitespace=True)

    recipe_name: Annotated[str, Field(min_length=1, max_length=200, description="The name of the recipe to generate.")]
    ingredients: Annotated[
        List[str], Field(min_length=1, description="A list of ingredients available to use in the recipe.")
    ]
    dietary_restrictions: Annotated[
        str, Field("", description="Any dietary restrictions the recipe should adhere to.")
    ]


class GenerateRecipeOutput(BaseModel):
    """Output schema for a full recipe."""

    model_config = ConfigDict(str_strip_whitespace=True)

    recipe_name: Annotated[str, Field(description="The name of the generated recipe.")]
    ingredients: Annotated[List[str], Field(description="A list of ingredients required for the recipe.")]
    instructions: Annotated[List[str], Field(description="Step-by-step instructions for preparing the recipe.")]
    nutritional_information: Annotated[
        Optional[str], Field(None, description="Nutritional information for the recipe, if available.")
    ]

    @field_validator("ingredients", "instructions", mode="before")
    @classmethod
    def clean_lists(cls, v: list) -> list[str]:
        return _clean_items(v)

    @field_validator("nutritional_information")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class ChatTurn(BaseModel):
    """One message in an ask-the-chef conversation."""

    role: Literal["user", "model"]
    content: str


class AskChefInput(BaseModel):
    """Input schema for a follow-up question about a recipe."""

    recipe: Annotated[GenerateRecipeOutput, Field(description="The full recipe the user is asking about.")]
    question: Annotated[str, Field(min_length=1, description="The user's most recent question about the recipe.")]
    history: Annotated[List[ChatTurn], Field(default_factory=list, description="The previous conversation history.")]

    @field_validator("question")
    @classmethod
    def question_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("question must not be blank")
        return v.strip()


class AskChefOutput(BaseModel):
    """Output schema for the chef's answer."""

    answer: Annotated[str, Field(description="The AI chef's answer to the user's question.")]
