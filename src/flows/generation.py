"""Generation client: one async function per AI capability.

Every function is a single request → single schema-validated response. Any
failure (missing API key, transport error, malformed or off-schema output)
surfaces as GenerationError carrying the cause. There is no retry logic here;
deciding what a failure means is the orchestrator's job.

Functions:
- detect_food(): captured frame → detected ingredient names (vision)
- suggest_recipes(): ingredients + preferences → 5-10 recipe ideas
- generate_image(): recipe name → dish photo data URI, or None when no image came back
- generate_recipe(): recipe name + ingredients → full recipe
- ask_chef(): recipe + question + prior turns → answer text
- text_to_speech(): text → WAV data URI
"""

import asyncio
import io
import json
import re
import wave
from typing import Optional, Type, TypeVar

from google import genai
from google.genai import types
from pydantic import BaseModel, ValidationError

from src.models.models import (
    AskChefInput,
    AskChefOutput,
    ChatTurn,
    DetectFoodInput,
    DetectFoodOutput,
    GenerateRecipeInput,
    GenerateRecipeOutput,
    SuggestRecipesInput,
    SuggestRecipesOutput,
    SuggestedRecipe,
)
from src.prompts.prompts import (
    DETECT_FOOD_PROMPT,
    get_ask_chef_prompt,
    get_generate_recipe_prompt,
    get_image_prompt,
    get_suggest_recipes_prompt,
)
from src.utils.config import config
from src.utils.images import (
    compress_image,
    decode_data_uri,
    encode_data_uri,
    guess_mime_type,
    validate_image_format,
    validate_image_size,
)
from src.utils.logger import logger
from src.utils.safe_execute import safe_execute_async

SchemaT = TypeVar("SchemaT", bound=BaseModel)

# Gemini TTS returns raw 16-bit mono PCM at 24 kHz
TTS_SAMPLE_RATE = 24000
TTS_CHANNELS = 1
TTS_SAMPLE_WIDTH = 2

_SAFETY_SETTINGS = [
    types.SafetySetting(category=category, threshold=types.HarmBlockThreshold.BLOCK_NONE)
    for category in (
        types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
        types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
        types.HarmCategory.HARM_CATEGORY_HARASSMENT,
        types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
    )
]


class GenerationError(Exception):
    """A generation call failed. `cause` holds the underlying exception or reason."""

    def __init__(self, operation: str, cause: Exception | str) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} failed: {cause}")


def _validate_input(operation: str, schema: Type[SchemaT], **fields) -> SchemaT:
    try:
        return schema(**fields)
    except ValidationError as e:
        raise GenerationError(operation, e) from e


async def _generate_content(
    operation: str,
    model: str,
    contents,
    generation_config: types.GenerateContentConfig,
):
    """Run one generate_content call off the event loop."""
    if not config.is_gemini_configured():
        raise GenerationError(operation, "GEMINI_API_KEY is not configured")

    logger.debug(f"{operation}: calling {model}")
    try:
        client = genai.Client(api_key=config.GEMINI_API_KEY)
        # Sync client in a worker thread
        return await asyncio.to_thread(
            client.models.generate_content,
            model=model,
            contents=contents,
            config=generation_config,
        )
    except Exception as e:
        raise GenerationError(operation, e) from e


def parse_structured_response(operation: str, response_text: Optional[str], schema: Type[SchemaT]) -> SchemaT:
    """Parse and validate a JSON response against `schema`.

    Tries the full text first, then the outermost JSON object embedded in
    surrounding prose. A response that matches neither is a failure; there is
    no partially-shaped success.

    Raises:
        GenerationError: If the text is empty, not JSON, or does not match the schema.
    """
    if not response_text or not response_text.strip():
        raise GenerationError(operation, "empty response")

    try:
        return schema.model_validate_json(response_text)
    except ValidationError as direct_error:
        json_match = re.search(r"\{.*\}", response_text, re.DOTALL)
        if not json_match:
            raise GenerationError(operation, direct_error) from direct_error
        try:
            return schema.model_validate(json.loads(json_match.group()))
        except (ValueError, ValidationError) as e:
            raise GenerationError(operation, e) from e


async def _generate_structured(
    operation: str,
    contents,
    schema: Type[SchemaT],
    model: Optional[str] = None,
) -> SchemaT:
    response = await _generate_content(
        operation,
        model or config.TEXT_MODEL,
        contents,
        types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=schema,
            temperature=config.TEMPERATURE,
            max_output_tokens=config.MAX_OUTPUT_TOKENS,
        ),
    )
    return parse_structured_response(operation, response.text, schema)


def _first_inline_data(response) -> Optional[tuple[bytes, str]]:
    """Return (data, mime_type) of the first inline media part, if any."""
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            inline = getattr(part, "inline_data", None)
            if inline is not None and inline.data:
                data = inline.data
                if isinstance(data, str):
                    data = decode_data_uri(f"data:{inline.mime_type};base64,{data}")[1]
                return data, inline.mime_type or ""
    return None


async def detect_food(photo_data_uri: str) -> list[str]:
    """Detect food items in one captured frame.

    **Processing Steps:**
    1. Validate the data URI and decode it
    2. Validate format (JPEG/PNG) and size (MAX_IMAGE_SIZE_MB)
    3. Optionally recompress (COMPRESS_IMG)
    4. Call the vision model with a DetectFoodOutput response schema

    Args:
        photo_data_uri: "data:image/jpeg;base64,..." frame from the camera.

    Returns:
        Detected ingredient names (may be empty).

    Raises:
        GenerationError: On invalid input or any call/parse failure.
    """
    operation = "Detect food"
    request = _validate_input(operation, DetectFoodInput, photo_data_uri=photo_data_uri)

    try:
        _, image_bytes = decode_data_uri(request.photo_data_uri)
    except ValueError as e:
        raise GenerationError(operation, e) from e

    if not validate_image_format(image_bytes):
        raise GenerationError(operation, "invalid image format, only JPEG and PNG are supported")
    if not validate_image_size(image_bytes):
        raise GenerationError(operation, f"image too large, maximum size is {config.MAX_IMAGE_SIZE_MB}MB")

    if config.COMPRESS_IMG:
        image_bytes = compress_image(image_bytes)

    output = await _generate_structured(
        operation,
        [DETECT_FOOD_PROMPT, types.Part.from_bytes(data=image_bytes, mime_type=guess_mime_type(image_bytes))],
        DetectFoodOutput,
        model=config.VISION_MODEL,
    )
    logger.info(f"Detected {len(output.food_items)} food item(s): {output.food_items}")
    return output.food_items


async def generate_image(recipe_name: str) -> Optional[str]:
    """Generate a photorealistic dish image.

    Returns:
        "data:image/png;base64,..." or None when the model returned no image.

    Raises:
        GenerationError: If the call itself fails.
    """
    operation = f"Generate image for '{recipe_name}'"
    response = await _generate_content(
        operation,
        config.IMAGE_MODEL,
        get_image_prompt(recipe_name),
        types.GenerateContentConfig(
            response_modalities=["TEXT", "IMAGE"],
            safety_settings=_SAFETY_SETTINGS,
        ),
    )
    media = _first_inline_data(response)
    if media is None:
        logger.debug(f"{operation}: no image in response")
        return None
    data, mime_type = media
    return encode_data_uri(data, mime_type or "image/png")


async def suggest_recipes(
    ingredients: list[str],
    dietary_restrictions: str = "",
    preferred_cuisines: str = "",
    with_images: bool = False,
) -> list[SuggestedRecipe]:
    """Suggest 5-10 recipes that can be made with the given ingredients.

    Args:
        ingredients: Available ingredients (non-empty).
        dietary_restrictions: Free-text restrictions.
        preferred_cuisines: Free-text cuisines.
        with_images: Generate a preview image for every suggestion before
            returning. Each image is best-effort: a failed image leaves that
            suggestion's image_url as None and never fails the batch.

    Returns:
        Suggestions in model order, capped at MAX_SUGGESTIONS. May be empty.

    Raises:
        GenerationError: If the text call fails.
    """
    operation = "Suggest recipes"
    request = _validate_input(
        operation,
        SuggestRecipesInput,
        ingredients=ingredients,
        dietary_restrictions=dietary_restrictions,
        preferred_cuisines=preferred_cuisines,
    )

    output = await _generate_structured(
        operation,
        get_suggest_recipes_prompt(request.ingredients, request.dietary_restrictions, request.preferred_cuisines),
        SuggestRecipesOutput,
    )
    suggestions = [
        SuggestedRecipe(recipe_name=idea.recipe_name, description=idea.description)
        for idea in output.recipes[: config.MAX_SUGGESTIONS]
    ]

    if with_images and suggestions:
        images = await asyncio.gather(
            *(
                safe_execute_async(
                    generate_image(suggestion.recipe_name),
                    f"Preview image for '{suggestion.recipe_name}'",
                    default_return=None,
                )
                for suggestion in suggestions
            )
        )
        for suggestion, image_url in zip(suggestions, images):
            suggestion.image_url = image_url

    logger.info(f"Suggested {len(suggestions)} recipe(s)")
    return suggestions


async def generate_recipe(
    recipe_name: str,
    ingredients: list[str],
    dietary_restrictions: str = "",
) -> GenerateRecipeOutput:
    """Generate the full recipe for `recipe_name` from the available ingredients.

    Raises:
        GenerationError: On invalid input or any call/parse failure.
    """
    operation = f"Generate recipe '{recipe_name}'"
    request = _validate_input(
        operation,
        GenerateRecipeInput,
        recipe_name=recipe_name,
        ingredients=ingredients,
        dietary_restrictions=dietary_restrictions,
    )
    return await _generate_structured(
        operation,
        get_generate_recipe_prompt(request.recipe_name, request.ingredients, request.dietary_restrictions),
        GenerateRecipeOutput,
    )


async def ask_chef(recipe: GenerateRecipeOutput, question: str, history: list[ChatTurn]) -> str:
    """Answer a follow-up question about `recipe`, given the conversation so far.

    Returns:
        Answer text (Markdown bold is the only formatting requested).

    Raises:
        GenerationError: On invalid input, call/parse failure or an empty answer.
    """
    operation = "Ask chef"
    request = _validate_input(operation, AskChefInput, recipe=recipe, question=question, history=history)
    output = await _generate_structured(
        operation,
        get_ask_chef_prompt(request.recipe, request.question, request.history),
        AskChefOutput,
    )
    answer = output.answer.strip()
    if not answer:
        raise GenerationError(operation, "empty answer")
    return answer


def pcm_to_wav(
    pcm_data: bytes,
    channels: int = TTS_CHANNELS,
    rate: int = TTS_SAMPLE_RATE,
    sample_width: int = TTS_SAMPLE_WIDTH,
) -> bytes:
    """Wrap raw PCM frames in a WAV container."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as writer:
        writer.setnchannels(channels)
        writer.setsampwidth(sample_width)
        writer.setframerate(rate)
        writer.writeframes(pcm_data)
    return buffer.getvalue()


async def text_to_speech(text: str) -> str:
    """Synthesize `text` with the Gemini TTS model.

    Returns:
        "data:audio/wav;base64,..." string.

    Raises:
        GenerationError: If the text is blank, the call fails or no audio came back.
    """
    operation = "Text to speech"
    if not text or not text.strip():
        raise GenerationError(operation, "text must not be blank")

    response = await _generate_content(
        operation,
        config.TTS_MODEL,
        text,
        types.GenerateContentConfig(
            response_modalities=["AUDIO"],
            speech_config=types.SpeechConfig(
                voice_config=types.VoiceConfig(
                    prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=config.TTS_VOICE),
                )
            ),
        ),
    )
    media = _first_inline_data(response)
    if media is None:
        raise GenerationError(operation, "no media returned")
    return encode_data_uri(pcm_to_wav(media[0]), "audio/wav")
