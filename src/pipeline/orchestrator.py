"""Pipeline orchestrator: detection → suggestions → image enrichment → full recipe.

The orchestrator owns the shared state the presentation layer renders:
ingredients, suggestions, the active recipe and the one in-flight stage.

Rules enforced here:
- At most one stage is in flight. Entering a stage requires IDLE and happens
  synchronously, before the first await.
- Image generation never blocks or invalidates a text result. Images for
  suggestions are written back by (batch id, index); a result for an older
  batch is dropped.
- A failed recipe text clears the recipe; a late image for it is never applied.
- Entry points never raise. Failures become notices.
"""

import asyncio
from typing import Callable, List, Optional

from src.capabilities.camera import Camera
from src.capabilities.dictation import DictationEngine
from src.capabilities.read_aloud import ReadAloud
from src.flows.generation import detect_food, generate_image, generate_recipe, suggest_recipes
from src.pipeline.conversation import ChefConversation
from src.pipeline.state import (
    ActiveRecipe,
    IngredientSet,
    Notice,
    NoticeSink,
    PipelineStage,
    RecipeSuggestion,
    log_notice,
)
from src.utils.config import config
from src.utils.logger import logger
from src.utils.safe_execute import safe_execute_async, safe_execute_sync

StateListener = Callable[["Orchestrator"], None]

NO_INGREDIENTS = Notice("No Ingredients", "Please add some ingredients first.", level="error")


def _consume_outcome(task: asyncio.Task) -> None:
    """Retrieve the outcome of a task whose result is no longer wanted."""
    if not task.cancelled() and task.exception() is not None:
        logger.debug(f"Discarded late failure: {task.exception()}")


class Orchestrator:
    """Sequences the generation pipeline and publishes its state."""

    def __init__(
        self,
        camera: Optional[Camera] = None,
        notify: Optional[NoticeSink] = None,
        ingredients_text: str = "",
        dietary_restrictions: str = "",
        preferred_cuisines: str = "",
        read_aloud: Optional[ReadAloud] = None,
    ) -> None:
        self.camera = camera
        self.read_aloud = read_aloud
        self.ingredients = IngredientSet.parse(ingredients_text)
        self.dietary_restrictions = dietary_restrictions
        self.preferred_cuisines = preferred_cuisines
        self.stage = PipelineStage.IDLE
        self.suggestions: List[RecipeSuggestion] = []
        self._active_recipe: Optional[ActiveRecipe] = None
        self._notify = notify or log_notice
        self._listeners: List[StateListener] = []
        self._batch_id = 0
        self._generation_id = 0
        self._enrichment_tasks: set[asyncio.Task] = set()

    @property
    def active_recipe(self) -> Optional[ActiveRecipe]:
        return self._active_recipe

    @active_recipe.setter
    def active_recipe(self, recipe: Optional[ActiveRecipe]) -> None:
        # A reading of the previous recipe never outlives it
        self._active_recipe = recipe
        if self.read_aloud is not None:
            self.read_aloud.set_recipe(recipe)

    @property
    def ingredients_text(self) -> str:
        return self.ingredients.to_text()

    @ingredients_text.setter
    def ingredients_text(self, text: str) -> None:
        self.ingredients = IngredientSet.parse(text)
        self._changed()

    @property
    def is_loading(self) -> bool:
        return self.stage != PipelineStage.IDLE

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state listener. Returns a function that unsubscribes it."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def _changed(self) -> None:
        for listener in list(self._listeners):
            safe_execute_sync(lambda listener=listener: listener(self), "State listener")

    def _enter(self, stage: PipelineStage) -> bool:
        if self.stage != PipelineStage.IDLE:
            logger.debug(f"Ignoring {stage.value} request, {self.stage.value} in progress")
            return False
        self.stage = stage
        logger.debug("Stage entered", extra={"stage": stage.value})
        self._changed()
        return True

    def _leave(self) -> None:
        self.stage = PipelineStage.IDLE
        self._changed()

    async def detect_ingredients(self) -> bool:
        """Capture a frame and add the detected food items to the ingredients.

        Returns:
            True when detection ran to completion (even if nothing new was found).
        """
        if self.stage != PipelineStage.IDLE:
            return False
        if self.camera is None or not self.camera.is_on:
            self._notify(Notice("Webcam Off", "Please turn on the webcam to detect ingredients.", level="error"))
            return False

        self._enter(PipelineStage.DETECTING)
        try:
            try:
                frame = self.camera.capture_frame()
            except Exception as e:
                logger.error(f"Frame capture failed: {e}", extra={"stage": self.stage.value})
                frame = None
            if frame is None:
                self._notify(Notice("Capture Failed", "Could not capture an image from the webcam.", level="error"))
                return False

            try:
                food_items = await detect_food(frame)
            except Exception as e:
                logger.error(f"Error detecting food: {e}", extra={"stage": self.stage.value})
                self._notify(Notice("Detection Failed", "Could not detect ingredients. Please try again.", level="error"))
                return False

            added = self.ingredients.update(food_items)
            if added:
                self._notify(Notice("Food Detected!", f"Added: {', '.join(added)}"))
            else:
                self._notify(Notice("No New Food Detected", "Try adjusting the camera angle or lighting."))
            return True
        finally:
            self._leave()

    async def suggest_recipes(self) -> bool:
        """Replace the suggestion list with fresh suggestions for the current ingredients.

        The previous suggestions and active recipe are cleared before the call.
        In background image mode the images are filled in after this returns;
        await `wait_for_enrichment()` to observe them.
        """
        if self.stage != PipelineStage.IDLE:
            return False
        ingredients = self.ingredients.as_list()
        if not ingredients:
            self._notify(NO_INGREDIENTS)
            return False

        self._enter(PipelineStage.SUGGESTING)
        self._batch_id += 1
        batch_id = self._batch_id
        self.suggestions = []
        self.active_recipe = None
        self._changed()

        with_images = config.ENABLE_IMAGE_GENERATION
        eager = with_images and config.SUGGESTION_IMAGE_MODE == "eager"
        try:
            try:
                results = await suggest_recipes(
                    ingredients,
                    self.dietary_restrictions,
                    self.preferred_cuisines,
                    with_images=eager,
                )
            except Exception as e:
                logger.error(f"Error suggesting recipes: {e}", extra={"stage": self.stage.value})
                self._notify(
                    Notice("Suggestion Failed", "Could not get recipe suggestions. Please try again.", level="error")
                )
                return False

            if batch_id != self._batch_id:
                return False

            self.suggestions = [
                RecipeSuggestion(
                    name=result.recipe_name,
                    description=result.description,
                    image_url=result.image_url,
                    image_loading=with_images and not eager,
                )
                for result in results
            ]
            if not self.suggestions:
                self._notify(Notice("No Recipes Found", "Try adding more ingredients or changing your preferences."))
            elif with_images and not eager:
                for index, suggestion in enumerate(self.suggestions):
                    self._spawn_enrichment(batch_id, index, suggestion.name)
            logger.info(f"{len(self.suggestions)} suggestion(s) published", extra={"stage": self.stage.value})
            return True
        finally:
            self._leave()

    def _spawn_enrichment(self, batch_id: int, index: int, recipe_name: str) -> None:
        task = asyncio.create_task(self._enrich_suggestion(batch_id, index, recipe_name))
        self._enrichment_tasks.add(task)
        task.add_done_callback(self._enrichment_tasks.discard)

    async def _enrich_suggestion(self, batch_id: int, index: int, recipe_name: str) -> None:
        image_url = await safe_execute_async(
            generate_image(recipe_name),
            f"Preview image for '{recipe_name}'",
            default_return=None,
        )
        if batch_id != self._batch_id or index >= len(self.suggestions):
            logger.debug(f"Dropping image for stale suggestion '{recipe_name}'")
            return
        suggestion = self.suggestions[index]
        suggestion.image_url = image_url
        suggestion.image_loading = False
        self._changed()

    async def wait_for_enrichment(self) -> None:
        """Wait until every outstanding suggestion image has settled."""
        while self._enrichment_tasks:
            await asyncio.gather(*list(self._enrichment_tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel outstanding background work."""
        tasks = list(self._enrichment_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._batch_id += 1

    def _suggestion_image(self, recipe_name: str) -> Optional[str]:
        for suggestion in self.suggestions:
            if suggestion.name == recipe_name:
                return suggestion.image_url
        return None

    async def generate_recipe(self, recipe_name: str, image_url: Optional[str] = None) -> bool:
        """Generate the full recipe for `recipe_name`.

        A shell recipe carrying the suggestion image is published immediately.
        The recipe text and a fresh dish image are requested concurrently; the
        text is required, the image is optional.

        Args:
            recipe_name: Recipe to generate.
            image_url: Image already known for this recipe (defaults to the
                matching suggestion's image).
        """
        if self.stage != PipelineStage.IDLE:
            return False
        name = (recipe_name or "").strip()
        if not name:
            return False
        ingredients = self.ingredients.as_list()
        if not ingredients:
            self._notify(NO_INGREDIENTS)
            return False

        self._enter(PipelineStage.GENERATING)
        self._generation_id += 1
        generation_id = self._generation_id
        known_image = image_url or self._suggestion_image(name)
        self.active_recipe = ActiveRecipe.shell(name, known_image)
        self._changed()

        text_task = asyncio.create_task(generate_recipe(name, ingredients, self.dietary_restrictions))
        image_task = None
        if config.ENABLE_IMAGE_GENERATION and config.RECIPE_IMAGE_SOURCE == "generate":
            image_task = asyncio.create_task(generate_image(name))

        try:
            try:
                output = await text_task
            except Exception as e:
                logger.error(f"Error generating recipe: {e}", extra={"stage": self.stage.value, "recipe": name})
                if generation_id == self._generation_id:
                    self.active_recipe = None
                self._notify(
                    Notice(
                        "Recipe Generation Failed",
                        f"Could not generate the recipe for {name}. Please try again.",
                        level="error",
                    )
                )
                return False

            final_image = known_image
            if image_task is not None:
                generated = await safe_execute_async(image_task, f"Dish image for '{name}'", default_return=None)
                final_image = generated or known_image

            if generation_id != self._generation_id:
                return False
            self.active_recipe = ActiveRecipe.from_output(output, name, final_image)
            logger.info("Recipe ready", extra={"stage": self.stage.value, "recipe": name})
            return True
        finally:
            if image_task is not None and not image_task.done():
                image_task.add_done_callback(_consume_outcome)
            self._leave()

    async def select_suggestion(self, index: int) -> bool:
        """Generate the suggestion at `index` of the current list."""
        if not 0 <= index < len(self.suggestions):
            logger.warning(f"No suggestion at index {index}")
            return False
        suggestion = self.suggestions[index]
        return await self.generate_recipe(suggestion.name, image_url=suggestion.image_url)

    def other_suggestions(self) -> List[RecipeSuggestion]:
        """Suggestions other than the recipe on display."""
        if self.active_recipe is None:
            return list(self.suggestions)
        return [s for s in self.suggestions if s.name != self.active_recipe.name]

    def toggle_read_aloud(self) -> bool:
        """Start reading the active recipe, or stop the current reading.

        Returns True when a reading was started.
        """
        if self.read_aloud is None or self.active_recipe is None or self.active_recipe.is_shell:
            return False
        return self.read_aloud.toggle(self.active_recipe)

    def open_conversation(self, dictation_engine: Optional[DictationEngine] = None) -> Optional[ChefConversation]:
        """Start an ask-the-chef conversation about the active recipe.

        Returns None while no complete recipe is on display.
        """
        if self.active_recipe is None or self.active_recipe.is_shell:
            return None
        return ChefConversation(self.active_recipe, dictation_engine=dictation_engine, notify=self._notify)
