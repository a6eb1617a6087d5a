#!/usr/bin/env python3
"""Console runner for Culinary Canvas.

Runs the whole pipeline from the command line: still images stand in for the
webcam, suggestions and the recipe are rendered with rich, and follow-up
questions go to the chef.

Usage:
    python query.py --image images/fridge.jpg
    python query.py --ingredients "eggs, tomato, spinach" --diet vegetarian
    python query.py --image a.jpg --image b.png --cuisine italian --pick 2
    python query.py --ingredients "rice, chicken" --recipe "Chicken Fried Rice" --ask "Can I use brown rice?"
    python query.py --ingredients "pasta, garlic" --pick 1 --audio recipe.wav
    python query.py --ingredients "eggs, leeks" --pick 1 --share  # Plain text for copying
    python query.py --debug --ingredients "..."  # Show full JSON state

Features:
- One still image per --image flag; each image is a camera, all are scanned
- Suggestions with preview image status, then the full recipe as markdown
- Repeatable --ask for a multi-turn chef conversation
- --audio writes the recipe read aloud as a WAV file
"""

import argparse
import asyncio
import sys
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from src.capabilities.camera import Camera
from src.capabilities.still_camera import StillImageBackend
from src.flows.generation import GenerationError, text_to_speech
from src.pipeline.orchestrator import Orchestrator
from src.pipeline.state import Notice
from src.prompts.prompts import format_recipe_text, recipe_speech_text
from src.utils.config import config
from src.utils.images import decode_data_uri
from src.utils.logger import logger

console = Console()


def print_notice(notice: Notice) -> None:
    style = "red" if notice.level == "error" else "green"
    description = f" {notice.description}" if notice.description else ""
    console.print(f"[{style}]● {notice.title}[/{style}]{description}")


def print_suggestions(orchestrator: Orchestrator) -> None:
    table = Table(title="Recipe Suggestions", show_lines=True)
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Recipe", style="bold")
    table.add_column("Description")
    table.add_column("Image", justify="center")
    for index, suggestion in enumerate(orchestrator.suggestions, start=1):
        image = "✓" if suggestion.image_url else ("…" if suggestion.image_loading else "–")
        table.add_row(str(index), suggestion.name, suggestion.description, image)
    console.print(table)


def print_state(orchestrator: Orchestrator) -> None:
    """Debug view of the published state (image data URIs abbreviated)."""
    def short(uri):
        return f"{uri[:40]}… ({len(uri)} chars)" if uri else None

    recipe = orchestrator.active_recipe
    console.print_json(
        data={
            "stage": orchestrator.stage.value,
            "ingredients": orchestrator.ingredients.as_list(),
            "suggestions": [
                {"name": s.name, "description": s.description, "image_url": short(s.image_url)}
                for s in orchestrator.suggestions
            ],
            "active_recipe": None
            if recipe is None
            else {
                "name": recipe.name,
                "ingredients": recipe.ingredients,
                "instructions": recipe.instructions,
                "nutrition": recipe.nutrition,
                "image_url": short(recipe.image_url),
                "image_hint": recipe.image_hint,
            },
        }
    )


async def scan_images(orchestrator: Orchestrator, camera: Camera, image_count: int) -> None:
    """Detect ingredients from every image, switching 'cameras' between scans."""
    if not await camera.set_enabled(True):
        return
    for scan in range(image_count):
        if scan:
            await camera.switch_to_next()
        logger.info(f"Scanning image {scan + 1}/{image_count}...")
        await orchestrator.detect_ingredients()
    camera.close()


async def write_audio(text: str, path: str) -> None:
    try:
        data_uri = await text_to_speech(text)
    except GenerationError as e:
        console.print(f"[red]✗ Could not synthesize audio: {e}[/red]")
        return
    _, wav_bytes = decode_data_uri(data_uri)
    Path(path).write_bytes(wav_bytes)
    console.print(f"[green]✓ Audio written to {path} ({len(wav_bytes) / 1024:.1f} KB)[/green]")


async def run(args: argparse.Namespace) -> int:
    if not config.is_gemini_configured():
        console.print("[red]✗ GEMINI_API_KEY is not set. Add it to your environment or .env file.[/red]")
        return 1

    camera = Camera(StillImageBackend(args.image), notify=print_notice) if args.image else None
    orchestrator = Orchestrator(
        camera=camera,
        notify=print_notice,
        ingredients_text=args.ingredients or "",
        dietary_restrictions=args.diet,
        preferred_cuisines=args.cuisine,
    )

    try:
        if camera is not None:
            await scan_images(orchestrator, camera, len(args.image))
        console.print(f"[bold]Ingredients:[/bold] {orchestrator.ingredients_text or '(none)'}")

        if args.recipe:
            generated = await orchestrator.generate_recipe(args.recipe)
        else:
            if not await orchestrator.suggest_recipes():
                return 1
            with console.status("Generating preview images..."):
                await orchestrator.wait_for_enrichment()
            print_suggestions(orchestrator)
            if args.pick is None:
                return 0
            generated = await orchestrator.select_suggestion(args.pick - 1)

        if args.debug:
            print_state(orchestrator)
        if not generated or orchestrator.active_recipe is None:
            return 1

        recipe = orchestrator.active_recipe
        console.print(Panel(Markdown(_recipe_markdown(recipe)), title=recipe.name))
        if not args.recipe and orchestrator.other_suggestions():
            others = ", ".join(s.name for s in orchestrator.other_suggestions())
            console.print(f"[dim]Or try another recipe: {others}[/dim]")

        if args.share:
            console.print(format_recipe_text(recipe), markup=False, highlight=False)

        if args.audio:
            await write_audio(recipe_speech_text(recipe), args.audio)

        if args.ask:
            conversation = orchestrator.open_conversation()
            for question in args.ask:
                console.print(f"[bold cyan]You:[/bold cyan] {question}")
                answer = await conversation.ask(question)
                console.print("[bold magenta]Chef:[/bold magenta]")
                console.print(Markdown(answer or ""))
            conversation.close()
        return 0
    finally:
        await orchestrator.shutdown()
        if camera is not None:
            camera.close()


def _recipe_markdown(recipe) -> str:
    lines = ["**Ingredients**", ""]
    lines += [f"- {item}" for item in recipe.ingredients]
    lines += ["", "**Instructions**", ""]
    lines += [f"{i}. {step}" for i, step in enumerate(recipe.instructions, start=1)]
    if recipe.nutrition:
        lines += ["", "**Nutritional Information**", "", recipe.nutrition]
    return "\n".join(lines)


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Culinary Canvas: from ingredients to a full recipe.")
    parser.add_argument("--image", action="append", default=[], help="Image of ingredients (repeatable)")
    parser.add_argument("--ingredients", help="Comma-separated ingredients to start with")
    parser.add_argument("--diet", default="", help="Dietary restrictions, e.g. 'vegetarian, gluten-free'")
    parser.add_argument("--cuisine", default="", help="Preferred cuisines, e.g. 'italian, mexican'")
    parser.add_argument("--pick", type=int, help="Generate the Nth suggestion (1-based)")
    parser.add_argument("--recipe", help="Generate this recipe directly, skipping suggestions")
    parser.add_argument("--ask", action="append", default=[], help="Question for the chef (repeatable)")
    parser.add_argument("--share", action="store_true", help="Also print the plain-text share version of the recipe")
    parser.add_argument("--audio", help="Write the recipe read aloud to this WAV file")
    parser.add_argument("--debug", action="store_true", help="Show the full pipeline state as JSON")
    args = parser.parse_args(argv)
    if not args.image and not args.ingredients:
        parser.error("provide --image and/or --ingredients")
    return args


if __name__ == "__main__":
    arguments = parse_args(sys.argv[1:])
    try:
        sys.exit(asyncio.run(run(arguments)))
    except KeyboardInterrupt:
        logger.info("\nQuery interrupted by user.")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Query execution failed: {e}", exc_info=True)
        sys.exit(1)
