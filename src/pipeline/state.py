"""Shared state objects for the generation pipeline."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Iterator, List, Optional

from src.models.models import GenerateRecipeOutput
from src.utils.logger import logger


class PipelineStage(str, Enum):
    """The one stage of the pipeline that may be in flight."""

    IDLE = "idle"
    DETECTING = "detecting"
    SUGGESTING = "suggesting"
    GENERATING = "generating"


class IngredientSet:
    """Deduplicated ingredient names, edited as a comma-joined string.

    Entries are stripped and blanks dropped. Deduplication is case-sensitive
    ("Basil" and "basil" are two entries). Insertion order is kept only so the
    text form stays stable while editing.
    """

    def __init__(self, names: Iterable[str] = ()) -> None:
        self._names: dict[str, None] = {}
        self.update(names)

    @classmethod
    def parse(cls, text: str) -> "IngredientSet":
        return cls(text.split(",")) if text else cls()

    def update(self, names: Iterable[str]) -> list[str]:
        """Add names in place, returning the ones that were not present yet."""
        added = []
        for name in names:
            name = name.strip()
            if name and name not in self._names:
                self._names[name] = None
                added.append(name)
        return added

    def union(self, names: Iterable[str]) -> "IngredientSet":
        merged = IngredientSet(self._names)
        merged.update(names)
        return merged

    def to_text(self) -> str:
        return ", ".join(self._names)

    def as_list(self) -> list[str]:
        return list(self._names)

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IngredientSet):
            return NotImplemented
        return set(self._names) == set(other._names)

    def __repr__(self) -> str:
        return f"IngredientSet({self.as_list()!r})"


@dataclass
class RecipeSuggestion:
    """One entry of the suggestion list; image fields are filled in asynchronously."""

    name: str
    description: str
    image_url: Optional[str] = None
    image_loading: bool = False


def derive_image_hint(recipe_name: str) -> str:
    """First two words of the recipe name, lower-cased, used as an image search hint."""
    return " ".join(recipe_name.split()[:2]).lower()


@dataclass
class ActiveRecipe:
    """The recipe currently on display.

    A shell (name only, empty lists) is published as soon as generation starts
    and is replaced wholesale by the generated recipe.
    """

    name: str
    ingredients: List[str] = field(default_factory=list)
    instructions: List[str] = field(default_factory=list)
    nutrition: Optional[str] = None
    image_url: Optional[str] = None
    image_hint: Optional[str] = None

    @property
    def is_shell(self) -> bool:
        return not self.ingredients and not self.instructions

    @classmethod
    def shell(cls, name: str, image_url: Optional[str] = None) -> "ActiveRecipe":
        return cls(name=name, image_url=image_url)

    @classmethod
    def from_output(
        cls, output: GenerateRecipeOutput, name: str, image_url: Optional[str] = None
    ) -> "ActiveRecipe":
        """Build the final recipe, forcing the requested name onto the generated one."""
        return cls(
            name=name,
            ingredients=list(output.ingredients),
            instructions=list(output.instructions),
            nutrition=output.nutritional_information,
            image_url=image_url,
            image_hint=derive_image_hint(name),
        )

    def to_output(self) -> GenerateRecipeOutput:
        return GenerateRecipeOutput(
            recipe_name=self.name,
            ingredients=self.ingredients,
            instructions=self.instructions,
            nutritional_information=self.nutrition,
        )


@dataclass(frozen=True)
class Notice:
    """A transient user-facing message (the presentation layer renders it as a toast)."""

    title: str
    description: str = ""
    level: str = "info"  # "info" or "error"


NoticeSink = Callable[[Notice], None]


def log_notice(notice: Notice) -> None:
    """Default notice sink: write the notice to the application log."""
    message = f"{notice.title}: {notice.description}" if notice.description else notice.title
    if notice.level == "error":
        logger.warning(message)
    else:
        logger.info(message)
