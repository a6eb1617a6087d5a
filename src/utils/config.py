"""Configuration management for Culinary Canvas.

Loads environment variables from system environment and .env file.
Priority order: system environment > .env file > hardcoded defaults
"""

import os

from dotenv import load_dotenv


# Load .env file (if exists, silently continues if missing)
load_dotenv()


def _as_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self) -> None:
        """Initialize configuration from environment variables."""
        self.GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
        # Text Model: recipe suggestions, full recipes and chef answers
        # Default: gemini-2.5-flash (fast, structured JSON output)
        self.TEXT_MODEL: str = os.getenv("TEXT_MODEL", "gemini-2.5-flash")
        # Vision Model: ingredient detection from captured frames
        self.VISION_MODEL: str = os.getenv("VISION_MODEL", "gemini-2.5-flash")
        # Image Model: must support the IMAGE response modality
        self.IMAGE_MODEL: str = os.getenv("IMAGE_MODEL", "gemini-2.0-flash-preview-image-generation")
        # Text-to-speech model and prebuilt voice name
        self.TTS_MODEL: str = os.getenv("TTS_MODEL", "gemini-2.5-flash-preview-tts")
        self.TTS_VOICE: str = os.getenv("TTS_VOICE", "Algenib")
        # LLM Model Parameters
        # Temperature: 0.7 keeps suggestions varied while recipes stay coherent
        self.TEMPERATURE: float = float(os.getenv("TEMPERATURE", "0.7"))
        # Max Output Tokens: 2048 is sufficient for a full recipe with instructions
        self.MAX_OUTPUT_TOKENS: int = int(os.getenv("MAX_OUTPUT_TOKENS", "2048"))
        # Maximum image size (in MB) accepted for ingredient detection. Default: 5 MB
        self.MAX_IMAGE_SIZE_MB: int = int(os.getenv("MAX_IMAGE_SIZE_MB", "5"))
        # Image Compression: recompress captured frames before the vision call
        self.COMPRESS_IMG: bool = _as_bool(os.getenv("COMPRESS_IMG", "true"))
        # Image Compression Threshold: images smaller than this (in KB) are sent as-is
        self.COMPRESS_IMG_THRESHOLD_KB: int = int(os.getenv("COMPRESS_IMG_THRESHOLD_KB", "300"))
        # JPEG quality (1-95) used when encoding a captured camera frame
        self.CAPTURE_JPEG_QUALITY: int = int(os.getenv("CAPTURE_JPEG_QUALITY", "92"))
        # Upper bound on suggestions kept from one suggestion pass (model is asked for 5-10)
        self.MAX_SUGGESTIONS: int = int(os.getenv("MAX_SUGGESTIONS", "10"))
        # Image Generation: disable to skip every dish image call
        self.ENABLE_IMAGE_GENERATION: bool = _as_bool(os.getenv("ENABLE_IMAGE_GENERATION", "true"))
        # Suggestion image mode: "background" or "eager"
        # "background": suggestions are published first, images fill in per item
        # "eager": images are generated inside the suggestion call before it returns
        self.SUGGESTION_IMAGE_MODE: str = os.getenv("SUGGESTION_IMAGE_MODE", "background")
        # Recipe image source: "generate" or "suggestion"
        # "generate": a fresh image is requested alongside the full recipe
        # "suggestion": the image of the originating suggestion is carried over
        self.RECIPE_IMAGE_SOURCE: str = os.getenv("RECIPE_IMAGE_SOURCE", "generate")

    def is_gemini_configured(self) -> bool:
        """Return True when a Gemini API key is available."""
        return bool(self.GEMINI_API_KEY)

    def validate(self) -> None:
        """Validate configuration values.

        The API key is not required here so the package can be imported (and
        tested) without credentials; generation calls fail with a
        GenerationError instead.

        Raises:
            ValueError: If a value is out of range or not one of the allowed options.
        """
        if self.SUGGESTION_IMAGE_MODE not in ("background", "eager"):
            raise ValueError(
                f"SUGGESTION_IMAGE_MODE must be 'background' or 'eager', got: {self.SUGGESTION_IMAGE_MODE}"
            )
        if self.RECIPE_IMAGE_SOURCE not in ("generate", "suggestion"):
            raise ValueError(
                f"RECIPE_IMAGE_SOURCE must be 'generate' or 'suggestion', got: {self.RECIPE_IMAGE_SOURCE}"
            )
        if not (0.0 <= self.TEMPERATURE <= 2.0):
            raise ValueError(
                f"TEMPERATURE must be between 0.0 and 2.0, got: {self.TEMPERATURE}"
            )
        if self.MAX_OUTPUT_TOKENS < 512:
            raise ValueError(
                f"MAX_OUTPUT_TOKENS must be at least 512, got: {self.MAX_OUTPUT_TOKENS}"
            )
        if self.MAX_IMAGE_SIZE_MB < 1:
            raise ValueError(
                f"MAX_IMAGE_SIZE_MB must be at least 1, got: {self.MAX_IMAGE_SIZE_MB}"
            )
        if not (1 <= self.CAPTURE_JPEG_QUALITY <= 95):
            raise ValueError(
                f"CAPTURE_JPEG_QUALITY must be between 1 and 95, got: {self.CAPTURE_JPEG_QUALITY}"
            )
        if self.MAX_SUGGESTIONS < 1:
            raise ValueError(
                f"MAX_SUGGESTIONS must be at least 1, got: {self.MAX_SUGGESTIONS}"
            )


# Create module-level config instance and validate immediately
config = Config()
config.validate()
