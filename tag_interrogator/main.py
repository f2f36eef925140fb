"""
Command line entry point for the tag interrogator.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from .config import settings
from .display import apply_display_settings, format_tag_string
from .errors import ConfigurationError, InterrogatorError
from .logging import setup_logging, get_logger
from .models import BackendType, InterrogationResult, StageStatus, TagCategory, TaggingSettings
from .processor import ImageInterrogator


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Tag Interrogator - Danbooru tags and descriptions for images"
    )

    parser.add_argument(
        "image",
        nargs="?",
        help="Path to the image to interrogate"
    )

    parser.add_argument(
        "--backend",
        choices=[backend.value for backend in BackendType],
        help="Backend to use (default: BACKEND_TYPE from the environment)"
    )

    parser.add_argument("--tagger-endpoint", help="Override TAGGER_ENDPOINT")
    parser.add_argument("--ollama-endpoint", help="Override OLLAMA_ENDPOINT")
    parser.add_argument("--ollama-model", help="Override OLLAMA_MODEL")
    parser.add_argument("--gemini-api-key", help="Override GEMINI_API_KEY")

    parser.add_argument(
        "--no-description",
        action="store_true",
        help="Skip the reasoning-model description stage"
    )

    parser.add_argument(
        "--caption",
        action="store_true",
        help="Generate an on-demand caption after tagging if none was produced"
    )

    parser.add_argument(
        "--threshold",
        type=float,
        help="Minimum score shown for every category"
    )

    parser.add_argument(
        "--top-k",
        type=int,
        default=50,
        help="Maximum number of tags shown (default: 50)"
    )

    parser.add_argument(
        "--remove-underscores",
        action="store_true",
        help="Print tag names with spaces instead of underscores"
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full result as JSON"
    )

    parser.add_argument(
        "--list-models",
        action="store_true",
        help="List models available on the Ollama server and exit"
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override LOG_LEVEL"
    )

    return parser.parse_args(argv)


def build_tagging_settings(args) -> TaggingSettings:
    """Display settings from the command line."""
    overrides = {}
    if args.threshold is not None:
        overrides["thresholds"] = {category: args.threshold for category in TagCategory}
    return TaggingSettings(top_k=args.top_k, remove_underscores=args.remove_underscores, **overrides)


def render_result(console: Console, result: InterrogationResult, tagging_settings: TaggingSettings) -> None:
    """Print the filtered tags, description and degraded stages."""
    tags = apply_display_settings(result, tagging_settings)

    table = Table(title=f"Tags ({len(tags)} of {len(result.tags)} shown)")
    table.add_column("Tag")
    table.add_column("Score", justify="right")
    table.add_column("Category")
    table.add_column("Source")
    for tag in tags:
        table.add_row(escape(tag.name), f"{tag.score:.2f}", tag.category.value, tag.source.value)
    console.print(table)

    console.print(format_tag_string(tags, tagging_settings.remove_underscores), markup=False)

    if result.natural_description:
        console.print()
        console.print(result.natural_description, markup=False)

    for report in result.stages:
        if report.status == StageStatus.FAILED:
            console.print(f"[yellow]⚠️  {report.stage} failed: {report.detail}[/yellow]")


async def run(args) -> int:
    """Run one CLI invocation."""
    logger = get_logger("main")
    console = Console()

    config = settings.to_backend_config(
        type=BackendType(args.backend) if args.backend else None,
        tagger_endpoint=args.tagger_endpoint,
        ollama_endpoint=args.ollama_endpoint,
        ollama_model=args.ollama_model,
        gemini_api_key=args.gemini_api_key,
        enable_natural_language=False if args.no_description else None,
    )

    async with ImageInterrogator(config) as interrogator:
        if args.list_models:
            models = await interrogator.list_models()
            if not models:
                logger.error(f"❌ No models found at {config.ollama_endpoint}")
                return 1
            for name in models:
                console.print(name)
            return 0

        if not args.image:
            logger.error("❌ No image given")
            return 2

        image_path = Path(args.image)
        if not image_path.is_file():
            logger.error(f"❌ Image not found: {image_path}")
            return 2
        image_data = image_path.read_bytes()

        result = await interrogator.interrogate(
            image_data,
            on_progress=lambda label, percent: logger.info(f"[{percent:3d}%] {label}"),
        )

        if args.caption and not result.natural_description:
            caption = await interrogator.generate_caption(image_data, result.tags)
            result = result.model_copy(update={"natural_description": caption or None})

        if args.json:
            print(json.dumps(result.model_dump(mode="json"), indent=2, ensure_ascii=False))
        else:
            render_result(console, result, build_tagging_settings(args))
        return 0


def main(argv=None):
    """Main entry point."""
    args = parse_arguments(argv)
    setup_logging(args.log_level)
    logger = get_logger("main")

    try:
        return asyncio.run(run(args))
    except ConfigurationError as e:
        logger.error(f"❌ Configuration error: {e}")
        return 2
    except InterrogatorError as e:
        logger.error(f"❌ Interrogation failed: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("⏹️  Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
