"""Command line entry point for the unique code generator.

Loads configuration, applies command line overrides, then either generates
codes into the output file or starts the HTTP service.
"""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from uniqcodes.app import run_server
from uniqcodes.config import Config, ConfigError
from uniqcodes.errors import CodeGenerationError
from uniqcodes.pipeline import GenerationPipeline
from uniqcodes.renderer import OutputError, Renderer
from uniqcodes.sampler import UnbiasedSampler

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate unique random codes and save them to a file"
    )
    parser.add_argument(
        "--quantity",
        type=int,
        help="the quantity of codes that will be generated. E.g: --quantity 10000",
    )
    parser.add_argument(
        "--size", type=int, help="the size of each generated code. E.g: --size 10"
    )
    parser.add_argument(
        "--prefix", help="select a prefix to each generated code. E.g: --prefix PEPSI"
    )
    parser.add_argument(
        "--output", help="filename to save the codes. E.g: --output file.txt"
    )
    parser.add_argument("--namespace", help="namespace of the dedup keys")
    parser.add_argument(
        "--config",
        help="TOML config file (default: config.toml when present)",
    )
    parser.add_argument(
        "--serve", action="store_true", help="run the HTTP service instead"
    )
    return parser


def load_config(args: argparse.Namespace) -> Config:
    """Load configuration and apply command line overrides.

    Raises:
        ConfigError: If the resulting configuration is invalid
    """
    config_file = args.config
    if config_file is None and Path("config.toml").exists():
        config_file = "config.toml"

    config = Config.from_env_and_file(config_file)
    overrides = {
        name: getattr(args, name)
        for name in ("quantity", "size", "prefix", "output", "namespace")
        if getattr(args, name) is not None
    }
    if overrides:
        for name, value in overrides.items():
            setattr(config, name, value)
        config.validate()
        logger.info(f"Command line overrides applied: {config}")
    return config


def run(config: Config, renderer: Renderer) -> list[str]:
    """Generate codes per config and write them to config.output.

    Nothing is written unless generation succeeds completely.
    """
    start = time.monotonic()
    pipeline = GenerationPipeline(
        UnbiasedSampler(config.alphabet), max_threads=config.max_threads
    )
    codes = pipeline.run(config.size, config.quantity, config.prefix, config.namespace)
    renderer.write_codes(config.output, codes)
    logger.info(f"{time.monotonic() - start:.2f} seconds")
    return codes


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the application."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args)
        renderer = Renderer()

        if args.serve:
            run_server(config, renderer)
        else:
            run(config, renderer)

    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        logger.error("Please check your configuration and try again")
        return 1
    except CodeGenerationError as e:
        logger.error(f"Code generation failed: {e}")
        return 1
    except OutputError as e:
        logger.error(f"Output error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully...")
        return 0
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1

    return 0
