"""
Command line entry point for the labirint book parser.
"""

import argparse
import sys
from typing import List, Optional

from config import ConfigManager, SystemConfig, load_book_ids, parse_duration
from labirint_parser.concurrent import RunCoordinator, RunResult, build_requests
from labirint_parser.crawlers import BookFetcher, ExtractionSettings, HTTPClient, PolitenessThrottle, RequestProfile
from labirint_parser.data.exporters import CSVResultWriter, JSONResultWriter, XLSXResultWriter
from labirint_parser.utils.errors import ConfigurationError, ValidationError, handle_error
from labirint_parser.utils.logging import get_logger, log_business_operation, setup_logging


class BookParserApp:
    """Wires configuration, fetcher, coordinator and sinks for one run."""

    def __init__(self, config: SystemConfig):
        self.config = config
        self.logger = get_logger(__name__)

    def build_fetcher(self) -> BookFetcher:
        parser_cfg = self.config.parser
        profile_cfg = self.config.request_profile

        profile = RequestProfile.from_settings(
            user_agent=profile_cfg.user_agent,
            referer=profile_cfg.referer,
            cookies=profile_cfg.cookies,
            cookie_domain=profile_cfg.cookie_domain,
            timeout=parser_cfg.request_timeout,
            pool_size=parser_cfg.parallel
        )
        client = HTTPClient(profile=profile, throttle=PolitenessThrottle(parser_cfg.delay))
        settings = ExtractionSettings(
            parse_images=parser_cfg.parse_images,
            image_base_url=parser_cfg.image_base_url
        )
        return BookFetcher(client=client, settings=settings)

    def build_sinks(self) -> List:
        output_file = self.config.parser.output_file
        return [JSONResultWriter(output_file), XLSXResultWriter(output_file), CSVResultWriter(output_file)]

    @log_business_operation("parse_books")
    def run(self) -> RunResult:
        """
        Load identifiers and run the harvest.

        Raises:
            ConfigurationError: If the identifier list cannot be loaded
        """
        parser_cfg = self.config.parser

        book_ids = load_book_ids(parser_cfg.books_ids_file)
        self.logger.info("Loaded books IDs", count=len(book_ids))

        try:
            requests = build_requests(book_ids, parser_cfg.base_url)
        except ValidationError as e:
            raise ConfigurationError(e.message, e.details)

        coordinator = RunCoordinator(
            fetch=self.build_fetcher(),
            concurrency=parser_cfg.parallel,
            sinks=self.build_sinks()
        )
        return coordinator.run(requests)


def create_cli_parser() -> argparse.ArgumentParser:
    """Create command line argument parser."""
    parser = argparse.ArgumentParser(
        description="Labirint book parser - fetch book pages concurrently and export records",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                 # Run with config.json
  %(prog)s --config prod.json --parallel 8
  %(prog)s --ids-file ids.json --no-images --output out/books.json
        """
    )

    parser.add_argument(
        "--config",
        default="config.json",
        help="Path to configuration file (default: config.json)"
    )
    parser.add_argument("--ids-file", help="Override parser.books_ids_file")
    parser.add_argument("--parallel", type=int, help="Override parser.parallel")
    parser.add_argument("--delay", help="Override parser.delay (e.g. 1.5, 500ms, 2s)")
    parser.add_argument("--output", help="Override parser.output_file")

    images_group = parser.add_mutually_exclusive_group()
    images_group.add_argument("--images", dest="parse_images", action="store_true", default=None,
                              help="Collect image links")
    images_group.add_argument("--no-images", dest="parse_images", action="store_false",
                              help="Do not collect image links")
    parser.set_defaults(parse_images=None)

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override logger.level"
    )
    return parser


def apply_cli_overrides(config: SystemConfig, args: argparse.Namespace) -> SystemConfig:
    """
    Apply command line overrides to a loaded configuration.

    Raises:
        ConfigurationError: If an override is invalid
    """
    if args.ids_file:
        config.parser.books_ids_file = args.ids_file
    if args.parallel is not None:
        if args.parallel < 1:
            raise ConfigurationError("--parallel must be at least 1", {"value": args.parallel})
        config.parser.parallel = args.parallel
    if args.delay is not None:
        config.parser.delay = parse_duration(args.delay)
    if args.output:
        config.parser.output_file = args.output
    if args.parse_images is not None:
        config.parser.parse_images = args.parse_images
    if args.log_level:
        config.logger.level = args.log_level
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point. Returns the process exit status."""
    args = create_cli_parser().parse_args(argv)

    try:
        config = apply_cli_overrides(ConfigManager(args.config).load_config(), args)
    except ConfigurationError as e:
        setup_logging()
        get_logger(__name__).error("Error loading config", error=e.message, details=e.details)
        return 1

    setup_logging(
        log_level=config.logger.level,
        log_format=config.logger.format,
        log_file=config.logger.file
    )
    logger = get_logger(__name__)

    try:
        BookParserApp(config).run()
    except ConfigurationError as e:
        handle_error(e, logger, {"stage": "load_book_ids"}, reraise=False)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
