from __future__ import annotations

import argparse
import json
import logging
import time

from app.config import load_config, setup_logging
from app.domain.exceptions import GrowLabError
from app.services.container import ServiceContainer

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Run the analytics background processor without any other surface."""
    parser = argparse.ArgumentParser(prog="growlab-scheduler")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--once",
        action="store_true",
        help="Process all active plants once, print a JSON summary and exit",
    )
    mode.add_argument(
        "--plant-id",
        type=int,
        default=None,
        help="Recompute analytics for a single plant and exit",
    )
    args = parser.parse_args(argv)

    config = load_config()
    setup_logging(debug=config.DEBUG, log_file=config.log_file)

    one_shot = args.once or args.plant_id is not None
    container = ServiceContainer.build(config, start_processor=not one_shot)
    processor = container.background_processor

    try:
        if args.once:
            print(json.dumps(processor.force_process_all_plants(), indent=2, default=str))
            return 0

        if args.plant_id is not None:
            try:
                record = processor.process_plant_immediately(args.plant_id)
            except GrowLabError as e:
                logger.error("Processing plant %s failed: %s", args.plant_id, e)
                print(json.dumps(e.to_dict(), indent=2, default=str))
                return 2
            print(json.dumps(record.to_dict(), indent=2, default=str))
            return 0

        logger.info("Scheduler running (press Ctrl+C to stop)")
        try:
            while processor.is_running:
                time.sleep(1)
        except KeyboardInterrupt:
            logger.info("Stopping scheduler...")
        return 0
    finally:
        container.shutdown()


if __name__ == "__main__":
    import sys

    raise SystemExit(main(sys.argv[1:]))
