"""
Main entry point for the subtitle burner.

This script checks the external tools, parses command-line arguments and runs
the batch pipeline that queues and burns every video/subtitle pair found.
"""

import sys

from loguru import logger

from subburner.cli import get_args
from subburner.config.common import LOGGER_FORMAT
from subburner.pipeline.batch_pipeline import BatchBurnPipeline
from subburner.utils.module_updater import Modules


# Initial logger setup; the level is replaced once the arguments are parsed.
logger.remove()
logger.add(sys.stderr, level="INFO", format=LOGGER_FORMAT)


def main() -> int:
    """
    1. Parses command-line arguments and configures the logger level.
    2. Applies drop-in FFmpeg updates and verifies FFmpeg / ffprobe.
    3. Runs the batch pipeline.

    Returns:
        The process exit code.
    """
    args = get_args()

    logger.remove()
    logger.add(sys.stderr, level=args.log_level, format=LOGGER_FORMAT)
    logger.debug(f"Parsed arguments: {args}")

    if not Modules.run_all():
        logger.error("FFmpeg tools are not available; nothing can be burned.")
        return 1

    if args.check_gpu:
        available, _ = Modules.report_gpu()
        return 0 if available else 1

    pipeline = BatchBurnPipeline(args)
    ok = pipeline.run()

    if ok:
        logger.success("Subtitle burning finished.")
    else:
        logger.warning("Subtitle burning finished with failures or nothing to do.")
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
