"""
This module provides the Modules class, which prepares the external tools the
burner depends on (FFmpeg and ffprobe) before a queue starts.
"""
import shutil

from loguru import logger

from ..config.common import MODULE_PATH, MODULE_UPDATE_PATH
from .ffmpeg_utils import detect_gpu_encoder, find_executable, run_cmd

REQUIRED_TOOLS = ("ffmpeg", "ffprobe")


class Modules:
    """
    Startup checks and drop-in updates for FFmpeg.

    Paths come from `config.user.yaml` (`paths.ffmpeg_dir` and
    `paths.module_update_dir`); without them the system PATH is used.
    """

    @staticmethod
    def update():
        """
        Moves everything found in `module_update_dir` into `ffmpeg_dir`.

        Existing files are replaced, existing directories are removed first so
        they are not merged. Skipped when no update directory is configured.
        """
        if not MODULE_UPDATE_PATH:
            logger.debug("`module_update_dir` not configured in user config. Skipping module update check.")
            return

        if not MODULE_PATH:
            logger.error(f"Cannot perform update: '{MODULE_UPDATE_PATH}' is set, but the destination `ffmpeg_dir` is not.")
            return

        if not MODULE_UPDATE_PATH.is_dir():
            logger.warning(f"Configured module update directory '{MODULE_UPDATE_PATH}' does not exist. Skipping update.")
            return

        update_items = list(MODULE_UPDATE_PATH.glob("*"))
        if not update_items:
            logger.debug("No files found in module update directory. Nothing to do.")
            return

        logger.info(f"Updating modules from '{MODULE_UPDATE_PATH}' to '{MODULE_PATH}'...")
        MODULE_PATH.mkdir(parents=True, exist_ok=True)
        for update_item_path in update_items:
            destination_path = MODULE_PATH / update_item_path.name
            try:
                if destination_path.is_dir() and update_item_path.is_dir():
                    shutil.rmtree(destination_path)
                elif destination_path.is_file():
                    destination_path.unlink()
                shutil.move(str(update_item_path), str(destination_path))
                logger.info(f"Moved '{update_item_path.name}' to '{destination_path}'")
            except OSError as e:
                logger.error(f"Failed to move '{update_item_path.name}' to '{destination_path}': {e}")

    @staticmethod
    def verify_tool(name: str) -> bool:
        """
        Runs `<name> -version` and logs the first line of its output.

        Returns:
            True if the tool ran successfully.
        """
        cmd = find_executable(name)
        result = run_cmd([cmd, "-version"], timeout=10)
        if result is None:
            logger.error(
                f"{name} could not be run. Install FFmpeg and add it to your PATH, "
                f"or set `paths.ffmpeg_dir` in 'config.user.yaml'."
            )
            return False
        if result.returncode != 0:
            logger.error(f"{name} -version failed (return code {result.returncode}):\n{result.stderr}")
            return False

        first_line = (result.stdout or "").splitlines()[:1]
        logger.info(f"{name} found: {first_line[0] if first_line else cmd}")
        return True

    @staticmethod
    def verify_ffmpeg() -> bool:
        return all([Modules.verify_tool(name) for name in REQUIRED_TOOLS])

    @staticmethod
    def report_gpu():
        available, description = detect_gpu_encoder()
        if available:
            logger.info(f"GPU encoding available: {description}")
        else:
            logger.info(f"GPU encoding unavailable: {description}")
        return available, description

    @staticmethod
    def run_all() -> bool:
        """Runs the update step, then the tool checks. Returns False when a tool is missing."""
        Modules.update()
        return Modules.verify_ffmpeg()
