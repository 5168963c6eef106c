# scripts.py
import logging
import sys
from pathlib import Path

from apps.settings import settings
from core.utils.commands.script_runner import ScriptRunner

COMMANDS_FOLDER = "scripts"


def available_commands():
    return sorted(
        path.stem
        for path in Path(COMMANDS_FOLDER).glob("*.py")
        if not path.stem.startswith("_")
    )


if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL)
    if len(sys.argv) < 2:
        print("Usage: python scripts.py <command> [options]")
        print("Commands: " + ", ".join(available_commands()))
        sys.exit(1)

    ScriptRunner(commands_folder=COMMANDS_FOLDER).run(sys.argv[1], sys.argv[2:])
