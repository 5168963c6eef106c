import argparse
import asyncio
import importlib.util
import inspect
import logging
from pathlib import Path
from typing import List, Optional, Type

from core.utils.commands.command import Command

logger = logging.getLogger(__name__)


class ScriptRunner:
    """Finds ``<commands_folder>/<name>.py`` and runs the Command it defines."""

    def __init__(self, commands_folder: str = "scripts"):
        self.commands_folder = commands_folder

    def load(self, command_name: str) -> Type[Command]:
        # Loaded by path: scripts.py at the root shadows a scripts package
        path = Path(self.commands_folder) / f"{command_name}.py"
        if not path.exists():
            raise LookupError(f"Unknown command '{command_name}' ({path})")
        module_name = f"{self.commands_folder}_{command_name}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)

        for _, obj in inspect.getmembers(module, inspect.isclass):
            if issubclass(obj, Command) and obj.__module__ == module_name:
                return obj
        raise LookupError(f"No Command subclass in {path}")

    def run(self, command_name: str, argv: Optional[List[str]] = None):
        command_class = self.load(command_name)
        command = command_class()

        parser = argparse.ArgumentParser(
            prog=f"scripts.py {command_name}", description=command.help
        )
        command.add_arguments(parser)
        options = vars(parser.parse_args(argv or []))

        logger.info(f"Running {command_name} with {options}")
        return asyncio.run(command.handle(**options))
