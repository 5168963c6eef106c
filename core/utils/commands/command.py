import argparse


class Command:
    """
    Base for operational commands run through ``scripts.py``. Subclasses set
    ``help``, declare arguments and implement the async ``handle``.
    """

    help = ""

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        pass

    async def handle(self, **options):
        raise NotImplementedError("Commands must implement handle()")
