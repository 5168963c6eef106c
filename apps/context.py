# apps/context.py
from contextvars import ContextVar
from typing import Optional

current_principal_ctx: ContextVar[Optional[str]] = ContextVar(
    "current_principal", default=None
)


def set_current_principal(username: str):
    current_principal_ctx.set(username)


def get_current_principal() -> Optional[str]:
    return current_principal_ctx.get()
