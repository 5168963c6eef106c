import inspect
from typing import Any, Callable, Dict, Type, TypeVar

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.db.core import SessionDep

T = TypeVar("T", bound="AbstractService")


class AbstractService:
    """
    Base class for services that are injected into routes.

    Subclasses declare what they need in ``DEPENDENCIES``; each value is an
    ``Annotated[..., Depends(...)]`` alias, so services can depend on other
    services and FastAPI resolves the whole graph per request.
    """

    DEPENDENCIES: Dict[str, Any] = {"session": SessionDep}

    def __init__(self, session: AsyncSession, **kwargs):
        """
        Initialize the service with an AsyncSession.

        :param session: SQLAlchemy AsyncSession instance.
        """
        self.session = session

    @classmethod
    def _get_dependency_function(cls: Type[T]) -> Callable[..., T]:
        """
        Build a dependency callable whose signature lists every entry of
        ``DEPENDENCIES`` so FastAPI can inject them.
        """

        def dependency(**kwargs) -> T:
            return cls(**kwargs)

        dependency.__signature__ = inspect.Signature(
            [
                inspect.Parameter(
                    name,
                    inspect.Parameter.KEYWORD_ONLY,
                    annotation=annotation,
                )
                for name, annotation in cls.DEPENDENCIES.items()
            ]
        )
        dependency.__name__ = f"get_{cls.__name__}"
        return dependency

    @classmethod
    def get_dependency(cls: Type[T]) -> Any:
        """
        Returns a FastAPI dependency for this service.

        This can be used in route definitions to inject the service automatically.
        """
        return Depends(cls._get_dependency_function())
