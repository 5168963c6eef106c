import importlib
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Awaitable, Callable, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from starlette.middleware.cors import CORSMiddleware

from apps.settings import settings
from core.exceptions.base import AbstractException
from core.notifications.firebase_cloud_messaging.core import FirebaseCloudMessagingCore
from core.notifications.firebase_cloud_messaging.exceptions import (
    FirebaseConfigurationError,
)
from core.notifications.onesignal.client import OneSignalClient

logger = logging.getLogger(__name__)


def discover_modules(apps_dir: str, module_name: str) -> list:
    """Import ``<apps_dir>/api/<feature>/<module_name>.py`` for every feature."""
    modules = []
    package = importlib.import_module(f"{apps_dir}.api")
    api_dir = Path(next(iter(package.__path__)))
    for feature in sorted(p for p in api_dir.iterdir() if p.is_dir()):
        if (feature / f"{module_name}.py").exists():
            modules.append(
                importlib.import_module(f"{apps_dir}.api.{feature.name}.{module_name}")
            )
    return modules


def build_push_gateway() -> Optional[FirebaseCloudMessagingCore]:
    """The FCM gateway, or None when push is off or not configured."""
    if not settings.PUSH_ENABLED:
        logger.info("Push notifications disabled")
        return None
    try:
        return FirebaseCloudMessagingCore.from_credentials(
            service_account_path=settings.FIREBASE_SERVICE_ACCOUNT_PATH,
            service_account_json=settings.FIREBASE_SERVICE_ACCOUNT_JSON,
        )
    except FirebaseConfigurationError as e:
        logger.warning(f"Push notifications unavailable: {e.error_message}")
        return None


def build_onesignal_client() -> Optional[OneSignalClient]:
    if not settings.onesignal_configured:
        return None
    return OneSignalClient(
        app_id=settings.ONESIGNAL_APP_ID,
        api_key=settings.ONESIGNAL_REST_API_KEY,
        base_url=settings.ONESIGNAL_API_URL,
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AbstractException)
    async def handle_app_exception(request: Request, exc: AbstractException):
        return ORJSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return ORJSONResponse(
            status_code=422,
            content={
                "message": "Invalid request data",
                "error_code": "VALIDATION_ERROR",
                "details": jsonable_encoder(exc.errors()),
            },
        )


def create_app(
    apps_dir: str = "apps",
    on_startup: Optional[Callable[[], Awaitable[None]]] = None,
) -> FastAPI:
    # Every model has to be mapped before the first query configures mappers
    discover_modules(apps_dir, "models")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.push_gateway = build_push_gateway()
        app.state.onesignal_client = build_onesignal_client()
        if on_startup is not None:
            await on_startup()
        yield
        logger.info("Application shutting down")

    app = FastAPI(
        title="visitgate",
        debug=settings.DEBUG,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    for module in discover_modules(apps_dir, "router"):
        router = getattr(module, "router", None)
        if router is not None:
            app.include_router(router)
    return app
