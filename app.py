import logging

from fastapi.responses import HTMLResponse

from apps.settings import settings
from core.fastapi.app import create_app

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


async def on_startup():
    logger.info("Application Starting Up ...")


app = create_app(apps_dir="apps", on_startup=on_startup)


@app.get("/api/ping", summary="Ping the API", tags=["Health Check"])
def root():
    return HTMLResponse(content="<html><h1>visitgate is up.</h1></html>")
