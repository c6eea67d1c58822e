from contextlib import asynccontextmanager

from fastapi import FastAPI

from cartera_cli.config import ConfigError, load_config
from cartera_cli.util import configure_logging

from .routes_api import router as api_router


def _setup_logging() -> None:
    try:
        configure_logging(load_config().log_level)
    except ConfigError:
        configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    _setup_logging()
    yield


app = FastAPI(title="Cartera Portfolio API", lifespan=lifespan)
app.include_router(api_router)
