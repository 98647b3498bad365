import logging
import logfire
import uvicorn

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from policy_review.core.config import settings
from policy_review.core.db import engine
from policy_review.core.lifespan import create_tables, load_sample_data
from policy_review.api.router import router


logging.basicConfig(level=getattr(logging, settings.log_level), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"starting {settings.app_name} v{settings.app_version} environment={settings.environment}")
    await create_tables()
    await load_sample_data()
    yield
    await engine.dispose()


def create_app() -> FastAPI:
    """build the policy review API with middleware, routes, and (optional) logfire instrumentation"""

    app = FastAPI(
        title=settings.app_name,
        description=settings.app_description,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_credentials,
        allow_methods=settings.cors_methods,
        allow_headers=settings.cors_headers,
    )
    app.include_router(router)

    if settings.logfire_enabled:
        logfire.configure(token=settings.logfire_token, service_name="policy-review", environment=settings.environment, send_to_logfire="if-token-present")
        logfire.instrument_fastapi(app)
        logfire.instrument_openai()

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("policy_review.main:app", host=settings.host, port=settings.port, reload=settings.reload)
