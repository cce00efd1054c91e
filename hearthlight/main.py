"""Main FastAPI application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hearthlight import __version__
from hearthlight.api.endpoints import router
from hearthlight.context import AppContext, build_context
from hearthlight.settings import Settings
from hearthlight.utils.logging import LogConfig, setup_logging


def create_app(context: AppContext | None = None) -> FastAPI:
    """Create the API application.

    Args:
        context: Pre-built services (tests inject one); built from the environment otherwise

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if context is None:
            settings = Settings.from_env()
            setup_logging(LogConfig(level=settings.log_level))
            app.state.context = build_context(settings)
        else:
            app.state.context = context

        await app.state.context.startup()
        try:
            yield
        finally:
            await app.state.context.shutdown()

    app = FastAPI(
        title="Hearthlight Assistant",
        description=(
            "Conversational assistant for a productivity and journaling app that can create tasks, "
            "diary entries and goals and report on progress."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        openapi_tags=[
            {
                "name": "Conversation",
                "description": "Send messages to the assistant and manage conversation threads.",
            },
            {
                "name": "Tools",
                "description": "Tools the assistant can call.",
            },
            {
                "name": "Providers",
                "description": "Configured model providers and the active selection.",
            },
            {
                "name": "Health",
                "description": "Service health monitoring and status checks.",
            },
        ],
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("hearthlight.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
