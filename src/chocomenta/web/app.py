import random
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from loguru import logger

from chocomenta import __version__
from chocomenta.core.config import Config, load_config
from chocomenta.domain.providers import build_resolver
from chocomenta.domain.providers.resolver import ContentResolver
from chocomenta.domain.radio.announcements import AnnouncementBook
from chocomenta.domain.radio.autoplay import AutoplayEngine
from chocomenta.domain.radio.controller import RadioController
from chocomenta.domain.radio.sessions import SessionRegistry

from .gateway import BroadcastGateway
from .routers import live, search


def create_app(
    config: Optional[Config] = None,
    resolver: Optional[ContentResolver] = None,
    rng: Optional[random.Random] = None,
) -> FastAPI:
    """Build the FastAPI app with one shared radio controller.

    Args:
        config: Loaded configuration (default: load_config())
        resolver: Content resolver (default: YouTube/Spotify API resolver)
        rng: Random source for colors and autoplay picks
    """
    config = config or load_config()
    resolver = resolver or build_resolver(config)

    app = FastAPI(title="Chocomenta Radio", version=__version__)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    gateway = BroadcastGateway()
    autoplay = (
        AutoplayEngine(resolver, candidate_count=config.autoplay.candidate_count, rng=rng)
        if config.autoplay.enabled
        else None
    )
    controller = RadioController(
        gateway,
        resolver,
        autoplay=autoplay,
        sessions=SessionRegistry(config.chat.colors, rng=rng),
        system_sender=config.chat.system_sender,
        system_color=config.chat.system_color,
    )

    app.state.config = config
    app.state.gateway = gateway
    app.state.resolver = resolver
    app.state.controller = controller
    app.state.announcements = AnnouncementBook.from_file(Path(config.announcements.path))

    app.include_router(live.router, tags=["live"])
    app.include_router(search.router, tags=["search"])

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "sessions": controller.sessions.count}

    static_dir = Path(config.server.static_dir)
    if static_dir.is_dir():
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")
        logger.info(f"Serving client from {static_dir.resolve()}")

    return app
