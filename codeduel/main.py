import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware

from codeduel import __version__
from codeduel.api.routes import auth, challenges, rooms
from codeduel.api.websocket.handlers import websocket_endpoint
from codeduel.battle.challenges import seed_defaults
from codeduel.battle.timer import BATTLE_DURATION_SECONDS
from codeduel.config import settings
from codeduel.core.metrics import MetricsMiddleware, get_metrics
from codeduel.db.database import async_session_factory, init_db
from codeduel.services.realtime import get_hub

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    await init_db()
    if settings.seed_on_startup:
        async with async_session_factory() as session:
            await seed_defaults(session)
            await session.commit()
    hub = get_hub()
    await hub.start()
    logger.info(f"CodeDuel Arena {__version__} started ({settings.environment})")
    yield
    await hub.stop()


app = FastAPI(
    title="CodeDuel Arena",
    description="Real-time competitive coding rooms",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.is_development else settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Error-Code"],
)

if settings.metrics_enabled:
    app.add_middleware(MetricsMiddleware)

# REST API routes
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(rooms.router, prefix="/api/rooms", tags=["rooms"])
app.include_router(challenges.router, prefix="/api/challenges", tags=["challenges"])

# Change feed
app.add_api_websocket_route("/api/realtime", websocket_endpoint)


@app.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    if not settings.metrics_enabled:
        return Response(status_code=404)
    body, content_type = await get_metrics()
    return Response(content=body, media_type=content_type)


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "healthy"}


@app.get("/")
async def root() -> dict[str, Any]:
    return {
        "name": "CodeDuel Arena",
        "tagline": "First correct solution wins",
        "version": __version__,
        "docs": "/docs",
        "battle": {
            "duration_seconds": BATTLE_DURATION_SECONDS,
            "max_participants": settings.max_room_participants,
            "language": settings.judge_language,
        },
        "endpoints": {
            "auth": "/api/auth",
            "rooms": "/api/rooms",
            "challenges": "/api/challenges",
            "realtime": "/api/realtime",
        },
    }
