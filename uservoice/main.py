# File: uservoice/main.py
# Project: user-voice-backend

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from slowapi import _rate_limit_exceeded_handler

from uservoice.core.config import cors_origins_list, settings
from uservoice.core.errors import register_exception_handlers
from uservoice.core.ratelimit import limiter
from uservoice.db.init_db import init_db
from uservoice.routers import auth, requests, votes, comments, users, roadmap, form_config
from uservoice.routers import projects, feature_flags, super_admin, push_subscriptions

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("uservoice")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db(create_tables=settings.auto_create_tables)
    logger.info("User Voice API started")
    yield


app = FastAPI(title="User Voice API", lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins_list(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/api/health")
def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

app.include_router(auth.router)
app.include_router(requests.router)
app.include_router(votes.router)
app.include_router(comments.router)
app.include_router(users.router)
app.include_router(roadmap.router)
app.include_router(form_config.router)
app.include_router(projects.router)
app.include_router(feature_flags.router)
app.include_router(super_admin.router)
app.include_router(push_subscriptions.router)
