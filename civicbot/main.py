# File: civicbot/main.py
# Project: civic-report-bot

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from slowapi.errors import RateLimitExceeded
from slowapi import _rate_limit_exceeded_handler

from civicbot.bot.polling import LongPoller
from civicbot.bot.runtime import get_bot
from civicbot.cli import setup_logging
from civicbot.core.config import cors_origins_list, settings
from civicbot.core.errors import DeliveryError
from civicbot.core.ratelimit import limiter
from civicbot.routers import admin, public, telegram

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    bot = get_bot()
    poller = None
    try:
        if settings.use_webhook:
            bot.transport.set_webhook(settings.webhook_url)
            logger.info("webhook registered at %s", settings.webhook_url)
        else:
            # getUpdates is refused while a webhook is set
            bot.transport.delete_webhook()
            poller = LongPoller(bot.transport, bot.handle_update, workers=settings.polling_workers)
            poller.start()
    except DeliveryError as e:
        logger.error("telegram delivery setup failed: %s", e)
    yield
    if poller is not None:
        poller.stop()


app = FastAPI(title="Civic Report Bot API", lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins_list(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/health")
def health():
    return {"ok": True}

app.include_router(public.router)
app.include_router(admin.router)
app.include_router(telegram.router)
app.mount("/uploads", StaticFiles(directory=settings.uploads_dir, check_dir=False), name="uploads")
