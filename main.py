import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from splittea.api.routes import router
from splittea.config import get_settings
from splittea.deps import get_repo, get_session_manager

settings = get_settings()

# Configure loguru
logger.remove()
logger.add(sys.stderr, level=settings.log_level, format="{time:HH:mm:ss} | {level:<7} | {message}")


async def start_bot():
    """Start polling Telegram, or return None when no token is configured."""
    if not settings.telegram_bot_token:
        logger.warning("TELEGRAM_BOT_TOKEN not set — bot will not start")
        return None

    from splittea.bot.handler import build_bot_app, register_commands

    bot_app = build_bot_app()
    await bot_app.initialize()
    await register_commands(bot_app)
    await bot_app.start()
    await bot_app.updater.start_polling(drop_pending_updates=True)
    logger.info("Telegram bot started (polling)")
    return bot_app


async def stop_bot(bot_app) -> None:
    await bot_app.updater.stop()
    await bot_app.stop()
    await bot_app.shutdown()
    logger.info("Telegram bot stopped")


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.bot = await start_bot()
    try:
        yield
    finally:
        if app.state.bot is not None:
            await stop_bot(app.state.bot)
        # In-flight conversations are dropped before the ledger closes
        get_session_manager().close()
        get_repo().close()
        logger.info("Ledger closed")


app = FastAPI(title="Splittea", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info("{} {}", request.method, request.url.path)
    response: Response = await call_next(request)
    logger.info("→ {}", response.status_code)
    return response


app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
