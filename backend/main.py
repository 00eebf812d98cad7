import os
import time
from pathlib import Path

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv
from loguru import logger
try:
    from backend.app.config import DEFAULT_CHANNEL_CONFIG_FILE, load_channel_config
    from backend.app.services.channel_ranker import rank_channels
    from backend.app.services.live_status import fetch_live_channels
    from backend.app.services.twitch_auth import AuthError, TwitchTokenCache
except ModuleNotFoundError:
    from app.config import DEFAULT_CHANNEL_CONFIG_FILE, load_channel_config
    from app.services.channel_ranker import rank_channels
    from app.services.live_status import fetch_live_channels
    from app.services.twitch_auth import AuthError, TwitchTokenCache


# ---------------------------
# App setup
# ---------------------------

load_dotenv()

TWITCH_CLIENT_ID = os.getenv("TWITCH_CLIENT_ID")
TWITCH_CLIENT_SECRET = os.getenv("TWITCH_CLIENT_SECRET")
TWITCH_HTTP_TIMEOUT_SECONDS = float(os.getenv("TWITCH_HTTP_TIMEOUT_SECONDS") or 10)
TWITCH_TOKEN_EXPIRY_MARGIN_SECONDS = int(os.getenv("TWITCH_TOKEN_EXPIRY_MARGIN_SECONDS") or 60)
CHANNEL_CONFIG_FILE = Path(os.getenv("CHANNEL_CONFIG_FILE") or DEFAULT_CHANNEL_CONFIG_FILE)
PORT = int(os.getenv("PORT") or 3000)

if not TWITCH_CLIENT_ID or not TWITCH_CLIENT_SECRET:
    logger.warning("TWITCH_CLIENT_ID / TWITCH_CLIENT_SECRET not set; /live-order will report auth failures")

CHANNEL_CONFIG = load_channel_config(CHANNEL_CONFIG_FILE)
TOKEN_CACHE = TwitchTokenCache(
    TWITCH_CLIENT_ID,
    TWITCH_CLIENT_SECRET,
    timeout=TWITCH_HTTP_TIMEOUT_SECONDS,
    expiry_margin=TWITCH_TOKEN_EXPIRY_MARGIN_SECONDS,
)


def parse_cors_origins() -> tuple[list[str], bool]:
    raw = (os.getenv("CORS_ALLOWED_ORIGINS") or "").strip()
    if not raw or raw == "*":
        return ["*"], False
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    if not origins:
        return ["*"], False
    return origins, True

app = FastAPI()

cors_origins, cors_credentials = parse_cors_origins()

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=cors_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


def fallback_payload(error: str, detail: str | None) -> dict:
    payload = {
        "error": error,
        "ordered": list(CHANNEL_CONFIG.roster),
        "live": [],
    }
    if detail:
        payload["detail"] = detail
    return payload


@app.get("/", response_class=PlainTextResponse)
def root():
    return "Twitch live order API running"


@app.get("/health")
def health():
    return {"ok": True}


@app.get("/live-order")
def live_order():
    """
    Live channels first (pinned, prioritised, boosted), offline after in roster order.
    Upstream data problems degrade to "nobody live"; auth problems return 502.
    """
    config = CHANNEL_CONFIG
    try:
        live_set = fetch_live_channels(config.roster, TOKEN_CACHE, timeout=TWITCH_HTTP_TIMEOUT_SECONDS)
        ordered = rank_channels(
            config.roster,
            live_set,
            pin_rules=config.pin_rules,
            boost_rules=config.boost_pairs(),
            priority=config.priority,
        )
    except AuthError as exc:
        logger.error("Twitch auth failed: {} ({})", exc, exc.detail)
        return JSONResponse(
            status_code=502,
            content=fallback_payload("twitch_auth_failed", exc.detail or str(exc)),
        )
    except Exception as exc:
        logger.exception("Live order computation failed")
        return JSONResponse(
            status_code=500,
            content=fallback_payload("live_order_failed", str(exc)),
        )

    live = [ch for ch in ordered if ch.lower() in live_set]
    return {
        "ordered": ordered,
        "live": live,
        "countLive": len(live),
        "timestamp": int(time.time() * 1000),
    }


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=PORT)
