import importlib
import os
from pathlib import Path

_ENV_LOADED = False


def _load_env() -> None:
    global _ENV_LOADED
    if _ENV_LOADED:
        return
    try:
        dotenv = importlib.import_module("dotenv")
    except Exception as exc:  # pragma: no cover
        raise SystemExit("python-dotenv is required (pip install -e .)") from exc
    env_path = Path(__file__).resolve().parents[1] / ".env"
    dotenv.load_dotenv(dotenv_path=env_path)
    _ENV_LOADED = True


def get_env(
    name: str, default: str | None = None, required: bool = False
) -> str | None:
    _load_env()
    value = os.environ.get(name, default)
    if required and (value is None or value == ""):
        raise SystemExit(f"{name} env var is required")
    return value


DEFAULT_SYMBOL = get_env("ORDERBOOK_SYMBOL", "BTCUSDT") or "BTCUSDT"
DEFAULT_DEPTH = int(get_env("ORDERBOOK_DEPTH", "100") or "100")
DEFAULT_TARGET_AMOUNT = get_env("TARGET_AMOUNT", "0.001") or "0.001"
DEFAULT_VENUES = [
    venue.strip()
    for venue in (get_env("ORDERBOOK_VENUES", "binance,btcturk") or "").split(",")
    if venue.strip()
]

REQUEST_TIMEOUT_SECONDS = float(get_env("ORDERBOOK_TIMEOUT_SECONDS", "5") or "5")
MAX_RETRIES = int(get_env("ORDERBOOK_MAX_RETRIES", "2") or "2")
BACKOFF_BASE = float(get_env("ORDERBOOK_BACKOFF_BASE", "0.5") or "0.5")

VENUE_ENDPOINTS = {
    "binance": {
        "url": get_env("BINANCE_DEPTH_URL", "https://www.binance.com/api/v1/depth"),
        "symbol_param": "symbol",
        "limit_param": "limit",
        "payload_key": None,
    },
    "btcturk": {
        "url": get_env(
            "BTCTURK_DEPTH_URL", "https://api.btcturk.com/api/v2/orderbook"
        ),
        "symbol_param": "pairSymbol",
        "limit_param": "limit",
        "payload_key": "data",
    },
}


def ccxt_config(exchange_id: str) -> dict:
    """Public-data ccxt settings; API keys are optional for depth snapshots."""
    prefix = exchange_id.upper()
    config = {
        "timeout": int(REQUEST_TIMEOUT_SECONDS * 1000),
        "enableRateLimit": True,
        "options": {"defaultType": "spot"},
        "max_retries": MAX_RETRIES,
        "backoff_base": BACKOFF_BASE,
    }
    api_key = get_env(f"{prefix}_API_KEY")
    secret = get_env(f"{prefix}_SECRET")
    if api_key:
        config["apiKey"] = api_key
    if secret:
        config["secret"] = secret
    return config
