"""
Configuration for the GRLKRASHai agent.
All values come from the environment (.env via python-dotenv) with sane defaults.
"""

import os
from pathlib import Path

from dotenv import load_dotenv


def load_env(path=".env"):
    """Load a .env file (overriding the process env) and refresh module settings."""
    env_path = Path(path).resolve()
    if not env_path.exists():
        return False
    load_dotenv(dotenv_path=env_path, override=True)
    _refresh()
    return True


def _bool(name, default="0"):
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


def _refresh():
    g = globals()

    # === CHAIN ===
    g["RPC_URL"] = os.getenv("RPC_URL", "https://sepolia.base.org")
    g["CHAIN_ID"] = int(os.getenv("CHAIN_ID", "84532"))  # Base Sepolia
    g["PRIVATE_KEY"] = os.getenv("PRIVATE_KEY")
    g["USE_LEDGER"] = _bool("USE_LEDGER")
    g["LEDGER_PATH"] = os.getenv("LEDGER_PATH", "44'/60'/0'/0/0")
    g["MORE_TOKEN_ADDRESS"] = os.getenv("MORE_TOKEN_ADDRESS")
    g["MEMORY_CRYSTAL_ADDRESS"] = os.getenv("MEMORY_CRYSTAL_ADDRESS")
    g["MORE_POOL_ADDRESS"] = os.getenv("MORE_POOL_ADDRESS")

    # === LLM ===
    g["OPENAI_API_KEY"] = os.getenv("OPENAI_API_KEY")
    g["OPENAI_MODEL"] = os.getenv("OPENAI_MODEL", "gpt-3.5-turbo")

    # === SOCIAL ===
    g["TWITTER_API_KEY"] = os.getenv("TWITTER_API_KEY")
    g["TWITTER_API_SECRET"] = os.getenv("TWITTER_API_SECRET")
    g["TWITTER_ACCESS_TOKEN"] = os.getenv("TWITTER_ACCESS_TOKEN")
    g["TWITTER_ACCESS_SECRET"] = os.getenv("TWITTER_ACCESS_SECRET")
    g["TWITTER_BEARER_TOKEN"] = os.getenv("TWITTER_BEARER_TOKEN")
    g["TELEGRAM_BOT_TOKEN"] = os.getenv("TELEGRAM_BOT_TOKEN")
    g["TELEGRAM_CHAT_ID"] = os.getenv("TELEGRAM_CHAT_ID")
    g["DISCORD_WEBHOOK_URL"] = os.getenv("DISCORD_WEBHOOK_URL")

    # === CONTENT / ANALYTICS ===
    g["IPFS_GATEWAYS"] = [
        gw.strip() for gw in os.getenv(
            "IPFS_GATEWAYS", "https://ipfs.io,https://cloudflare-ipfs.com,https://gateway.pinata.cloud"
        ).split(",") if gw.strip()
    ]
    g["DEXSCREENER_URL"] = os.getenv("DEXSCREENER_URL", "https://api.dexscreener.com/latest/dex/tokens")
    g["SPOTIFY_CLIENT_ID"] = os.getenv("SPOTIFY_CLIENT_ID")
    g["SPOTIFY_CLIENT_SECRET"] = os.getenv("SPOTIFY_CLIENT_SECRET")
    g["SPOTIFY_TRACK_ID"] = os.getenv("SPOTIFY_TRACK_ID")
    g["STREAM_COUNT_URL"] = os.getenv("STREAM_COUNT_URL")
    g["MEME_DIR"] = os.getenv("MEME_DIR", "assets/memes")

    # === RUNTIME ===
    g["AGENT_NAME"] = os.getenv("AGENT_NAME", "GRLKRASHai")
    g["BRAIN_DIR"] = os.getenv("BRAIN_DIR", "brain")
    g["LOG_DIR"] = os.getenv("LOG_DIR", "logs")
    g["CYCLE_INTERVAL_SECONDS"] = int(os.getenv("CYCLE_INTERVAL_SECONDS", "600"))
    g["MILESTONE_CHECK_SECONDS"] = int(os.getenv("MILESTONE_CHECK_SECONDS", "300"))
    g["STATUS_REPORT_EVERY"] = int(os.getenv("STATUS_REPORT_EVERY", "12"))

    # === API ===
    g["PORT"] = int(os.getenv("PORT", "3002"))
    g["ADMIN_KEY"] = os.getenv("ADMIN_KEY")
    g["TOKEN_SECRET"] = os.getenv("TOKEN_SECRET")
    g["TOKEN_LOCATION"] = os.getenv("TOKEN_LOCATION", "grlkrash-agent")
    g["ALLOWED_ORIGINS"] = os.getenv("ALLOWED_ORIGINS", "*").split(",")


_refresh()


# Rate limits per platform:action (hourly / daily)
PLATFORM_LIMITS = {
    "instagram:post": {"per_hour": 3, "per_day": 25},
    "instagram:story": {"per_hour": 10, "per_day": 100},
    "instagram:reel": {"per_hour": 5, "per_day": 50},
    "instagram:comment": {"per_hour": 60, "per_day": 500},
    "tiktok:video": {"per_hour": 4, "per_day": 30},
    "tiktok:comment": {"per_hour": 50, "per_day": 400},
    "youtube:upload": {"per_hour": 2, "per_day": 20},
    "youtube:comment": {"per_hour": 40, "per_day": 300},
    "twitter:post": {"per_hour": 50, "per_day": 300},
    "discord:post": {"per_hour": 30, "per_day": 500},
    "telegram:post": {"per_hour": 30, "per_day": 500},
}

# Market cap / streaming milestones
DEFAULT_MILESTONES = [
    {
        "id": "mcap_1m_release",
        "market_cap": 1_000_000,
        "action": "release",
        "content": {
            "ipfs_hash": "QmcXG4L9nRQ31jKCViFV5CYXrzDnuWQ4zUrJyeTaF4FKqG",  # MORE.mp3
            "type": "song",
        },
        "promotion": {
            "message": "🚀 $MORE has hit $1M market cap! As promised, the track is now live on Spotify! 🎵",
            "platforms": ["twitter", "discord", "telegram"],
        },
    },
    {
        "id": "mcap_500k_tease",
        "market_cap": 500_000,
        "action": "tease",
        "content": {
            "ipfs_hash": "QmYnTNmPrG7d4Sh4PZuRZ1pbSkZ4VdMHZD91SZ3XubTKuT",  # MORE_SNIPPET.mp3
            "type": "song",
        },
        "promotion": {
            "message": "👀 $MORE just hit $500K market cap! Here's a sneak peek of what's coming... 🎵",
            "platforms": ["twitter", "discord"],
        },
    },
    {
        "id": "streams_10k",
        "streaming_count": 10_000,
        "action": "promote",
        "content": {
            "type": "announcement",
            "message": "🎉 10K streams on Spotify! Thank you for the support! More surprises coming... 🎵",
        },
        "promotion": {
            "message": "10K streams and growing! Keep streaming to unlock more $MORE token utility! 🚀",
            "platforms": ["twitter", "discord", "telegram"],
        },
    },
    {
        "id": "streams_50k",
        "streaming_count": 50_000,
        "action": "promote",
        "content": {
            "type": "announcement",
            "message": "🔥 50K streams! Community rewards program activated!",
        },
        "promotion": {
            "message": "50K streams! Community rewards now live - stake $MORE to earn streaming rewards! 🎵",
            "platforms": ["twitter", "discord", "telegram"],
        },
        "reward_action": "enable_community_rewards",
    },
    {
        "id": "streams_100k",
        "streaming_count": 100_000,
        "action": "promote",
        "content": {
            "type": "announcement",
            "message": "💫 100K streams! Exclusive NFT collection unlocked!",
        },
        "promotion": {
            "message": "100K streams! Mint your exclusive GRLKRASH Supporter NFT now with $MORE tokens! 🎨",
            "platforms": ["twitter", "discord", "telegram"],
        },
        "reward_action": "enable_nft_minting",
    },
]

REQUIRED_FOR_CHAIN = ["RPC_URL", "MORE_TOKEN_ADDRESS"]


def missing_required(keys=REQUIRED_FOR_CHAIN):
    """Return the names of required settings that are unset."""
    return [key for key in keys if not globals().get(key)]
