"""
GRLKRASHai HTTP API
===================
Read-only status endpoints for the agent plus the governance surface
(wallet identity, proposals, votes). Governance writes need a bearer
session token minted by `POST /auth/token`.

Governance calls reach the chain and the brain files, so they run in the
threadpool rather than on the event loop.

Usage:
    app = create_app(GRLKRASHAgent())
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
"""

import logging
import math
import secrets
import time
from collections import defaultdict

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__, config
from .auth import DEFAULT_TTL, SessionMint
from .errors import AuthError, GovernanceError, IdentityError, NotEligible, ProposalNotFound

logger = logging.getLogger("API")

RL_WINDOW = 60  # seconds
RL_STRICT = 10
RL_STANDARD = 120


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "127.0.0.1"


def _finite(value):
    # JSON has no Infinity
    if isinstance(value, float) and math.isinf(value):
        return None
    return value


def _bearer(request: Request):
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    return auth.split(" ", 1)[1].strip() or None


async def _json_body(request: Request) -> dict:
    try:
        body = await request.json()
    except Exception:
        raise HTTPException(status_code=400, detail="Invalid JSON")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Expected a JSON object")
    return body


def create_app(agent, mint=None):
    mint = mint or SessionMint()
    app = FastAPI(title=f"{config.AGENT_NAME} API", version=__version__)
    app.state.agent = agent
    app.state.mint = mint

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- IN-MEMORY RATE LIMITER ---

    hits = defaultdict(list)
    app.state.rate_limit_hits = hits

    def rate_limit(request: Request, max_requests: int):
        ip = get_client_ip(request)
        now = time.time()
        hits[ip] = [t for t in hits[ip] if now - t < RL_WINDOW]
        if len(hits[ip]) >= max_requests:
            logger.warning(f"🛑 Rate limit hit by {ip}")
            raise HTTPException(status_code=429, detail="Too Many Requests")
        hits[ip].append(now)

    async def rl_strict(request: Request):
        rate_limit(request, RL_STRICT)

    async def rl_standard(request: Request):
        rate_limit(request, RL_STANDARD)

    async def current_user(request: Request) -> str:
        token = _bearer(request)
        if not token:
            raise HTTPException(status_code=401, detail="Missing Bearer token")
        return mint.verify(token)

    # --- Error mapping ---

    @app.exception_handler(AuthError)
    async def auth_error(request: Request, exc: AuthError):
        return JSONResponse(status_code=401, content={"error": str(exc)})

    @app.exception_handler(GovernanceError)
    async def governance_error(request: Request, exc: GovernanceError):
        if isinstance(exc, ProposalNotFound):
            status = 404
        elif isinstance(exc, (NotEligible, IdentityError)):
            status = 403
        else:
            status = 400
        return JSONResponse(status_code=status, content={"error": str(exc)})

    @app.on_event("startup")
    async def cleanup_sessions():
        try:
            mint.cleanup_expired()
        except Exception as e:
            logger.warning(f"⚠️ Session cleanup failed: {e}")

    # --- Status ---

    @app.get("/")
    async def root():
        return {
            "status": "operational",
            "agent": config.AGENT_NAME,
            "version": __version__,
            "cycle": agent.cycle,
        }

    @app.get("/health", dependencies=[Depends(rl_standard)])
    async def health():
        return {"status": "ok", "services": agent.services(), "stats": agent.stats()}

    @app.get("/rate-limits/{platform}/{action}", dependencies=[Depends(rl_standard)])
    async def rate_limits(platform: str, action: str):
        remaining = agent.rate_limits.get_remaining_limits(platform, action)
        return {
            "platform": platform,
            "action": action,
            **{
                window: {
                    "remaining": _finite(info["remaining"]),
                    "reset_at": info["reset_at"].isoformat(),
                }
                for window, info in remaining.items()
            },
        }

    @app.get("/milestones", dependencies=[Depends(rl_standard)])
    async def milestones():
        return {"milestones": agent.milestones.status()}

    @app.get("/transactions/pending", dependencies=[Depends(rl_standard)])
    async def pending_transactions():
        manager = agent.transactions
        return {"enabled": manager is not None, "pending": manager.pending if manager else []}

    # --- Auth ---

    @app.post("/auth/token", dependencies=[Depends(rl_strict)])
    async def issue_token(request: Request):
        admin_key = request.headers.get("X-Admin-Key", "")
        if not config.ADMIN_KEY or not secrets.compare_digest(admin_key, config.ADMIN_KEY):
            raise HTTPException(status_code=403, detail="Invalid Admin Key")

        body = await _json_body(request)
        user_id = str(body.get("user_id") or "").strip()
        if not user_id:
            raise HTTPException(status_code=400, detail="user_id required")
        try:
            ttl = int(body.get("ttl_seconds") or DEFAULT_TTL)
        except (TypeError, ValueError):
            raise HTTPException(status_code=400, detail="ttl_seconds must be an integer")
        if ttl <= 0:
            raise HTTPException(status_code=400, detail="ttl_seconds must be positive")

        token, expires_at = mint.create_session(user_id, ttl)
        return {"token": token, "user_id": user_id, "expires_at": expires_at}

    # --- Governance ---

    @app.post("/governance/identity/challenge", dependencies=[Depends(rl_strict)])
    async def identity_challenge(request: Request, user_id: str = Depends(current_user)):
        body = await _json_body(request)
        wallet = body.get("wallet")
        if not wallet:
            raise HTTPException(status_code=400, detail="wallet required")
        message = await run_in_threadpool(agent.security.issue_challenge, user_id, wallet)
        return {"user_id": user_id, "wallet": wallet, "message": message}

    @app.post("/governance/identity/verify", dependencies=[Depends(rl_strict)])
    async def identity_verify(request: Request, user_id: str = Depends(current_user)):
        body = await _json_body(request)
        wallet, signature = body.get("wallet"), body.get("signature")
        if not wallet or not signature:
            raise HTTPException(status_code=400, detail="wallet and signature required")
        identity = await run_in_threadpool(
            agent.security.verify_identity, user_id, wallet, signature,
            discord_id=body.get("discord_id"),
            telegram_id=body.get("telegram_id"),
        )
        return {"user_id": user_id, "identity": identity}

    @app.get("/governance/proposals", dependencies=[Depends(rl_standard)])
    async def list_proposals():
        return {"proposals": await run_in_threadpool(agent.governance.get_active_proposals)}

    @app.get("/governance/proposals/{proposal_id}", dependencies=[Depends(rl_standard)])
    async def get_proposal(proposal_id: int):
        proposal = await run_in_threadpool(agent.governance.get_proposal, proposal_id)
        if proposal is None:
            raise ProposalNotFound(f"Proposal {proposal_id} not found")
        return proposal

    @app.post("/governance/proposals", dependencies=[Depends(rl_strict)])
    async def create_proposal(request: Request, user_id: str = Depends(current_user)):
        body = await _json_body(request)
        title, description = body.get("title"), body.get("description")
        if not title or not description:
            raise HTTPException(status_code=400, detail="title and description required")
        return await run_in_threadpool(
            agent.governance.create_proposal, user_id, title, description, body.get("execution_data", "")
        )

    @app.post("/governance/proposals/{proposal_id}/vote", dependencies=[Depends(rl_standard)])
    async def vote(proposal_id: int, request: Request, user_id: str = Depends(current_user)):
        body = await _json_body(request)
        if not isinstance(body.get("support"), bool):
            raise HTTPException(status_code=400, detail="support must be true or false")
        return await run_in_threadpool(agent.governance.cast_vote, user_id, proposal_id, body["support"])

    return app
