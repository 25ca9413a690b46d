"""
FastAPI application for WagerLoop
Odds tools, game search, odds lookup and the social feed
"""

from fastapi import FastAPI, Depends, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session
from sqlalchemy import text
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional
import logging
import os
import uuid

from wagerloop.models import get_db, init_db, DataFetch
from wagerloop.auth import verify_api_key
from wagerloop.core.odds_math import (
    InvalidOddsFormat,
    american_to_decimal,
    combined_parlay_decimal,
    combined_parlay_odds,
    format_american,
    implied_probability,
    potential_payout,
)
from wagerloop.core.picks import GameRef, Pick, PickSide, PickType, valid_sides
from wagerloop.core.sport_config import resolve_sport
from wagerloop.services import social_feed
from wagerloop.services.espn import ESPNClient
from wagerloop.services.odds import OddsAPIClient, parse_bookmakers
from wagerloop.services.odds_lookup import OddsLookup
from wagerloop.schemas import (
    CommentCreate,
    MarkNotificationsRead,
    OddsConvertRequest,
    OddsConvertResponse,
    OddsLookupResponse,
    ParlayPriceRequest,
    ParlayPriceResponse,
    PickIn,
    PickPostCreate,
    PostCreate,
    ProfileResponse,
    ToggleResponse,
)

# Logging setup
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# Provider singletons (overridable in tests via app.dependency_overrides)
_espn_client: Optional[ESPNClient] = None
_odds_lookup: Optional[OddsLookup] = None


def get_espn_client() -> ESPNClient:
    global _espn_client
    if _espn_client is None:
        _espn_client = ESPNClient()
    return _espn_client


def get_odds_lookup() -> OddsLookup:
    global _odds_lookup
    if _odds_lookup is None:
        try:
            _odds_lookup = OddsLookup(OddsAPIClient())
        except ValueError as exc:
            logger.warning("Odds lookup unavailable: %s", exc)
            raise HTTPException(status_code=503, detail="Odds service not configured")
    return _odds_lookup


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info("Starting WagerLoop API")
    init_db()
    yield
    logger.info("Shutting down WagerLoop API")


app = FastAPI(
    title="WagerLoop API",
    description="Social sports-betting picks, odds tools and feed",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _http_error(exc: social_feed.SocialFeedError) -> HTTPException:
    if isinstance(exc, social_feed.NotAuthenticated):
        return HTTPException(status_code=401, detail=str(exc))
    if isinstance(exc, social_feed.PermissionDenied):
        return HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, social_feed.NotFound):
        return HTTPException(status_code=404, detail=str(exc))
    return HTTPException(status_code=422, detail=str(exc))


def _record_fetch(db: Session, source: str, started: datetime, records: int, error: Optional[str] = None):
    elapsed = datetime.now(timezone.utc) - started
    db.add(DataFetch(
        data_source=source,
        success=error is None,
        records_fetched=records,
        error_message=error,
        response_time_ms=int(elapsed.total_seconds() * 1000),
    ))
    db.commit()


# ============================================================================
# PUBLIC ENDPOINTS
# ============================================================================

@app.get("/")
async def root():
    """Health check"""
    return {
        "app": "WagerLoop API",
        "version": "1.0.0",
        "status": "operational",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/health")
async def health_check(db: Session = Depends(get_db)):
    """Health check endpoint"""
    health = {"status": "healthy", "database": "connected"}

    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Health check database error: %s", e)
        health["status"] = "degraded"
        health["database"] = f"error: {str(e)}"

    return health


@app.post("/api/odds/convert", response_model=OddsConvertResponse)
async def convert_odds(payload: OddsConvertRequest):
    """American odds → decimal and implied probability"""
    return OddsConvertResponse(
        american=format_american(payload.odds),
        decimal=round(american_to_decimal(payload.odds), 4),
        implied_probability=round(implied_probability(payload.odds), 4),
    )


@app.post("/api/parlay/price", response_model=ParlayPriceResponse)
async def price_parlay(payload: ParlayPriceRequest):
    """Combined odds for two or more legs; a single leg is not a parlay"""
    try:
        combined = combined_parlay_odds(payload.legs)
        decimal_odds = combined_parlay_decimal(payload.legs)
        if combined is None:
            payout_odds = payload.legs[0]
        else:
            payout_odds = combined
        payout = potential_payout(payload.stake, payout_odds) if payload.stake is not None else None
    except InvalidOddsFormat as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    return ParlayPriceResponse(
        legs=len(payload.legs),
        combined_odds=format_american(combined) if combined is not None else None,
        combined_decimal=round(decimal_odds, 4) if decimal_odds is not None else None,
        payout=round(payout, 2) if payout is not None else None,
    )


# ============================================================================
# AUTHENTICATED ENDPOINTS - GAMES
# ============================================================================

@app.get("/api/games/search")
def search_games(
    q: str = Query(..., min_length=2, max_length=60),
    user: str = Depends(verify_api_key),
    espn: ESPNClient = Depends(get_espn_client),
    db: Session = Depends(get_db),
):
    """Upcoming and live games where either team name contains q"""
    started = datetime.now(timezone.utc)
    games = espn.search_games_by_team(q)
    _record_fetch(db, "espn", started, len(games), error=espn.last_error)
    return {"query": q, "count": len(games), "games": [g.to_dict() for g in games]}


@app.get("/api/games/{sport}/odds", response_model=OddsLookupResponse)
def game_odds(
    sport: str,
    home: str = Query(..., min_length=1),
    away: str = Query(..., min_length=1),
    commence_time: datetime = Query(...),
    user: str = Depends(verify_api_key),
    lookup: OddsLookup = Depends(get_odds_lookup),
    db: Session = Depends(get_db),
):
    """Bookmaker odds for one game, or available=false"""
    if resolve_sport(sport) is None:
        raise HTTPException(status_code=404, detail=f"Unknown sport {sport}")

    started = datetime.now(timezone.utc)
    calls_before = lookup.client.requests_made
    event = lookup.find_odds_for_game(sport, home, away, commence_time)
    books = parse_bookmakers(event) if event is not None else {}

    # Cache hits and skipped stale games never reach the API
    if lookup.client.requests_made > calls_before:
        _record_fetch(db, "odds_api", started, len(books), error=lookup.client.last_error)

    if event is None:
        return OddsLookupResponse(available=False)
    return OddsLookupResponse(
        available=True,
        event_id=event.get("id"),
        bookmakers={key: book.to_dict() for key, book in books.items()},
    )


# ============================================================================
# AUTHENTICATED ENDPOINTS - FEED
# ============================================================================

@app.get("/api/feed")
async def get_feed(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: str = Depends(verify_api_key),
    db: Session = Depends(get_db),
):
    posts = social_feed.fetch_posts(db, viewer_id=user, limit=limit, offset=offset)
    return {"posts": [p.to_dict() for p in posts], "has_more": len(posts) == limit}


@app.post("/api/posts", status_code=201)
async def create_post(
    payload: PostCreate,
    user: str = Depends(verify_api_key),
    db: Session = Depends(get_db),
):
    try:
        post = social_feed.create_post(db, user, payload.content)
    except social_feed.SocialFeedError as exc:
        raise _http_error(exc)
    return post.to_dict()


def _pick_from_schema(data: PickIn) -> Pick:
    game = GameRef(
        id=data.game.id,
        home_team=data.game.home_team,
        away_team=data.game.away_team,
        game_time=data.game.game_time,
        sport=data.game.sport,
        league=data.game.league,
        status=data.game.status,
        home_team_id=data.game.home_team_id,
        away_team_id=data.game.away_team_id,
    )
    pick_type = PickType.from_value(data.pick_type)
    pick_side = PickSide.from_value(data.pick_side)
    cfg = resolve_sport(game.sport)
    if pick_side not in valid_sides(pick_type, bool(cfg and cfg.allows_draw)):
        raise HTTPException(
            status_code=422,
            detail=f"{pick_side.value!r} is not a valid side for a {pick_type.value} pick",
        )
    return Pick(
        id=uuid.uuid4().hex,
        game=game,
        pick_type=pick_type,
        pick_side=pick_side,
        odds=data.odds,
        line=data.line,
        stake=data.stake,
        reasoning=data.reasoning,
        player_name=data.player_name,
        prop_type=data.prop_type,
        prop_value=data.prop_value,
    )


@app.post("/api/posts/picks", status_code=201)
async def create_pick_post(
    payload: PickPostCreate,
    user: str = Depends(verify_api_key),
    db: Session = Depends(get_db),
):
    picks = [_pick_from_schema(p) for p in payload.picks]
    try:
        post = social_feed.create_pick_post(db, user, payload.content, picks)
    except social_feed.SocialFeedError as exc:
        raise _http_error(exc)
    data = post.to_dict()
    data["parlay_odds"] = format_american(post.parlay_odds) if post.parlay_odds is not None else None
    return data


@app.delete("/api/posts/{post_id}", status_code=204)
async def delete_post(
    post_id: int,
    user: str = Depends(verify_api_key),
    db: Session = Depends(get_db),
):
    try:
        social_feed.delete_post(db, user, post_id)
    except social_feed.SocialFeedError as exc:
        raise _http_error(exc)


@app.post("/api/posts/{post_id}/like", response_model=ToggleResponse)
async def like_post(
    post_id: int,
    user: str = Depends(verify_api_key),
    db: Session = Depends(get_db),
):
    try:
        result = social_feed.toggle_like(db, user, post_id)
    except social_feed.SocialFeedError as exc:
        raise _http_error(exc)
    return ToggleResponse(active=result.active, count=result.count)


@app.post("/api/posts/{post_id}/repost", response_model=ToggleResponse)
async def repost_post(
    post_id: int,
    user: str = Depends(verify_api_key),
    db: Session = Depends(get_db),
):
    try:
        result = social_feed.toggle_repost(db, user, post_id)
    except social_feed.SocialFeedError as exc:
        raise _http_error(exc)
    return ToggleResponse(active=result.active, count=result.count)


@app.get("/api/posts/{post_id}/comments")
async def list_comments(
    post_id: int,
    user: str = Depends(verify_api_key),
    db: Session = Depends(get_db),
):
    try:
        comments = social_feed.fetch_comments(db, post_id)
    except social_feed.SocialFeedError as exc:
        raise _http_error(exc)
    return {"comments": [c.to_dict() for c in comments]}


@app.post("/api/posts/{post_id}/comments", status_code=201)
async def add_comment(
    post_id: int,
    payload: CommentCreate,
    user: str = Depends(verify_api_key),
    db: Session = Depends(get_db),
):
    try:
        comment = social_feed.add_comment(db, user, post_id, payload.content, payload.parent_id)
    except social_feed.SocialFeedError as exc:
        raise _http_error(exc)
    return comment.to_dict()


# ============================================================================
# AUTHENTICATED ENDPOINTS - USERS
# ============================================================================

@app.get("/api/users/search", response_model=List[ProfileResponse])
async def search_users(
    q: str = Query(..., min_length=1, max_length=50),
    limit: int = Query(20, ge=1, le=50),
    user: str = Depends(verify_api_key),
    db: Session = Depends(get_db),
):
    return social_feed.search_users(db, q, limit=limit)


@app.post("/api/users/{user_id}/follow")
async def follow_user(
    user_id: str,
    user: str = Depends(verify_api_key),
    db: Session = Depends(get_db),
):
    try:
        created = social_feed.follow(db, user, user_id)
    except social_feed.SocialFeedError as exc:
        raise _http_error(exc)
    return {"following": True, "created": created}


@app.delete("/api/users/{user_id}/follow")
async def unfollow_user(
    user_id: str,
    user: str = Depends(verify_api_key),
    db: Session = Depends(get_db),
):
    try:
        removed = social_feed.unfollow(db, user, user_id)
    except social_feed.SocialFeedError as exc:
        raise _http_error(exc)
    return {"following": False, "removed": removed}


# ============================================================================
# AUTHENTICATED ENDPOINTS - NOTIFICATIONS
# ============================================================================

@app.get("/api/notifications")
async def list_notifications(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    unread_only: bool = Query(False),
    user: str = Depends(verify_api_key),
    db: Session = Depends(get_db),
):
    notifications = social_feed.fetch_notifications(
        db, user, limit=limit, offset=offset, unread_only=unread_only
    )
    return {
        "notifications": [n.to_dict() for n in notifications],
        "unread_count": social_feed.unread_notification_count(db, user),
    }


@app.get("/api/notifications/unread-count")
async def notification_unread_count(
    user: str = Depends(verify_api_key),
    db: Session = Depends(get_db),
):
    return {"unread_count": social_feed.unread_notification_count(db, user)}


@app.post("/api/notifications/read")
async def mark_notifications_read(
    payload: MarkNotificationsRead,
    user: str = Depends(verify_api_key),
    db: Session = Depends(get_db),
):
    updated = social_feed.mark_notifications_read(db, user, payload.ids)
    return {"updated": updated}


@app.delete("/api/notifications/{notification_id}", status_code=204)
async def delete_notification(
    notification_id: int,
    user: str = Depends(verify_api_key),
    db: Session = Depends(get_db),
):
    try:
        social_feed.delete_notification(db, user, notification_id)
    except social_feed.SocialFeedError as exc:
        raise _http_error(exc)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
