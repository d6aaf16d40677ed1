"""HTTP surface for the feed, search and user preference operations."""

from typing import List, Literal, Optional, Union

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import Settings
from .exceptions import NoAccessibleSource, StorageError
from .logger import setup_logging
from .models import ArticleMetadata
from .preferences import utc_now_iso
from .service import NewsService, build_service


class ArticleData(BaseModel):
    """Article fields the client sends along with an interaction."""

    category: Optional[str] = None
    source: Optional[str] = None
    region: Optional[str] = None


class ActivityRequest(BaseModel):
    articleId: str = Field(..., min_length=1)
    action: Literal["viewed", "liked", "disliked", "shared"]
    timestamp: Optional[Union[str, int, float]] = None
    articleData: Optional[ArticleData] = None


class PreferencesRequest(BaseModel):
    customizationLevel: int = Field(..., ge=0, le=100)
    updatedAt: Optional[str] = None


class Ack(BaseModel):
    success: bool = True


def _split_seen(seen: str) -> List[str]:
    return [s.strip() for s in seen.split(",") if s.strip()]


def create_app(service: Optional[NewsService] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Create the FastAPI application around a NewsService."""
    if service is None:
        settings = settings or Settings.from_env()
        setup_logging(settings.log_level)
        service = build_service(settings)

    app = FastAPI(
        title="newsflow",
        description="Aggregated, personalized news feed",
        version="0.1.0",
    )
    app.state.news = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.exception_handler(NoAccessibleSource)
    async def no_source_handler(request: Request, exc: NoAccessibleSource) -> JSONResponse:
        return JSONResponse(status_code=503, content={"error": "No news sources reachable", "message": str(exc)})

    @app.exception_handler(StorageError)
    async def storage_handler(request: Request, exc: StorageError) -> JSONResponse:
        return JSONResponse(status_code=503, content={"error": "Preference store unavailable", "message": str(exc)})

    @app.exception_handler(ValueError)
    async def value_handler(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.get("/health")
    def health_check() -> dict:
        """Health check endpoint."""
        return {"status": "healthy", "app": "newsflow"}

    @app.get("/items")
    def get_items(
        limit: int = Query(10, ge=1, le=100),
        seen: str = "",
        userId: Optional[str] = None,
    ) -> list:
        articles = service.get_articles(limit=limit, seen_ids=_split_seen(seen), user_id=userId)
        return [a.to_dict() for a in articles]

    @app.get("/search")
    def search(q: str = "", limit: int = Query(20, ge=1, le=100)) -> list:
        return [a.to_dict() for a in service.search(q, limit=limit)]

    @app.get("/user/{user_id}")
    def get_user(user_id: str) -> dict:
        return service.get_user(user_id)

    @app.put("/user/{user_id}", response_model=Ack)
    def put_preferences(user_id: str, body: PreferencesRequest) -> Ack:
        service.set_preferences(user_id, body.customizationLevel, body.updatedAt)
        return Ack()

    @app.post("/user/{user_id}/activity", response_model=Ack)
    def post_activity(user_id: str, body: ActivityRequest) -> Ack:
        metadata = None
        if body.articleData is not None:
            metadata = ArticleMetadata(
                category=body.articleData.category,
                source=body.articleData.source,
                region=body.articleData.region,
            )
        timestamp = body.timestamp if body.timestamp is not None else utc_now_iso()
        service.record_activity(user_id, body.articleId, body.action, timestamp, metadata)
        return Ack()

    return app
