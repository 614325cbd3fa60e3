"""HTTP API over per-user atlases."""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from datetime import date
from typing import Any

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from constellate.config import ConstellateConfig
from constellate.insights import assign_category, graduation_candidates, order_by_similarity, top_constellations
from constellate.models import Connection, MoodScores, Point
from constellate.naming import ClusterNamer
from constellate.pipeline import ConstellationEngine
from constellate.storage import SQLiteStorage
from constellate.visibility import window_from_config

logger = logging.getLogger(__name__)


class MergeStarRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    date: str
    position: Point | None = None
    scores: MoodScores | None = None
    keywords: list[str] = Field(default_factory=list)
    connections: list[Connection] = Field(default_factory=list)
    content_length: int | None = Field(default=None, alias="contentLength")


class ReclusterRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    journal_contents: dict[str, str] = Field(default_factory=dict, alias="journalContents")
    identity_hint: str | None = Field(default=None, alias="identityHint")


class ConstellationsRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    scores_history: dict[str, Any] = Field(default_factory=dict, alias="scoresHistory")
    journal_contents: dict[str, str] = Field(default_factory=dict, alias="journalContents")
    keywords_by_date: dict[str, list[str]] = Field(default_factory=dict, alias="keywordsByDate")
    identity_hint: str | None = Field(default=None, alias="identityHint")


class _UserLocks:
    """One lock per user id; the engine itself does no locking."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = defaultdict(threading.Lock)

    def __call__(self, user_id: str) -> threading.Lock:
        with self._guard:
            return self._locks[user_id]


def create_app(config: ConstellateConfig, namer: ClusterNamer | None = None) -> FastAPI:
    if config.storage.backend != "sqlite":
        raise ValueError("the HTTP API currently requires storage.backend=sqlite")

    storage = SQLiteStorage(config.storage.sqlite_path)
    engine = ConstellationEngine(config, namer=namer)
    locks = _UserLocks()
    app = FastAPI(title="Constellate", version="0.1.0")

    @app.get("/api/health")
    def health() -> dict[str, Any]:
        return {"status": "ok", "namer": engine.namer.model_id()}

    @app.get("/api/users")
    def users() -> dict[str, Any]:
        return {"users": storage.list_users()}

    @app.get("/api/users/{user_id}/atlas")
    def get_atlas(user_id: str) -> dict[str, Any]:
        with locks(user_id):
            return storage.load_atlas(user_id).to_payload()

    @app.get("/api/users/{user_id}/atlas/view")
    def get_view(user_id: str, window_days: int | None = Query(default=None, ge=1)) -> dict[str, Any]:
        with locks(user_id):
            store = storage.load_atlas(user_id)
        view = engine.render_view(store, visible=window_from_config(window_days))
        return view.model_dump(by_alias=True)

    @app.post("/api/users/{user_id}/stars")
    def merge_star(user_id: str, body: MergeStarRequest) -> dict[str, Any]:
        with locks(user_id):
            store = storage.load_atlas(user_id)
            try:
                if body.position is not None:
                    star = store.merge_star(
                        body.date,
                        body.position,
                        body.keywords,
                        body.connections,
                        body.content_length,
                        scores=body.scores,
                        projection=config.projection,
                    )
                else:
                    star = engine.ingest_day(
                        store,
                        body.date,
                        body.scores,
                        content_length=body.content_length,
                        keywords=body.keywords,
                        connections=body.connections,
                    )
            except ValueError as exc:
                raise HTTPException(status_code=400, detail=str(exc)) from exc
            storage.save_atlas(user_id, store)
        return {"star": star.model_dump(by_alias=True, exclude_none=True), "connections": len(store.connections)}

    @app.delete("/api/users/{user_id}/stars/{star_id}")
    def delete_star(user_id: str, star_id: str) -> dict[str, Any]:
        with locks(user_id):
            store = storage.load_atlas(user_id)
            if not store.delete_star(star_id):
                raise HTTPException(status_code=404, detail=f"Unknown star id: {star_id}")
            storage.save_atlas(user_id, store)
        return {"deleted": star_id, "clusters": len(store.clusters)}

    @app.post("/api/users/{user_id}/recluster")
    def recluster(
        user_id: str,
        body: ReclusterRequest | None = None,
        window_days: int | None = Query(default=None, ge=1),
    ) -> dict[str, Any]:
        body = body or ReclusterRequest()
        with locks(user_id):
            store = storage.load_atlas(user_id)
            cache = storage.load_identity_cache(user_id)
            report = engine.recluster(
                store,
                cache,
                visible=window_from_config(window_days),
                journal_contents=body.journal_contents,
                identity_hint=body.identity_hint,
            )
            storage.save_atlas(user_id, store)
            storage.save_identity_cache(user_id, cache)
        return report.model_dump(mode="json", by_alias=True)

    @app.post("/api/users/{user_id}/constellations")
    def build_constellations(
        user_id: str,
        body: ConstellationsRequest,
        window_days: int | None = Query(default=None, ge=1),
    ) -> dict[str, Any]:
        with locks(user_id):
            store = storage.load_atlas(user_id)
            cache = storage.load_identity_cache(user_id)
            engine.build_from_history(
                store,
                body.scores_history,
                journal_contents=body.journal_contents,
                keywords_by_date=body.keywords_by_date,
            )
            engine.recluster(
                store,
                cache,
                visible=window_from_config(window_days),
                journal_contents=body.journal_contents,
                identity_hint=body.identity_hint,
            )
            storage.save_atlas(user_id, store)
            storage.save_identity_cache(user_id, cache)
        return store.to_payload()

    @app.get("/api/users/{user_id}/insights")
    def insights(user_id: str, limit: int = Query(default=7, ge=1), window_days: int = Query(default=7, ge=1)) -> dict[str, Any]:
        with locks(user_id):
            store = storage.load_atlas(user_id)
        stars_by_id = store.stars_by_id()
        rows = []
        for cluster, score in top_constellations(store, limit=limit):
            category, _ = assign_category(cluster, stars_by_id)
            rows.append(
                {
                    "id": cluster.id,
                    "name": cluster.name,
                    "summary": cluster.summary,
                    "category": category.id,
                    "categoryLabel": category.label,
                    "color": category.color,
                    "score": round(score, 3),
                    "orderedMemberIds": order_by_similarity(cluster.member_ids, stars_by_id),
                }
            )
        graduating = graduation_candidates(store, date.today(), window_days=window_days)
        return {"constellations": rows, "graduationCandidates": [cluster.id for cluster in graduating]}

    logger.debug("API ready: db=%s namer=%s", config.storage.sqlite_path, engine.namer.model_id())
    return app
