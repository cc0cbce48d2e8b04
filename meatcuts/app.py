from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Optional

from fastapi import Depends, FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse, RedirectResponse, Response
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette.middleware.sessions import SessionMiddleware

from .assets.client import DEFAULT_MIME_TYPE, AssetStore, HttpAssetStore
from .assets.matcher import link_unmatched_images
from .assets.models import MatchReport
from .auth.config import DEFAULT_AUTH_CONFIG
from .auth.dependencies import require_admin
from .auth.models import LoginRequest
from .auth.users import authenticate
from .catalog import repository
from .catalog.models import (
    BulkDeleteRequest,
    CatalogMetadata,
    DeleteSummary,
    MeatCutDetail,
    MeatCutIn,
    MeatCutOut,
    MeatCutPage,
    MeatCutUpdate,
    TagsOut,
)
from .data_ingestion.export import export_catalog_csv_with_filename
from .data_ingestion.ingest import ImportSummary, import_catalog_csv
from .db import metadata as sync_metadata
from .db.models import CookingMethod, RecommendedDish
from .db.session import get_engine, get_session
from .errors import AssetStoreError, ConsistencyError, InvalidInputError, NotFoundError
from .logger import setup_logging
from .reconciliation.models import SyncStatus
from .reconciliation.status import compute_status
from .search.engine import list_facets, search
from .search.models import FacetsResponse, SearchFilters, SearchResponse

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    get_engine()
    logger.info("Meat cuts API %s started", API_VERSION)
    yield


app = FastAPI(title="Meat Cuts Catalog API", version=API_VERSION, lifespan=lifespan)
app.add_middleware(SessionMiddleware, secret_key=DEFAULT_AUTH_CONFIG.session_secret)


@lru_cache(maxsize=1)
def get_asset_store() -> AssetStore:
    return HttpAssetStore()


# ── Error mapping ────────────────────────────────────────────────────────


@app.exception_handler(InvalidInputError)
async def _invalid_input(request: Request, exc: InvalidInputError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(AssetStoreError)
async def _asset_store_unavailable(request: Request, exc: AssetStoreError) -> JSONResponse:
    logger.warning("Asset store failure on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": f"Asset store unavailable: {exc}"})


@app.exception_handler(ConsistencyError)
@app.exception_handler(IntegrityError)
async def _consistency(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Storage constraint violated on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Catalog consistency error"})


# ── Public endpoints ─────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/api/metadata", response_model=CatalogMetadata)
def catalog_metadata(session: Session = Depends(get_session)) -> CatalogMetadata:
    return CatalogMetadata(
        last_update=sync_metadata.read(session, sync_metadata.LAST_CATALOG_UPDATE),
        last_csv_export=sync_metadata.read(session, sync_metadata.LAST_CSV_EXPORT),
        total_meat_cuts=repository.count_items(session),
        version=API_VERSION,
    )


@app.get("/api/meat-cuts/search", response_model=SearchResponse)
def search_meat_cuts(
    q: Optional[str] = None,
    price_min: Optional[float] = Query(default=None, alias="priceMin"),
    price_max: Optional[float] = Query(default=None, alias="priceMax"),
    part: Optional[str] = None,
    lean: Optional[bool] = None,
    cooking_method: Optional[str] = Query(default=None, alias="cookingMethod"),
    limit: Optional[int] = None,
    offset: int = 0,
    session: Session = Depends(get_session),
) -> SearchResponse:
    try:
        filters = SearchFilters(
            q=q,
            price_min=price_min,
            price_max=price_max,
            part=part,
            lean=lean,
            cooking_method=cooking_method,
            limit=limit,
            offset=offset,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
    return search(session, filters)


@app.get("/api/filters/options", response_model=FacetsResponse)
def filter_options(session: Session = Depends(get_session)) -> FacetsResponse:
    return list_facets(session)


@app.get("/api/meat-cuts/{slug}", response_model=MeatCutDetail)
def meat_cut_by_slug(slug: str, session: Session = Depends(get_session)) -> MeatCutDetail:
    item = repository.get_item_by_slug(session, slug)
    detail = MeatCutDetail.from_item(item)
    detail.share_url = f"{DEFAULT_AUTH_CONFIG.frontend_url.rstrip('/')}/meat/{item.slug}"
    return detail


@app.get("/api/meat-cuts/{slug}/image")
def meat_cut_image(slug: str, session: Session = Depends(get_session)):
    item = repository.get_item_by_slug(session, slug)
    if not item.image_url:
        raise HTTPException(status_code=404, detail="Image not found")
    return RedirectResponse(item.image_url)


# ── Auth endpoints ───────────────────────────────────────────────────────


@app.post("/api/admin/login")
def login(body: LoginRequest, request: Request) -> dict:
    user = authenticate(body.username, body.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    request.session["user"] = user
    return {"status": "ok", "user": user}


@app.post("/api/admin/logout")
def logout(request: Request) -> dict:
    request.session.clear()
    return {"status": "logged_out"}


# ── Admin endpoints ──────────────────────────────────────────────────────


@app.get("/api/admin/meat-cuts", response_model=MeatCutPage)
def admin_list_meat_cuts(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=500),
    session: Session = Depends(get_session),
    user: dict = Depends(require_admin),
) -> MeatCutPage:
    items = repository.list_items(session, limit=limit, offset=(page - 1) * limit)
    return MeatCutPage(
        meat_cuts=[MeatCutOut.from_item(item) for item in items],
        total=repository.count_items(session),
        page=page,
        limit=limit,
    )


@app.post("/api/admin/meat-cuts", response_model=MeatCutOut, status_code=201)
def admin_create_meat_cut(
    body: MeatCutIn,
    session: Session = Depends(get_session),
    store: AssetStore = Depends(get_asset_store),
    user: dict = Depends(require_admin),
) -> MeatCutOut:
    return MeatCutOut.from_item(repository.create_item(session, body, store))


@app.post("/api/admin/meat-cuts/bulk-delete", response_model=DeleteSummary)
def admin_bulk_delete(
    body: BulkDeleteRequest,
    session: Session = Depends(get_session),
    store: AssetStore = Depends(get_asset_store),
    user: dict = Depends(require_admin),
) -> DeleteSummary:
    return repository.bulk_delete(session, body.ids, store)


@app.get("/api/admin/meat-cuts/{item_id}", response_model=MeatCutOut)
def admin_get_meat_cut(
    item_id: int,
    session: Session = Depends(get_session),
    user: dict = Depends(require_admin),
) -> MeatCutOut:
    return MeatCutOut.from_item(repository.get_item(session, item_id))


@app.put("/api/admin/meat-cuts/{item_id}", response_model=MeatCutOut)
def admin_update_meat_cut(
    item_id: int,
    body: MeatCutUpdate,
    session: Session = Depends(get_session),
    store: AssetStore = Depends(get_asset_store),
    user: dict = Depends(require_admin),
) -> MeatCutOut:
    return MeatCutOut.from_item(repository.update_item(session, item_id, body, store))


@app.delete("/api/admin/meat-cuts/{item_id}")
def admin_delete_meat_cut(
    item_id: int,
    session: Session = Depends(get_session),
    store: AssetStore = Depends(get_asset_store),
    user: dict = Depends(require_admin),
) -> dict:
    repository.delete_item(session, item_id, store)
    return {"status": "deleted", "id": item_id}


@app.post("/api/admin/meat-cuts/{item_id}/image", response_model=MeatCutOut)
def admin_upload_image(
    item_id: int,
    image: UploadFile = File(...),
    session: Session = Depends(get_session),
    store: AssetStore = Depends(get_asset_store),
    user: dict = Depends(require_admin),
) -> MeatCutOut:
    mime_type = image.content_type or DEFAULT_MIME_TYPE
    if not mime_type.startswith("image/"):
        raise InvalidInputError(f"Expected an image upload, got {mime_type}")
    data = image.file.read()
    if not data:
        raise InvalidInputError("Uploaded image is empty")
    item = repository.attach_image(session, store, item_id, data, mime_type, image.filename)
    return MeatCutOut.from_item(item)


@app.get("/api/admin/tags", response_model=TagsOut)
def admin_tags(session: Session = Depends(get_session), user: dict = Depends(require_admin)) -> TagsOut:
    return TagsOut(
        parts=repository.list_parts(session),
        cooking_methods=repository.list_tag_names(session, CookingMethod),
        recommended_dishes=repository.list_tag_names(session, RecommendedDish),
    )


@app.get("/api/admin/export/csv")
def admin_export_csv(session: Session = Depends(get_session), user: dict = Depends(require_admin)) -> Response:
    filename, content = export_catalog_csv_with_filename(session)
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.post("/api/admin/import/csv", response_model=ImportSummary)
def admin_import_csv(
    file: UploadFile = File(...),
    session: Session = Depends(get_session),
    store: AssetStore = Depends(get_asset_store),
    user: dict = Depends(require_admin),
) -> ImportSummary:
    return import_catalog_csv(session, file.file.read(), asset_store=store)


@app.post("/api/admin/assets/match", response_model=MatchReport)
def admin_match_assets(
    session: Session = Depends(get_session),
    store: AssetStore = Depends(get_asset_store),
    user: dict = Depends(require_admin),
) -> MatchReport:
    return link_unmatched_images(session, store)


@app.get("/api/admin/sync/status", response_model=SyncStatus)
def admin_sync_status(
    session: Session = Depends(get_session),
    store: AssetStore = Depends(get_asset_store),
    user: dict = Depends(require_admin),
) -> SyncStatus:
    return compute_status(session, store)
