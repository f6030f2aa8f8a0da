from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from . import rules
from .config import Settings, setup_logging
from .errors import AuthorizationError, NotFoundError, StoreError
from .models import (
    CatalogItem,
    DiscountEditView,
    DiscountIndexView,
    HealthResponse,
    SaveErrorResponse,
    SaveResponse,
    SuccessResponse,
)
from .normalize import normalize_discount_input, parse_id_set
from .permissions import PermissionGate, StaticPermissionGate
from .store import Catalog, DiscountStore, InMemoryCatalog, InMemoryDiscountStore

logger = logging.getLogger(__name__)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> DiscountStore:
    return request.app.state.store


def require_manage_promotions(request: Request) -> None:
    request.app.state.gate.require_permission(rules.MANAGE_PROMOTIONS)


async def read_params(request: Request) -> Dict[str, Any]:
    """
    Collect request parameters from a JSON or form body.

    Form keys ending in [] and repeated keys become lists; keys like
    dateFrom[date] become nested mappings.
    """
    if request.headers.get("content-type", "").startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            raise HTTPException(status_code=422, detail="Request body is not valid JSON")
        if not isinstance(body, dict):
            raise HTTPException(status_code=422, detail="Request body must be a JSON object")
        return body

    form = await request.form()
    params: Dict[str, Any] = {}
    for key in dict.fromkeys(form.keys()):
        values = form.getlist(key)
        is_list = key.endswith("[]")
        name = key[:-2] if is_list else key
        value = values if is_list or len(values) > 1 else values[0]
        if "[" in name and name.endswith("]"):
            base, sub = name[:-1].split("[", 1)
            nested = params.setdefault(base, {})
            if isinstance(nested, dict):
                nested[sub] = value
            continue
        params[name] = value
    return params


def _required_id(params: Dict[str, Any], key: str = "id") -> int:
    value = params.get(key)
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        raise HTTPException(status_code=422, detail=f"Missing or invalid parameter: {key}")


def _catalog_map(catalog: Catalog) -> Dict[int, str]:
    return dict(catalog.list_all())


def _resolve_products(catalog: Catalog, product_ids) -> List[CatalogItem]:
    products = []
    for product_id in sorted(product_ids):
        found = catalog.get_by_id(product_id)
        if found:
            products.append(CatalogItem(id=found[0], name=found[1]))
    return products


router = APIRouter()
discounts = APIRouter(
    prefix="/discounts",
    tags=["discounts"],
    dependencies=[Depends(require_manage_promotions)],
)


@router.get("/health", response_model=HealthResponse)
def health():
    return {"ok": True}


@discounts.get("", response_model=DiscountIndexView)
def index(store: DiscountStore = Depends(get_store)):
    return DiscountIndexView(template=rules.INDEX_TEMPLATE, discounts=store.get_all())


def _edit_view(request: Request, discount_id: Optional[int], product_ids) -> DiscountEditView:
    state = request.app.state
    store: DiscountStore = state.store
    discount = None
    if discount_id is not None:
        discount = store.get_by_id(discount_id)
        if discount is None:
            raise NotFoundError(discount_id)
        product_ids = discount.product_ids

    return DiscountEditView(
        template=rules.EDIT_TEMPLATE,
        id=discount_id,
        title=discount.name if discount else rules.MSG_CREATE_TITLE,
        discount=discount,
        groups=_catalog_map(state.user_groups) if state.settings.pro_edition else {},
        types=_catalog_map(state.product_types),
        products=_resolve_products(state.products, product_ids),
    )


@discounts.get("/new", response_model=DiscountEditView)
def new(request: Request, product_ids: str = Query(default="", alias="productIds")):
    try:
        selected = parse_id_set(product_ids)
    except ValueError:
        raise HTTPException(status_code=422, detail="Invalid productIds")
    return _edit_view(request, None, selected)


@discounts.get("/{discount_id}", response_model=DiscountEditView)
def edit(discount_id: int, request: Request):
    return _edit_view(request, discount_id, ())


@discounts.post("/save", response_model=SaveResponse, responses={422: {"model": SaveErrorResponse}})
async def save(
    request: Request,
    settings: Settings = Depends(get_settings),
    store: DiscountStore = Depends(get_store),
):
    params = await read_params(request)
    result = normalize_discount_input(
        params,
        percent_symbol=settings.percent_symbol,
        tz=ZoneInfo(settings.timezone),
    )
    if not result.ok:
        logger.info("Discount input rejected with %d error(s)", len(result.errors))
        body = SaveErrorResponse(error=rules.MSG_SAVE_FAILED, errors=result.errors)
        return JSONResponse(status_code=422, content=body.model_dump(mode="json"))

    discount_id = store.save(result.rule)
    logger.info(rules.MSG_SAVED)
    return SaveResponse(id=discount_id, discount=store.get_by_id(discount_id))


@discounts.post("/reorder", response_model=SuccessResponse)
async def reorder(request: Request, store: DiscountStore = Depends(get_store)):
    params = await read_params(request)
    ids = params.get("ids")
    if isinstance(ids, str):
        try:
            ids = json.loads(ids)
        except ValueError:
            raise HTTPException(status_code=422, detail="ids must be a JSON list")
    if not isinstance(ids, list):
        raise HTTPException(status_code=422, detail="Missing or invalid parameter: ids")
    try:
        ids = [int(i) for i in ids]
    except (TypeError, ValueError, OverflowError):
        raise HTTPException(status_code=422, detail="ids must be integers")

    if store.reorder(ids):
        return {"success": True}
    return JSONResponse(content={"error": rules.MSG_REORDER_FAILED})


@discounts.post("/delete", response_model=SuccessResponse)
async def delete(request: Request, store: DiscountStore = Depends(get_store)):
    params = await read_params(request)
    store.delete(_required_id(params))
    return {"success": True}


@discounts.post("/clear-coupon-usage-history", response_model=SuccessResponse)
async def clear_coupon_usage_history(request: Request, store: DiscountStore = Depends(get_store)):
    params = await read_params(request)
    store.clear_usage_history(_required_id(params))
    return {"success": True}


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[DiscountStore] = None,
    gate: Optional[PermissionGate] = None,
    products: Optional[Catalog] = None,
    product_types: Optional[Catalog] = None,
    user_groups: Optional[Catalog] = None,
) -> FastAPI:
    settings = settings or Settings()
    setup_logging(settings)

    app = FastAPI(
        title="discount-admin",
        description="Admin API for cart discount rules",
        version="0.1.0",
    )
    app.state.settings = settings
    app.state.store = store if store is not None else InMemoryDiscountStore()
    app.state.gate = gate if gate is not None else StaticPermissionGate(settings.granted_permissions)
    app.state.products = products if products is not None else InMemoryCatalog()
    app.state.product_types = product_types if product_types is not None else InMemoryCatalog()
    app.state.user_groups = user_groups if user_groups is not None else InMemoryCatalog()

    @app.exception_handler(AuthorizationError)
    async def _forbidden(request: Request, exc: AuthorizationError):
        return JSONResponse(status_code=403, content={"error": str(exc)})

    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"error": str(exc)})

    @app.exception_handler(StoreError)
    async def _store_error(request: Request, exc: StoreError):
        logger.error("Store error: %s", exc)
        return JSONResponse(status_code=400, content={"error": str(exc)})

    app.include_router(router)
    app.include_router(discounts)
    return app


app = create_app()
