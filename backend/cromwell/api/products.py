"""
Products API Endpoints
Handles the product catalog: listing, filtering and CRUD
"""
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from pydantic import BaseModel

from cromwell.core.auth import AuthUserInfo, require_admin
from cromwell.core.exceptions import CmsError
from cromwell.domain.common import BaseFilter, DeleteManyInput, PagedParams
from cromwell.domain.product import ProductInput
from cromwell.plugins.marqo_client import MarqoClient
from cromwell.repositories.product_repository import ProductRepository
from cromwell.services.cache_strategy import get_cache_strategy_manager
from cromwell.services.database_optimizer import get_database_optimizer

router = APIRouter()


class ProductFilterRequest(BaseModel):
    paged_params: Optional[PagedParams] = None
    filter: Optional[BaseFilter] = None
    name_search: Optional[str] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None


def get_product_repository() -> ProductRepository:
    return ProductRepository(
        cache_strategy_manager=get_cache_strategy_manager(),
        db_optimizer=get_database_optimizer(),
    )


@router.get("/")
async def get_products(
    page_number: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    order_by: Optional[str] = Query(None, description="Column to order by"),
    order: str = Query("DESC", pattern="^(ASC|DESC|asc|desc)$"),
):
    """Paged list of products"""
    try:
        repo = get_product_repository()
        products = repo.get_products(PagedParams(
            page_number=page_number,
            page_size=page_size,
            order_by=order_by,
            order=order,
        ))

        return {
            "status": "success",
            "data": products.to_dict()
        }

    except CmsError:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching products: {str(e)}")


@router.post("/filtered")
async def get_filtered_products(request: ProductFilterRequest):
    """Products matching column filters, name/SKU search and price bounds"""
    try:
        repo = get_product_repository()
        products = repo.get_filtered_products(
            paged_params=request.paged_params,
            filter=request.filter,
            name_search=request.name_search,
            min_price=request.min_price,
            max_price=request.max_price,
        )

        return {
            "status": "success",
            "data": products.to_dict()
        }

    except CmsError:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching products: {str(e)}")


@router.get("/search")
async def search_products(
    query: str = Query(..., min_length=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    offset: Optional[int] = Query(None, ge=0),
):
    """Semantic product search through the Marqo plugin (empty when not configured)"""
    hits = await MarqoClient().search(query, limit=limit, offset=offset)
    return {"status": "success", "data": hits or []}


@router.get("/slug/{slug}")
async def get_product_by_slug(slug: str):
    repo = get_product_repository()
    product = repo.get_product_by_slug(slug)
    return {"status": "success", "data": product.to_dict()}


@router.get("/{product_id}")
async def get_product(product_id: int):
    repo = get_product_repository()
    product = repo.get_product_by_id(product_id)
    return {"status": "success", "data": product.to_dict()}


@router.get("/{product_id}/views")
async def get_product_views(product_id: int):
    repo = get_product_repository()
    return {"status": "success", "data": {"views": repo.get_entity_views(product_id)}}


@router.post("/search/sync")
async def sync_search_index(
    background_tasks: BackgroundTasks,
    user: AuthUserInfo = Depends(require_admin)
):
    """Re-index the whole catalog in Marqo (runs in the background)"""
    background_tasks.add_task(MarqoClient().sync_all_products, get_product_repository())
    return {"status": "success", "message": "Search index sync started"}


@router.delete("/search/index/{index_name}")
async def delete_search_index(
    index_name: str,
    user: AuthUserInfo = Depends(require_admin)
):
    result = await MarqoClient().delete_index(index_name)
    return {"status": "success", "data": result}


@router.post("/")
async def create_product(
    input: ProductInput,
    background_tasks: BackgroundTasks,
    user: AuthUserInfo = Depends(require_admin)
):
    repo = get_product_repository()
    product = repo.create_product(input)
    background_tasks.add_task(MarqoClient().upsert_products, [product])
    return {"status": "success", "data": product.to_dict()}


@router.put("/{product_id}")
async def update_product(
    product_id: int,
    input: ProductInput,
    background_tasks: BackgroundTasks,
    user: AuthUserInfo = Depends(require_admin)
):
    repo = get_product_repository()
    product = repo.update_product(product_id, input)
    background_tasks.add_task(MarqoClient().upsert_products, [product])
    return {"status": "success", "data": product.to_dict()}


@router.delete("/{product_id}")
async def delete_product(
    product_id: int,
    background_tasks: BackgroundTasks,
    user: AuthUserInfo = Depends(require_admin)
):
    repo = get_product_repository()
    deleted = repo.delete_product(product_id)
    background_tasks.add_task(MarqoClient().delete_products, [product_id])
    return {"status": "success", "data": deleted}


@router.post("/delete-many")
async def delete_many_products(
    input: DeleteManyInput,
    background_tasks: BackgroundTasks,
    user: AuthUserInfo = Depends(require_admin)
):
    repo = get_product_repository()
    deleted_ids = repo.delete_many_products(input)
    if deleted_ids:
        background_tasks.add_task(MarqoClient().delete_products, deleted_ids)
    return {"status": "success", "data": True}
