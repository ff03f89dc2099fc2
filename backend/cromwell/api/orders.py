"""
Orders API Endpoints
Placing orders, order management and per-user order history
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from cromwell.core.auth import AuthUserInfo, get_current_user, require_admin
from cromwell.core.exceptions import CmsError
from cromwell.domain.common import DeleteManyInput, PagedParams
from cromwell.domain.order import OrderFilter, OrderInput
from cromwell.repositories.order_repository import OrderRepository
from cromwell.services.cache_strategy import get_cache_strategy_manager
from cromwell.services.database_optimizer import get_database_optimizer

router = APIRouter()


class OrderFilterRequest(BaseModel):
    paged_params: Optional[PagedParams] = None
    filter: Optional[OrderFilter] = None


class OrderDeleteManyRequest(BaseModel):
    input: DeleteManyInput
    filter: Optional[OrderFilter] = None


def get_order_repository() -> OrderRepository:
    return OrderRepository(
        cache_strategy_manager=get_cache_strategy_manager(),
        db_optimizer=get_database_optimizer(),
    )


@router.get("/")
async def get_orders(
    page_number: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    order_by: Optional[str] = Query(None, description="Column to order by"),
    order: str = Query("DESC", pattern="^(ASC|DESC|asc|desc)$"),
    user: AuthUserInfo = Depends(require_admin)
):
    try:
        repo = get_order_repository()
        orders = repo.get_orders(PagedParams(
            page_number=page_number,
            page_size=page_size,
            order_by=order_by,
            order=order,
        ))
        return {"status": "success", "data": orders.to_dict()}

    except CmsError:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching orders: {str(e)}")


@router.post("/filtered")
async def get_filtered_orders(
    request: OrderFilterRequest,
    user: AuthUserInfo = Depends(require_admin)
):
    """
    Orders matching a filter

    Filter fields:
    - user_id, status, order_id: exact match
    - customer_name, customer_email, customer_phone: substring
    - date_from (+ date_to, default now): creation date range
    """
    try:
        repo = get_order_repository()
        orders = repo.get_filtered_orders(request.paged_params, request.filter)
        return {"status": "success", "data": orders.to_dict()}

    except CmsError:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching orders: {str(e)}")


@router.get("/user/{user_id}")
async def get_orders_of_user(
    user_id: int,
    page_number: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    user: AuthUserInfo = Depends(get_current_user)
):
    """Order history of a user (the user themself or an administrator)"""
    if user.id != user_id and "administrator" not in user.roles:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied"
        )

    repo = get_order_repository()
    orders = repo.get_orders_of_user(user_id, PagedParams(page_number=page_number, page_size=page_size))
    return {"status": "success", "data": orders.to_dict()}


@router.get("/slug/{slug}")
async def get_order_by_slug(slug: str, user: AuthUserInfo = Depends(require_admin)):
    repo = get_order_repository()
    return {"status": "success", "data": repo.get_order_by_slug(slug).to_dict()}


@router.get("/{order_id}")
async def get_order(order_id: int, user: AuthUserInfo = Depends(require_admin)):
    repo = get_order_repository()
    order = repo.get_order_by_id(order_id)
    order.coupons = repo.get_coupons_of_order(order_id)
    return {"status": "success", "data": order.to_dict()}


@router.get("/{order_id}/coupons")
async def get_coupons_of_order(order_id: int, user: AuthUserInfo = Depends(require_admin)):
    repo = get_order_repository()
    coupons = repo.get_coupons_of_order(order_id)
    return {"status": "success", "data": [coupon.model_dump(mode="json") for coupon in coupons]}


@router.post("/")
async def create_order(input: OrderInput):
    """Place an order (storefront checkout)"""
    repo = get_order_repository()
    order = repo.create_order(input)
    return {"status": "success", "data": order.to_dict()}


@router.put("/{order_id}")
async def update_order(
    order_id: int,
    input: OrderInput,
    user: AuthUserInfo = Depends(require_admin)
):
    repo = get_order_repository()
    order = repo.update_order(order_id, input)
    return {"status": "success", "data": order.to_dict()}


@router.delete("/{order_id}")
async def delete_order(order_id: int, user: AuthUserInfo = Depends(require_admin)):
    repo = get_order_repository()
    deleted = repo.delete_order(order_id)
    return {"status": "success", "data": deleted}


@router.post("/delete-many")
async def delete_many_orders(
    request: OrderDeleteManyRequest,
    user: AuthUserInfo = Depends(require_admin)
):
    repo = get_order_repository()
    deleted = repo.delete_many_filtered_orders(request.input, request.filter)
    return {"status": "success", "data": deleted}
