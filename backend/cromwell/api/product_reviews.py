"""
Product Reviews API Endpoints

Customers post reviews; administrators approve and manage them.
A review posted without admin rights is never auto-approved.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from cromwell.core.auth import ROLE_LEVELS, AuthUserInfo, get_optional_user, require_admin
from cromwell.domain.common import DeleteManyInput, PagedParams
from cromwell.domain.product_review import ProductReviewFilter, ProductReviewInput
from cromwell.repositories.product_review_repository import ProductReviewRepository
from cromwell.services.cache_strategy import get_cache_strategy_manager
from cromwell.services.database_optimizer import get_database_optimizer

router = APIRouter()


class ProductReviewFilterRequest(BaseModel):
    paged_params: Optional[PagedParams] = None
    filter: Optional[ProductReviewFilter] = None


class ProductReviewDeleteManyRequest(BaseModel):
    input: DeleteManyInput
    filter: Optional[ProductReviewFilter] = None


def get_product_review_repository() -> ProductReviewRepository:
    return ProductReviewRepository(
        cache_strategy_manager=get_cache_strategy_manager(),
        db_optimizer=get_database_optimizer(),
    )


@router.get("/")
async def get_product_reviews(
    page_number: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    order_by: Optional[str] = Query(None),
    order: str = Query("DESC", pattern="^(ASC|DESC|asc|desc)$"),
    user: AuthUserInfo = Depends(require_admin)
):
    repo = get_product_review_repository()
    reviews = repo.get_product_reviews(PagedParams(
        page_number=page_number,
        page_size=page_size,
        order_by=order_by,
        order=order,
    ))
    return {"status": "success", "data": reviews.to_dict()}


@router.post("/filtered")
async def get_filtered_product_reviews(request: ProductReviewFilterRequest):
    """Reviews matching a filter. Only approved reviews are returned publicly."""
    review_filter = request.filter or ProductReviewFilter()
    if review_filter.approved is not True:
        review_filter = review_filter.model_copy(update={"approved": True})

    repo = get_product_review_repository()
    reviews = repo.get_filtered_product_reviews(request.paged_params, review_filter)
    return {"status": "success", "data": reviews.to_dict()}


@router.post("/admin/filtered")
async def get_filtered_product_reviews_admin(
    request: ProductReviewFilterRequest,
    user: AuthUserInfo = Depends(require_admin)
):
    repo = get_product_review_repository()
    reviews = repo.get_filtered_product_reviews(request.paged_params, request.filter)
    return {"status": "success", "data": reviews.to_dict()}


@router.get("/{review_id}")
async def get_product_review(review_id: int):
    repo = get_product_review_repository()
    return {"status": "success", "data": repo.get_product_review(review_id).model_dump(mode="json")}


@router.post("/")
async def create_product_review(
    input: ProductReviewInput,
    user: Optional[AuthUserInfo] = Depends(get_optional_user)
):
    if not user or user.level < ROLE_LEVELS["administrator"]:
        input = input.model_copy(update={"approved": False})

    repo = get_product_review_repository()
    review = repo.create_product_review(input)
    return {"status": "success", "data": review.model_dump(mode="json")}


@router.put("/{review_id}")
async def update_product_review(
    review_id: int,
    input: ProductReviewInput,
    user: AuthUserInfo = Depends(require_admin)
):
    repo = get_product_review_repository()
    review = repo.update_product_review(review_id, input)
    return {"status": "success", "data": review.model_dump(mode="json")}


@router.delete("/{review_id}")
async def delete_product_review(review_id: int, user: AuthUserInfo = Depends(require_admin)):
    repo = get_product_review_repository()
    deleted = repo.delete_product_review(review_id)
    return {"status": "success", "data": deleted}


@router.post("/delete-many")
async def delete_many_product_reviews(
    request: ProductReviewDeleteManyRequest,
    user: AuthUserInfo = Depends(require_admin)
):
    repo = get_product_review_repository()
    deleted = repo.delete_many_filtered_product_reviews(request.input, request.filter)
    return {"status": "success", "data": deleted}
