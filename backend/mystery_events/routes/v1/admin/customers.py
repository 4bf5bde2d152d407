# backend/mystery_events/routes/v1/admin/customers.py
"""
Admin customer views - API v1

Endpoints:
    GET / - Search customers
    GET /{customer_id} - Customer with booking history
"""

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ....api.dependencies import require_admin
from ....api.dependencies.services import get_customer_service
from ....core.constants import MAX_PAGE_SIZE
from ....core.exceptions import DomainException
from ....schemas.customer import CustomerDetailResponse, CustomerListResponse
from ....services.customer_service import CustomerService
from ..common import handle_domain_exception

router = APIRouter(tags=["admin-customers"], dependencies=[Depends(require_admin)])


@router.get("", response_model=CustomerListResponse)
async def list_customers(
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    customer_service: CustomerService = Depends(get_customer_service),
) -> CustomerListResponse:
    result = await asyncio.to_thread(customer_service.list_customers, search, page, limit)
    return CustomerListResponse.model_validate(result)


@router.get("/{customer_id}", response_model=CustomerDetailResponse)
async def get_customer(
    customer_id: str, customer_service: CustomerService = Depends(get_customer_service)
) -> CustomerDetailResponse:
    try:
        detail = await asyncio.to_thread(customer_service.get_customer, customer_id)
    except DomainException as e:
        handle_domain_exception(e)
    return CustomerDetailResponse.model_validate(detail)
