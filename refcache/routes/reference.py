"""
routes/reference.py
-------------------

Reference-data endpoints. Reads are served from the cache (loading from
the upstream API on a miss); writes are forwarded upstream and
invalidate the affected cache keys. Upstream failures surface as
:class:`ApiError` and are rendered by the handler in :mod:`refcache.main`.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Request, status

from refcache.schemas.reference import (
    BankAccount,
    BusinessInfo,
    Customer,
    CustomerVariantPrice,
    CylinderVariant,
    ExpenseCategory,
    MonthlyPrice,
    PaymentMode,
    Supplier,
    User,
    Warehouse,
)
from refcache.services.reference_service import ReferenceDataService


router = APIRouter(prefix="/reference", tags=["reference"])


def get_reference_service(request: Request) -> ReferenceDataService:
    return request.app.state.reference_service


@router.get("/warehouses", response_model=List[Warehouse])
async def get_warehouses(service: ReferenceDataService = Depends(get_reference_service)):
    return await service.list_warehouses()


@router.post("/warehouses", response_model=Warehouse, status_code=status.HTTP_201_CREATED)
async def post_warehouse(warehouse: Warehouse, service: ReferenceDataService = Depends(get_reference_service)):
    warehouse.id = None
    return await service.save_warehouse(warehouse)


@router.put("/warehouses/{warehouse_id}", response_model=Warehouse)
async def put_warehouse(warehouse_id: int, warehouse: Warehouse,
                        service: ReferenceDataService = Depends(get_reference_service)):
    warehouse.id = warehouse_id
    return await service.save_warehouse(warehouse)


@router.get("/variants", response_model=List[CylinderVariant])
async def get_variants(service: ReferenceDataService = Depends(get_reference_service)):
    return await service.list_variants()


@router.post("/variants", response_model=CylinderVariant, status_code=status.HTTP_201_CREATED)
async def post_variant(variant: CylinderVariant, service: ReferenceDataService = Depends(get_reference_service)):
    variant.id = None
    return await service.save_variant(variant)


@router.put("/variants/{variant_id}", response_model=CylinderVariant)
async def put_variant(variant_id: int, variant: CylinderVariant,
                      service: ReferenceDataService = Depends(get_reference_service)):
    variant.id = variant_id
    return await service.save_variant(variant)


@router.delete("/variants/{variant_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_variant(variant_id: int, service: ReferenceDataService = Depends(get_reference_service)):
    await service.delete_variant(variant_id)


@router.get("/variants/{variant_id}/monthly-prices", response_model=List[MonthlyPrice])
async def get_monthly_prices(variant_id: int, service: ReferenceDataService = Depends(get_reference_service)):
    return await service.monthly_prices(variant_id)


@router.post("/monthly-prices", response_model=MonthlyPrice)
async def post_monthly_price(price: MonthlyPrice, service: ReferenceDataService = Depends(get_reference_service)):
    return await service.save_monthly_price(price)


@router.get("/suppliers", response_model=List[Supplier])
async def get_suppliers(service: ReferenceDataService = Depends(get_reference_service)):
    return await service.list_suppliers()


@router.post("/suppliers", response_model=Supplier, status_code=status.HTTP_201_CREATED)
async def post_supplier(supplier: Supplier, service: ReferenceDataService = Depends(get_reference_service)):
    supplier.id = None
    return await service.save_supplier(supplier)


@router.get("/customers", response_model=List[Customer])
async def get_customers(service: ReferenceDataService = Depends(get_reference_service)):
    return await service.list_customers()


@router.post("/customers", response_model=Customer, status_code=status.HTTP_201_CREATED)
async def post_customer(customer: Customer, service: ReferenceDataService = Depends(get_reference_service)):
    customer.id = None
    return await service.save_customer(customer)


@router.put("/customers/{customer_id}", response_model=Customer)
async def put_customer(customer_id: int, customer: Customer,
                       service: ReferenceDataService = Depends(get_reference_service)):
    customer.id = customer_id
    return await service.save_customer(customer)


@router.get("/users", response_model=List[User])
async def get_users(service: ReferenceDataService = Depends(get_reference_service)):
    return await service.list_users()


@router.get("/bank-accounts", response_model=List[BankAccount])
async def get_bank_accounts(service: ReferenceDataService = Depends(get_reference_service)):
    return await service.list_bank_accounts()


@router.post("/bank-accounts", response_model=BankAccount, status_code=status.HTTP_201_CREATED)
async def post_bank_account(account: BankAccount, service: ReferenceDataService = Depends(get_reference_service)):
    account.id = None
    return await service.save_bank_account(account)


@router.put("/bank-accounts/{account_id}", response_model=BankAccount)
async def put_bank_account(account_id: int, account: BankAccount,
                           service: ReferenceDataService = Depends(get_reference_service)):
    account.id = account_id
    return await service.save_bank_account(account)


@router.get("/payment-modes", response_model=List[PaymentMode])
async def get_payment_modes(service: ReferenceDataService = Depends(get_reference_service)):
    return await service.list_payment_modes()


@router.get("/expense-categories", response_model=List[ExpenseCategory])
async def get_expense_categories(service: ReferenceDataService = Depends(get_reference_service)):
    return await service.list_expense_categories()


@router.get("/business-info", response_model=BusinessInfo)
async def get_business_info(service: ReferenceDataService = Depends(get_reference_service)):
    return await service.get_business_info()


@router.get("/customers/{customer_id}/prices", response_model=List[CustomerVariantPrice])
async def get_customer_prices(customer_id: int, service: ReferenceDataService = Depends(get_reference_service)):
    return await service.customer_prices(customer_id)


@router.put("/customers/{customer_id}/prices/{variant_id}", response_model=CustomerVariantPrice)
async def put_customer_price(customer_id: int, variant_id: int, price: CustomerVariantPrice,
                             service: ReferenceDataService = Depends(get_reference_service)):
    price.customer_id = customer_id
    price.variant_id = variant_id
    return await service.save_customer_price(customer_id, price)
