from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import update
from sqlalchemy.orm import Session

from storeapi.core.deps import get_db, require_roles
from storeapi.core.errors import NotFoundError, ValidationError
from storeapi.logger import get_logger
from storeapi.models.product_models import Product
from storeapi.models.product_schemas import ProductCreate, ProductOut, ProductUpdate, StockUpdate

logger = get_logger(__name__)

router = APIRouter(tags=["Products"])

admin_only = require_roles("admin")


def _out(product: Product) -> dict:
    return ProductOut.model_validate(product).model_dump(by_alias=True, mode="json")


def _get_or_404(db: Session, product_id: str) -> Product:
    product = db.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found")
    return product


# ----------------- PUBLIC -----------------
@router.get("/products")
def list_products(
    category: Optional[str] = None,
    skip: int = 0,
    limit: int = 50,
    db: Session = Depends(get_db),
):
    query = db.query(Product)
    if category:
        query = query.filter(Product.category == category)
    products = query.order_by(Product.created_at.desc()).offset(max(skip, 0)).limit(min(max(limit, 1), 100)).all()
    return {"success": True, "data": [_out(p) for p in products]}


@router.get("/products/featured")
def featured_products(db: Session = Depends(get_db)):
    products = db.query(Product).filter(Product.featured.is_(True)).all()
    return {"success": True, "data": [_out(p) for p in products]}


@router.get("/products/{product_id}")
def get_product(product_id: str, db: Session = Depends(get_db)):
    return {"success": True, "data": _out(_get_or_404(db, product_id))}


# ----------------- ADMIN -----------------
@router.post("/products", status_code=201, dependencies=[Depends(admin_only)])
def create_product(body: ProductCreate, db: Session = Depends(get_db)):
    product = Product(**body.model_dump())
    db.add(product)
    db.commit()
    db.refresh(product)
    logger.info("Product created: %s", product.id)
    return {"success": True, "data": _out(product)}


@router.put("/products/{product_id}", dependencies=[Depends(admin_only)])
def update_product(product_id: str, body: ProductUpdate, db: Session = Depends(get_db)):
    product = _get_or_404(db, product_id)
    for field, value in body.model_dump(exclude_unset=True).items():
        if value is None:
            raise ValidationError(f"{field} cannot be null")
        setattr(product, field, value)
    db.commit()
    db.refresh(product)
    logger.info("Product updated: %s", product.id)
    return {"success": True, "data": _out(product)}


@router.delete("/products/{product_id}", dependencies=[Depends(admin_only)])
def delete_product(product_id: str, db: Session = Depends(get_db)):
    product = _get_or_404(db, product_id)
    db.delete(product)
    db.commit()
    logger.info("Product deleted: %s", product_id)
    return {"success": True, "message": "Product deleted"}


@router.patch("/products/{product_id}/stock", dependencies=[Depends(admin_only)])
def update_stock(product_id: str, body: StockUpdate, db: Session = Depends(get_db)):
    _get_or_404(db, product_id)

    # conditional update so concurrent adjustments cannot drive stock negative
    changed = db.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock + body.quantity >= 0)
        .values(stock=Product.stock + body.quantity)
        .execution_options(synchronize_session=False)
    ).rowcount
    db.commit()
    if not changed:
        raise ValidationError("Insufficient stock")

    product = _get_or_404(db, product_id)
    db.refresh(product)
    return {"success": True, "data": _out(product)}
