# backend/routes/products.py
from typing import Optional, List
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from database import get_db
from utils.tokenJWT import get_current_user
from utils.audit import write_log, client_ip
from models.users import User
from models.product import Product, ProductArticle
from services.availability import ProductAvailability, classify_product
from services.composition import (
    CompositionSpec, link_article_to_product, remove_all_for_product, replace_product_compositions,
)
from services.errors import PersistenceError
from services.transaction import atomic
from routes.articles import article_to_out
import schemas.product as product_schemas

router = APIRouter(tags=["Products"])

# ---- HELPERS ----
def _can_edit(user: User) -> bool:
    return (user.role or "").lower() in {"admin", "operator"}

def _norm_code(code: Optional[str]) -> str:
    c = (code or "").strip().upper()
    if not c:
        raise HTTPException(status_code=422, detail="Code cannot be blank")
    return c

def _code_taken(db: Session, code: Optional[str], exclude_id: Optional[int] = None) -> bool:
    if code is None:
        return False
    query = db.query(Product).filter(Product.code == code)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    return query.first() is not None

def _product_query(db: Session):
    return db.query(Product).options(
        joinedload(Product.articles).joinedload(ProductArticle.article)
    )

def _get_product_or_404(db: Session, product_id: int) -> Product:
    product = _product_query(db).filter(Product.id == product_id).first()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product

# Map a Product with its compositions to the payload, availability derived on read
def product_to_out(product: Product) -> product_schemas.ProductOut:
    compositions = [pa for pa in product.articles if pa.article is not None]
    return product_schemas.ProductOut(
        id=product.id,
        code=product.code,
        name=product.name,
        description=product.description,
        category=product.category,
        price=product.price,
        created_at=product.created_at,
        updated_at=product.updated_at,
        availability=classify_product(product, compositions),
        articles=[
            product_schemas.CompositionOut(
                id=pa.id, article_id=pa.article_id, quantity=pa.quantity,
                article=article_to_out(pa.article),
            )
            for pa in compositions
        ],
    )


@router.get("/products", response_model=List[product_schemas.ProductOut])
def list_products(
    q: Optional[str] = Query(None, description="Search by code or name"),
    category: Optional[str] = Query(None),
    availability: Optional[ProductAvailability] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = _product_query(db)
    if q:
        like = f"%{q}%"
        query = query.filter(or_(Product.code.ilike(like), Product.name.ilike(like)))
    if category:
        query = query.filter(Product.category.ilike(f"%{category}%"))

    items = [product_to_out(p) for p in query.order_by(Product.code.asc()).all()]
    if availability:
        items = [p for p in items if p.availability == availability]
    return items


@router.get("/products/{product_id}", response_model=product_schemas.ProductOut)
def get_product(
    product_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return product_to_out(_get_product_or_404(db, product_id))


@router.post("/products", response_model=product_schemas.ProductOut, status_code=status.HTTP_201_CREATED)
def create_product(
    payload: product_schemas.ProductCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not _can_edit(current_user):
        raise HTTPException(status_code=403, detail="Not authorized to add products")

    code = _norm_code(payload.code)
    if _code_taken(db, code):
        raise HTTPException(status_code=409, detail="Product code already exists")

    # Product and its compositions are stored together or not at all
    try:
        with atomic(db):
            product = Product(**payload.model_dump(exclude={"code", "articles"}), code=code)
            db.add(product)
            db.flush()
            for item in payload.articles:
                link_article_to_product(db, product.id, item.article_id, item.quantity)
    except PersistenceError:
        # Lost the code to a concurrent insert
        if _code_taken(db, code):
            raise HTTPException(status_code=409, detail="Product code already exists")
        raise

    write_log(db, user_id=current_user.id, action="PRODUCT_CREATE", resource="products",
              ip=client_ip(request), meta={"id": product.id, "code": code, "articles": len(payload.articles)})
    db.expire_all()
    return product_to_out(_get_product_or_404(db, product.id))


@router.put("/products/{product_id}", response_model=product_schemas.ProductOut)
def update_product(
    product_id: int,
    payload: product_schemas.ProductUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not _can_edit(current_user):
        raise HTTPException(status_code=403, detail="Not authorized to edit products")

    product = _get_product_or_404(db, product_id)
    data = payload.model_dump(exclude_unset=True, exclude={"articles"})

    if "code" in data:
        data["code"] = _norm_code(data["code"])
        if _code_taken(db, data["code"], exclude_id=product_id):
            raise HTTPException(status_code=409, detail="Product code already exists")

    # Price edits never reach existing order lines, they keep their snapshot
    try:
        with atomic(db):
            for key, value in data.items():
                setattr(product, key, value)
            db.flush()
            if payload.articles is not None:
                replace_product_compositions(
                    db, product_id,
                    [CompositionSpec(item.article_id, item.quantity) for item in payload.articles],
                )
    except PersistenceError:
        if _code_taken(db, data.get("code"), exclude_id=product_id):
            raise HTTPException(status_code=409, detail="Product code already exists")
        raise

    write_log(db, user_id=current_user.id, action="PRODUCT_UPDATE", resource="products",
              ip=client_ip(request),
              meta={"id": product_id, "fields": sorted(data), "articles_replaced": payload.articles is not None})
    db.expire_all()
    return product_to_out(_get_product_or_404(db, product_id))


@router.delete("/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(
    product_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not _can_edit(current_user):
        raise HTTPException(status_code=403, detail="Not authorized to delete products")

    product = _get_product_or_404(db, product_id)
    code = product.code
    with atomic(db):
        removed = remove_all_for_product(db, product_id)
        db.delete(product)

    write_log(db, user_id=current_user.id, action="PRODUCT_DELETE", resource="products",
              ip=client_ip(request), meta={"id": product_id, "code": code, "compositions": removed})
    return Response(status_code=status.HTTP_204_NO_CONTENT)
