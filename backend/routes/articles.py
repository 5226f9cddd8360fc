# backend/routes/articles.py
from typing import Optional, List
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database import get_db
from utils.tokenJWT import get_current_user
from utils.audit import write_log, client_ip
from models.users import User
from models.article import Article
from services.stock_status import StockStatus, classify_article, low_stock_articles
import schemas.article as article_schemas

router = APIRouter(tags=["Articles"])

# ---- HELPERS ----
def _can_edit(user: User) -> bool:
    """Stock edits are allowed for ADMIN/OPERATOR."""
    return (user.role or "").lower() in {"admin", "operator"}

def _norm_code(code: Optional[str]) -> str:
    c = (code or "").strip().upper()
    if not c:
        raise HTTPException(status_code=422, detail="Code cannot be blank")
    return c

def _code_taken(db: Session, code: str, exclude_id: Optional[int] = None) -> bool:
    query = db.query(Article).filter(Article.code == code)
    if exclude_id is not None:
        query = query.filter(Article.id != exclude_id)
    return query.first() is not None

# Commit; a unique code lost to a concurrent insert becomes 409 instead of 500
def _commit_or_409(db: Session, code: Optional[str], exclude_id: Optional[int] = None) -> None:
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        if code is not None and _code_taken(db, code, exclude_id):
            raise HTTPException(status_code=409, detail="Article code already exists")
        raise

# Map an Article row to its payload, status is derived on every read
def article_to_out(article: Article) -> article_schemas.ArticleOut:
    fields = [f for f in article_schemas.ArticleOut.model_fields if f != "status"]
    data = {f: getattr(article, f) for f in fields if hasattr(article, f)}
    data["status"] = classify_article(article)
    return article_schemas.ArticleOut.model_validate(data)

def _get_article_or_404(db: Session, article_id: int) -> Article:
    article = db.query(Article).filter(Article.id == article_id).first()
    if not article:
        raise HTTPException(status_code=404, detail="Article not found")
    return article


@router.get("/articles", response_model=List[article_schemas.ArticleOut])
def list_articles(
    q: Optional[str] = Query(None, description="Search by code or name"),
    category: Optional[str] = Query(None),
    stock_status: Optional[StockStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(Article)
    if q:
        like = f"%{q}%"
        query = query.filter(or_(Article.code.ilike(like), Article.name.ilike(like)))
    if category:
        query = query.filter(Article.category.ilike(f"%{category}%"))

    items = [article_to_out(a) for a in query.order_by(Article.code.asc()).all()]
    # Status is not a column, filter after classification
    if stock_status:
        items = [a for a in items if a.status == stock_status]
    return items


@router.get("/articles/low-stock", response_model=List[article_schemas.ArticleOut])
def list_low_stock_articles(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return [article_to_out(a) for a in low_stock_articles(db)]


@router.get("/articles/{article_id}", response_model=article_schemas.ArticleOut)
def get_article(
    article_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return article_to_out(_get_article_or_404(db, article_id))


@router.post("/articles", response_model=article_schemas.ArticleOut, status_code=status.HTTP_201_CREATED)
def create_article(
    payload: article_schemas.ArticleCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not _can_edit(current_user):
        raise HTTPException(status_code=403, detail="Not authorized to add articles")

    code = _norm_code(payload.code)
    if _code_taken(db, code):
        raise HTTPException(status_code=409, detail="Article code already exists")

    article = Article(**payload.model_dump(exclude={"code"}), code=code)
    db.add(article)
    _commit_or_409(db, code)
    db.refresh(article)

    write_log(db, user_id=current_user.id, action="ARTICLE_CREATE", resource="articles",
              ip=client_ip(request), meta={"id": article.id, "code": article.code})
    return article_to_out(article)


@router.put("/articles/{article_id}", response_model=article_schemas.ArticleOut)
def update_article(
    article_id: int,
    payload: article_schemas.ArticleUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not _can_edit(current_user):
        raise HTTPException(status_code=403, detail="Not authorized to edit articles")

    article = _get_article_or_404(db, article_id)
    data = payload.model_dump(exclude_unset=True)

    if "code" in data:
        data["code"] = _norm_code(data["code"])
        if _code_taken(db, data["code"], exclude_id=article_id):
            raise HTTPException(status_code=409, detail="Article code already exists")

    old_quantity = article.quantity
    # Direct edit: quantity is replaced, no inventory delta logic involved
    for key, value in data.items():
        setattr(article, key, value)
    _commit_or_409(db, data.get("code"), exclude_id=article_id)
    db.refresh(article)

    write_log(db, user_id=current_user.id, action="ARTICLE_UPDATE", resource="articles",
              ip=client_ip(request),
              meta={"id": article.id, "fields": sorted(data), "quantity_old": old_quantity, "quantity_new": article.quantity})
    return article_to_out(article)


@router.delete("/articles/{article_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_article(
    article_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not _can_edit(current_user):
        raise HTTPException(status_code=403, detail="Not authorized to delete articles")

    article = _get_article_or_404(db, article_id)
    code = article.code
    # Product compositions referencing the article are removed by the FK cascade
    db.delete(article)
    db.commit()

    write_log(db, user_id=current_user.id, action="ARTICLE_DELETE", resource="articles",
              ip=client_ip(request), meta={"id": article_id, "code": code})
    return Response(status_code=status.HTTP_204_NO_CONTENT)
