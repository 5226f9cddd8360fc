# backend/routes/users.py
from fastapi import APIRouter, Depends, HTTPException, status, Query, Request, Response
from typing import List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from utils.tokenJWT import role_required
from utils.hashing import get_password_hash
from utils.audit import write_log, client_ip
from schemas.user import UserCreate, UserUpdate, UserResponse

router = APIRouter(prefix="/users", tags=["Users"])

# The account created by the seed script; it must always stay an admin
PRIMARY_ADMIN_ID = 1

admin_only = role_required("admin")


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user

def _email_taken(db: Session, email: str, exclude_id: Optional[int] = None) -> bool:
    query = db.query(User).filter(func.lower(User.email) == email.strip().lower())
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    return query.first() is not None


# List users, optionally filtered by e-mail fragment or role (Admin only)
@router.get("", response_model=List[UserResponse])
def list_users(
    q: Optional[str] = Query(None, description="Search by e-mail or name"),
    role: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    query = db.query(User)
    if q:
        like = f"%{q.lower()}%"
        query = query.filter(User.email.ilike(like) | User.name.ilike(like))
    if role:
        query = query.filter(User.role.ilike(role))
    return query.order_by(User.id.asc()).all()


@router.get("/{user_id}", response_model=UserResponse)
def get_user(user_id: int, db: Session = Depends(get_db), current_user: User = Depends(admin_only)):
    return _get_user_or_404(db, user_id)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    if _email_taken(db, payload.email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already in use")

    user = User(
        email=payload.email.strip().lower(),
        password_hash=get_password_hash(payload.password),
        name=payload.name,
        role=payload.role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    write_log(db, user_id=current_user.id, action="USER_CREATE", resource="users",
              ip=client_ip(request), meta={"id": user.id, "role": user.role})
    return user


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    payload: UserUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    data = payload.model_dump(exclude_unset=True)

    if user_id == PRIMARY_ADMIN_ID and data.get("role") not in (None, "admin"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="The primary administrator role cannot be changed")

    user = _get_user_or_404(db, user_id)

    if data.get("email"):
        if _email_taken(db, data["email"], exclude_id=user_id):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already in use")
        data["email"] = data["email"].strip().lower()

    if data.get("password"):
        user.password_hash = get_password_hash(data.pop("password"))
    data.pop("password", None)

    for key, value in data.items():
        if value is not None:
            setattr(user, key, value)
    db.commit()
    db.refresh(user)

    write_log(db, user_id=current_user.id, action="USER_UPDATE", resource="users",
              ip=client_ip(request), meta={"id": user.id, "fields": sorted(payload.model_dump(exclude_unset=True))})
    return user


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    if user_id == PRIMARY_ADMIN_ID:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="The primary administrator cannot be deleted")
    if user_id == current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You cannot delete your own account")

    user = _get_user_or_404(db, user_id)
    email = user.email
    db.delete(user)
    db.commit()

    write_log(db, user_id=current_user.id, action="USER_DELETE", resource="users",
              ip=client_ip(request), meta={"id": user_id, "email": email})
    return Response(status_code=status.HTTP_204_NO_CONTENT)
