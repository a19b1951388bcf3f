from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr
from sqlalchemy.orm import Session

from settlement.core.database import get_db
from settlement.core.deps import get_tenant, require_admin
from settlement.core.roles import Role, REMOTE_ROLES
from settlement.core.security import create_token_pair, decode_token, hash_password, verify_password
from settlement.models.tenant import Tenant
from settlement.models.user import User


router = APIRouter()


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    tenant_name: str
    tenant_slug: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class UserCreate(BaseModel):
    email: EmailStr
    password: str
    role: str
    customer_code: Optional[str] = None


class UserOut(BaseModel):
    id: int
    email: EmailStr
    role: str
    customer_code: Optional[str] = None

    class Config:
        from_attributes = True


@router.post("/register", response_model=TokenResponse)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    """Creates a tenant and its owner"""
    existing_tenant = db.query(Tenant).filter(Tenant.slug == data.tenant_slug).first()
    if existing_tenant:
        raise HTTPException(status_code=400, detail="Tenant already exists")

    tenant = Tenant(name=data.tenant_name, slug=data.tenant_slug)
    db.add(tenant)
    db.flush()

    user = User(
        email=data.email,
        hashed_password=hash_password(data.password),
        role=Role.owner.value,
        tenant_id=tenant.id,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    access, refresh = create_token_pair(user.id)
    return TokenResponse(access_token=access, refresh_token=refresh)


@router.post("/login", response_model=TokenResponse)
def login(data: LoginRequest, db: Session = Depends(get_db), tenant: Tenant = Depends(get_tenant)):
    user = db.query(User).filter(User.email == data.email, User.tenant_id == tenant.id).first()
    if not user or not verify_password(data.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    access, refresh = create_token_pair(user.id)
    return TokenResponse(access_token=access, refresh_token=refresh)


@router.post("/refresh", response_model=TokenResponse)
def refresh_token_endpoint(data: RefreshRequest, db: Session = Depends(get_db), tenant: Tenant = Depends(get_tenant)):
    payload = decode_token(data.refresh_token)
    if not payload or payload.get("type") != "refresh":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")

    user = db.query(User).filter(User.id == int(payload["sub"]), User.tenant_id == tenant.id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    access, refresh = create_token_pair(user.id)
    return TokenResponse(access_token=access, refresh_token=refresh)


@router.get("/users", response_model=List[UserOut])
def list_users(db: Session = Depends(get_db), tenant: Tenant = Depends(get_tenant), admin: User = Depends(require_admin)):
    return db.query(User).filter(User.tenant_id == tenant.id).order_by(User.id.asc()).all()


@router.post("/users", response_model=UserOut)
def create_user(
    data: UserCreate,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    admin: User = Depends(require_admin),
):
    """Admin creates operators, representatives or customer-portal users"""
    try:
        role = Role(data.role)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid role")
    if role in REMOTE_ROLES and not (data.customer_code or "").strip():
        raise HTTPException(status_code=400, detail="Representatives and customers need a customer_code")
    if db.query(User).filter(User.tenant_id == tenant.id, User.email == data.email).first():
        raise HTTPException(status_code=400, detail="Email already exists for this tenant")

    new_user = User(
        email=data.email,
        hashed_password=hash_password(data.password),
        role=role.value,
        tenant_id=tenant.id,
        customer_code=(data.customer_code or "").strip() or None,
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)
    return new_user
