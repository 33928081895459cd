from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from pydantic import EmailStr, field_validator

from healthdiary.auth import create_token, hash_password, verify_password, get_token_payload, get_current_user, authorize
from healthdiary.db import get_db
from healthdiary.models import User
from healthdiary.api.schemas import CamelModel, parse_day

router = APIRouter()


class UserRegistration(CamelModel):
    username: str
    email: EmailStr
    birth_date: date
    password: str

    @field_validator("birth_date", mode="before")
    @classmethod
    def parse_birth_date(cls, v):
        return parse_day(v)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Username must not be empty")
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v):
        if not v:
            raise ValueError("Password must not be empty")
        return v


class UserLogin(CamelModel):
    email: EmailStr
    password: str


@router.post("/registration")
def registration(user_data: UserRegistration, db: Session = Depends(get_db)):
    """Create an account and return a session token."""
    existing = db.query(User).filter(User.email == user_data.email).first()
    if existing:
        raise HTTPException(status_code=400, detail="A user with this email already exists")

    if user_data.birth_date > date.today():
        raise HTTPException(status_code=400, detail="Birth date cannot be in the future")

    user = User(
        username=user_data.username,
        email=user_data.email,
        birth_date=user_data.birth_date,
        password=hash_password(user_data.password)
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    return {"token": create_token(user)}


@router.post("/login")
def login(credentials: UserLogin, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == credentials.email).first()
    if not user:
        raise HTTPException(status_code=400, detail="User not found")

    if not verify_password(credentials.password, user.password):
        raise HTTPException(status_code=400, detail="Wrong password")

    return {"token": create_token(user)}


@router.get("/auth")
def check(payload: dict = Depends(get_token_payload), db: Session = Depends(get_db)):
    """Re-issue a token for the current session subject."""
    user = db.query(User).filter(User.id == payload["id"]).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    return {"token": create_token(user)}


@router.get("/{user_id}")
def get_user(user_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    authorize(user_id, current_user)

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    return {
        "username": user.username,
        "birthDate": str(user.birth_date),
        "age": user.age,
    }
