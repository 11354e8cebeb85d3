# mechconnect/routes/auth.py
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from datetime import timedelta
from typing import Annotated
import logging

from ..utils.auth import (
    authenticate_user,
    create_access_token,
    get_password_hash,
    ACCESS_TOKEN_EXPIRE_MINUTES
)
from ..database import get_store
from ..models.auth import CustomerCreate, MechanicCreate, Token
from ..queries.customer_queries import create_customer, get_customer_credentials
from ..queries.mechanic_queries import create_mechanic, get_mechanic_credentials
from ..store import DocumentStore

logger = logging.getLogger(__name__)

auth_router = APIRouter(prefix="/auth", tags=["Authentication"])

def _issue_token(user_id: str, user_type: str) -> Token:
    access_token = create_access_token(
        data={"sub": str(user_id), "type": user_type},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    return Token(access_token=access_token, token_type="bearer", user_type=user_type)

async def _ensure_email_free(store: DocumentStore, email: str) -> None:
    if await get_customer_credentials(store, email) or await get_mechanic_credentials(store, email):
        raise HTTPException(status_code=400, detail="Email already registered")

@auth_router.post("/token", response_model=Token)
async def login_for_access_token(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    store: DocumentStore = Depends(get_store)
):
    user = await authenticate_user(form_data.username, form_data.password, store)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _issue_token(user["id"], user["type"])

@auth_router.post("/register/customer", response_model=Token, status_code=status.HTTP_201_CREATED)
async def register_customer(
    payload: CustomerCreate,
    store: DocumentStore = Depends(get_store)
):
    await _ensure_email_free(store, payload.email)
    customer = await create_customer(store, payload, get_password_hash(payload.password))
    logger.info(f"Customer {customer.id} registered")
    return _issue_token(customer.id, "customer")

@auth_router.post("/register/mechanic", response_model=Token, status_code=status.HTTP_201_CREATED)
async def register_mechanic(
    payload: MechanicCreate,
    store: DocumentStore = Depends(get_store)
):
    await _ensure_email_free(store, payload.email)
    mechanic = await create_mechanic(store, payload, get_password_hash(payload.password))
    logger.info(f"Mechanic {mechanic.id} registered, KYC pending")
    return _issue_token(mechanic.id, "mechanic")
