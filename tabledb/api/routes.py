"""
API routes for the tabledb HTTP server.

Registration, session login/logout and a read-only table listing. Session
state is a signed cookie holding the canonical user id.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from ..database import Database
from ..errors import StoreClosedError, TableDbError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tabledb"])

SESSION_USER = "username"


# --- Request/Response Models ---


class RegisterRequest(BaseModel):
    """Request to register a user."""

    username: str = Field(..., description="User id")
    password: str = Field(..., description="Password")
    password2: str = Field(..., description="Password confirmation")
    email: Optional[str] = Field(None, description="Email address")


class LoginRequest(BaseModel):
    """Request to log in with a user id or an email."""

    username: str = Field(..., description="User id or email")
    password: str = Field(..., description="Password")


class UserResponse(BaseModel):
    """Canonical user id."""

    username: str


# --- Dependencies ---


def get_database(request: Request) -> Database:
    """Get the database from app state."""
    return request.app.state.database


def require_user(request: Request) -> str:
    """Get the logged-in user id from the session."""
    username = request.session.get(SESSION_USER)
    if not username:
        raise HTTPException(status_code=401, detail="Not logged in")
    return username


# --- Routes ---


@router.post("/register", response_model=UserResponse, status_code=201)
async def register(body: RegisterRequest, db: Database = Depends(get_database)) -> Any:
    """Register a user. Credentials are never echoed back."""
    if not body.password or not body.password2:
        raise HTTPException(status_code=400, detail="Password required.")
    if body.password != body.password2:
        raise HTTPException(status_code=400, detail="Passwords don't match.")
    await db.users.register(body.username, body.password, email=body.email or None)
    return UserResponse(username=body.username.lower())


@router.post("/login", response_model=UserResponse)
async def login(
    body: LoginRequest,
    request: Request,
    db: Database = Depends(get_database),
) -> Any:
    """Verify credentials and start a session.

    Every identity or credential failure answers with the same 401.
    """
    try:
        username = await db.users.login(body.username, body.password)
    except StoreClosedError:
        raise
    except TableDbError as e:
        logger.info(f"Login rejected: {type(e).__name__}")
        raise HTTPException(status_code=401, detail="Invalid username or password")
    request.session[SESSION_USER] = username
    return UserResponse(username=username)


@router.post("/logout")
async def logout(request: Request) -> dict:
    """End the session."""
    request.session.pop(SESSION_USER, None)
    return {"logout": True}


@router.get("/me", response_model=UserResponse)
async def me(username: str = Depends(require_user)) -> Any:
    """Current session user."""
    return UserResponse(username=username)


@router.get("/tables")
async def list_tables(db: Database = Depends(get_database)) -> dict:
    """Names of all registered tables."""
    return {"tables": await db.table_names()}
