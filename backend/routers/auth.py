import logging
import sqlite3
import time

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from backend.errors import BadRequest, InternalServerError, Unauthorized
from backend.responses import success_response
from backend.security import issue_session_token, require_admin
from database.db import create_tables, verify_admin_credentials

logger = logging.getLogger(__name__)

router = APIRouter()


class AdminLogin(BaseModel):
    username: str
    password: str


@router.post("/auth/login")
def admin_login(payload: AdminLogin):
    username = payload.username.strip()
    password = payload.password.strip()

    if not username:
        raise BadRequest("Username is required.")
    if not password:
        raise BadRequest("Password is required.")

    try:
        admin = verify_admin_credentials(username, password)
    except sqlite3.OperationalError:
        # Self-heal when the schema is missing (e.g., startup skipped).
        try:
            create_tables()
            admin = verify_admin_credentials(username, password)
        except sqlite3.OperationalError:
            logger.exception("Admin store unavailable during login")
            raise InternalServerError("Authentication service unavailable. Please retry.")

    if not admin:
        logger.warning("Failed admin login for %r", username)
        raise Unauthorized("Invalid admin credentials.")

    token, claims = issue_session_token(admin["id"], admin["username"])
    now = int(time.time())
    return success_response(
        {
            "access_token": token,
            "token_type": "bearer",
            "admin": admin,
            "expires_at": claims["exp"],
            "expires_in": max(0, int(claims["exp"]) - now),
        },
        "Login successful",
    )


@router.get("/auth/me")
def auth_me(admin: dict = Depends(require_admin)):
    return success_response(
        {
            "id": admin["id"],
            "username": admin["username"],
            "role": "admin",
            "expires_at": admin["expires_at"],
            "issued_at": admin["issued_at"],
        }
    )
