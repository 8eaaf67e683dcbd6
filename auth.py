"""
Admin authentication: password hashing, bearer tokens and the route gate.

Tokens are stateless HS256 JWTs carrying {adminId, email}. The gate trusts
a valid signature and expiry and does not look the admin up again.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
import jwt
from bson import ObjectId
from fastapi import Header, HTTPException, Request

import config
import database
from schemas import AdminUser

logger = logging.getLogger(__name__)

ADMIN_COLLECTION = "adminuser"
BCRYPT_ROUNDS = 10
TOKEN_ALGORITHM = "HS256"


class InvalidToken(Exception):
    """Token is malformed, tampered with, or expired."""


# ----------------------------- Credentials -----------------------------

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(admin: Dict[str, Any], plaintext: str) -> bool:
    stored = admin.get("passwordHash")
    if not stored:
        return False
    return bcrypt.checkpw(plaintext.encode("utf-8"), stored.encode("utf-8"))


def find_admin_by_email(email: str) -> Optional[Dict[str, Any]]:
    return database.db[ADMIN_COLLECTION].find_one({"email": email.strip().lower()})


def find_admin_by_id(admin_id: str) -> Optional[Dict[str, Any]]:
    if not ObjectId.is_valid(admin_id):
        return None
    return database.db[ADMIN_COLLECTION].find_one({"_id": ObjectId(admin_id)})


def create_admin(email: str, password: str, name: str) -> str:
    admin = AdminUser(email=email, password_hash=hash_password(password), name=name)
    return database.create_document(ADMIN_COLLECTION, admin)


def set_password(admin_id: ObjectId, password: str) -> None:
    database.update_document(ADMIN_COLLECTION, admin_id, {"passwordHash": hash_password(password)})


def public_admin(admin: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in admin.items() if k != "passwordHash"}


# ----------------------------- Tokens -----------------------------

class TokenService:
    def __init__(self, secret: str, lifetime: timedelta):
        if not secret:
            raise ValueError("Token signing secret is required")
        self._secret = secret
        self.lifetime = lifetime

    def issue(self, admin_id: str, email: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "adminId": str(admin_id),
            "email": email,
            "iat": now,
            "exp": now + self.lifetime,
        }
        return jwt.encode(payload, self._secret, algorithm=TOKEN_ALGORITHM)

    def verify(self, token: str) -> Dict[str, str]:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[TOKEN_ALGORITHM],
                options={"require": ["exp"]},
            )
        except jwt.InvalidTokenError as exc:
            raise InvalidToken(str(exc)) from exc
        if not payload.get("adminId") or not payload.get("email"):
            raise InvalidToken("Token is missing admin claims")
        return {"adminId": payload["adminId"], "email": payload["email"]}


tokens = TokenService(config.JWT_SECRET, config.JWT_EXPIRE)


# ----------------------------- Gate -----------------------------

def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    # the scheme word is not checked: "Token x" hands "x" to the verifier
    parts = authorization.split()
    return parts[1] if len(parts) > 1 else None


def require_admin(request: Request, authorization: Optional[str] = Header(None)) -> Dict[str, str]:
    token = bearer_token(authorization)
    if not token:
        logger.info("Rejected %s %s: no bearer token", request.method, request.url.path)
        raise HTTPException(status_code=401, detail="No token provided", headers={"WWW-Authenticate": "Bearer"})
    try:
        claims = tokens.verify(token)
    except InvalidToken as exc:
        logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
        raise HTTPException(status_code=401, detail="Invalid or expired token", headers={"WWW-Authenticate": "Bearer"})
    request.state.admin = claims
    return claims


def optional_admin(request: Request, authorization: Optional[str] = Header(None)) -> Optional[Dict[str, str]]:
    """Admin claims when a valid bearer token is present, otherwise None. Never rejects."""
    token = bearer_token(authorization)
    if not token:
        return None
    try:
        claims = tokens.verify(token)
    except InvalidToken:
        return None
    request.state.admin = claims
    return claims
