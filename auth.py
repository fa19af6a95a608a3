import logging
import os
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from database import collection
from helpers import same_id

logger = logging.getLogger(__name__)

# Identity provider setup
IDENTITY_SECRET = os.getenv("IDENTITY_SECRET")
IDENTITY_ALGORITHMS = [a.strip() for a in os.getenv("IDENTITY_ALGORITHMS", "HS256").split(",") if a.strip()]
IDENTITY_AUDIENCE = os.getenv("IDENTITY_AUDIENCE")
IDENTITY_ISSUER = os.getenv("IDENTITY_ISSUER")

bearer_scheme = HTTPBearer(auto_error=False)


class AuthError(HTTPException):
    """Authentication/authorization failure; rendered as a bare {"message": ...} body."""


class IdentityError(Exception):
    pass


class AuthUser(BaseModel):
    uid: str
    email: Optional[str] = None
    name: Optional[str] = None
    picture: Optional[str] = None
    provider: Optional[str] = None


class JWTIdentityVerifier:
    """Verifies identity-provider ID tokens (signed JWTs) and returns their claims."""

    def __init__(self, key: Optional[str], algorithms, audience: Optional[str] = None, issuer: Optional[str] = None):
        self.key = key
        self.algorithms = list(algorithms)
        self.audience = audience
        self.issuer = issuer

    def verify(self, token: str) -> Dict[str, Any]:
        if not self.key:
            raise IdentityError("Identity verification is not configured")
        try:
            claims = jwt.decode(
                token,
                self.key,
                algorithms=self.algorithms,
                audience=self.audience,
                issuer=self.issuer,
                options={"verify_aud": self.audience is not None},
            )
        except JWTError as exc:
            raise IdentityError(str(exc)) from exc
        uid = claims.get("uid") or claims.get("user_id") or claims.get("sub")
        if not uid:
            raise IdentityError("Token has no subject")
        return {**claims, "uid": uid}


_verifier = JWTIdentityVerifier(IDENTITY_SECRET, IDENTITY_ALGORITHMS, IDENTITY_AUDIENCE, IDENTITY_ISSUER)


def get_verifier() -> JWTIdentityVerifier:
    return _verifier


def claims_to_auth_user(claims: Dict[str, Any]) -> AuthUser:
    firebase = claims.get("firebase") or {}
    return AuthUser(
        uid=str(claims["uid"]),
        email=claims.get("email"),
        name=claims.get("name"),
        picture=claims.get("picture"),
        provider=firebase.get("sign_in_provider") or claims.get("provider"),
    )


def verify_credential(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    verifier=Depends(get_verifier),
) -> AuthUser:
    if credentials is None or not credentials.credentials:
        raise AuthError(status_code=401, detail="Unauthorized")
    try:
        claims = verifier.verify(credentials.credentials)
    except IdentityError as exc:
        logger.info(f"Rejected credential: {exc}")
        raise AuthError(status_code=401, detail="Invalid token")
    return claims_to_auth_user(claims)


def get_current_user(auth_user: AuthUser = Depends(verify_credential)) -> Dict[str, Any]:
    user = collection("user").find_one({"uid": auth_user.uid})
    if not user:
        raise AuthError(status_code=403, detail="User not registered")
    if not user.get("isActive", True):
        raise AuthError(status_code=403, detail="Account is disabled")
    return user


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    verifier=Depends(get_verifier),
) -> Optional[Dict[str, Any]]:
    if credentials is None or not credentials.credentials:
        return None
    try:
        claims = verifier.verify(credentials.credentials)
    except IdentityError:
        return None
    return collection("user").find_one({"uid": str(claims["uid"]), "isActive": {"$ne": False}})


def require_role(*roles: str):
    def role_dep(current_user=Depends(get_current_user)):
        if current_user.get("role") not in roles:
            detail = "Admin access only" if roles == ("admin",) else "Access denied"
            raise AuthError(status_code=403, detail=detail)
        return current_user
    return role_dep


def is_admin(user: Dict[str, Any]) -> bool:
    return user.get("role") == "admin"


def is_owner_or_admin(user: Dict[str, Any], resource: Dict[str, Any], field: str = "author") -> bool:
    return is_admin(user) or same_id(resource.get(field), user.get("_id"))
