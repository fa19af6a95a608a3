import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from pymongo.errors import DuplicateKeyError

from auth import AuthError, IdentityError, claims_to_auth_user, get_verifier
from database import collection, create_document
from helpers import to_public
from schemas import User as UserSchema

logger = logging.getLogger(__name__)

router = APIRouter()


class LoginRequest(BaseModel):
    token: Optional[str] = None
    credential: Optional[str] = None


@router.post("/login")
def login_or_register(payload: LoginRequest, verifier=Depends(get_verifier)):
    token = payload.credential or payload.token
    if not token:
        raise AuthError(status_code=401, detail="Authentication failed")
    try:
        auth_user = claims_to_auth_user(verifier.verify(token))
    except IdentityError as exc:
        logger.info(f"Login rejected: {exc}")
        raise AuthError(status_code=401, detail="Authentication failed")

    users = collection("user")
    user = users.find_one({"uid": auth_user.uid})
    if not user:
        user_doc = UserSchema(
            uid=auth_user.uid,
            name=auth_user.name or "Guest User",
            email=auth_user.email,
            photo=auth_user.picture,
            provider=auth_user.provider,
            role="user",
        )
        try:
            user = create_document("user", user_doc)
            logger.info(f"Registered user uid={auth_user.uid}")
        except DuplicateKeyError:
            # concurrent first login for the same subject
            user = users.find_one({"uid": auth_user.uid})

    if not user.get("isActive", True):
        raise AuthError(status_code=403, detail="Account is disabled")

    return {"success": True, "message": "Authentication successful", "user": to_public(user)}
