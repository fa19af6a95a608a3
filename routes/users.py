import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from auth import get_current_user, is_admin, require_role
from database import collection, utcnow
from forms import RequestBody, optional_text, read_body
from helpers import to_public, trim_or_none
from storage import MB, get_storage, validate_images

logger = logging.getLogger(__name__)

router = APIRouter()

ASSIGNABLE_ROLES = ("user", "admin")
GENDERS = ("male", "female", "other")
PROFILE_FIELDS = ("name", "bio", "phone", "location", "gender", "country")
LIST_PROJECTION = {"_id": 0, "uid": 1, "name": 1, "email": 1, "role": 1, "isActive": 1, "createdAt": 1}


class RoleUpdate(BaseModel):
    role: Optional[str] = None


@router.get("")
def list_users(admin=Depends(require_role("admin"))):
    users = [to_public(u) for u in collection("user").find({}, LIST_PROJECTION).sort("createdAt", -1)]
    return {"success": True, "total": len(users), "users": users}


@router.get("/me")
def me(current_user=Depends(get_current_user)):
    return {"success": True, "user": to_public(current_user)}


@router.patch("/{uid}/role")
def update_user_role(uid: str, payload: RoleUpdate, admin=Depends(require_role("admin"))):
    if payload.role not in ASSIGNABLE_ROLES:
        raise HTTPException(status_code=400, detail="Invalid role")
    if admin["uid"] == uid:
        raise HTTPException(status_code=400, detail="You cannot change your own role")
    users = collection("user")
    user = users.find_one({"uid": uid})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    users.update_one({"_id": user["_id"]}, {"$set": {"role": payload.role, "updatedAt": utcnow()}})
    logger.info(f"Role of uid={uid} changed from {user.get('role')} to {payload.role} by uid={admin['uid']}")
    user = users.find_one({"_id": user["_id"]})
    return {"success": True, "message": "User role updated successfully", "user": to_public(user)}


@router.patch("/{uid}")
def update_user_profile(
    uid: str,
    body: RequestBody = Depends(read_body),
    current_user=Depends(get_current_user),
    storage=Depends(get_storage),
):
    if current_user["uid"] != uid and not is_admin(current_user):
        raise HTTPException(status_code=403, detail="You can only edit your own profile")

    uploads = body.files_for("profileImage", "image")
    if not uploads and not any(f in body for f in PROFILE_FIELDS):
        raise HTTPException(status_code=400, detail="Provide at least one field to update")

    updates = {}
    unset = {}
    if "name" in body:
        name = trim_or_none(optional_text(body, "name"))
        if not name:
            raise HTTPException(status_code=400, detail="Name cannot be empty")
        updates["name"] = name
    if "gender" in body:
        gender = trim_or_none(optional_text(body, "gender"))
        if gender is not None and gender.lower() not in GENDERS:
            raise HTTPException(status_code=400, detail="Invalid gender")
        updates["gender"] = gender.lower() if gender else None
    for field in ("bio", "phone", "location", "country"):
        if field in body:
            value = trim_or_none(optional_text(body, field))
            if value is None:
                unset[field] = ""
            else:
                updates[field] = value
    if updates.get("bio") and len(updates["bio"]) > 200:
        raise HTTPException(status_code=400, detail="Bio cannot exceed 200 characters")

    users = collection("user")
    user = users.find_one({"uid": uid})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    if uploads:
        validate_images(uploads, 1, 2 * MB, "Only one profile image can be uploaded",
                        "Profile image must be less than 2MB")
        updates["profileImage"] = storage.save(uploads[0], "user_profiles")

    updates["updatedAt"] = utcnow()
    change = {"$set": updates}
    if unset:
        change["$unset"] = unset
    users.update_one({"_id": user["_id"]}, change)
    user = users.find_one({"_id": user["_id"]})
    return {"success": True, "message": "Profile updated successfully", "user": to_public(user)}


@router.delete("/{uid}")
def deactivate_user(uid: str, admin=Depends(require_role("admin"))):
    if admin["uid"] == uid:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")
    users = collection("user")
    user = users.find_one({"uid": uid})
    if not user or not user.get("isActive", True):
        raise HTTPException(status_code=404, detail="User not found")
    users.update_one({"_id": user["_id"]}, {"$set": {"isActive": False, "updatedAt": utcnow()}})
    logger.info(f"User uid={uid} deactivated by uid={admin['uid']}")
    return {"success": True, "message": "User deactivated successfully"}
