import logging

from fastapi import APIRouter, Depends, HTTPException
from pymongo import ReturnDocument

from auth import is_owner_or_admin, require_role
from database import collection, create_document, get_documents, utcnow
from forms import RequestBody, optional_text, read_body
from helpers import USER_PUBLIC_FIELDS, populate, populate_one, require_text, to_obj_id, to_public
from schemas import TouristSpot as TouristSpotSchema
from storage import MB, get_storage, validate_images

logger = logging.getLogger(__name__)

router = APIRouter()

FOLDER = "tourist_spots"
LIMITS = {"title": 200, "description": 2000}


def _text(body: RequestBody, field: str, message: str) -> str:
    value = require_text(optional_text(body, field), message)
    if len(value) > LIMITS[field]:
        raise HTTPException(status_code=400, detail=f"{field.capitalize()} cannot exceed {LIMITS[field]} characters")
    return value


def _image(body: RequestBody):
    uploads = body.files_for("image")
    validate_images(uploads, 1, 5 * MB, "Only one image can be uploaded", "Image must be less than 5MB")
    return uploads[0] if uploads else None


def _get_spot(spot_id: str):
    spot = collection("touristspot").find_one({"_id": to_obj_id(spot_id)})
    if not spot:
        raise HTTPException(status_code=404, detail="Tourist spot not found")
    return spot


@router.post("", status_code=201)
def create_tourist_spot(
    body: RequestBody = Depends(read_body),
    current_user=Depends(require_role("user", "admin")),
    storage=Depends(get_storage),
):
    title = _text(body, "title", "Title is required")
    description = _text(body, "description", "Description is required")
    upload = _image(body)
    if upload is None:
        raise HTTPException(status_code=400, detail="Tourist image is required")

    spot = TouristSpotSchema(
        author=current_user["_id"],
        title=title,
        description=description,
        image=storage.save(upload, FOLDER),
    )
    doc = create_document("touristspot", spot)
    return {"success": True, "message": "Tourist spot created successfully", "spot": to_public(doc)}


@router.get("")
def list_tourist_spots(current_user=Depends(require_role("user", "admin"))):
    spots = get_documents("touristspot", sort=[("createdAt", -1)])
    populate(spots, "author", "user", USER_PUBLIC_FIELDS)
    return {"success": True, "total": len(spots), "spots": to_public(spots)}


@router.get("/{spot_id}")
def get_tourist_spot(spot_id: str, current_user=Depends(require_role("user", "admin"))):
    spot = populate_one(_get_spot(spot_id), "author", "user", USER_PUBLIC_FIELDS)
    return {"success": True, "spot": to_public(spot)}


@router.patch("/{spot_id}")
def update_tourist_spot(
    spot_id: str,
    body: RequestBody = Depends(read_body),
    current_user=Depends(require_role("user", "admin")),
    storage=Depends(get_storage),
):
    upload = _image(body)
    if "title" not in body and "description" not in body and upload is None:
        raise HTTPException(status_code=400, detail="Provide at least one field to update")

    updates = {}
    if "title" in body:
        updates["title"] = _text(body, "title", "Title cannot be empty")
    if "description" in body:
        updates["description"] = _text(body, "description", "Description cannot be empty")

    spot = _get_spot(spot_id)
    if not is_owner_or_admin(current_user, spot):
        raise HTTPException(status_code=403, detail="You can only edit your own tourist spot")

    if upload is not None:
        updates["image"] = storage.save(upload, FOLDER)
    updates["updatedAt"] = utcnow()
    spot = collection("touristspot").find_one_and_update(
        {"_id": spot["_id"]}, {"$set": updates}, return_document=ReturnDocument.AFTER
    )
    return {"success": True, "message": "Tourist spot updated successfully", "spot": to_public(spot)}


@router.delete("/{spot_id}")
def delete_tourist_spot(spot_id: str, admin=Depends(require_role("admin"))):
    spot = _get_spot(spot_id)
    collection("touristspot").delete_one({"_id": spot["_id"]})
    logger.info(f"Tourist spot {spot['_id']} deleted by uid={admin['uid']}")
    return {"success": True, "message": "Tourist spot deleted successfully"}
