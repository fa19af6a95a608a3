from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from pymongo.errors import DuplicateKeyError

from auth import require_role
from database import collection, create_document
from helpers import parse_bool, require_text, slugify, to_public, trim_or_none
from schemas import Category as CategorySchema

router = APIRouter()


class CategoryCreate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


@router.post("", status_code=201)
def create_category(payload: CategoryCreate, admin=Depends(require_role("admin"))):
    name = require_text(payload.name, "Category name is required")
    slug = slugify(name)
    if not slug:
        raise HTTPException(status_code=400, detail="Category name must contain letters or digits")

    categories = collection("category")
    if categories.find_one({"name": name}):
        raise HTTPException(status_code=409, detail="Category already exists")

    category = CategorySchema(
        name=name,
        slug=slug,
        description=trim_or_none(payload.description),
        is_active=payload.is_active if payload.is_active is not None else True,
    )
    try:
        doc = create_document("category", category)
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="Category slug must be unique")
    return {"success": True, "message": "Category created successfully", "category": to_public(doc)}


@router.get("")
def list_categories(includeInactive: Optional[str] = None):
    filt = {} if includeInactive is not None and parse_bool(includeInactive) else {"isActive": True}
    categories = [to_public(c) for c in collection("category").find(filt).sort("name", 1)]
    return {"success": True, "total": len(categories), "categories": categories}
