import logging
import re
from typing import Any, Dict, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from auth import get_current_user, get_optional_user, require_role
from database import collection, create_document, utcnow
from forms import RequestBody, optional_text, read_body
from helpers import (
    page_params, parse_bool, parse_number, populate, require_text, same_id, slugify, to_obj_id, to_public,
    total_pages, trim_or_none,
)
from normalize import (
    IMAGE_FIELDS, collect_body_images, merge_images, normalize_badges, normalize_color_variants,
    normalize_specifications, resolve_category,
)
from schemas import ALLOWED_BADGES, Product as ProductSchema
from storage import MB, get_storage, validate_images

logger = logging.getLogger(__name__)

router = APIRouter()

FOLDER = "products"
MAX_IMAGES = 3
UPLOAD_FIELDS = ("image", "images")
CATEGORY_FIELDS = ("name", "slug")
REVIEWER_FIELDS = ("name", "email")
UPDATE_FIELDS = (
    "name", "description", "price", "discountPrice", "category", "brand", "stock", "isActive",
    "specifications", "colorVariants", "badges",
) + IMAGE_FIELDS


class ReviewRequest(BaseModel):
    rating: Any = None
    comment: Optional[str] = None


def _shape(product: Dict[str, Any]) -> Dict[str, Any]:
    populate([product], "category", "category", CATEGORY_FIELDS)
    populate([product], "reviews.user", "user", REVIEWER_FIELDS)
    return to_public(product)


def _uploaded_images(body: RequestBody, storage) -> list:
    uploads = body.files_for(*UPLOAD_FIELDS)
    validate_images(uploads, MAX_IMAGES, 5 * MB, f"You can upload up to {MAX_IMAGES} images per product",
                    "Each image must be less than 5MB")
    return storage.save_all(uploads, FOLDER)


def _price(value: Any, message: str) -> float:
    price = parse_number(value)
    if price is None or price < 0:
        raise HTTPException(status_code=400, detail=message)
    return price


def _discount(value: Any, price: float) -> Optional[float]:
    discount = parse_number(value)
    if discount is None:
        return None
    if discount < 0:
        raise HTTPException(status_code=400, detail="Discount price must be positive")
    if discount > price:
        raise HTTPException(status_code=400, detail="Discount price cannot exceed price")
    return discount


def _stock(value: Any) -> Optional[float]:
    stock = parse_number(value)
    if stock is not None and stock < 0:
        raise HTTPException(status_code=400, detail="Stock cannot be negative")
    return stock


def _category_id(value: Any) -> ObjectId:
    category = resolve_category(value)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category["_id"]


def _ensure_slug_free(slug: str, exclude: Optional[ObjectId] = None) -> None:
    filt: Dict[str, Any] = {"slug": slug}
    if exclude is not None:
        filt["_id"] = {"$ne": exclude}
    if collection("product").find_one(filt):
        raise HTTPException(status_code=409, detail="Product slug must be unique")


def _active_product(product_id: str) -> Dict[str, Any]:
    product = collection("product").find_one({"_id": to_obj_id(product_id, "Invalid product id"), "isActive": True})
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.post("", status_code=201)
def create_product(
    body: RequestBody = Depends(read_body),
    admin=Depends(require_role("admin")),
    storage=Depends(get_storage),
):
    fields = body.fields
    name = require_text(optional_text(body, "name"), "Product name is required")
    slug = slugify(name)
    if not slug:
        raise HTTPException(status_code=400, detail="Product name must contain letters or digits")
    price = _price(optional_text(body, "price"), "Valid product price is required")
    discount = _discount(optional_text(body, "discountPrice"), price)
    category_id = _category_id(optional_text(body, "category")) if "category" in body else None
    stock = _stock(optional_text(body, "stock"))
    _ensure_slug_free(slug)

    body_images = collect_body_images(fields)
    images = merge_images(body_images, _uploaded_images(body, storage))
    if not images:
        raise HTTPException(status_code=400, detail="At least one product image is required")

    product = ProductSchema(
        name=name,
        slug=slug,
        description=trim_or_none(optional_text(body, "description")),
        price=price,
        discount_price=discount,
        category=category_id,
        images=images,
        brand=trim_or_none(optional_text(body, "brand")),
        specifications=normalize_specifications(fields.get("specifications"), fields),
        color_variants=normalize_color_variants(fields.get("colorVariants"), fields),
        stock=stock if stock is not None else 0,
        badges=normalize_badges(fields.get("badges"), fields),
    )
    try:
        doc = create_document("product", product)
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="Product slug must be unique")
    logger.info(f"Product {doc['_id']} ({slug}) created by uid={admin['uid']}")
    return {"success": True, "message": "Product created successfully", "product": _shape(doc)}


def _product_filters(search, category, min_price, max_price, badge) -> Dict[str, Any]:
    filters: Dict[str, Any] = {"isActive": True}

    search = trim_or_none(search)
    if search:
        filters["name"] = {"$regex": re.escape(search), "$options": "i"}

    category = trim_or_none(category)
    if category:
        if ObjectId.is_valid(category):
            filters["category"] = ObjectId(category)
        else:
            found = collection("category").find_one({"slug": category.lower(), "isActive": True})
            if not found:
                # unknown category slug matches nothing
                filters["_id"] = {"$exists": False}
                return filters
            filters["category"] = found["_id"]

    low = parse_number(min_price)
    high = parse_number(max_price)
    if low is not None or high is not None:
        filters["price"] = {}
        if low is not None:
            filters["price"]["$gte"] = low
        if high is not None:
            filters["price"]["$lte"] = high

    badge = trim_or_none(badge)
    if badge and badge.lower() in ALLOWED_BADGES:
        filters["badges"] = badge.lower()
    return filters


@router.get("")
def list_products(
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    minPrice: Optional[str] = Query(None),
    maxPrice: Optional[str] = Query(None),
    badge: Optional[str] = Query(None),
):
    page, limit, skip = page_params(page, limit)
    filters = _product_filters(search, category, minPrice, maxPrice, badge)
    products_col = collection("product")
    total = products_col.count_documents(filters)
    products = list(products_col.find(filters, {"reviews": 0, "likedBy": 0})
                    .sort("createdAt", -1).skip(skip).limit(limit))
    populate(products, "category", "category", CATEGORY_FIELDS)
    return {
        "success": True,
        "total": total,
        "page": page,
        "totalPages": total_pages(total, limit),
        "products": to_public(products),
    }


@router.get("/{product_id}")
def get_product(product_id: str, current_user=Depends(get_optional_user)):
    query: Dict[str, Any] = {"isActive": True}
    if ObjectId.is_valid(product_id):
        query["_id"] = ObjectId(product_id)
    else:
        slug = trim_or_none(product_id)
        if not slug:
            raise HTTPException(status_code=400, detail="Invalid product identifier")
        query["slug"] = slug.lower()

    product = collection("product").find_one(query)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    is_loved = current_user is not None and any(same_id(u, current_user["_id"]) for u in product.get("likedBy", []))
    return {"success": True, "product": _shape(product), "isLoved": is_loved}


@router.put("/{product_id}")
def update_product(
    product_id: str,
    body: RequestBody = Depends(read_body),
    admin=Depends(require_role("admin")),
    storage=Depends(get_storage),
):
    product = _active_product(product_id)
    fields = body.fields
    has_uploads = bool(body.files_for(*UPLOAD_FIELDS))
    if not has_uploads and not body.any_provided(*UPDATE_FIELDS):
        raise HTTPException(status_code=400, detail="Provide at least one field to update")
    updates: Dict[str, Any] = {}

    if "name" in body:
        name = require_text(optional_text(body, "name"), "Product name cannot be empty")
        slug = slugify(name)
        if not slug:
            raise HTTPException(status_code=400, detail="Product name must contain letters or digits")
        if name != product.get("name"):
            _ensure_slug_free(slug, exclude=product["_id"])
            updates["slug"] = slug
        updates["name"] = name

    if "description" in body:
        updates["description"] = trim_or_none(optional_text(body, "description"))

    price = product.get("price", 0)
    if "price" in body:
        price = _price(optional_text(body, "price"), "Invalid product price")
        updates["price"] = price

    if "discountPrice" in body:
        updates["discountPrice"] = _discount(optional_text(body, "discountPrice"), price)
    elif product.get("discountPrice") is not None and product["discountPrice"] > price:
        raise HTTPException(status_code=400, detail="Discount price cannot exceed price")

    if "category" in body:
        category = trim_or_none(optional_text(body, "category"))
        updates["category"] = _category_id(category) if category else None

    if has_uploads or body.any_provided(*IMAGE_FIELDS):
        images = merge_images(collect_body_images(fields), _uploaded_images(body, storage))
        if not images:
            raise HTTPException(status_code=400, detail="Product must retain at least one image")
        updates["images"] = images

    if "brand" in body:
        updates["brand"] = trim_or_none(optional_text(body, "brand"))
    if body.provided("specifications"):
        updates["specifications"] = normalize_specifications(fields.get("specifications"), fields)
    if body.provided("colorVariants"):
        updates["colorVariants"] = normalize_color_variants(fields.get("colorVariants"), fields)
    if body.provided("badges"):
        updates["badges"] = normalize_badges(fields.get("badges"), fields)

    if "stock" in body:
        stock = _stock(optional_text(body, "stock"))
        if stock is not None:
            updates["stock"] = stock

    if "isActive" in body:
        updates["isActive"] = parse_bool(optional_text(body, "isActive"))

    updates["updatedAt"] = utcnow()
    try:
        product = collection("product").find_one_and_update(
            {"_id": product["_id"]}, {"$set": updates}, return_document=ReturnDocument.AFTER
        )
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="Product slug must be unique")
    return {"success": True, "message": "Product updated successfully", "product": _shape(product)}


@router.delete("/{product_id}")
def delete_product(product_id: str, admin=Depends(require_role("admin"))):
    product = _active_product(product_id)
    collection("product").update_one({"_id": product["_id"]}, {"$set": {"isActive": False, "updatedAt": utcnow()}})
    logger.info(f"Product {product['_id']} deleted by uid={admin['uid']}")
    return {"success": True, "message": "Product deleted successfully"}


def recalculate_ratings(reviews: list) -> Dict[str, Any]:
    total = len(reviews)
    if not total:
        return {"average": 0, "totalReviews": 0}
    average = round(sum(r["rating"] for r in reviews) / total, 2)
    return {"average": average, "totalReviews": total}


@router.post("/{product_id}/review")
def add_product_review(product_id: str, payload: ReviewRequest, current_user=Depends(get_current_user)):
    product_oid = to_obj_id(product_id, "Invalid product id")
    rating = parse_number(payload.rating)
    if rating is None or rating < 1 or rating > 5:
        raise HTTPException(status_code=400, detail="Rating must be between 1 and 5")
    product = _active_product(str(product_oid))

    reviews = list(product.get("reviews", []))
    review = {
        "user": current_user["_id"],
        "rating": rating,
        "comment": trim_or_none(payload.comment),
        "createdAt": utcnow(),
    }
    for i, existing in enumerate(reviews):
        if same_id(existing.get("user"), current_user["_id"]):
            reviews[i] = {"_id": existing.get("_id", ObjectId()), **review}
            break
    else:
        reviews.append({"_id": ObjectId(), **review})

    product = collection("product").find_one_and_update(
        {"_id": product["_id"]},
        {"$set": {"reviews": reviews, "ratings": recalculate_ratings(reviews), "updatedAt": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    return {"success": True, "message": "Review submitted successfully", "product": _shape(product)}


@router.patch("/{product_id}/love")
def toggle_product_love(product_id: str, current_user=Depends(get_current_user)):
    product = _active_product(product_id)
    user_id = current_user["_id"]
    loved_already = any(same_id(u, user_id) for u in product.get("likedBy", []))
    products_col = collection("product")
    product = products_col.find_one_and_update(
        {"_id": product["_id"]},
        {"$pull" if loved_already else "$addToSet": {"likedBy": user_id}},
        return_document=ReturnDocument.AFTER,
    )
    love_count = len(product.get("likedBy", []))
    products_col.update_one({"_id": product["_id"]}, {"$set": {"loveCount": love_count}})
    return {"success": True, "loved": not loved_already, "loveCount": love_count}
