import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from auth import get_current_user, is_owner_or_admin, require_role
from database import collection, create_document, get_documents, utcnow
from helpers import USER_PUBLIC_FIELDS, populate, populate_one, require_text, to_obj_id, to_public
from schemas import Article as ArticleSchema, SavedArticle as SavedArticleSchema

logger = logging.getLogger(__name__)

router = APIRouter()

ARTICLE_FIELDS = ("category", "title", "description")


class ArticleCreate(BaseModel):
    category: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None


class ArticleUpdate(BaseModel):
    category: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None


def _get_article(article_id: str):
    article = collection("article").find_one({"_id": to_obj_id(article_id)})
    if not article:
        raise HTTPException(status_code=404, detail="Article not found")
    return article


@router.post("", status_code=201)
def create_article(payload: ArticleCreate, current_user=Depends(get_current_user)):
    article = ArticleSchema(
        category=require_text(payload.category, "Article category is required"),
        title=require_text(payload.title, "Article title is required"),
        description=require_text(payload.description, "Article description is required"),
        author=current_user["_id"],
    )
    doc = create_document("article", article)
    return {"success": True, "message": "Article created successfully", "article": to_public(doc)}


@router.get("")
def list_articles(current_user=Depends(get_current_user)):
    articles = get_documents("article", sort=[("createdAt", -1)])
    populate(articles, "author", "user", USER_PUBLIC_FIELDS)
    return {"success": True, "total": len(articles), "articles": to_public(articles)}


@router.get("/saved")
def list_saved_articles(current_user=Depends(get_current_user)):
    saves = list(collection("savedarticle").find({"user": current_user["_id"]}).sort("createdAt", -1))
    populate(saves, "article", "article", ARTICLE_FIELDS + ("author", "createdAt"))
    articles = [s["article"] for s in saves if s.get("article")]
    populate(articles, "author", "user", USER_PUBLIC_FIELDS)
    return {"success": True, "total": len(articles), "articles": to_public(articles)}


@router.get("/{article_id}")
def get_article(article_id: str, current_user=Depends(get_current_user)):
    article = populate_one(_get_article(article_id), "author", "user", USER_PUBLIC_FIELDS)
    return {"success": True, "article": to_public(article)}


@router.patch("/{article_id}")
def update_article(article_id: str, payload: ArticleUpdate, current_user=Depends(get_current_user)):
    provided = payload.model_fields_set & set(ARTICLE_FIELDS)
    if not provided:
        raise HTTPException(status_code=400, detail="Provide at least one field to update")
    updates = {}
    for field in ARTICLE_FIELDS:
        if field in provided:
            updates[field] = require_text(getattr(payload, field), f"Article {field} cannot be empty")

    article = _get_article(article_id)
    if not is_owner_or_admin(current_user, article):
        raise HTTPException(status_code=403, detail="You can only edit your own article")

    updates["updatedAt"] = utcnow()
    article = collection("article").find_one_and_update(
        {"_id": article["_id"]}, {"$set": updates}, return_document=ReturnDocument.AFTER
    )
    return {"success": True, "message": "Article updated successfully", "article": to_public(article)}


@router.delete("/{article_id}")
def delete_article(article_id: str, admin=Depends(require_role("admin"))):
    article = _get_article(article_id)
    collection("article").delete_one({"_id": article["_id"]})
    collection("savedarticle").delete_many({"article": article["_id"]})
    logger.info(f"Article {article['_id']} deleted by uid={admin['uid']}")
    return {"success": True, "message": "Article deleted successfully"}


@router.post("/{article_id}/save")
def toggle_save_article(article_id: str, response: Response, current_user=Depends(get_current_user)):
    article = _get_article(article_id)
    saves = collection("savedarticle")
    key = {"user": current_user["_id"], "article": article["_id"]}

    if saves.delete_one(key).deleted_count:
        saved = False
        message = "Article unsaved successfully"
    else:
        try:
            create_document("savedarticle", SavedArticleSchema(**key))
        except DuplicateKeyError:
            # a concurrent request saved it first; the pair exists either way
            pass
        saved = True
        message = "Article saved successfully"
        response.status_code = 201

    return {
        "success": True,
        "saved": saved,
        "savedCount": saves.count_documents({"article": article["_id"]}),
        "message": message,
    }
