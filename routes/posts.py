import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from pymongo import ReturnDocument

from auth import get_current_user, is_owner_or_admin
from database import collection, create_document, utcnow
from helpers import page_params, populate, populate_one, require_text, same_id, to_obj_id, to_public, total_pages
from schemas import Comment as CommentSchema, Post as PostSchema

logger = logging.getLogger(__name__)

router = APIRouter()

POST_AUTHOR_FIELDS = ("name", "email", "role")
COMMENT_AUTHOR_FIELDS = ("name", "photo")
MAX_DESCRIPTION = 2000


# Request Models
class PostCreate(BaseModel):
    description: Optional[str] = None
    category: Optional[str] = None


class PostUpdate(BaseModel):
    description: Optional[str] = None
    category: Optional[str] = None


class CommentCreate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    content: Optional[str] = None
    parent_comment_id: Optional[str] = None


def _description(value) -> str:
    description = require_text(value, "Post description is required")
    if len(description) > MAX_DESCRIPTION:
        raise HTTPException(status_code=400, detail=f"Post description cannot exceed {MAX_DESCRIPTION} characters")
    return description


def _active_post(post_id: str):
    post = collection("post").find_one({"_id": to_obj_id(post_id), "isActive": True})
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return post


def _list_posts(filt: dict, page, limit):
    page, limit, skip = page_params(page, limit)
    posts_col = collection("post")
    total = posts_col.count_documents(filt)
    posts = list(posts_col.find(filt).sort("createdAt", -1).skip(skip).limit(limit))
    populate(posts, "author", "user", POST_AUTHOR_FIELDS)
    return {
        "success": True,
        "totalPosts": total,
        "currentPage": page,
        "totalPages": total_pages(total, limit),
        "posts": to_public(posts),
    }


# Posts
@router.post("", status_code=201)
def create_post(payload: PostCreate, current_user=Depends(get_current_user)):
    description = _description(payload.description)
    category = require_text(payload.category, "Post category is required")
    post = create_document("post", PostSchema(author=current_user["_id"], description=description, category=category))
    return {"success": True, "message": "Post created successfully", "post": to_public(post)}


@router.get("")
def list_posts(page: Optional[str] = Query(None), limit: Optional[str] = Query(None),
               current_user=Depends(get_current_user)):
    return _list_posts({"isActive": True}, page, limit)


@router.get("/category/{category}")
def list_posts_by_category(category: str, page: Optional[str] = Query(None), limit: Optional[str] = Query(None),
                           current_user=Depends(get_current_user)):
    return _list_posts({"isActive": True, "category": category.strip()}, page, limit)


@router.get("/{post_id}")
def get_post(post_id: str, current_user=Depends(get_current_user)):
    post = populate_one(_active_post(post_id), "author", "user", ("name", "email", "photo", "role"))
    return {"success": True, "post": to_public(post)}


@router.patch("/{post_id}")
def update_post(post_id: str, payload: PostUpdate, current_user=Depends(get_current_user)):
    provided = payload.model_fields_set & {"description", "category"}
    if not provided:
        raise HTTPException(status_code=400, detail="Provide at least one field to update")
    updates = {}
    if "description" in provided:
        updates["description"] = _description(payload.description)
    if "category" in provided:
        updates["category"] = require_text(payload.category, "Post category cannot be empty")

    post = _active_post(post_id)
    if not is_owner_or_admin(current_user, post):
        raise HTTPException(status_code=403, detail="You can only edit your own post")

    updates["updatedAt"] = utcnow()
    post = collection("post").find_one_and_update(
        {"_id": post["_id"]}, {"$set": updates}, return_document=ReturnDocument.AFTER
    )
    populate_one(post, "author", "user", POST_AUTHOR_FIELDS)
    return {"success": True, "message": "Post updated successfully", "post": to_public(post)}


@router.delete("/{post_id}")
def delete_post(post_id: str, current_user=Depends(get_current_user)):
    post = _active_post(post_id)
    if not is_owner_or_admin(current_user, post):
        raise HTTPException(status_code=403, detail="You are not allowed to delete this post")
    collection("post").update_one({"_id": post["_id"]}, {"$set": {"isActive": False, "updatedAt": utcnow()}})
    removed = collection("comment").delete_many({"post": post["_id"]}).deleted_count
    logger.info(f"Post {post['_id']} deleted by uid={current_user['uid']} ({removed} comments removed)")
    return {"success": True, "message": "Post deleted successfully"}


@router.patch("/{post_id}/love")
def toggle_love(post_id: str, current_user=Depends(get_current_user)):
    post = _active_post(post_id)
    user_id = current_user["_id"]
    already_loved = any(same_id(u, user_id) for u in post.get("lovedBy", []))
    op = "$pull" if already_loved else "$addToSet"
    posts_col = collection("post")
    post = posts_col.find_one_and_update(
        {"_id": post["_id"]}, {op: {"lovedBy": user_id}}, return_document=ReturnDocument.AFTER
    )
    love_count = len(post.get("lovedBy", []))
    posts_col.update_one({"_id": post["_id"]}, {"$set": {"loveCount": love_count}})
    return {
        "success": True,
        "message": "Post unloved" if already_loved else "Post loved",
        "loveCount": love_count,
        "isLoved": not already_loved,
    }


# Comments
@router.post("/comment/{post_id}", status_code=201)
def create_comment(post_id: str, payload: CommentCreate, current_user=Depends(get_current_user)):
    content = require_text(payload.content, "Comment content required")
    post = _active_post(post_id)

    parent_id = None
    if payload.parent_comment_id:
        parent = collection("comment").find_one({
            "_id": to_obj_id(payload.parent_comment_id),
            "post": post["_id"],
            "isActive": True,
        })
        if not parent:
            raise HTTPException(status_code=404, detail="Parent comment not found")
        parent_id = parent["_id"]

    comment = create_document(
        "comment",
        CommentSchema(post=post["_id"], author=current_user["_id"], content=content, parent_comment=parent_id),
    )
    collection("post").update_one({"_id": post["_id"]}, {"$inc": {"commentsCount": 1}})
    return {"success": True, "message": "Comment added successfully", "comment": to_public(comment)}


@router.get("/comment/replies/{comment_id}")
def get_replies(comment_id: str, current_user=Depends(get_current_user)):
    replies = list(
        collection("comment").find({"parentComment": to_obj_id(comment_id), "isActive": True}).sort("createdAt", 1)
    )
    populate(replies, "author", "user", COMMENT_AUTHOR_FIELDS)
    return {"success": True, "replies": to_public(replies)}


@router.get("/comment/{post_id}")
def get_post_comments(post_id: str, page: Optional[str] = Query(None), limit: Optional[str] = Query(None),
                      current_user=Depends(get_current_user)):
    page, limit, skip = page_params(page, limit)
    filt = {"post": to_obj_id(post_id), "parentComment": None, "isActive": True}
    comments_col = collection("comment")
    total = comments_col.count_documents(filt)
    comments = list(comments_col.find(filt).sort("createdAt", -1).skip(skip).limit(limit))
    populate(comments, "author", "user", COMMENT_AUTHOR_FIELDS)
    return {
        "success": True,
        "page": page,
        "totalPages": total_pages(total, limit),
        "total": total,
        "comments": to_public(comments),
    }
