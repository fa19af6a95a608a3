import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from auth import get_current_user, require_role
from database import collection, create_document, utcnow
from helpers import require_text, to_obj_id
from schemas import Contact as ContactSchema, Faq as FaqSchema, Terms as TermsSchema

logger = logging.getLogger(__name__)

router = APIRouter()


# Request Models
class TermsCreate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    version: Optional[str] = None


class TermsUpdate(TermsCreate):
    pass


class ContactCreate(BaseModel):
    email: Optional[EmailStr] = None
    mobile: Optional[str] = None
    website: Optional[str] = None


class ContactUpdate(ContactCreate):
    pass


class FaqCreate(BaseModel):
    question: Optional[str] = None
    answer: Optional[str] = None


class FaqUpdate(FaqCreate):
    pass


# Singletons: at most one Terms and one Contact document
class SingletonResource:
    def __init__(self, collection_name: str, label: str, fields, schema):
        self.collection_name = collection_name
        self.label = label
        self.fields = tuple(fields)
        self.schema = schema

    def shape(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        shaped = {f: doc.get(f) for f in self.fields}
        shaped["lastUpdated"] = doc.get("updatedAt")
        return shaped

    def current(self) -> Dict[str, Any]:
        doc = collection(self.collection_name).find_one()
        if not doc:
            raise HTTPException(status_code=404, detail=f"{self.label} not found")
        return doc

    def create(self, payload: BaseModel) -> Dict[str, Any]:
        values = {f: require_text(getattr(payload, f), f"{f.capitalize()} is required") for f in self.fields}
        if collection(self.collection_name).find_one():
            raise HTTPException(status_code=409, detail=f"{self.label} already exists. Use update instead")
        return self.shape(self.insert(values))

    def insert(self, values: Dict[str, Any]) -> Dict[str, Any]:
        # the fixed _id makes a concurrent second create fail on the primary key
        data = self.schema(**values).model_dump(by_alias=True)
        data["_id"] = self.collection_name
        try:
            return create_document(self.collection_name, data)
        except DuplicateKeyError:
            raise HTTPException(status_code=409, detail=f"{self.label} already exists. Use update instead")

    def update(self, payload: BaseModel) -> Dict[str, Any]:
        provided = [f for f in self.fields if f in payload.model_fields_set]
        if not provided:
            raise HTTPException(status_code=400, detail="Provide at least one field to update")
        updates = {f: require_text(getattr(payload, f), f"{f.capitalize()} cannot be empty") for f in provided}
        doc = self.current()
        updates["updatedAt"] = utcnow()
        doc = collection(self.collection_name).find_one_and_update(
            {"_id": doc["_id"]}, {"$set": updates}, return_document=ReturnDocument.AFTER
        )
        return self.shape(doc)

    def delete(self) -> None:
        self.current()
        collection(self.collection_name).delete_many({})


terms = SingletonResource("terms", "Terms", ("title", "content", "version"), TermsSchema)
contact = SingletonResource("contact", "Contact information", ("email", "mobile", "website"),
                            ContactSchema)


# Terms
@router.post("/terms", status_code=201)
def create_terms(payload: TermsCreate, admin=Depends(require_role("admin"))):
    return {"success": True, "message": "Terms created successfully", "terms": terms.create(payload)}


@router.patch("/terms")
def update_terms(payload: TermsUpdate, admin=Depends(require_role("admin"))):
    return {"success": True, "message": "Terms updated successfully", "terms": terms.update(payload)}


@router.get("/terms")
def get_terms(current_user=Depends(get_current_user)):
    return {"success": True, "terms": terms.shape(terms.current())}


@router.delete("/terms")
def delete_terms(admin=Depends(require_role("admin"))):
    terms.delete()
    logger.info(f"Terms deleted by uid={admin['uid']}")
    return {"success": True, "message": "Terms deleted successfully"}


# Contact
@router.post("/contact", status_code=201)
def create_contact(payload: ContactCreate, admin=Depends(require_role("admin"))):
    return {"success": True, "message": "Contact information created successfully",
            "contact": contact.create(payload)}


@router.patch("/contact")
def update_contact(payload: ContactUpdate, admin=Depends(require_role("admin"))):
    return {"success": True, "message": "Contact information updated successfully",
            "contact": contact.update(payload)}


@router.get("/contact")
def get_contact(current_user=Depends(get_current_user)):
    return {"success": True, "contact": contact.shape(contact.current())}


@router.delete("/contact")
def delete_contact(admin=Depends(require_role("admin"))):
    contact.delete()
    logger.info(f"Contact information deleted by uid={admin['uid']}")
    return {"success": True, "message": "Contact information deleted successfully"}


# FAQ
def _shape_faq(faq: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(faq["_id"]),
        "question": faq["question"],
        "answer": faq["answer"],
        "lastUpdated": faq.get("updatedAt"),
    }


@router.post("/faq", status_code=201)
def create_faq(payload: FaqCreate, admin=Depends(require_role("admin"))):
    question = require_text(payload.question, "Question is required")
    answer = require_text(payload.answer, "Answer is required")
    if collection("faq").find_one({"question": question}):
        raise HTTPException(status_code=409, detail="FAQ question already exists")
    try:
        faq = create_document("faq", FaqSchema(question=question, answer=answer))
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="FAQ question already exists")
    return {"success": True, "message": "FAQ created successfully", "faq": _shape_faq(faq)}


@router.get("/faq")
def list_faqs(current_user=Depends(get_current_user)):
    faqs = [_shape_faq(f) for f in collection("faq").find().sort("createdAt", -1)]
    return {"success": True, "total": len(faqs), "faqs": faqs}


@router.patch("/faq/{faq_id}")
def update_faq(faq_id: str, payload: FaqUpdate, admin=Depends(require_role("admin"))):
    provided = {f for f in ("question", "answer") if f in payload.model_fields_set}
    if not provided:
        raise HTTPException(status_code=400, detail="Provide at least one field to update")
    faqs = collection("faq")
    faq = faqs.find_one({"_id": to_obj_id(faq_id)})
    if not faq:
        raise HTTPException(status_code=404, detail="FAQ not found")

    updates = {}
    if "question" in provided:
        question = require_text(payload.question, "Question cannot be empty")
        if faqs.find_one({"question": question, "_id": {"$ne": faq["_id"]}}):
            raise HTTPException(status_code=409, detail="Another FAQ with this question already exists")
        updates["question"] = question
    if "answer" in provided:
        updates["answer"] = require_text(payload.answer, "Answer cannot be empty")

    updates["updatedAt"] = utcnow()
    try:
        faq = faqs.find_one_and_update({"_id": faq["_id"]}, {"$set": updates}, return_document=ReturnDocument.AFTER)
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="Another FAQ with this question already exists")
    return {"success": True, "message": "FAQ updated successfully", "faq": _shape_faq(faq)}


@router.delete("/faq/{faq_id}")
def delete_faq(faq_id: str, admin=Depends(require_role("admin"))):
    faqs = collection("faq")
    faq = faqs.find_one({"_id": to_obj_id(faq_id)})
    if not faq:
        raise HTTPException(status_code=404, detail="FAQ not found")
    faqs.delete_one({"_id": faq["_id"]})
    return {"success": True, "message": "FAQ deleted successfully"}
