"""
Database Schemas for the SedNex community platform

Each Pydantic model corresponds to a MongoDB collection.
The collection name is the lowercase of the class name.

Documents are stored with camelCase keys (the same names the API returns),
while the Python attributes stay snake_case through an alias generator.

Collections:
- User: local identity linked to the identity provider's subject id
- Post / Comment: community feed and threaded comments
- Article / SavedArticle: long-form articles and per-user bookmarks
- Product / Category: shop catalogue
- TouristSpot: user-submitted places
- Terms / Contact: site content singletons
- Faq: frequently asked questions
"""
from datetime import datetime
from typing import List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, model_serializer
from pydantic.alias_generators import to_camel

Role = Literal["user", "admin", "guest"]
Gender = Literal["male", "female", "other"]
Badge = Literal["new", "sale", "featured", "limited", "popular"]

ALLOWED_BADGES = ("new", "sale", "featured", "limited", "popular")


class Document(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, arbitrary_types_allowed=True)


class User(Document):
    uid: str = Field(..., description="Subject id issued by the identity provider (unique)")
    name: Optional[str] = None
    email: Optional[str] = None
    photo: Optional[str] = None
    role: Role = Field("user")
    provider: Optional[str] = Field(None, description="Sign-in method reported by the identity provider")
    is_active: bool = True
    profile_image: Optional[str] = None
    bio: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = None
    location: Optional[str] = None
    gender: Optional[Gender] = None
    country: Optional[str] = None


class Post(Document):
    author: ObjectId
    description: str = Field(..., max_length=2000)
    category: str
    loved_by: List[ObjectId] = Field(default_factory=list)
    love_count: int = 0
    comments_count: int = 0
    is_active: bool = True


class Comment(Document):
    post: ObjectId
    author: ObjectId
    content: str
    parent_comment: Optional[ObjectId] = None
    is_active: bool = True


class Article(Document):
    category: str
    title: str
    description: str
    author: ObjectId


class SavedArticle(Document):
    user: ObjectId
    article: ObjectId


class Specification(Document):
    key: str
    value: str


class ColorVariant(Document):
    name: str
    code: Optional[str] = None
    stock: Optional[float] = Field(None, ge=0)

    # code and stock are stored only when given
    @model_serializer(mode="wrap")
    def _drop_missing(self, handler):
        return {k: v for k, v in handler(self).items() if v is not None}


class Review(Document):
    id: ObjectId = Field(default_factory=ObjectId, alias="_id")
    user: ObjectId
    rating: float = Field(..., ge=1, le=5)
    comment: Optional[str] = None
    created_at: datetime


class Ratings(Document):
    average: float = Field(0, ge=0)
    total_reviews: int = Field(0, ge=0)


class Product(Document):
    name: str
    slug: str = Field(..., description="URL-friendly identifier derived from name (unique)")
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    discount_price: Optional[float] = Field(None, ge=0)
    category: Optional[ObjectId] = None
    images: List[str] = Field(default_factory=list)
    brand: Optional[str] = None
    specifications: List[Specification] = Field(default_factory=list)
    color_variants: List[ColorVariant] = Field(default_factory=list)
    stock: float = Field(0, ge=0)
    ratings: Ratings = Field(default_factory=Ratings)
    reviews: List[Review] = Field(default_factory=list)
    liked_by: List[ObjectId] = Field(default_factory=list)
    love_count: int = 0
    badges: List[Badge] = Field(default_factory=list)
    is_active: bool = True


class Category(Document):
    name: str
    slug: str
    description: Optional[str] = None
    is_active: bool = True


class TouristSpot(Document):
    author: ObjectId
    title: str = Field(..., max_length=200)
    description: str = Field(..., max_length=2000)
    image: str


class Terms(Document):
    title: str
    content: str
    version: str


class Contact(Document):
    email: str
    mobile: str
    website: str


class Faq(Document):
    question: str
    answer: str
