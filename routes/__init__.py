from fastapi import APIRouter

from routes import about, articles, categories, login, posts, products, tourist, users

api_router = APIRouter()
api_router.include_router(login.router, prefix="/auth", tags=["auth"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(posts.router, prefix="/posts", tags=["posts"])
api_router.include_router(articles.router, prefix="/articles", tags=["articles"])
api_router.include_router(products.router, prefix="/products", tags=["products"])
api_router.include_router(categories.router, prefix="/categories", tags=["categories"])
api_router.include_router(tourist.router, prefix="/tourist", tags=["tourist"])
api_router.include_router(about.router, prefix="/about", tags=["about"])
