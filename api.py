import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Dict, List, Optional, Union

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import APIKeyHeader
from pydantic import BaseModel, Field

from config import settings
from errors import DuplicateError, ListingError, NotFoundError, StorageUnavailableError, ValidationError
from search import SearchFilters
from store import ListingStore, create_store

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_store() -> ListingStore:
    """Process-wide store, built once from settings."""
    return create_store()


app = FastAPI(title=f"{settings.app_name} API", version=settings.app_version, debug=settings.debug)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Error mapping ---
_STATUS_BY_ERROR = {
    ValidationError: 400,
    NotFoundError: 404,
    DuplicateError: 409,
    StorageUnavailableError: 503,
}


@app.exception_handler(ListingError)
async def listing_error_handler(request: Request, exc: ListingError):
    status_code = next((code for cls, code in _STATUS_BY_ERROR.items() if isinstance(exc, cls)), 400)
    if status_code >= 500:
        logger.warning(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


# --- Security ---
api_key_header = APIKeyHeader(name="X-API-Key")


def get_api_key(api_key: str = Security(api_key_header)):
    """Dependency that checks the API key on listing mutations."""
    if api_key == settings.api_key:
        return api_key
    raise HTTPException(status_code=403, detail="Could not validate credentials")


# --- Models ---
class BookModel(BaseModel):
    id: str
    title: str
    course_code: str
    price: float
    condition: str
    material_type: str
    genre: str
    description: Optional[str] = None
    seller_id: str
    is_sold: bool
    created_at: str
    updated_at: str


class BookCreateModel(BaseModel):
    # Bad values are reported by the store validator, not by pydantic
    title: Optional[str] = None
    course_code: Optional[str] = None
    price: Optional[Union[float, str]] = None
    condition: Optional[str] = None
    material_type: Optional[str] = None
    genre: Optional[str] = None
    description: Optional[str] = None


class BookUpdateModel(BaseModel):
    title: Optional[str] = None
    course_code: Optional[str] = None
    price: Optional[Union[float, str]] = None
    condition: Optional[str] = None
    material_type: Optional[str] = None
    genre: Optional[str] = None
    description: Optional[str] = None
    is_sold: Optional[bool] = None


class BookStatusModel(BaseModel):
    is_sold: bool


class ProfileModel(BaseModel):
    id: str
    email: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class SignupModel(BaseModel):
    email: str
    full_name: Optional[str] = Field(default=None, description="Display name")


class LoginModel(BaseModel):
    email: str
    password: Optional[str] = Field(default=None, description="Accepted but not verified")


class GenreStatsModel(BaseModel):
    count: int
    average_price: float
    min_price: float
    max_price: float


class StatsModel(BaseModel):
    total_books: int
    available_books: int
    sold_books: int
    genres: Dict[str, GenreStatsModel]


# --- Health ---
@app.get("/health")
def health(store: ListingStore = Depends(get_store)):
    """Lightweight health endpoint reporting the active storage backend."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "storage": store.backend.name,
        "total_books": len(store.list_books()),
    }


# --- Listings ---
@app.get("/books", response_model=List[BookModel])
def get_books(genre: Optional[str] = Query(None, description="STEM, Business, Arts or Humanities"),
              store: ListingStore = Depends(get_store)):
    return [b.to_dict() for b in store.list_books(genre)]


@app.get("/books/search", response_model=List[BookModel])
def search_books(
    q: str = Query("", description="Matches title, course code or description"),
    genre: Optional[str] = None,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    store: ListingStore = Depends(get_store),
):
    filters = SearchFilters(genre=genre, min_price=min_price, max_price=max_price)
    return [b.to_dict() for b in store.search_books(q, filters)]


@app.get("/books/{book_id}", response_model=BookModel)
def get_book(book_id: str, store: ListingStore = Depends(get_store)):
    return store.get_book(book_id).to_dict()


@app.get("/sellers/{seller_id}/books", response_model=List[BookModel])
def get_seller_books(seller_id: str, store: ListingStore = Depends(get_store)):
    return [b.to_dict() for b in store.list_books_by_seller(seller_id)]


@app.get("/me/books", response_model=List[BookModel])
def get_my_books(store: ListingStore = Depends(get_store)):
    return [b.to_dict() for b in store.list_my_books()]


@app.post("/books", response_model=BookModel, status_code=201, dependencies=[Depends(get_api_key)])
def create_book(payload: BookCreateModel, store: ListingStore = Depends(get_store)):
    return store.create_book(payload.model_dump()).to_dict()


@app.patch("/books/{book_id}", response_model=BookModel, dependencies=[Depends(get_api_key)])
def update_book(book_id: str, update: BookUpdateModel, store: ListingStore = Depends(get_store)):
    return store.update_book(book_id, update.model_dump(exclude_unset=True)).to_dict()


@app.put("/books/{book_id}/status", response_model=BookModel, dependencies=[Depends(get_api_key)])
def set_book_status(book_id: str, status: BookStatusModel, store: ListingStore = Depends(get_store)):
    return store.set_sold(book_id, status.is_sold).to_dict()


@app.delete("/books/{book_id}", dependencies=[Depends(get_api_key)])
def delete_book(book_id: str, store: ListingStore = Depends(get_store)):
    store.delete_book(book_id)
    return {"message": "Book deleted successfully"}


@app.get("/stats", response_model=StatsModel)
def get_market_stats(store: ListingStore = Depends(get_store)):
    return store.market_stats()


# --- Identity ---
@app.post("/auth/signup", response_model=ProfileModel, status_code=201)
def signup(payload: SignupModel, store: ListingStore = Depends(get_store)):
    return store.signup(payload.email, payload.full_name).to_dict()


@app.post("/auth/login", response_model=ProfileModel)
def login(payload: LoginModel, store: ListingStore = Depends(get_store)):
    return store.login(payload.email, payload.password).to_dict()


@app.post("/auth/logout")
def logout(store: ListingStore = Depends(get_store)):
    store.logout()
    return {"message": "Logged out"}


@app.get("/auth/me", response_model=Optional[ProfileModel])
def current_user(store: ListingStore = Depends(get_store)):
    user = store.get_current_user()
    return user.to_dict() if user else None


@app.get("/profiles/{profile_id}", response_model=ProfileModel)
def get_profile(profile_id: str, store: ListingStore = Depends(get_store)):
    return store.get_profile(profile_id).to_dict()
