import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from bson import ObjectId
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import DuplicateKeyError
from starlette.exceptions import HTTPException as StarletteHTTPException

import auth
import catalog
import config
import database
from database import create_document, update_document, utcnow
from schemas import (
    AdminLogin,
    Category,
    CategoryUpdate,
    ContactMessage,
    Offer,
    OfferUpdate,
    Product,
    ProductUpdate,
    Review,
    ReviewUpdate,
    check_discount,
    check_offer_window,
)

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is None:
        raise RuntimeError("Database not configured. Set DATABASE_URL and DATABASE_NAME.")
    database.ping(database.db)
    database.ensure_indexes(database.db)
    logger.info("Boutique API ready (database %s)", database.db.name)
    yield


app = FastAPI(title="Boutique Store API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Helpers
def envelope(message: str, data: Any = None, status_code: int = 200) -> JSONResponse:
    body: Dict[str, Any] = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def failure(status_code: int, message: str, error: Any = None, headers=None) -> JSONResponse:
    body: Dict[str, Any] = {"success": False, "message": message}
    if error is not None:
        body["error"] = error
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body), headers=headers)


def oid(id_str: str) -> ObjectId:
    if not ObjectId.is_valid(id_str):
        raise HTTPException(status_code=400, detail="Invalid id format")
    return ObjectId(id_str)


def invalid(field: str, message: str) -> RequestValidationError:
    return RequestValidationError([{"loc": ("body", field), "msg": message, "type": "value_error"}])


def to_document(payload) -> Dict[str, Any]:
    return payload.model_dump(by_alias=True, exclude_none=True)


def to_changes(payload) -> Dict[str, Any]:
    # partial update: only the fields the client sent
    return payload.model_dump(by_alias=True, exclude_unset=True, exclude_none=True)


def ensure_category_exists(category_id: ObjectId) -> None:
    if database.db["category"].count_documents({"_id": category_id}, limit=1) == 0:
        raise HTTPException(status_code=404, detail="Category not found")


def with_object_ids(data: Dict[str, Any], *fields: str) -> Dict[str, Any]:
    for f in fields:
        if f not in data:
            continue
        if isinstance(data[f], list):
            data[f] = [ObjectId(v) for v in data[f]]
        else:
            data[f] = ObjectId(data[f])
    return data


# Error envelopes
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = [
        {"field": ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return failure(400, "Validation error", details)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        return failure(404, "Route not found", f"{request.method} {request.url.path}")
    return failure(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(DuplicateKeyError)
async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    keys = list(((exc.details or {}).get("keyValue") or {}).keys()) or ["unknown"]
    return failure(400, "Validation error", [{"field": k, "message": "Value already exists"} for k in keys])


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return failure(500, "Internal server error", str(exc) if config.EXPOSE_ERROR_DETAILS else None)


@app.get("/")
def read_root():
    return {"message": "Boutique Store Backend is running"}


@app.get("/api/health")
def health():
    return envelope("Server is running", {"timestamp": utcnow()})


# Admin
@app.post("/api/admin/login")
def admin_login(payload: AdminLogin):
    admin = auth.find_admin_by_email(payload.email)
    if not admin or not auth.verify_password(admin, payload.password):
        logger.warning("Failed admin login for %s", payload.email.lower())
        raise HTTPException(status_code=401, detail="Invalid credentials")
    token = auth.tokens.issue(str(admin["_id"]), admin["email"])
    logger.info("Admin %s logged in", admin["email"])
    return envelope("Login successful", {
        "token": token,
        "admin": {"id": str(admin["_id"]), "email": admin["email"], "name": admin.get("name")},
    })


@app.get("/api/admin/profile")
def admin_profile(claims: Dict[str, str] = Depends(auth.require_admin)):
    admin = auth.find_admin_by_id(claims["adminId"])
    if not admin:
        raise HTTPException(status_code=404, detail="Admin not found")
    return envelope("Admin profile retrieved", catalog.serialize_doc(auth.public_admin(admin)))


# Categories CRUD
def find_category(key: str) -> Optional[Dict[str, Any]]:
    doc = database.db["category"].find_one({"slug": key.lower()})
    if doc is None and ObjectId.is_valid(key):
        doc = database.db["category"].find_one({"_id": ObjectId(key)})
    return doc


@app.get("/api/categories")
def list_categories():
    items = database.db["category"].find({}).sort("name", 1)
    return envelope("Categories retrieved successfully", catalog.serialize_doc(list(items)))


@app.get("/api/categories/{slug}")
def get_category(slug: str):
    doc = find_category(slug)
    if not doc:
        raise HTTPException(status_code=404, detail="Category not found")
    return envelope("Category retrieved successfully", catalog.serialize_doc(doc))


@app.post("/api/categories")
def create_category(cat: Category, _: Any = Depends(auth.require_admin)):
    data = to_document(cat)
    if not data.get("slug"):
        data["slug"] = catalog.slugify(data["name"])
        if not data["slug"]:
            raise invalid("slug", "Slug could not be derived from name")
    new_id = create_document("category", data)
    created = database.db["category"].find_one({"_id": ObjectId(new_id)})
    return envelope("Category created successfully", catalog.serialize_doc(created), 201)


@app.put("/api/categories/{category_id}")
def update_category(category_id: str, cat: CategoryUpdate, _: Any = Depends(auth.require_admin)):
    _id = oid(category_id)
    data = to_changes(cat)
    if data.get("name") and not data.get("slug"):
        data["slug"] = catalog.slugify(data["name"])
        if not data["slug"]:
            raise invalid("slug", "Slug could not be derived from name")
    doc = update_document("category", _id, data)
    if not doc:
        raise HTTPException(status_code=404, detail="Category not found")
    return envelope("Category updated successfully", catalog.serialize_doc(doc))


@app.delete("/api/categories/{category_id}")
def delete_category(category_id: str, _: Any = Depends(auth.require_admin)):
    doc = database.db["category"].find_one_and_delete({"_id": oid(category_id)})
    if not doc:
        raise HTTPException(status_code=404, detail="Category not found")
    return envelope("Category deleted successfully", catalog.serialize_doc(doc))


# Products CRUD + listing
@app.get("/api/products")
def list_products(
    category: Optional[str] = None,
    minPrice: Optional[float] = None,
    maxPrice: Optional[float] = None,
    isFeatured: Optional[str] = None,
    isNewArrival: Optional[str] = None,
    sortBy: str = catalog.DEFAULT_SORT_FIELD,
    order: str = "desc",
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    search: Optional[str] = None,
):
    result = catalog.list_products(
        database.db,
        category=category,
        min_price=minPrice,
        max_price=maxPrice,
        is_featured=isFeatured,
        is_new_arrival=isNewArrival,
        sort_by=sortBy,
        order=order,
        page=page,
        limit=limit,
        search=search,
    )
    return envelope("Products retrieved successfully", result)


@app.get("/api/products/featured")
def featured_products(limit: int = Query(6, ge=1, le=100)):
    return envelope("Featured products retrieved", catalog.list_flagged_products(database.db, "isFeatured", limit))


@app.get("/api/products/new-arrivals")
def new_arrivals(limit: int = Query(6, ge=1, le=100)):
    return envelope("New arrivals retrieved", catalog.list_flagged_products(database.db, "isNewArrival", limit))


@app.get("/api/products/{product_id}")
def get_product(product_id: str, admin: Optional[Dict[str, str]] = Depends(auth.optional_admin)):
    doc = database.db["product"].find_one({"_id": oid(product_id)})
    if not doc or (not doc.get("isActive", True) and admin is None):
        raise HTTPException(status_code=404, detail="Product not found")
    return envelope("Product retrieved successfully", catalog.with_category(database.db, [doc])[0])


@app.post("/api/products")
def create_product(prod: Product, _: Any = Depends(auth.require_admin)):
    data = with_object_ids(to_document(prod), "category")
    ensure_category_exists(data["category"])
    new_id = create_document("product", data)
    created = database.db["product"].find_one({"_id": ObjectId(new_id)})
    return envelope("Product created successfully", catalog.with_category(database.db, [created])[0], 201)


@app.put("/api/products/{product_id}")
def update_product(product_id: str, prod: ProductUpdate, _: Any = Depends(auth.require_admin)):
    _id = oid(product_id)
    data = with_object_ids(to_changes(prod), "category")
    if "category" in data:
        ensure_category_exists(data["category"])
    if "price" in data or "discountedPrice" in data:
        current = database.db["product"].find_one({"_id": _id}, {"price": 1, "discountedPrice": 1})
        if not current:
            raise HTTPException(status_code=404, detail="Product not found")
        try:
            check_discount(data.get("price", current.get("price")), data.get("discountedPrice", current.get("discountedPrice")))
        except ValueError as exc:
            raise invalid("discountedPrice", str(exc))
    doc = update_document("product", _id, data)
    if not doc:
        raise HTTPException(status_code=404, detail="Product not found")
    return envelope("Product updated successfully", catalog.with_category(database.db, [doc])[0])


@app.delete("/api/products/{product_id}")
def delete_product(product_id: str, _: Any = Depends(auth.require_admin)):
    doc = database.db["product"].find_one_and_delete({"_id": oid(product_id)})
    if not doc:
        raise HTTPException(status_code=404, detail="Product not found")
    return envelope("Product deleted successfully", catalog.serialize_doc(doc))


# Offers
@app.get("/api/offers")
def list_offers():
    return envelope("Offers retrieved successfully", catalog.list_offers(database.db))


@app.get("/api/offers/{offer_id}")
def get_offer(offer_id: str, admin: Optional[Dict[str, str]] = Depends(auth.optional_admin)):
    doc = database.db["offer"].find_one({"_id": oid(offer_id)})
    if not doc or (not doc.get("isActive", True) and admin is None):
        raise HTTPException(status_code=404, detail="Offer not found")
    return envelope("Offer retrieved successfully", catalog.with_offer_refs(database.db, [doc])[0])


@app.post("/api/offers")
def create_offer(offer: Offer, _: Any = Depends(auth.require_admin)):
    data = with_object_ids(to_document(offer), "applicableProducts", "applicableCategories")
    new_id = create_document("offer", data)
    created = database.db["offer"].find_one({"_id": ObjectId(new_id)})
    return envelope("Offer created successfully", catalog.with_offer_refs(database.db, [created])[0], 201)


@app.put("/api/offers/{offer_id}")
def update_offer(offer_id: str, offer: OfferUpdate, _: Any = Depends(auth.require_admin)):
    _id = oid(offer_id)
    data = with_object_ids(to_changes(offer), "applicableProducts", "applicableCategories")
    if "startDate" in data or "endDate" in data:
        current = database.db["offer"].find_one({"_id": _id}, {"startDate": 1, "endDate": 1})
        if not current:
            raise HTTPException(status_code=404, detail="Offer not found")
        try:
            check_offer_window(data.get("startDate", current.get("startDate")), data.get("endDate", current.get("endDate")))
        except ValueError as exc:
            raise invalid("endDate", str(exc))
    doc = update_document("offer", _id, data)
    if not doc:
        raise HTTPException(status_code=404, detail="Offer not found")
    return envelope("Offer updated successfully", catalog.with_offer_refs(database.db, [doc])[0])


@app.delete("/api/offers/{offer_id}")
def delete_offer(offer_id: str, _: Any = Depends(auth.require_admin)):
    doc = database.db["offer"].find_one_and_delete({"_id": oid(offer_id)})
    if not doc:
        raise HTTPException(status_code=404, detail="Offer not found")
    return envelope("Offer deleted successfully", catalog.serialize_doc(doc))


# Reviews
@app.get("/api/reviews")
def list_reviews(page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100)):
    return envelope("Reviews retrieved successfully", catalog.list_reviews(database.db, page, limit))


@app.get("/api/reviews/{review_id}")
def get_review(review_id: str, admin: Optional[Dict[str, str]] = Depends(auth.optional_admin)):
    doc = database.db["review"].find_one({"_id": oid(review_id)})
    if not doc or (not doc.get("isActive", True) and admin is None):
        raise HTTPException(status_code=404, detail="Review not found")
    return envelope("Review retrieved successfully", catalog.serialize_doc(doc))


@app.post("/api/reviews")
def create_review(review: Review, _: Any = Depends(auth.require_admin)):
    new_id = create_document("review", to_document(review))
    created = database.db["review"].find_one({"_id": ObjectId(new_id)})
    return envelope("Review created successfully", catalog.serialize_doc(created), 201)


@app.put("/api/reviews/{review_id}")
def update_review(review_id: str, review: ReviewUpdate, _: Any = Depends(auth.require_admin)):
    doc = update_document("review", oid(review_id), to_changes(review))
    if not doc:
        raise HTTPException(status_code=404, detail="Review not found")
    return envelope("Review updated successfully", catalog.serialize_doc(doc))


@app.delete("/api/reviews/{review_id}")
def delete_review(review_id: str, _: Any = Depends(auth.require_admin)):
    doc = database.db["review"].find_one_and_delete({"_id": oid(review_id)})
    if not doc:
        raise HTTPException(status_code=404, detail="Review not found")
    return envelope("Review deleted successfully", catalog.serialize_doc(doc))


# Contact form
@app.post("/api/contact")
def submit_contact(payload: ContactMessage):
    create_document("contactmessage", to_document(payload))
    return envelope("Message received", status_code=201)


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
