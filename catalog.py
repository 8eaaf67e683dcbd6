"""
Catalog queries: product listing filters, sorting, pagination and the
reference population shared by the route handlers.

Functions here take the database handle as their first argument and never
touch request objects, so the listing contract can be exercised without HTTP.
"""

import math
import re
import unicodedata
from typing import Any, Dict, Iterable, List, Optional, Tuple

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING

DEFAULT_SORT_FIELD = "createdAt"

PRODUCT_SORT_FIELDS = {
    "name",
    "description",
    "price",
    "discountedPrice",
    "category",
    "stock",
    "isFeatured",
    "isNewArrival",
    "isActive",
    "createdAt",
    "updatedAt",
}

CATEGORY_SUMMARY = ("name", "slug")


def slugify(name: str) -> str:
    """Lowercase ASCII slug: accents folded, every other non-alphanumeric run becomes one hyphen."""
    norm = unicodedata.normalize("NFKD", (name or "").strip())
    ascii_name = norm.encode("ascii", "ignore").decode("ascii").lower()
    return re.sub(r"[^a-z0-9]+", "-", ascii_name).strip("-")


def flag_requested(value: Optional[str]) -> bool:
    # only the literal "true" switches a boolean filter on; "false" is the same as absent
    return value == "true"


def price_range(min_price: Optional[float], max_price: Optional[float]) -> Optional[Dict[str, float]]:
    bounds: Dict[str, float] = {}
    if min_price is not None:
        bounds["$gte"] = float(min_price)
    if max_price is not None:
        bounds["$lte"] = float(max_price)
    return bounds or None


def build_product_filter(
    category_id: Optional[ObjectId] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    is_featured: Optional[str] = None,
    is_new_arrival: Optional[str] = None,
    search: Optional[str] = None,
) -> Dict[str, Any]:
    q: Dict[str, Any] = {"isActive": True}
    if category_id is not None:
        q["category"] = category_id
    bounds = price_range(min_price, max_price)
    if bounds:
        q["price"] = bounds
    if flag_requested(is_featured):
        q["isFeatured"] = True
    if flag_requested(is_new_arrival):
        q["isNewArrival"] = True
    if search:
        q["$text"] = {"$search": str(search)}
    return q


def sort_keys(sort_by: Optional[str], order: Optional[str]) -> List[Tuple[str, int]]:
    field = sort_by if sort_by in PRODUCT_SORT_FIELDS else DEFAULT_SORT_FIELD
    direction = DESCENDING if order == "desc" else ASCENDING
    # _id keeps the order total so consecutive pages never overlap
    return [(field, direction), ("_id", direction)]


def page_window(page: int, limit: int) -> Tuple[int, int]:
    return (page - 1) * limit, limit


def pagination(total: int, page: int, limit: int) -> Dict[str, int]:
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "pages": math.ceil(total / limit) if limit else 0,
    }


def serialize_doc(doc: Any) -> Any:
    """Turn a Mongo document into JSON-ready data: _id -> id, ObjectId -> str, recursively."""
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, list):
        return [serialize_doc(v) for v in doc]
    if isinstance(doc, dict):
        out = {}
        for k, v in doc.items():
            out["id" if k == "_id" else k] = serialize_doc(v)
        return out
    return doc


def populate(db, docs: List[Dict[str, Any]], field: str, collection: str, fields: Iterable[str]) -> List[Dict[str, Any]]:
    """Replace the ObjectId reference(s) in ``field`` with a projection of the referenced documents.

    A single reference with no match becomes None; missing entries of a list
    of references are dropped.
    """
    ids = set()
    for d in docs:
        ref = d.get(field)
        if isinstance(ref, list):
            ids.update(ref)
        elif ref is not None:
            ids.add(ref)
    if not ids:
        return docs

    projection = {f: 1 for f in fields}
    found = {r["_id"]: r for r in db[collection].find({"_id": {"$in": list(ids)}}, projection)}
    for d in docs:
        ref = d.get(field)
        if isinstance(ref, list):
            d[field] = [found[i] for i in ref if i in found]
        elif ref is not None:
            d[field] = found.get(ref)
    return docs


def with_category(db, docs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return serialize_doc(populate(db, docs, "category", "category", CATEGORY_SUMMARY))


def list_products(
    db,
    category: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    is_featured: Optional[str] = None,
    is_new_arrival: Optional[str] = None,
    sort_by: Optional[str] = DEFAULT_SORT_FIELD,
    order: Optional[str] = "desc",
    page: int = 1,
    limit: int = 12,
    search: Optional[str] = None,
) -> Dict[str, Any]:
    """Public product listing. Returns {"products": [...], "pagination": {...}}."""
    category_id = None
    if category:
        found = db["category"].find_one({"slug": category}, {"_id": 1})
        if not found:
            # unknown slug: empty page
            return {"products": [], "pagination": pagination(0, 1, limit)}
        category_id = found["_id"]

    q = build_product_filter(category_id, min_price, max_price, is_featured, is_new_arrival, search)
    total = db["product"].count_documents(q)
    skip, size = page_window(page, limit)
    cursor = db["product"].find(q).sort(sort_keys(sort_by, order)).skip(skip).limit(size)
    return {
        "products": with_category(db, list(cursor)),
        "pagination": pagination(total, page, limit),
    }


def list_flagged_products(db, flag: str, limit: int) -> List[Dict[str, Any]]:
    """Active products with ``flag`` set, newest first (featured / new arrivals)."""
    cursor = (
        db["product"]
        .find({flag: True, "isActive": True})
        .sort([("createdAt", DESCENDING), ("_id", DESCENDING)])
        .limit(limit)
    )
    return with_category(db, list(cursor))


def list_reviews(db, page: int = 1, limit: int = 10) -> Dict[str, Any]:
    q = {"isActive": True}
    total = db["review"].count_documents(q)
    skip, size = page_window(page, limit)
    cursor = db["review"].find(q).sort([("createdAt", DESCENDING), ("_id", DESCENDING)]).skip(skip).limit(size)
    return {
        "reviews": serialize_doc(list(cursor)),
        "pagination": pagination(total, page, limit),
    }


def with_offer_refs(db, docs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    populate(db, docs, "applicableProducts", "product", ("name", "price"))
    populate(db, docs, "applicableCategories", "category", ("name",))
    return serialize_doc(docs)


def list_offers(db) -> List[Dict[str, Any]]:
    cursor = db["offer"].find({"isActive": True}).sort([("createdAt", DESCENDING), ("_id", DESCENDING)])
    return with_offer_refs(db, list(cursor))
