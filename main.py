import re
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import DuplicateKeyError, PyMongoError

from config import Settings, get_settings
from database import NEWEST_FIRST, PRODUCTS, USERS, Database, serialize_doc, to_object_id
from errors import (
    AppError,
    DuplicateEmailError,
    InternalError,
    InvalidCredentialsError,
    NotAuthorizedError,
    ProductNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from ordering import create_order, get_order, list_orders, order_filter, update_order_status, wholesaler_summary
from reports import dashboard_stats
from schemas import (
    ROLES,
    CreateOrderRequest,
    Location,
    LoginRequest,
    OrderStatusRequest,
    Product,
    ProfileUpdateRequest,
    RegisterRequest,
    User,
    UserStatusRequest,
    VerificationRequest,
)
from security import (
    create_token,
    extract_token,
    hash_password,
    require_owner_or_admin,
    require_role,
    resolve_session,
    verify_password,
)
from validation import (
    FieldIssue,
    normalize_email,
    parse_date,
    validate_login,
    validate_product,
    validate_profile_update,
    validate_registration,
)


logger = logging.getLogger(__name__)

router = APIRouter()


# Helpers

def ok(data=None, message: Optional[str] = None) -> dict:
    body = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = serialize_doc(data)
    return body


def public_user(user: dict) -> dict:
    return {k: v for k, v in user.items() if k != "password_hash"}


def product_changes(data: Dict[str, Any]) -> dict:
    changes = dict(data)
    for field in ("harvest_date", "expiry_date"):
        if changes.get(field) is not None:
            changes[field] = parse_date(changes[field])
    for field in ("minimum_order", "available_quantity"):
        if field in changes:
            changes[field] = int(changes[field])
    if "price" in changes:
        changes["price"] = float(changes["price"])
    if changes.get("location") is not None:
        changes["location"] = Location.model_validate(changes["location"]).model_dump()
    return changes


def seed_admin(database: Database, settings: Settings):
    """Create the bootstrap admin named by ADMIN_EMAIL/ADMIN_PASSWORD unless it exists."""
    if not (settings.admin_email and settings.admin_password):
        return
    email = normalize_email(settings.admin_email)
    existing = database[USERS].find_one({"email": email})
    if existing:
        if existing.get("role") != "admin":
            logger.warning("ADMIN_EMAIL %s belongs to a %s account, not seeding", email, existing.get("role"))
        return
    database.create_document(USERS, User(
        name="Admin",
        email=email,
        password_hash=hash_password(settings.admin_password),
        role="admin",
        is_verified=True,
    ))
    logger.info("Seeded admin account %s", email)


# Dependencies

def get_database(request: Request) -> Database:
    return request.app.state.database


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def current_user(
    request: Request,
    authorization: Optional[str] = Header(None),
    x_auth_token: Optional[str] = Header(None),
) -> dict:
    token = extract_token(authorization, x_auth_token)
    return resolve_session(request.app.state.database, token, request.app.state.settings.jwt_secret)


def role_required(*roles: str):
    def dependency(user: dict = Depends(current_user)) -> dict:
        require_role(user, *roles)
        return user
    return dependency


@router.get("/")
def read_root():
    return {"message": "Gebeya Marketplace API running"}


@router.get("/test")
def test_database(db: Database = Depends(get_database), settings: Settings = Depends(get_app_settings)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if settings.database_url else "❌ Not Set",
        "database_name": db.name,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        response["database"] = "✅ Available"
        response["connection_status"] = "Connected"
        response["collections"] = db.list_collection_names()[:10]
        response["database"] = "✅ Connected & Working"
    except PyMongoError as e:
        response["database"] = f"⚠️  Connected but Error: {str(e)[:80]}"
    return response


# Auth endpoints

@router.post("/api/auth/register", status_code=201)
def register(payload: RegisterRequest, db: Database = Depends(get_database),
             settings: Settings = Depends(get_app_settings)):
    issues = validate_registration(payload)
    if issues:
        raise ValidationError(issues)
    email = normalize_email(payload.email)
    if db[USERS].find_one({"email": email}):
        raise DuplicateEmailError("User already exists with this email")

    role = payload.role or "customer"
    user_doc = User(
        name=payload.name.strip(),
        email=email,
        password_hash=hash_password(payload.password),
        role=role,
        phone=payload.phone,
        business_info=payload.business_info if role == "wholesaler" else None,
    )
    try:
        uid = db.create_document(USERS, user_doc)
    except DuplicateKeyError:
        raise DuplicateEmailError("User already exists with this email")
    user = db.get_document(USERS, uid)
    logger.info("Registered %s %s", role, email)
    token = create_token(user, settings.jwt_secret, settings.jwt_expires_minutes)
    return ok({"user": public_user(user), "token": token}, "User registered successfully")


@router.post("/api/auth/login")
def login(payload: LoginRequest, db: Database = Depends(get_database),
          settings: Settings = Depends(get_app_settings)):
    issues = validate_login(payload)
    if issues:
        raise ValidationError(issues)
    user = db[USERS].find_one({"email": normalize_email(payload.email)})
    if not user or not verify_password(payload.password, user.get("password_hash", "")):
        raise InvalidCredentialsError()
    if not user.get("is_active", True):
        raise NotAuthorizedError("Account is deactivated")
    token = create_token(user, settings.jwt_secret, settings.jwt_expires_minutes)
    return ok({"user": public_user(user), "token": token}, "Login successful")


@router.get("/api/auth/me")
def me(user: dict = Depends(current_user)):
    return ok({"user": public_user(user)})


@router.put("/api/auth/profile")
def update_profile(payload: ProfileUpdateRequest, user: dict = Depends(current_user),
                   db: Database = Depends(get_database)):
    issues = validate_profile_update(payload)
    if payload.business_info is not None and user.get("role") != "wholesaler":
        issues.append(FieldIssue(field="business_info", message="Only wholesalers have business info"))
    if issues:
        raise ValidationError(issues)
    changes = payload.model_dump(exclude_none=True)
    if "name" in changes:
        changes["name"] = changes["name"].strip()
    updated = db.update_document(USERS, user["_id"], changes) if changes else user
    return ok({"user": public_user(updated)}, "Profile updated successfully")


# Products

@router.get("/api/products")
def list_products(
    category: Optional[str] = None,
    search: Optional[str] = None,
    wholesaler: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Database = Depends(get_database),
):
    filter_dict = {"is_active": True}
    if category:
        filter_dict["category"] = category
    if search:
        filter_dict["name"] = {"$regex": re.escape(search), "$options": "i"}
    if wholesaler:
        filter_dict["wholesaler"] = to_object_id(wholesaler)
    docs, pagination = db.paginate(PRODUCTS, filter_dict, page, limit, NEWEST_FIRST)
    for doc in docs:
        doc["wholesaler"] = wholesaler_summary(db, doc["wholesaler"])
    return ok({"products": docs, "pagination": pagination.model_dump()})


@router.get("/api/products/my/products")
def my_products(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: dict = Depends(role_required("wholesaler")),
    db: Database = Depends(get_database),
):
    docs, pagination = db.paginate(PRODUCTS, {"wholesaler": user["_id"]}, page, limit)
    return ok({"products": docs, "pagination": pagination.model_dump()})


@router.get("/api/products/{product_id}")
def get_product(product_id: str, db: Database = Depends(get_database)):
    doc = db.get_document(PRODUCTS, product_id)
    if not doc:
        raise ProductNotFoundError()
    doc["wholesaler"] = wholesaler_summary(db, doc["wholesaler"])
    return ok({"product": doc})


@router.post("/api/products", status_code=201)
def create_product(payload: Dict[str, Any] = Body(...), user: dict = Depends(role_required("wholesaler")),
                   db: Database = Depends(get_database)):
    issues = validate_product(payload)
    if issues:
        raise ValidationError(issues)
    product = Product(**product_changes(payload), wholesaler=user["_id"])
    pid = db.create_document(PRODUCTS, product)
    logger.info("Wholesaler %s listed product %s", user["_id"], pid)
    return ok({"product": db.get_document(PRODUCTS, pid)}, "Product created successfully")


@router.put("/api/products/{product_id}")
def update_product(product_id: str, payload: Dict[str, Any] = Body(...), user: dict = Depends(current_user),
                   db: Database = Depends(get_database)):
    product = db.get_document(PRODUCTS, product_id)
    if not product:
        raise ProductNotFoundError()
    require_owner_or_admin(user, product["wholesaler"], "Not authorized to update this product")
    issues = validate_product(payload, partial=True)
    if issues:
        raise ValidationError(issues)
    updated = db.update_document(PRODUCTS, product_id, product_changes(payload))
    return ok({"product": updated}, "Product updated successfully")


@router.delete("/api/products/{product_id}")
def delete_product(product_id: str, user: dict = Depends(current_user), db: Database = Depends(get_database)):
    product = db.get_document(PRODUCTS, product_id)
    if not product:
        raise ProductNotFoundError()
    require_owner_or_admin(user, product["wholesaler"], "Not authorized to delete this product")
    db.update_document(PRODUCTS, product_id, {"is_active": False})
    logger.info("Product %s deactivated by %s", product_id, user["_id"])
    return ok(message="Product removed successfully")


# Orders

@router.post("/api/orders", status_code=201)
def place_order(payload: CreateOrderRequest, user: dict = Depends(current_user),
                db: Database = Depends(get_database)):
    order = create_order(
        db,
        user["_id"],
        payload.items,
        shipping_address=payload.shipping_address,
        payment_method=payload.payment_method,
        notes=payload.notes,
    )
    return ok({"order": order}, "Order created successfully")


@router.get("/api/orders/my-orders")
def my_orders(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: dict = Depends(current_user),
    db: Database = Depends(get_database),
):
    orders, pagination = list_orders(db, order_filter(user, "customer", status), page, limit)
    return ok({"orders": orders, "pagination": pagination.model_dump()})


@router.get("/api/orders/wholesaler-orders")
def wholesaler_orders(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: dict = Depends(role_required("wholesaler")),
    db: Database = Depends(get_database),
):
    orders, pagination = list_orders(db, order_filter(user, "wholesaler", status), page, limit)
    return ok({"orders": orders, "pagination": pagination.model_dump()})


@router.get("/api/orders/{order_id}")
def read_order(order_id: str, user: dict = Depends(current_user), db: Database = Depends(get_database)):
    return ok({"order": get_order(db, order_id, user)})


@router.put("/api/orders/{order_id}/status")
def change_order_status(order_id: str, payload: OrderStatusRequest, user: dict = Depends(current_user),
                        db: Database = Depends(get_database)):
    order = update_order_status(db, order_id, payload.status, user)
    return ok({"order": order}, "Order status updated successfully")


# Admin

@router.get("/api/admin/stats")
def admin_stats(
    top: int = Query(5, ge=1, le=50),
    recent: int = Query(5, ge=1, le=50),
    user: dict = Depends(role_required("admin")),
    db: Database = Depends(get_database),
):
    return ok(dashboard_stats(db, top=top, recent=recent))


@router.get("/api/admin/orders")
def admin_orders(
    status: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: dict = Depends(role_required("admin")),
    db: Database = Depends(get_database),
):
    orders, pagination = list_orders(db, order_filter(user, "all", status, search), page, limit)
    return ok({"orders": orders, "pagination": pagination.model_dump()})


@router.put("/api/admin/wholesalers/{user_id}/approve")
def approve_wholesaler(user_id: str, payload: VerificationRequest,
                       user: dict = Depends(role_required("admin")), db: Database = Depends(get_database)):
    target = db.get_document(USERS, user_id)
    if not target:
        raise UserNotFoundError()
    if target.get("role") != "wholesaler":
        raise ValidationError(message="User is not a wholesaler")
    updated = db.update_document(USERS, user_id, {"is_verified": payload.is_verified})
    verdict = "approved" if payload.is_verified else "rejected"
    logger.info("Wholesaler %s %s by %s", user_id, verdict, user["_id"])
    return ok({"user": public_user(updated)}, f"Wholesaler {verdict} successfully")


# Users

@router.get("/api/users")
def list_users(
    role: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: dict = Depends(role_required("admin")),
    db: Database = Depends(get_database),
):
    filter_dict = {}
    if role:
        if role not in ROLES:
            raise ValidationError([FieldIssue(field="role", message="Unknown role")])
        filter_dict["role"] = role
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        filter_dict["$or"] = [{"name": pattern}, {"email": pattern}, {"business_info.business_name": pattern}]
    docs, pagination = db.paginate(USERS, filter_dict, page, limit)
    return ok({"users": [public_user(d) for d in docs], "pagination": pagination.model_dump()})


@router.get("/api/users/{user_id}")
def read_user(user_id: str, user: dict = Depends(current_user), db: Database = Depends(get_database)):
    require_owner_or_admin(user, user_id, "Not authorized to view this profile")
    target = db.get_document(USERS, user_id)
    if not target:
        raise UserNotFoundError()
    return ok({"user": public_user(target)})


@router.put("/api/users/{user_id}/status")
def set_user_status(user_id: str, payload: UserStatusRequest,
                    user: dict = Depends(role_required("admin")), db: Database = Depends(get_database)):
    updated = db.update_document(USERS, user_id, {"is_active": payload.is_active})
    if not updated:
        raise UserNotFoundError()
    return ok({"user": public_user(updated)},
              f"User {'activated' if payload.is_active else 'deactivated'} successfully")


# Error handlers

async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError):
    issues = [
        FieldIssue(field=".".join(str(p) for p in err["loc"][1:]) or str(err["loc"][0]), message=err["msg"])
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content=ValidationError(issues).to_dict())


async def store_error_handler(request: Request, exc: PyMongoError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=InternalError().to_dict())


async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=InternalError().to_dict())


def create_app(database: Optional[Database] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
        settings.warn_insecure_defaults()
        handle = database or Database(settings.database_url, settings.database_name)
        handle.open()
        seed_admin(handle, settings)
        app.state.database = handle
        yield
        handle.close()

    app = FastAPI(title="Gebeya Marketplace API", lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(PyMongoError, store_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
