import logging
import time
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware

from config import Settings, get_settings
from database import Database, get_db, seed_sample_data
from errors import AuthenticationError, NotFoundError, ValidationError, register_exception_handlers
from schemas import (
    ApiInfo,
    AuthResponse,
    CartItem,
    CartItemCreate,
    CartLine,
    Identity,
    InventoryResponse,
    LoginInput,
    MessageResponse,
    PublicUser,
    QuantityInput,
    RegisterInput,
    Sweet,
    SweetCreate,
    SweetUpdate,
    User,
)
from security import (
    create_access_token,
    get_current_user,
    get_settings_from_app,
    hash_password,
    require_admin,
    verify_password,
)

logger = logging.getLogger(__name__)

API_NAME = "Sweet Shop API"

router = APIRouter()


def auth_response(user: User, settings: Settings) -> AuthResponse:
    # Never send the password hash
    public = PublicUser(id=user.id, username=user.username, email=user.email, role=user.role)
    return AuthResponse(user=public, token=create_access_token(user, settings))


def parse_price(value: Optional[str]) -> Optional[Decimal]:
    if value is None or not value.strip():
        return None
    try:
        price = Decimal(value.strip())
    except InvalidOperation:
        raise ValidationError("Invalid search parameters", details={"price": value})
    if not price.is_finite():
        raise ValidationError("Invalid search parameters", details={"price": value})
    return price


# Routes
@router.get("/", response_model=ApiInfo)
def read_root():
    return ApiInfo(name=API_NAME, status="ok")


# Auth
@router.post("/auth/register", response_model=AuthResponse)
def register(
    payload: RegisterInput,
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings_from_app),
):
    user = db.create_user(payload.username, payload.email, hash_password(payload.password), payload.role)
    return auth_response(user, settings)


@router.post("/auth/login", response_model=AuthResponse)
def login(
    payload: LoginInput,
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings_from_app),
):
    user = db.get_user_by_email(payload.email)
    if not user or not verify_password(payload.password, user.password):
        raise AuthenticationError("Invalid credentials", details={"email": payload.email})
    return auth_response(user, settings)


@router.get("/auth/me", response_model=Identity)
def me(current_user: Identity = Depends(get_current_user)):
    return current_user


# Sweets
@router.get("/sweets", response_model=List[Sweet])
def list_sweets(db: Database = Depends(get_db)):
    return db.list_sweets()


@router.get("/sweets/search", response_model=List[Sweet])
def search_sweets(
    query: Optional[str] = None,
    category: Optional[str] = None,
    min_price: Optional[str] = Query(default=None, alias="minPrice"),
    max_price: Optional[str] = Query(default=None, alias="maxPrice"),
    db: Database = Depends(get_db),
):
    return db.search_sweets(
        query=query or None,
        category=category or None,
        min_price=parse_price(min_price),
        max_price=parse_price(max_price),
    )


@router.get("/sweets/{sweet_id}", response_model=Sweet)
def get_sweet(sweet_id: str, db: Database = Depends(get_db)):
    sweet = db.get_sweet(sweet_id)
    if sweet is None:
        raise NotFoundError("Sweet not found", details={"sweet_id": sweet_id})
    return sweet


@router.post("/sweets", response_model=Sweet)
def create_sweet(data: SweetCreate, db: Database = Depends(get_db), _: Identity = Depends(require_admin)):
    return db.create_sweet(data)


@router.put("/sweets/{sweet_id}", response_model=Sweet)
def update_sweet(
    sweet_id: str,
    data: SweetUpdate,
    db: Database = Depends(get_db),
    _: Identity = Depends(require_admin),
):
    return db.update_sweet(sweet_id, data)


@router.delete("/sweets/{sweet_id}", response_model=MessageResponse)
def delete_sweet(sweet_id: str, db: Database = Depends(get_db), _: Identity = Depends(require_admin)):
    db.delete_sweet(sweet_id)
    return MessageResponse(message="Sweet deleted successfully")


# Inventory
@router.post("/sweets/{sweet_id}/purchase", response_model=InventoryResponse)
def purchase_sweet(
    sweet_id: str,
    data: QuantityInput,
    db: Database = Depends(get_db),
    _: Identity = Depends(get_current_user),
):
    sweet = db.purchase_sweet(sweet_id, data.quantity)
    return InventoryResponse(message="Purchase successful", sweet=sweet)


@router.post("/sweets/{sweet_id}/restock", response_model=InventoryResponse)
def restock_sweet(
    sweet_id: str,
    data: QuantityInput,
    db: Database = Depends(get_db),
    _: Identity = Depends(require_admin),
):
    sweet = db.restock_sweet(sweet_id, data.quantity)
    return InventoryResponse(message="Restock successful", sweet=sweet)


# Cart
@router.get("/cart", response_model=List[CartLine])
def get_cart(db: Database = Depends(get_db), current_user: Identity = Depends(get_current_user)):
    return db.get_cart(current_user.id)


@router.post("/cart", response_model=CartItem)
def add_to_cart(
    item: CartItemCreate,
    db: Database = Depends(get_db),
    current_user: Identity = Depends(get_current_user),
):
    return db.add_to_cart(current_user.id, item.sweet_id, item.quantity)


@router.put("/cart/{item_id}", response_model=CartItem)
def update_cart_item(
    item_id: str,
    data: QuantityInput,
    db: Database = Depends(get_db),
    current_user: Identity = Depends(get_current_user),
):
    return db.update_cart_item(item_id, data.quantity, user_id=current_user.id)


@router.delete("/cart/{item_id}", response_model=MessageResponse)
def remove_from_cart(
    item_id: str,
    db: Database = Depends(get_db),
    current_user: Identity = Depends(get_current_user),
):
    db.remove_from_cart(item_id, user_id=current_user.id)
    return MessageResponse(message="Item removed from cart")


@router.delete("/cart", response_model=MessageResponse)
def clear_cart(db: Database = Depends(get_db), current_user: Identity = Depends(get_current_user)):
    db.clear_cart(current_user.id)
    return MessageResponse(message="Cart cleared")


def create_app(settings: Optional[Settings] = None, db: Optional[Database] = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings.resolve_secret()

    app = FastAPI(title=API_NAME)
    app.state.settings = settings
    app.state.db = db if db is not None else Database()
    if db is None and settings.seed_sample_data:
        seed_sample_data(app.state.db)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.info("%s %s 500 %.0fms", request.method, request.url.path, duration_ms)
            raise
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s %s %.0fms",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response

    register_exception_handlers(app, prefix=settings.api_prefix, include_stack=settings.is_development)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = app.state.settings
    uvicorn.run(app, host=settings.host, port=settings.port)
