from __future__ import annotations

from contextlib import asynccontextmanager, contextmanager
from datetime import datetime
from typing import Any, Callable, Iterator

from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from pydantic import BaseModel

from fintrack.balance_engine import build_balance_policy
from fintrack.errors import INTERNAL_ERROR_MESSAGE, ApiError
from fintrack.identity import Identity, IdentityVerifier, JWTIdentityVerifier, algorithms_from, resolve_identity
from fintrack.logging_utils import get_stream_logger
from fintrack.quote_proxy import QuoteProxy, build_quote_proxy
from fintrack.settings import INCREMENTAL, Settings
from fintrack.store import DocumentStore
from fintrack.transaction_service import TransactionService, utc_now
from fintrack.validation import TransactionPayload, ValidationFailure

logger = get_stream_logger(__name__)

NOT_READY_MESSAGE = "Service not ready"


class CheckInPayload(BaseModel):
    email: Any = None


@contextmanager
def internal_errors(action: str) -> Iterator[None]:
    try:
        yield
    except (ApiError, ValidationFailure):
        raise
    except Exception as exc:
        logger.exception("Failed to %s", action)
        raise ApiError(500, INTERNAL_ERROR_MESSAGE) from exc


def get_service(request: Request) -> TransactionService:
    service: TransactionService = request.app.state.service
    if not service.store.ready:
        raise ApiError(503, NOT_READY_MESSAGE)
    return service


def get_identity(
    request: Request,
    authorization: str | None = Header(None),
) -> Identity:
    verifier: IdentityVerifier = request.app.state.verifier
    return resolve_identity(authorization, verifier)


def get_quote_proxy(request: Request) -> QuoteProxy:
    return request.app.state.quote_proxy


def create_app(
    settings: Settings | None = None,
    *,
    store: DocumentStore | None = None,
    verifier: IdentityVerifier | None = None,
    quote_proxy: QuoteProxy | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    store = store or DocumentStore.from_url(settings.database_url)
    verifier = verifier or JWTIdentityVerifier(
        secret=settings.auth_secret,
        algorithms=algorithms_from(settings.auth_algorithm),
    )
    quote_proxy = quote_proxy or build_quote_proxy(settings.quote_url, settings.quote_timeout_seconds)
    service = TransactionService(
        store=store,
        policy=build_balance_policy(settings.balance_mode, store),
        clock=clock or utc_now,
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        if not store.ready:
            store.connect()
        logger.info("FinTrack started in %s balance mode", service.mode)
        yield
        store.close()

    app = FastAPI(title="FinTrack", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.service = service
    app.state.verifier = verifier
    app.state.quote_proxy = quote_proxy

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_origin],
        allow_credentials=settings.frontend_origin != "*",
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ApiError)
    async def handle_api_error(_: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)

    @app.exception_handler(ValidationFailure)
    async def handle_validation_failure(_: Request, exc: ValidationFailure) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(_: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @app.get("/", response_class=PlainTextResponse)
    def root() -> str:
        return "Hello World!"

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "ready": store.ready, "mode": service.mode}

    @app.get("/quote")
    def quote(proxy: QuoteProxy = Depends(get_quote_proxy)) -> dict:
        return proxy.get_quote()

    if service.mode == INCREMENTAL:

        @app.post("/check")
        def check_in(
            payload: CheckInPayload | None = None,
            service: TransactionService = Depends(get_service),
        ) -> JSONResponse:
            email = payload.email if payload else None
            if not isinstance(email, str) or not email.strip():
                raise ApiError(400, "Email is required")
            with internal_errors("check in user"):
                result = service.check_in(email.strip())
            return JSONResponse(
                status_code=201 if result.created else 200,
                content={"message": result.message},
            )

    @app.post("/add-transaction")
    def add_transaction(
        payload: TransactionPayload | None = None,
        identity: Identity = Depends(get_identity),
        service: TransactionService = Depends(get_service),
    ) -> dict:
        with internal_errors("add transaction"):
            inserted_id = service.create(payload or TransactionPayload(), identity)
        return {
            "success": True,
            "insertedId": inserted_id,
            "message": "Transaction added successfully!",
        }

    @app.patch("/transaction/{transaction_id}")
    def update_transaction(
        transaction_id: str,
        payload: TransactionPayload | None = None,
        identity: Identity = Depends(get_identity),
        service: TransactionService = Depends(get_service),
    ) -> dict:
        with internal_errors("update transaction"):
            service.update(transaction_id, payload or TransactionPayload(), identity)
        return {
            "success": True,
            "insertedId": None,
            "message": "Transaction updated successfully!",
        }

    @app.get("/balance", response_model=None)
    def balance(
        identity: Identity = Depends(get_identity),
        service: TransactionService = Depends(get_service),
    ) -> dict | None:
        with internal_errors("compute balance"):
            return service.get_balance(identity)

    @app.get("/my-transactions", response_model=None)
    def my_transactions(
        identity: Identity = Depends(get_identity),
        service: TransactionService = Depends(get_service),
    ) -> list[dict]:
        with internal_errors("list transactions"):
            return service.list_mine(identity)

    @app.get("/transaction/{transaction_id}", response_model=None)
    def get_transaction(
        transaction_id: str,
        identity: Identity = Depends(get_identity),
        service: TransactionService = Depends(get_service),
    ) -> dict:
        with internal_errors("load transaction"):
            return service.get_one(transaction_id, identity)

    @app.delete("/transaction/{transaction_id}")
    def delete_transaction(
        transaction_id: str,
        identity: Identity = Depends(get_identity),
        service: TransactionService = Depends(get_service),
    ) -> dict:
        with internal_errors("delete transaction"):
            service.delete(transaction_id, identity)
        return {"success": True, "message": "Transaction deleted successfully."}

    return app


def run() -> None:
    import uvicorn

    settings = Settings.from_env()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
