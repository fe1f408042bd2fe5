"""
FastAPI application exposing hosting-account provisioning.

Handlers only translate between HTTP and the ProvisioningEngine. Every
``/accounts`` route requires HTTP Basic credentials of an ``admin``
credential; errors are rendered as ``{code, error, detail}``.
"""

from contextlib import asynccontextmanager
from typing import Iterator, List, Optional, Union

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from sqlalchemy.orm import Session

from .. import __version__
from ..config import AppConfig, get_config
from ..constants import PermissionLevel
from ..db.db_config import DatabaseManager, close_db, init_db, initialize_db
from ..exceptions import AuthenticationError, BaseError, ErrorCode, permission_denied
from ..provisioning.os_accounts import OSAccountGateway, build_os_gateway
from ..provisioning.provisioning_service import ProvisioningEngine
from ..schemas.account_schema import (
    AccountCreate,
    AccountDeletion,
    AccountPage,
    AccountUpdate,
    HostingAccountRead,
)
from ..schemas.credential_schema import CredentialRead, SecretChange
from ..schemas.resource_quota_schema import ResourceQuotaUpdate
from ..services.credential_service import CredentialService
from ..utils.logger import configure_logging, get_logger

# HTTP status per error code; anything unlisted keeps the error's own status
HTTP_STATUS = {
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.DUPLICATE: 400,
    ErrorCode.VALIDATION_FAILED: 400,
    ErrorCode.INVALID_FORMAT: 400,
    ErrorCode.MISSING_REQUIRED: 400,
    ErrorCode.AUTHENTICATION_FAILED: 401,
    ErrorCode.PERMISSION_DENIED: 403,
}

_basic = HTTPBasic(auto_error=False)


def error_response(error: BaseError) -> JSONResponse:
    status = HTTP_STATUS.get(error.error_code, error.status_code)
    headers = {"WWW-Authenticate": "Basic"} if status == 401 else None
    return JSONResponse(
        status_code=status,
        content=error.to_dict(),
        headers=headers,
    )


def _positive_int(raw: Optional[str]) -> Optional[int]:
    """Parse a paging parameter; anything unparsable or below 1 means "use the default"."""
    try:
        value = int(raw) if raw else None
    except ValueError:
        return None
    return value if value is not None and value > 0 else None


def create_app(
    db_manager: Optional[DatabaseManager] = None,
    os_gateway: Optional[OSAccountGateway] = None,
    config: Optional[AppConfig] = None,
) -> FastAPI:
    """
    Build the application.

    Creates the schema (``create_all``) and seeds the default admin
    credential on an empty store before returning.

    Args:
        db_manager: Database to serve; defaults to the RPANEL_DB_* environment
        os_gateway: Host account gateway; defaults to the configured one
        config: Application configuration; defaults to the global one
    """
    config = config or get_config()
    logger = get_logger()

    owns_db = db_manager is None
    if owns_db:
        db_manager = initialize_db()
    else:
        init_db(db_manager)

    if os_gateway is None:
        os_gateway = build_os_gateway(config)

    session = db_manager.new_session()
    try:
        CredentialService(session=session, config=config).ensure_default_admin()
        session.commit()
    finally:
        session.close()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if owns_db:
            close_db()

    app = FastAPI(title="rpanel provisioning", version=__version__, lifespan=lifespan)
    app.state.db_manager = db_manager
    app.state.os_gateway = os_gateway
    app.state.config = config

    # ==================== DEPENDENCIES ====================

    def get_session() -> Iterator[Session]:
        session = db_manager.new_session()
        try:
            yield session
        finally:
            session.close()

    def get_engine(session: Session = Depends(get_session)) -> ProvisioningEngine:
        return ProvisioningEngine(session=session, os_gateway=os_gateway, config=config)

    def require_admin(
        credentials: Optional[HTTPBasicCredentials] = Depends(_basic),
        session: Session = Depends(get_session),
    ) -> CredentialRead:
        if credentials is None:
            raise AuthenticationError("Authentication required")
        caller = CredentialService(session=session, config=config).authenticate(
            credentials.username, credentials.password
        )
        if caller.permission_level != PermissionLevel.ADMIN:
            raise permission_denied("manage", "accounts", identifier=caller.identifier)
        return caller

    app.state.require_admin = require_admin

    # ==================== ERROR HANDLERS ====================

    @app.exception_handler(BaseError)
    async def base_error_handler(request: Request, exc: BaseError):
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        detail = "; ".join(
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', '')}"
            for err in exc.errors()
        )
        logger.warning("Rejected request payload", extra={"path": request.url.path, "detail": detail})
        return JSONResponse(
            status_code=400,
            content={
                "code": ErrorCode.VALIDATION_FAILED.value,
                "error": "ValidationFailure",
                "detail": detail,
            },
        )

    # ==================== ROUTES ====================

    @app.get("/health")
    def health():
        return {"status": "ok", "version": __version__}

    @app.post("/accounts", status_code=201, response_model=HostingAccountRead)
    def create_account(
        account_data: AccountCreate,
        engine: ProvisioningEngine = Depends(get_engine),
        caller: CredentialRead = Depends(require_admin),
    ):
        if account_data.added_by is None:
            account_data.added_by = caller.identifier
        return engine.create_account(account_data)

    @app.get("/accounts", response_model=Union[AccountPage, List[HostingAccountRead]])
    def list_accounts(
        page: Optional[str] = Query(default=None),
        limit: Optional[str] = Query(default=None),
        engine: ProvisioningEngine = Depends(get_engine),
        caller: CredentialRead = Depends(require_admin),
    ):
        # Without paging parameters the whole list is returned
        if not page and not limit:
            return engine.list_accounts()
        return engine.list_accounts_page(page=_positive_int(page), limit=_positive_int(limit))

    @app.get("/accounts/{account_id}", response_model=HostingAccountRead)
    def get_account(
        account_id: str,
        engine: ProvisioningEngine = Depends(get_engine),
        caller: CredentialRead = Depends(require_admin),
    ):
        return engine.get_account(account_id)

    @app.put("/accounts/{account_id}", response_model=HostingAccountRead)
    def update_account(
        account_id: str,
        account_update: AccountUpdate,
        engine: ProvisioningEngine = Depends(get_engine),
        caller: CredentialRead = Depends(require_admin),
    ):
        return engine.update_account(account_id, account_update)

    @app.put("/accounts/{account_id}/limits", response_model=HostingAccountRead)
    def update_limits(
        account_id: str,
        quota_update: ResourceQuotaUpdate,
        engine: ProvisioningEngine = Depends(get_engine),
        caller: CredentialRead = Depends(require_admin),
    ):
        return engine.update_limits(account_id, quota_update)

    @app.put("/accounts/{account_id}/secret", response_model=CredentialRead)
    def change_secret(
        account_id: str,
        secret_change: SecretChange,
        engine: ProvisioningEngine = Depends(get_engine),
        caller: CredentialRead = Depends(require_admin),
    ):
        return engine.change_secret(account_id, secret_change.secret)

    @app.delete("/accounts/{account_id}", response_model=AccountDeletion)
    def delete_account(
        account_id: str,
        engine: ProvisioningEngine = Depends(get_engine),
        caller: CredentialRead = Depends(require_admin),
    ):
        return engine.delete_account(account_id)

    return app


def build_app() -> FastAPI:
    """Factory for ``uvicorn --factory``: configures logging, then builds the app."""
    configure_logging("api")
    return create_app()
