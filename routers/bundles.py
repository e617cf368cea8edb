"""
Bundles Router
Storefront-facing add-bundle endpoints (checkout path and inspection path).
"""
from fastapi import APIRouter, Depends, Request, Response
from starlette.responses import JSONResponse
from typing import Any, Awaitable, Callable, Dict
import logging

from services.bundle_service import BundleService, ClientFactory, bundle_service, default_client_factory
from services.bundle_validation import AddBundleRequest, validate_request_payload
from services.credential_store import CredentialStore, credential_store
from services.errors import BundleError, UnexpectedError, ValidationError
from settings import TENANT_HEADER, sanitize_tenant

logger = logging.getLogger(__name__)
router = APIRouter()

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": f"Content-Type, {TENANT_HEADER}",
}


def get_credential_store() -> CredentialStore:
    return credential_store


def get_bundle_service() -> BundleService:
    return bundle_service


def get_client_factory() -> ClientFactory:
    return default_client_factory


def _error_response(status_code: int, payload: Dict[str, Any]) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=payload, headers=CORS_HEADERS)


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        raise ValidationError("Request body must be valid JSON")


async def _run(
    request: Request,
    store: CredentialStore,
    client_factory: ClientFactory,
    operation: Callable[[Any, AddBundleRequest], Awaitable[Dict[str, Any]]],
) -> JSONResponse:
    tenant = sanitize_tenant(request.headers.get(TENANT_HEADER))
    if not tenant:
        return _error_response(400, {"errorMessage": f"{TENANT_HEADER} header is required"})

    try:
        auth = await store.get(tenant)
        if not auth:
            return _error_response(
                400,
                {"errorMessage": f"No auth data found for {tenant}. Is the app installed?"},
            )

        payload = validate_request_payload(await _read_json(request))

        client = client_factory(auth)
        try:
            result = await operation(client, payload)
        finally:
            aclose = getattr(client, "aclose", None)
            if aclose is not None:
                await aclose()

        return JSONResponse(status_code=200, content=result, headers=CORS_HEADERS)

    except BundleError as e:
        if isinstance(e, UnexpectedError):
            logger.error(f"Add bundle failed for {tenant}: {e.message}")
        else:
            logger.info(f"Add bundle rejected for {tenant}: {e.message} {e.details or ''}")
        return _error_response(e.status_code, e.to_response())
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return _error_response(500, UnexpectedError().to_response())


@router.options("/add-bundle")
@router.options("/add-bundle/inspect")
async def add_bundle_preflight():
    return Response(status_code=200, headers=CORS_HEADERS)


@router.post("/add-bundle")
async def add_bundle(
    request: Request,
    store: CredentialStore = Depends(get_credential_store),
    service: BundleService = Depends(get_bundle_service),
    client_factory: ClientFactory = Depends(get_client_factory),
):
    """Add a bundle's lines to a new or existing checkout."""
    logger.info("Add bundle API has been called")
    return await _run(request, store, client_factory, service.add_bundle)


@router.post("/add-bundle/inspect")
async def inspect_bundle(
    request: Request,
    store: CredentialStore = Depends(get_credential_store),
    service: BundleService = Depends(get_bundle_service),
    client_factory: ClientFactory = Depends(get_client_factory),
):
    """Validate a bundle request and return product/variant data without touching a checkout."""
    logger.info("Inspect bundle API has been called")
    return await _run(request, store, client_factory, service.inspect_bundle)
