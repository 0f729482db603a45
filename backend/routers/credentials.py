import logging

from fastapi import APIRouter, Depends, HTTPException

from backend.dependencies import (
    get_credential_store,
    get_model_catalog,
    get_session_controller,
)
from backend.models.schemas import CredentialStatus, CredentialUpdate
from backend.services.credential_store import CredentialStore
from backend.services.model_catalog import ModelCatalog
from backend.services.session_controller import SessionController

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/credentials", tags=["credentials"])


@router.get("", response_model=CredentialStatus)
async def get_credential_status(
    controller: SessionController = Depends(get_session_controller),
):
    return CredentialStatus(has_api_key=bool(controller.api_key))


@router.put("", response_model=CredentialStatus)
async def set_credential(
    body: CredentialUpdate,
    store: CredentialStore = Depends(get_credential_store),
    controller: SessionController = Depends(get_session_controller),
    catalog: ModelCatalog = Depends(get_model_catalog),
):
    """Store a new key. The model listing is reloaded on the next /models call."""
    api_key = body.api_key.strip()
    if not api_key:
        raise HTTPException(status_code=400, detail="API key must not be blank")
    await store.set(api_key)
    controller.set_credential(api_key)
    catalog.clear()
    logger.info("OpenRouter API key updated")
    return CredentialStatus(has_api_key=True)


@router.delete("", response_model=CredentialStatus)
async def clear_credential(
    store: CredentialStore = Depends(get_credential_store),
    controller: SessionController = Depends(get_session_controller),
    catalog: ModelCatalog = Depends(get_model_catalog),
):
    if controller.busy:
        raise HTTPException(status_code=409, detail="A response is still in progress")
    await store.clear()
    controller.clear_credential()
    catalog.clear()
    logger.info("OpenRouter API key cleared")
    return CredentialStatus(has_api_key=False)
