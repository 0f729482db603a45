import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query

from backend.dependencies import (
    get_credential_store,
    get_model_catalog,
    get_session_controller,
)
from backend.exceptions import InvalidCredentialError, MissingCredentialError
from backend.models.schemas import ModelListResponse
from backend.services.credential_store import CredentialStore
from backend.services.model_catalog import ModelCatalog
from backend.services.session_controller import SessionController

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/models", tags=["models"])

INVALID_KEY_DETAIL = "Invalid API key. Please clear and re-enter."


@router.get("", response_model=ModelListResponse)
async def list_models(
    refresh: bool = Query(default=False),
    store: CredentialStore = Depends(get_credential_store),
    controller: SessionController = Depends(get_session_controller),
    catalog: ModelCatalog = Depends(get_model_catalog),
):
    """Models available to the current key.

    The listing is fetched once per key and cached. A rejected key is
    forgotten together with the session it was used for, unless a turn is
    still running on that session.
    """
    if not controller.api_key:
        raise HTTPException(status_code=400, detail=MissingCredentialError().message)

    if refresh or not catalog.models:
        try:
            await catalog.refresh(controller.api_key)
        except InvalidCredentialError as e:
            logger.error("Model listing rejected the API key: %s", e)
            await store.clear()
            controller.clear_credential()
            catalog.clear()
            raise HTTPException(status_code=401, detail=INVALID_KEY_DETAIL)
        except httpx.HTTPError as e:
            logger.error("Error fetching models: %s", e)
            raise HTTPException(status_code=502, detail=f"Failed to fetch models: {e}")

    default_model = catalog.default_model()
    if not controller.model_id and default_model and not controller.busy:
        controller.select_model(default_model)

    return ModelListResponse(
        models=catalog.models,
        providers=catalog.providers(),
        default_model=default_model,
    )
