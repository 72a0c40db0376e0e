"""POST /v1/admin/config/refresh - Reload servicing policy from the environment"""

import logging
from dataclasses import asdict

from fastapi import APIRouter, HTTPException, Request
from pydantic import ValidationError as SettingsValidationError

from lamf_servicing.api.dependencies import get_request_id
from lamf_servicing.api.v1.schemas import JobResponse
from lamf_servicing.config import load_servicing_config

router = APIRouter()


@router.post("/admin/config/refresh", response_model=JobResponse)
def refresh_config(request: Request):
    """
    Rebuild the servicing config and swap it in for subsequent requests.

    Requests already in flight keep the config they started with.
    """
    request_id = get_request_id(request)
    try:
        config = load_servicing_config()
    except SettingsValidationError as e:
        logging.error(f"Config refresh rejected: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail="Invalid configuration")

    request.app.state.servicing_config = config
    logging.info("Servicing config refreshed", extra={"request_id": request_id})

    return JobResponse(
        success=True,
        message="Configuration refreshed",
        data={key: str(value) for key, value in asdict(config).items()},
    )
