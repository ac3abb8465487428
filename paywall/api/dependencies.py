"""FastAPI dependencies shared by the routers."""

import json
from typing import Any

from fastapi import Request

from paywall.domain.exceptions import MalformedBodyError
from paywall.infrastructure.container import Services


def get_services(request: Request) -> Services:
    """Get the services wired at startup."""
    return request.app.state.services


async def read_json_object(request: Request) -> dict[str, Any]:
    """Read the request body as a JSON object.

    Raises:
        MalformedBodyError: If the body is not JSON or not an object.
    """
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedBodyError("Invalid JSON body") from e
    if not isinstance(body, dict):
        raise MalformedBodyError("Order must be a JSON object")
    return body
