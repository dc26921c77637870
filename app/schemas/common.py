from typing import Any

from pydantic import BaseModel


def ok(data: Any = None, message: str | None = None) -> dict:
    body: dict = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body


def page_of(items: list, total: int, page: int, limit: int) -> dict:
    return {
        "items": items,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": (total + limit - 1) // limit if limit else 0,
    }


class Coordinates(BaseModel):
    latitude: float | None = None
    longitude: float | None = None
