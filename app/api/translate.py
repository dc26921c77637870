from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from app.actors import Actor, AdminActor
from app.api.auth import require_admin, require_staff
from app.schemas.common import ok
from app.services.translation_service import SUPPORTED_LANGUAGES, TranslationService, detect_language

router = APIRouter(prefix="/translate", tags=["Translate"])

LANG_PATTERN = "^(" + "|".join(SUPPORTED_LANGUAGES) + ")$"


class TranslateRequest(BaseModel):
    text: str = ""
    texts: list[str] = []
    target: str = Field(pattern=LANG_PATTERN)
    source: str | None = Field(default=None, pattern=LANG_PATTERN)  # None = detect


def get_translator(request: Request) -> TranslationService:
    return request.app.state.translator


@router.post("")
def translate(
    data: TranslateRequest,
    _: Actor = Depends(require_staff),
    translator: TranslationService = Depends(get_translator),
):
    if data.texts:
        source = data.source or detect_language(data.texts[0])
        return ok({"source": source, "target": data.target, "translations": translator.translate_batch(data.texts, data.target, source)})
    source = data.source or detect_language(data.text)
    return ok({"source": source, "target": data.target, "translation": translator.translate(data.text, data.target, source)})


@router.get("/cache")
def cache_stats(_: AdminActor = Depends(require_admin), translator: TranslationService = Depends(get_translator)):
    return ok(translator.stats())


@router.delete("/cache")
def clear_cache(_: AdminActor = Depends(require_admin), translator: TranslationService = Depends(get_translator)):
    translator.clear()
    return ok(message="Translation cache cleared")
