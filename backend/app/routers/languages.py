from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel

from ..languages import LANGUAGE_PROFILES


router = APIRouter(prefix="/languages", tags=["languages"])


class LanguageItem(BaseModel):
    id: str
    display_name: str
    editor_mode: str
    template: str


class LanguagesResponse(BaseModel):
    items: list[LanguageItem]


@router.get("", response_model=LanguagesResponse)
def list_languages():
    return LanguagesResponse(
        items=[
            LanguageItem(
                id=lang.value,
                display_name=profile.display_name,
                editor_mode=profile.editor_mode,
                template=profile.template,
            )
            for lang, profile in LANGUAGE_PROFILES.items()
        ]
    )
