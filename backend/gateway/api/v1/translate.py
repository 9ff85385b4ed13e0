"""
Translation API Routes
一次性文本翻译，与实时分段翻译共用同一个翻译服务
"""

from fastapi import APIRouter, Depends

from gateway.schemas.translation import TextTranslateRequest, TextTranslateResponse
from gateway.services.llm_service import TranslationService, get_translation_service

router = APIRouter(prefix="/translate", tags=["Translation"])


@router.post("/text", response_model=TextTranslateResponse)
async def translate_text(
    request: TextTranslateRequest,
    service: TranslationService = Depends(get_translation_service),
):
    """Translate text; provider failures map to 502 via the exception handlers"""
    translated = await service.translate(request.text, request.target_language)
    return TextTranslateResponse(
        original_text=request.text,
        translated_text=translated,
        target_language=request.target_language,
        llm_model=service.model,
    )
