"""
Translation Schemas
文本翻译请求/响应模型
"""

from pydantic import BaseModel, Field


class TextTranslateRequest(BaseModel):
    """Text translation request"""

    text: str = Field(min_length=1)
    target_language: str = Field(min_length=1)


class TextTranslateResponse(BaseModel):
    """Text translation response"""

    original_text: str
    translated_text: str
    target_language: str
    llm_model: str | None = None
