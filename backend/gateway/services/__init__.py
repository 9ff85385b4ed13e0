"""
Services module
Export all services
"""

from gateway.services.llm_service import TranslationService, get_translation_service

__all__ = [
    "TranslationService",
    "get_translation_service",
]
