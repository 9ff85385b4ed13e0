# Realtime Relay Package
"""
实时中继模块

包含:
- session.py: 会话状态
- client_link.py: 客户端连接
- upstream_link.py: 上游实时转写连接
- event_translator.py: 上游事件 → 客户端事件
- translation_injector.py: 分段翻译后台任务
- ordered_translation_sender.py: 按分段顺序交付翻译
"""

from gateway.services.relay.client_link import ClientLink
from gateway.services.relay.event_translator import EventTranslator
from gateway.services.relay.ordered_translation_sender import OrderedTranslationSender
from gateway.services.relay.session import RelaySession, SessionPhase
from gateway.services.relay.translation_injector import TranslationInjector, TranslationResult
from gateway.services.relay.upstream_link import UpstreamLink

__all__ = [
    "ClientLink",
    "EventTranslator",
    "OrderedTranslationSender",
    "RelaySession",
    "SessionPhase",
    "TranslationInjector",
    "TranslationResult",
    "UpstreamLink",
]
