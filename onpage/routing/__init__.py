"""
Selector Routing - self-healing address resolution

Classes:
    - SelectorMemory: bounded history of successful resolutions plus learned mappings
    - RecoveryStrategy: one healing heuristic (by id, class, attribute, text, ...)
    - SelectorResolver: retry, heal and learn

Usage:
    from onpage.routing import SelectorResolver, SelectorMemory

    resolver = SelectorResolver(memory=SelectorMemory(storage))
    result = resolver.resolve(document, "#price")
"""

from .selector_memory import SelectorMemory
from .healing_strategies import RecoveryStrategy, HealingContext, DEFAULT_STRATEGIES
from .selector_resolver import SelectorResolver, ResolveOptions

__all__ = [
    'SelectorMemory',
    'RecoveryStrategy',
    'HealingContext',
    'DEFAULT_STRATEGIES',
    'SelectorResolver',
    'ResolveOptions',
]
