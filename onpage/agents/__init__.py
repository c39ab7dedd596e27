"""
Agents Package - Long-running collection loops

Usage:
    from onpage.agents import IncrementalCollector

    collector = IncrementalCollector(host, template)
    state = collector.run()
"""

from .incremental_collector import IncrementalCollector

__all__ = [
    'IncrementalCollector',
]
