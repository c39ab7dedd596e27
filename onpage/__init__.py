"""
OnPage - resilient, incremental structured-data extraction

Heals broken selectors, classifies page content into semantic fields and
collects items from progressively loading (infinite scroll) documents.
"""

__version__ = "2.1.0"
