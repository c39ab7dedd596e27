"""
Tools Package - Public extraction entry points

This package contains the classifier, the page analyzer and the smart
extractor, plus the BaseTool boundary they are exposed through.
"""

from .base import BaseTool
from .field_classifier import FieldClassifier, FieldCategory
from .page_analyzer import PageAnalyzer, AnalyzePageTool
from .smart_extractor import SmartExtractor, SmartExtractTool

__all__ = [
    'BaseTool',
    'FieldClassifier',
    'FieldCategory',
    'PageAnalyzer',
    'AnalyzePageTool',
    'SmartExtractor',
    'SmartExtractTool',
]
