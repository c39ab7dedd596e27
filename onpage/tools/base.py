"""
Base Tool Class

Abstract base class for every public entry point (extract, analyze,
collect). Subclasses implement `_execute_impl`; `execute` turns any
exception into a failed ToolResult so nothing raises past the boundary.

Usage:
    from onpage.tools.base import BaseTool
    from onpage.models.tool_result import ToolResult

    class MyTool(BaseTool):
        @property
        def name(self) -> str:
            return "my_tool"

        @property
        def description(self) -> str:
            return "Description of what the tool does"

        def _execute_impl(self, **kwargs) -> ToolResult:
            return ToolResult(success=True, data=result)
"""

from abc import ABC, abstractmethod
from typing import Any, Dict
import logging

from onpage.models.tool_result import ToolResult

logger = logging.getLogger(__name__)


class BaseTool(ABC):
    """
    Abstract base class for all tools.

    All tools must implement:
    - name: Tool identifier
    - description: What the tool does
    - _execute_impl: The actual tool logic
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Tool identifier."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        pass

    @abstractmethod
    def _execute_impl(self, **kwargs) -> ToolResult:
        """
        Execute the tool logic.

        Returns:
            ToolResult with success status and data or error
        """
        pass

    def execute(self, **kwargs) -> ToolResult:
        """
        Public execute method with error handling.

        Args:
            **kwargs: Tool-specific parameters

        Returns:
            ToolResult with success status and data or error
        """
        try:
            logger.debug(f"[{self.name}] execute() called with parameters: {list(kwargs)}")

            if not self.validate_params(**kwargs):
                logger.warning(f"[{self.name}] Parameter validation failed: {list(kwargs)}")
                return ToolResult(
                    success=False,
                    error="Invalid parameters provided",
                    tool_name=self.name,
                    metadata=self._describe(kwargs)
                )

            result = self._execute_impl(**kwargs)
            if result.tool_name is None:
                result.tool_name = self.name
            return result

        except Exception as e:
            error_msg = f"Error executing {self.name}: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return ToolResult(
                success=False,
                error=error_msg,
                tool_name=self.name,
                metadata=self._describe(kwargs)
            )

    def validate_params(self, **kwargs) -> bool:
        """
        Validate input parameters.
        Override in subclass for custom validation.
        """
        return True

    @staticmethod
    def _describe(kwargs: Dict[str, Any]) -> Dict[str, Any]:
        """Parameter summary safe to attach to a result (documents are not copied)."""
        return {key: type(value).__name__ if not isinstance(value, (str, int, float, bool)) else value
                for key, value in kwargs.items()}
