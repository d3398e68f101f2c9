"""Base class for memory tools exposed to a hosting agent."""

from abc import ABC, abstractmethod
from typing import Any


class Tool(ABC):
    """
    A function-call tool.

    Subclasses describe themselves with a name, a description and a JSON
    Schema for their parameters, and answer every call with a JSON string.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Name the agent calls the tool by."""

    @property
    @abstractmethod
    def description(self) -> str:
        """Usage guidance shown to the model."""

    @property
    @abstractmethod
    def parameters(self) -> dict[str, Any]:
        """JSON Schema of the call arguments (an `object` schema)."""

    @abstractmethod
    async def execute(self, **kwargs: Any) -> str:
        """Run the tool and return its JSON result."""

    def missing_params(self, params: dict[str, Any]) -> list[str]:
        """Required parameters that are absent or None in a call."""
        return [key for key in self.parameters.get("required", []) if params.get(key) is None]

    def to_schema(self) -> dict[str, Any]:
        """Function definition in the OpenAI tool-calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }
