"""Tool-related data models."""

from enum import Enum


class ToolName(str, Enum):
    """Closed set of tools the agent can invoke."""

    GET_CURRENT_TIME = "get_current_time"
    WEB_SEARCH = "web_search"
    CALCULATOR = "calculator"
    REMEMBER_INFO = "remember_info"
    COURTESY_RESPONSE = "courtesy_response"
