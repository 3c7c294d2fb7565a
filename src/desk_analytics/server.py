"""Desk analytics MCP Server - Thin wrapper around operations module."""

import json
from typing import Literal, Optional

from mcp.server.fastmcp import FastMCP
from pydantic import BaseModel, ConfigDict, Field

from desk_analytics import operations
from desk_analytics.client import DeskAPIError, DeskAuthError

# Initialize the MCP server
mcp = FastMCP("desk_analytics")

ViewName = Literal["performance", "metrics", "pending", "archived", "department-age", "agent-age"]


# =============================================================================
# Pydantic Input Models
# =============================================================================

# Shared model config
_MODEL_CONFIG = ConfigDict(str_strip_whitespace=True)


class PerformanceInput(BaseModel):
    """Input for the agent performance report."""
    model_config = _MODEL_CONFIG
    from_date: Optional[str] = Field(default=None, description="First day (YYYY-MM-DD)")
    to_date: Optional[str] = Field(default=None, description="Last day (YYYY-MM-DD)")
    department_id: Optional[str] = Field(default=None, description="Department ID or 'all'")
    agent_id: Optional[str] = Field(default=None, description="Assignee ID or 'all'")


class ViewFiltersInput(BaseModel):
    """Filters shared by the table views."""
    model_config = _MODEL_CONFIG
    view: ViewName = Field(..., description="Which table to produce")
    from_date: Optional[str] = Field(default=None, description="First day (YYYY-MM-DD)")
    to_date: Optional[str] = Field(default=None, description="Last day (YYYY-MM-DD)")
    department_id: Optional[str] = Field(default=None, description="Department ID or 'all'")
    agent_names: list[str] = Field(default_factory=list, description="Agent display names")
    statuses: list[str] = Field(default_factory=list, description="Statuses, e.g. open, On Hold")
    search: Optional[str] = Field(default=None, description="Search text")

    def to_filters(self):
        return operations.build_filters(
            self.from_date, self.to_date, self.department_id,
            self.agent_names, self.statuses, self.search,
        )


class ViewRowsInput(ViewFiltersInput):
    """Input for a page of view rows."""
    page: int = Field(default=1, ge=1, description="Page number")
    page_size: Optional[int] = Field(default=None, ge=0, description="Rows per page (0 = all)")


class ExportViewInput(ViewFiltersInput):
    """Input for exporting a view to a spreadsheet."""
    output_path: str = Field(..., description="Path of the .xlsx file to write", min_length=1)


class EmptyInput(BaseModel):
    """Input for tools without parameters."""
    model_config = _MODEL_CONFIG


class AuthStatusInput(BaseModel):
    """Input for auth status check."""
    model_config = _MODEL_CONFIG
    validate_credentials: bool = Field(
        default=True,
        description="Whether to validate credentials by making an API call"
    )


# =============================================================================
# Helper Functions
# =============================================================================


def _format_result(result: dict | list) -> str:
    """Format operation result as JSON string."""
    return json.dumps(result, indent=2, default=str)


def _handle_error(e: Exception) -> str:
    """Format errors consistently."""
    if isinstance(e, DeskAuthError):
        return f"**Authentication Error:** {e}"
    elif isinstance(e, DeskAPIError):
        return f"**API Error:** {e}"
    else:
        return f"**Error:** {type(e).__name__}: {e}"


# =============================================================================
# Report Tools
# =============================================================================


@mcp.tool(name="desk_agent_performance")
async def desk_agent_performance(params: PerformanceInput) -> str:
    """Per-agent performance (created, resolved, pending, average times) with an overall summary."""
    try:
        result = await operations.get_agent_performance(
            from_date=params.from_date,
            to_date=params.to_date,
            department_id=params.department_id,
            agent_id=params.agent_id,
        )
        return _format_result(result)
    except Exception as e:
        return _handle_error(e)


@mcp.tool(name="desk_view_rows")
async def desk_view_rows(params: ViewRowsInput) -> str:
    """One page of a dashboard table: performance, metrics, pending, archived, department-age or agent-age."""
    try:
        result = await operations.get_view_page(
            params.view, params.to_filters(), params.page, params.page_size
        )
        return _format_result(result)
    except Exception as e:
        return _handle_error(e)


@mcp.tool(name="desk_export_view")
async def desk_export_view(params: ExportViewInput) -> str:
    """Export every filtered row of a dashboard table to an .xlsx file."""
    try:
        result = await operations.export_view(params.view, params.to_filters(), params.output_path)
        return _format_result(result)
    except Exception as e:
        return _handle_error(e)


@mcp.tool(name="desk_list_departments")
async def desk_list_departments(params: EmptyInput) -> str:
    """List Zoho Desk departments (id and name)."""
    try:
        result = await operations.list_departments()
        return _format_result(result)
    except Exception as e:
        return _handle_error(e)


# =============================================================================
# Auth Tools
# =============================================================================


@mcp.tool(name="desk_auth_status")
async def desk_auth_status(params: AuthStatusInput) -> str:
    """Check Zoho Desk authentication status.

    Returns current auth configuration source (env vars, config file, or none),
    validates credentials if requested, and provides setup guidance if not configured.
    """
    try:
        result = await operations.check_auth_status(validate=params.validate_credentials)
        return _format_result(result)
    except Exception as e:
        return _handle_error(e)


# =============================================================================
# Server Entry Point
# =============================================================================


def main():
    """Run the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
