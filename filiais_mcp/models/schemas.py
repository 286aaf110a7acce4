"""Pydantic schemas for tool inputs and MCP tool definitions."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


# =============================================================================
# MCP Protocol Models
# =============================================================================


class ToolDefinition(BaseModel):
    """MCP tool definition as advertised by tools/list."""

    name: str
    description: str
    inputSchema: Dict[str, Any]


# =============================================================================
# Tool Argument Models
# =============================================================================


class ListarFiliaisArgs(BaseModel):
    """Arguments accepted by the listar_filiais tool."""

    model_config = ConfigDict(extra="ignore")

    cidade: Optional[str] = None
    uf: Optional[str] = None
