"""MCP tools for the Modular branches server."""

from .filiais_tools import (
    ERROR_PREFIX,
    FiliaisError,
    filtrar_filiais,
    formatar_filiais,
    listar_filiais,
)
from .modular_client import ModularAPIError, ModularClient

__all__ = [
    # Branch tools
    "listar_filiais",
    "filtrar_filiais",
    "formatar_filiais",
    "FiliaisError",
    "ERROR_PREFIX",
    # Upstream client
    "ModularClient",
    "ModularAPIError",
]
