"""Branch listing tool backed by the Modular API.

Fetches the complete branch list and filters it locally:
- cidade: case-insensitive substring of the record's ``Cidade``
- uf: case-insensitive exact match of the record's ``UF``

No accent folding is applied, so "sao" does not match "São Paulo".
"""

import json
import logging
from typing import Any, List, Optional

from .modular_client import ModularClient

logger = logging.getLogger(__name__)

ERROR_PREFIX = "Erro ao consultar filiais: "


class FiliaisError(Exception):
    """Exception raised when the branch listing cannot be produced.

    The message is ready to be shown to the caller and always starts with
    ``ERROR_PREFIX``.
    """

    def __init__(self, message: str):
        super().__init__(f"{ERROR_PREFIX}{message}")


def _campo_texto(filial: Any, campo: str) -> str:
    if not isinstance(filial, dict):
        raise TypeError(f"registro de filial inválido: {filial!r}")
    valor = filial.get(campo)
    if not isinstance(valor, str):
        raise TypeError(f"campo '{campo}' ausente ou não textual em {filial!r}")
    return valor


def filtrar_filiais(
    filiais: List[Any],
    cidade: Optional[str] = None,
    uf: Optional[str] = None,
) -> List[Any]:
    """Filter branch records by city and state.

    Empty filters are ignored. Records are returned unchanged and in the
    upstream order.

    Args:
        filiais: Branch records as returned by the API.
        cidade: Partial city name.
        uf: State code.

    Returns:
        Matching records.

    Raises:
        TypeError: If a filter is applied to a record without that field.
    """
    if not cidade and not uf:
        return list(filiais)

    cidade_busca = cidade.lower() if cidade else None
    uf_busca = uf.lower() if uf else None

    resultado = []
    for filial in filiais:
        if cidade_busca and cidade_busca not in _campo_texto(filial, "Cidade").lower():
            continue
        if uf_busca and _campo_texto(filial, "UF").lower() != uf_busca:
            continue
        resultado.append(filial)

    return resultado


async def listar_filiais(
    cidade: Optional[str] = None,
    uf: Optional[str] = None,
    client: Optional[ModularClient] = None,
) -> List[Any]:
    """List Modular branches, optionally filtered by city and state.

    Args:
        cidade: Partial city name (case-insensitive substring).
        uf: Two-letter state code (case-insensitive exact match).
        client: Modular API client. Default built from settings.

    Returns:
        Filtered list of branch records.

    Raises:
        FiliaisError: On any fetch, decoding or filtering failure.

    Example:
        >>> filiais = await listar_filiais(uf="SP")
        >>> print(formatar_filiais(filiais))
    """
    client = client or ModularClient()

    try:
        filiais = await client.fetch_filiais()
        resultado = filtrar_filiais(filiais, cidade=cidade, uf=uf)
    except Exception as e:
        logger.error(f"Branch listing failed (cidade={cidade!r}, uf={uf!r}): {e}")
        raise FiliaisError(str(e) or repr(e)) from e

    logger.info(f"listar_filiais: {len(resultado)} of {len(filiais)} branches matched")
    return resultado


def formatar_filiais(filiais: List[Any]) -> str:
    """Serialize branch records as pretty-printed JSON text."""
    return json.dumps(filiais, indent=2, ensure_ascii=False)

