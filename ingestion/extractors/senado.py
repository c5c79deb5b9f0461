"""
Extraction adapters for the Senado Federal open-data endpoints.

Each adapter makes one API call attempt and unwraps the response envelope.
Retries belong to the caller (a RetryPolicy or the RateLimitedFetcher).
Collections in these payloads arrive as a bare object when there is a
single element, so every list is passed through to_list().
"""

from datetime import date
from typing import Any, Dict, List, Optional
from ingestion.extractors.client import SenadoAPIClient
from ingestion.transformers.normalize import get_nested, to_list

# ============================================================================
# Endpoints
# ============================================================================

SENATORS_CURRENT = "/senador/lista/atual"
SENATORS_BY_LEGISLATURE = "/senador/lista/legislatura/{legislatura}"
SENATOR_DETAIL = "/senador/{codigo}"
SENATOR_VOTES = "/senador/{codigo}/votacoes"
SENATOR_AUTHORSHIPS = "/senador/{codigo}/autorias"
COMMITTEES = "/comissao/lista/colegiados"
COMMITTEE_COMPOSITION = "/composicao/comissao/{codigo}"

# 57th legislature started on 2023-02-01; each lasts four years
_REFERENCE_LEGISLATURE = 57
_REFERENCE_START = date(2023, 2, 1)


def current_legislature(today: Optional[date] = None) -> int:
    """Legislature number in effect on ``today``."""
    today = today or date.today()
    years = today.year - _REFERENCE_START.year
    if (today.month, today.day) < (_REFERENCE_START.month, _REFERENCE_START.day):
        years -= 1
    return _REFERENCE_LEGISLATURE + years // 4


def _format_date(value: Optional[date]) -> Optional[str]:
    return value.strftime("%Y%m%d") if value else None


async def list_senators(client: SenadoAPIClient, legislature: Optional[int] = None) -> List[Dict[str, Any]]:
    """Senators in office, or every senator of ``legislature``."""
    if legislature is None:
        data = await client.get(SENATORS_CURRENT)
        return to_list(get_nested(data, "ListaParlamentarEmExercicio", "Parlamentares", "Parlamentar"))

    data = await client.get(SENATORS_BY_LEGISLATURE, {"legislatura": legislature})
    return to_list(get_nested(data, "ListaParlamentarLegislatura", "Parlamentares", "Parlamentar"))


async def fetch_senator(client: SenadoAPIClient, code: str) -> Dict[str, Any]:
    """Full profile of one senator."""
    data = await client.get(SENATOR_DETAIL, {"codigo": code})
    return get_nested(data, "DetalheParlamentar", "Parlamentar", default={})


async def fetch_votes(
    client: SenadoAPIClient,
    code: str,
    legislature: Optional[int] = None,
    period_start: Optional[date] = None,
    period_end: Optional[date] = None
) -> Dict[str, Any]:
    """Votes cast by one senator, optionally filtered by legislature or period."""
    params = {
        "legislatura": legislature,
        "dataInicio": _format_date(period_start),
        "dataFim": _format_date(period_end),
    }
    data = await client.get(SENATOR_VOTES, {"codigo": code}, params)
    parlamentar = get_nested(data, "VotacaoParlamentar", "Parlamentar", default={})
    return {
        "identificacao": parlamentar.get("IdentificacaoParlamentar", {}),
        "votacoes": to_list(get_nested(parlamentar, "Votacoes", "Votacao")),
    }


async def fetch_authorships(client: SenadoAPIClient, code: str) -> Dict[str, Any]:
    """Legislative matters authored by one senator."""
    data = await client.get(SENATOR_AUTHORSHIPS, {"codigo": code})
    parlamentar = get_nested(data, "MateriasAutoriaParlamentar", "Parlamentar", default={})
    return {
        "identificacao": parlamentar.get("IdentificacaoParlamentar", {}),
        "autorias": to_list(get_nested(parlamentar, "Autorias", "Autoria")),
    }


async def list_committees(client: SenadoAPIClient) -> List[Dict[str, Any]]:
    """Every active committee (colegiado) of the Senate."""
    data = await client.get(COMMITTEES)
    return to_list(get_nested(data, "ListaColegiados", "Colegiados", "Colegiado"))


async def fetch_committee_members(client: SenadoAPIClient, code: str) -> List[Dict[str, Any]]:
    """Current members of one committee."""
    data = await client.get(COMMITTEE_COMPOSITION, {"codigo": code})
    return to_list(get_nested(data, "ComposicaoComissao", "Membros", "Membro"))
