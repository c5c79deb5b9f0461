"""
Committee transform
"""

from typing import Any, Dict, List
from core.exceptions import TransformError
from ingestion.transformers.classification import classify_committee
from ingestion.transformers.normalize import clean_str, get_nested, parse_date
from schemas.etl import TransformedDocument

COMMITTEES_COLLECTION = "congressoNacional/senadoFederal/comissoes"


def _transform_member(membro: Dict[str, Any]) -> Dict[str, Any]:
    identificacao = membro.get("IdentificacaoParlamentar") or {}
    return {
        "codigo": clean_str(identificacao.get("CodigoParlamentar")),
        "nome": clean_str(identificacao.get("NomeParlamentar")),
        "partido": clean_str(identificacao.get("SiglaPartidoParlamentar")),
        "uf": clean_str(identificacao.get("UfParlamentar")),
        "participacao": clean_str(membro.get("DescricaoParticipacao") or membro.get("TipoVaga")),
        "inicio": parse_date(membro.get("DataInicio")),
    }


def transform_committee(item: Dict[str, Any]) -> TransformedDocument:
    """
    Normalize one committee with its members.

    Args:
        item: ``{"comissao": <Colegiado>, "membros": [<Membro>, ...]}``

    Returns:
        Document addressed under the committee's classified type
    """
    comissao = item.get("comissao")
    if not isinstance(comissao, dict):
        raise TransformError("Committee record missing or malformed")

    codigo = clean_str(comissao.get("Codigo") or comissao.get("CodigoColegiado"))
    if not codigo:
        raise TransformError(
            "Committee without code",
            context={"sigla": comissao.get("Sigla")}
        )

    tipo = classify_committee(comissao)
    membros: List[Dict[str, Any]] = [
        _transform_member(m) for m in item.get("membros", []) if isinstance(m, dict)
    ]

    payload = {
        "codigo": codigo,
        "sigla": clean_str(comissao.get("Sigla") or comissao.get("SiglaColegiado")),
        "nome": clean_str(comissao.get("Nome") or comissao.get("NomeColegiado")),
        "tipo": tipo.value,
        "descricaoTipo": clean_str(comissao.get("DescricaoTipoColegiado")),
        "casa": clean_str(comissao.get("SiglaCasa")),
        "finalidade": clean_str(get_nested(comissao, "Finalidade")),
        "dataInicio": parse_date(comissao.get("DataInicio")),
        "membros": membros,
        "totalMembros": len(membros),
    }

    return TransformedDocument(
        path=f"{COMMITTEES_COLLECTION}/{tipo.value}/itens/{codigo}",
        payload=payload
    )
