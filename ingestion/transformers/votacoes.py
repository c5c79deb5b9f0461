"""
Senator votes transform
"""

from collections import Counter
from typing import Any, Dict, Optional
from core.exceptions import TransformError
from ingestion.transformers.normalize import clean_str, parse_date, parse_int
from ingestion.transformers.senadores import senator_summary
from schemas.etl import TransformedDocument

VOTES_COLLECTION = "congressoNacional/senadoFederal/votacoes"


def _transform_vote(votacao: Dict[str, Any]) -> Dict[str, Any]:
    materia = votacao.get("Materia") or {}
    sessao = votacao.get("Sessao") or {}
    return {
        "id": clean_str(votacao.get("SequencialVotacao") or votacao.get("CodigoSessaoVotacao")),
        "materia": {
            "sigla": clean_str(materia.get("SiglaMateria") or materia.get("Sigla")),
            "numero": clean_str(materia.get("NumeroMateria") or materia.get("Numero")),
            "ano": parse_int(materia.get("AnoMateria") or materia.get("Ano")),
            "descricao": clean_str(materia.get("DescricaoMateria") or materia.get("Ementa")),
        },
        "sessao": {
            "codigo": clean_str(sessao.get("CodigoSessao")),
            "data": parse_date(sessao.get("DataSessao")),
            "legislatura": parse_int(sessao.get("NumeroLegislatura")),
        },
        "voto": clean_str(votacao.get("DescricaoVoto") or votacao.get("SiglaDescricaoVoto")),
        "resultado": clean_str(votacao.get("DescricaoResultado")),
    }


def transform_votes(item: Dict[str, Any], legislature: Optional[int] = None) -> TransformedDocument:
    """
    Normalize one senator's votes into a single document.

    Args:
        item: ``{"codigo": ..., "identificacao": {...}, "votacoes": [...]}``
        legislature: Legislature the votes were requested for
    """
    identificacao = item.get("identificacao") or {"CodigoParlamentar": item.get("codigo")}
    senador = senator_summary(identificacao)

    votacoes = item.get("votacoes")
    if not isinstance(votacoes, list):
        raise TransformError(
            "Votes list missing or malformed",
            context={"senador": senador["codigo"]}
        )

    transformed = [_transform_vote(v) for v in votacoes if isinstance(v, dict)]
    totais = Counter(v["voto"] or "Não informado" for v in transformed)

    payload = {
        "senador": senador,
        "legislatura": legislature,
        "votacoes": transformed,
        "totalVotacoes": len(transformed),
        "totaisPorVoto": dict(totais),
    }

    return TransformedDocument(
        path=f"{VOTES_COLLECTION}/{senador['codigo']}",
        payload=payload
    )
