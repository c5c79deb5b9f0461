"""
Senator profile transform
"""

from typing import Any, Dict, Optional
from core.exceptions import TransformError
from ingestion.transformers.normalize import clean_str, get_nested, parse_date, parse_int, to_list
from schemas.etl import TransformedDocument

PROFILES_COLLECTION = "congressoNacional/senadoFederal/perfis"


def senator_summary(identificacao: Any) -> Dict[str, Any]:
    """
    Short senator identity used inside other documents.

    Raises:
        TransformError: If the identification block or its code is missing
    """
    if not isinstance(identificacao, dict):
        raise TransformError(
            "IdentificacaoParlamentar missing or malformed",
            context={"value_type": type(identificacao).__name__}
        )
    codigo = clean_str(identificacao.get("CodigoParlamentar"))
    if not codigo:
        raise TransformError("Senator without CodigoParlamentar")
    return {
        "codigo": codigo,
        "nome": clean_str(identificacao.get("NomeParlamentar")),
        "partido": clean_str(identificacao.get("SiglaPartidoParlamentar")),
        "uf": clean_str(identificacao.get("UfParlamentar")),
    }


def _transform_mandate(mandato: Dict[str, Any]) -> Dict[str, Any]:
    primeira = mandato.get("PrimeiraLegislaturaDoMandato") or {}
    segunda = mandato.get("SegundaLegislaturaDoMandato") or {}
    return {
        "codigo": clean_str(mandato.get("CodigoMandato")),
        "uf": clean_str(mandato.get("UfParlamentar")),
        "participacao": clean_str(mandato.get("DescricaoParticipacao")),
        "legislaturas": [
            n for n in (
                parse_int(primeira.get("NumeroLegislatura")),
                parse_int(segunda.get("NumeroLegislatura")),
            ) if n is not None
        ],
        "inicio": parse_date(primeira.get("DataInicio")),
        "fim": parse_date(segunda.get("DataFim") or primeira.get("DataFim")),
    }


def transform_senator(parlamentar: Dict[str, Any], legislature: Optional[int] = None) -> TransformedDocument:
    """Normalize one DetalheParlamentar.Parlamentar record into a profile document."""
    identificacao = get_nested(parlamentar, "IdentificacaoParlamentar")
    summary = senator_summary(identificacao)
    basicos = parlamentar.get("DadosBasicosParlamentar") or {}

    mandatos = to_list(get_nested(parlamentar, "Mandatos", "Mandato")) or to_list(parlamentar.get("Mandato"))

    payload = {
        **summary,
        "nomeCompleto": clean_str(identificacao.get("NomeCompletoParlamentar")),
        "sexo": clean_str(identificacao.get("SexoParlamentar")),
        "partido": {
            "sigla": summary["partido"],
            "nome": clean_str(identificacao.get("NomePartidoParlamentar")),
        },
        "foto": clean_str(identificacao.get("UrlFotoParlamentar")),
        "email": clean_str(identificacao.get("EmailParlamentar")),
        "site": clean_str(identificacao.get("UrlPaginaParlamentar")),
        "nascimento": {
            "data": parse_date(basicos.get("DataNascimento")),
            "local": clean_str(basicos.get("Naturalidade")),
            "uf": clean_str(basicos.get("UfNaturalidade")),
        },
        "mandatos": [_transform_mandate(m) for m in mandatos if isinstance(m, dict)],
        "legislatura": legislature,
    }

    return TransformedDocument(
        path=f"{PROFILES_COLLECTION}/{summary['codigo']}",
        payload=payload
    )
