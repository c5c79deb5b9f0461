"""
Authored legislative matters transform
"""

from collections import Counter
from typing import Any, Dict
from core.exceptions import TransformError
from ingestion.transformers.normalize import clean_str, parse_date, parse_int
from ingestion.transformers.senadores import senator_summary
from schemas.etl import TransformedDocument

MATTERS_COLLECTION = "congressoNacional/senadoFederal/materias"


def _is_yes(value: Any) -> bool:
    return clean_str(value).lower() in ("sim", "s", "true", "1")


def _transform_authorship(autoria: Dict[str, Any]) -> Dict[str, Any]:
    materia = autoria.get("Materia") or {}
    return {
        "codigo": clean_str(materia.get("Codigo") or materia.get("CodigoMateria")),
        "sigla": clean_str(materia.get("Sigla") or materia.get("SiglaSubtipoMateria")),
        "numero": clean_str(materia.get("Numero") or materia.get("NumeroMateria")),
        "ano": parse_int(materia.get("Ano") or materia.get("AnoMateria")),
        "ementa": clean_str(materia.get("Ementa") or materia.get("EmentaMateria")),
        "data": parse_date(materia.get("Data") or materia.get("DataApresentacao")),
        "autorPrincipal": _is_yes(autoria.get("IndicadorAutorPrincipal")),
        "outrosAutores": _is_yes(autoria.get("IndicadorOutrosAutores")),
    }


def transform_authorships(item: Dict[str, Any]) -> TransformedDocument:
    """
    Normalize the matters authored by one senator.

    Args:
        item: ``{"codigo": ..., "identificacao": {...}, "autorias": [...]}``
    """
    identificacao = item.get("identificacao") or {"CodigoParlamentar": item.get("codigo")}
    senador = senator_summary(identificacao)

    autorias = item.get("autorias")
    if not isinstance(autorias, list):
        raise TransformError(
            "Authorship list missing or malformed",
            context={"senador": senador["codigo"]}
        )

    materias = [_transform_authorship(a) for a in autorias if isinstance(a, dict)]

    payload = {
        "senador": senador,
        "materias": materias,
        "totalMaterias": len(materias),
        "totalAutorPrincipal": sum(1 for m in materias if m["autorPrincipal"]),
        "totaisPorTipo": dict(Counter(m["sigla"] or "Outros" for m in materias)),
    }

    return TransformedDocument(
        path=f"{MATTERS_COLLECTION}/{senador['codigo']}",
        payload=payload
    )
