"""
Committee classification.

The API has no single reliable category field for committees, so the type
is inferred from one of several signals, in this order of precedence:

    1. SiglaTipoColegiado
    2. TipoComissao
    3. DescricaoTipoColegiado
    4. Sigla (the committee's own acronym)

Only the first signal present on the record is consulted. If its rules match
nothing, the committee is PERMANENT; later signals are not looked at.

Type signals are matched by substring. The acronym has its own rules, mostly
prefixes, so "CPMI8JAN" is an inquiry and "CDIR" an organ.
"""

import enum
import unicodedata
from typing import Any, Callable, Dict, List, Tuple
from ingestion.transformers.normalize import clean_str


class CommitteeType(str, enum.Enum):
    PERMANENT = "permanentes"
    TEMPORARY = "temporarias"
    CPI = "cpis"
    SUBCOMMITTEE = "subcomissoes"
    ORGANS = "orgaos"


Rule = Tuple[CommitteeType, Callable[[str], bool]]


def _contains(*needles: str) -> Callable[[str], bool]:
    return lambda text: any(needle in text for needle in needles)


def _starts_with(*prefixes: str) -> Callable[[str], bool]:
    return lambda text: text.startswith(prefixes)


def _type_rules(organ_needles: Tuple[str, ...]) -> List[Rule]:
    return [
        (CommitteeType.CPI, _contains("cpi", "inquerito")),
        (CommitteeType.TEMPORARY, _contains("temporaria", "temp")),
        (CommitteeType.SUBCOMMITTEE, _contains("subcomissao", "sub")),
        (CommitteeType.ORGANS, _contains(*organ_needles)),
    ]


_ACRONYM_RULES: List[Rule] = [
    (CommitteeType.CPI, _starts_with("cpi", "cpmi")),
    (CommitteeType.TEMPORARY, _starts_with("ce", "ct")),
    (CommitteeType.SUBCOMMITTEE, _contains("sub")),
    (CommitteeType.ORGANS, lambda text: text in ("cdir", "mesa") or text.startswith(("cd", "co"))),
]

# Signals in precedence order; rules are tried in order within a signal
SIGNAL_RULES: List[Tuple[str, List[Rule]]] = [
    ("SiglaTipoColegiado", _type_rules(("orgao", "conselho", "mesa", "cons"))),
    ("TipoComissao", _type_rules(("orgao", "conselho", "mesa"))),
    ("DescricaoTipoColegiado", _type_rules(("orgao", "conselho", "mesa", "cons"))),
    ("Sigla", _ACRONYM_RULES),
]


def _fold(value: Any) -> str:
    text = unicodedata.normalize("NFKD", clean_str(value))
    return "".join(c for c in text if not unicodedata.combining(c)).lower()


def classify_committee(committee: Dict[str, Any]) -> CommitteeType:
    """Classify one raw committee record."""
    for signal, rules in SIGNAL_RULES:
        folded = _fold(committee.get(signal))
        if not folded:
            continue
        for committee_type, matches in rules:
            if matches(folded):
                return committee_type
        break
    return CommitteeType.PERMANENT
