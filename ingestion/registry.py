"""
Processor registry: entity name -> processor class
"""

from typing import Any, Dict, List, Type
from core.exceptions import ConfigurationError
from ingestion.base import ETLProcessor
from ingestion.processors.comissoes import ComissoesProcessor
from ingestion.processors.materias import MateriasProcessor
from ingestion.processors.senadores import SenadoresProcessor
from ingestion.processors.votacoes import VotacoesProcessor

PROCESSORS: Dict[str, Type[ETLProcessor]] = {
    cls.name: cls
    for cls in (SenadoresProcessor, ComissoesProcessor, VotacoesProcessor, MateriasProcessor)
}


def available_processors() -> List[str]:
    return sorted(PROCESSORS)


def get_processor_class(name: str) -> Type[ETLProcessor]:
    try:
        return PROCESSORS[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown processor '{name}'",
            context={"available": ", ".join(available_processors())}
        )


def create_processor(name: str, **kwargs: Any) -> ETLProcessor:
    """Build a fresh processor instance for one run."""
    return get_processor_class(name)(**kwargs)
