"""
Pytest configuration and fixtures
"""

import pytest
import pytest_asyncio
from collections import Counter
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool
from core.exceptions import NetworkError, TransformError
from ingestion.base import ETLProcessor
from ingestion.loaders.document_store import MAX_BATCH_SIZE, DocumentStore, SQLDocumentStore
from models.base import Destination
from schemas.etl import ExtractionResult, TransformedDocument


class MemoryStore(DocumentStore):
    """In-memory store recording every attempted commit"""

    destination = Destination.LOCAL_FILE

    def __init__(self, max_batch_size=MAX_BATCH_SIZE, fail_on_commits=()):
        self.max_batch_size = max_batch_size
        self.fail_on_commits = set(fail_on_commits)
        self.documents = {}
        self.commits = []

    async def commit(self, entries):
        index = len(self.commits)
        self.commits.append([entry.path for entry in entries])
        if index in self.fail_on_commits:
            raise RuntimeError("store unavailable")
        for entry in entries:
            self.documents[entry.path] = entry.payload

    async def get(self, path):
        return self.documents.get(path)


class NumberedProcessor(ETLProcessor):
    """
    Processor over numbered items "1".."count".

    Items in ``failing`` raise a NetworkError on every attempt; items in
    ``bad_transform`` raise a TransformError.
    """

    name = "numbered"

    def __init__(self, count=10, failing=(), bad_transform=(), **kwargs):
        super().__init__(**kwargs)
        self.count = count
        self.failing = {str(k) for k in failing}
        self.bad_transform = {str(k) for k in bad_transform}
        self.calls = Counter()

    async def extract(self) -> ExtractionResult:
        keys = [str(i) for i in range(1, self.count + 1)]
        return await self.fetch_many(self.apply_limit(keys), self._fetch, label="numbers")

    async def _fetch(self, key):
        self.calls[key] += 1
        if key in self.failing:
            raise NetworkError(f"item {key} unavailable")
        return {"codigo": key, "value": int(key)}

    def transform_item(self, item):
        if item["codigo"] in self.bad_transform:
            raise TransformError(f"item {item['codigo']} is malformed")
        return TransformedDocument(path=f"numeros/{item['codigo']}", payload={"value": item["value"]})


@pytest.fixture
def fast_options():
    """Run options with every pause disabled"""
    return {
        "concurrency": 3,
        "max_attempts": 2,
        "retry_delay": 0,
        "pause_between_requests": 0,
        "pause_between_batches": 0,
    }


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def make_store():
    """Factory for MemoryStore with custom limits or failing commits"""
    return MemoryStore


@pytest.fixture
def make_processor(memory_store, fast_options):
    """Factory for NumberedProcessor wired to the in-memory store"""

    def _make(**kwargs):
        options = {**fast_options, "store": memory_store}
        options.update(kwargs)
        return NumberedProcessor(**options)

    return _make


@pytest_asyncio.fixture(scope="function")
async def sqlite_engine(tmp_path):
    """File-backed SQLite engine (in-memory databases do not survive NullPool)"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'store.db'}",
        echo=False,
        poolclass=NullPool,
    )
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def sqlite_store(sqlite_engine):
    store = SQLDocumentStore(sqlite_engine, Destination.EMULATOR)
    await store.create_schema()
    return store


# ============================================================================
# Sample API payloads
# ============================================================================

@pytest.fixture
def senator_identification():
    return {
        "CodigoParlamentar": "5012",
        "NomeParlamentar": "Ana Souza",
        "NomeCompletoParlamentar": "Ana Maria de Souza",
        "SexoParlamentar": "Feminino",
        "SiglaPartidoParlamentar": "PT",
        "NomePartidoParlamentar": "Partido dos Trabalhadores",
        "UfParlamentar": "SP",
        "UrlFotoParlamentar": "https://www.senado.leg.br/senadores/img/fotos-oficiais/senador5012.jpg",
        "EmailParlamentar": "sen.anasouza@senado.leg.br",
    }


@pytest.fixture
def senator_detail(senator_identification):
    """DetalheParlamentar.Parlamentar record"""
    return {
        "IdentificacaoParlamentar": senator_identification,
        "DadosBasicosParlamentar": {
            "DataNascimento": "1965-03-12",
            "Naturalidade": "Campinas",
            "UfNaturalidade": "SP",
        },
        "Mandatos": {
            "Mandato": {
                "CodigoMandato": "581",
                "UfParlamentar": "SP",
                "DescricaoParticipacao": "Titular",
                "PrimeiraLegislaturaDoMandato": {
                    "NumeroLegislatura": "56",
                    "DataInicio": "2019-02-01",
                    "DataFim": "2023-01-31",
                },
                "SegundaLegislaturaDoMandato": {
                    "NumeroLegislatura": "57",
                    "DataInicio": "2023-02-01",
                    "DataFim": "2027-01-31",
                },
            }
        },
    }


@pytest.fixture
def senator_list():
    """ListaParlamentarEmExercicio response body"""
    senators = [
        ("5012", "Ana Souza", "PT", "SP"),
        ("5529", "Bruno Lima", "PT", "SP"),
        ("6010", "Carla Dias", "PL", "RJ"),
    ]
    return {
        "ListaParlamentarEmExercicio": {
            "Parlamentares": {
                "Parlamentar": [
                    {
                        "IdentificacaoParlamentar": {
                            "CodigoParlamentar": code,
                            "NomeParlamentar": name,
                            "SiglaPartidoParlamentar": party,
                            "UfParlamentar": state,
                        }
                    }
                    for code, name, party, state in senators
                ]
            }
        }
    }


@pytest.fixture
def votes_item(senator_identification):
    """Output of fetch_votes for one senator"""
    return {
        "codigo": "5012",
        "identificacao": senator_identification,
        "votacoes": [
            {
                "SequencialVotacao": "1",
                "Materia": {"SiglaMateria": "PL", "NumeroMateria": "2630", "AnoMateria": "2020"},
                "Sessao": {"CodigoSessao": "100", "DataSessao": "2023-05-02", "NumeroLegislatura": "57"},
                "DescricaoVoto": "Sim",
            },
            {
                "SequencialVotacao": "2",
                "Materia": {"SiglaMateria": "PEC", "NumeroMateria": "45", "AnoMateria": "2019"},
                "Sessao": {"CodigoSessao": "101", "DataSessao": "20231107"},
                "DescricaoVoto": "Não",
            },
            {
                "SequencialVotacao": "3",
                "Materia": {"SiglaMateria": "PL", "NumeroMateria": "1", "AnoMateria": "2024"},
                "Sessao": {"CodigoSessao": "102", "DataSessao": "2024-02-20"},
                "DescricaoVoto": "Sim",
            },
        ],
    }


@pytest.fixture
def authorships_item(senator_identification):
    """Output of fetch_authorships for one senator"""
    return {
        "codigo": "5012",
        "identificacao": senator_identification,
        "autorias": [
            {
                "Materia": {"Codigo": "150001", "Sigla": "PL", "Numero": "10", "Ano": "2023", "Ementa": "Dispõe sobre..."},
                "IndicadorAutorPrincipal": "Sim",
            },
            {
                "Materia": {"Codigo": "150002", "Sigla": "PL", "Numero": "11", "Ano": "2023"},
                "IndicadorAutorPrincipal": "Sim",
            },
            {
                "Materia": {"Codigo": "150003", "Sigla": "PEC", "Numero": "3", "Ano": "2024"},
                "IndicadorAutorPrincipal": "Não",
                "IndicadorOutrosAutores": "Sim",
            },
        ],
    }


@pytest.fixture
def committee_list():
    """ListaColegiados response body"""
    return {
        "ListaColegiados": {
            "Colegiados": {
                "Colegiado": [
                    {
                        "Codigo": "38",
                        "Sigla": "CAE",
                        "Nome": "Comissão de Assuntos Econômicos",
                        "SiglaTipoColegiado": "CP",
                        "DescricaoTipoColegiado": "Comissão Permanente",
                    },
                    {
                        "Codigo": "2606",
                        "Sigla": "CPIPANDEMIA",
                        "Nome": "CPI da Pandemia",
                        "SiglaTipoColegiado": "CPI",
                        "DescricaoTipoColegiado": "Comissão Parlamentar de Inquérito",
                    },
                    {
                        "Sigla": "SEMCOD",
                        "Nome": "Colegiado sem código",
                    },
                ]
            }
        }
    }
