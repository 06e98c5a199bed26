"""
Composition root: builds a fully wired Assistant from Settings.

Adapters (CLI, HTTP glue, tests) call build_assistant() rather than
constructing stores, indexes and backends themselves.
"""
from dataclasses import dataclass
from typing import List, Optional
from sqlalchemy.engine import Engine
from assistant.agent.memory import SessionMemoryManager
from assistant.agent.orchestrator import Orchestrator, OrchestratorPolicy
from assistant.agent.registry import ToolRegistry
from assistant.agent.selection import ModelToolSelector, RuleToolSelector, ToolSelector, customer_tool_rules
from assistant.agent.tools import register_customer_tools
from assistant.audit import AuditLog
from assistant.config import Settings, settings as default_settings
from assistant.db import create_db_engine, init_db
from assistant.llm.base import GenerationBackend
from assistant.models.customer import Customer
from assistant.search.embeddings import Embedder, build_embedder
from assistant.search.ingest import index_records
from assistant.search.vector_search import DocumentIndex
from assistant.store.records import RecordStore
from assistant.logging import logger


DEFAULT_CUSTOMERS = [
    ("FreshMart Downtown", "New York", "Supermarket"),
    ("Harbor Grocers", "Boston", "Supermarket"),
    ("Sunrise Supermarket", "Miami", "Supermarket"),
    ("Oak Bistro", "Chicago", "Restaurant"),
    ("Cedar Grill", "Austin", "Restaurant"),
    ("Seaside Diner", "San Diego", "Restaurant"),
    ("Grandview Hotel", "Seattle", "Hotel"),
    ("Riverside Inn", "Denver", "Hotel"),
    ("Northside Fuel", "Portland", "Gas Station"),
    ("Pinecrest Gas", "Raleigh", "Gas Station"),
]


def seed_customers(store: RecordStore) -> List[Customer]:
    """Insert the demo customers if the store is empty."""
    if store.count() > 0:
        return []
    return store.put_all(
        Customer(name=name, location=location, type=type_)
        for name, location, type_ in DEFAULT_CUSTOMERS
    )


@dataclass
class Assistant:
    engine: Engine
    store: RecordStore
    index: DocumentIndex
    embedder: Embedder
    registry: ToolRegistry
    memory: SessionMemoryManager
    audit: AuditLog
    orchestrator: Orchestrator

    def ask(self, user_id: str, query: str) -> str:
        return self.orchestrator.ask(user_id, query)


def build_selector(config: Settings, backend: GenerationBackend, store: RecordStore) -> ToolSelector:
    mode = config.TOOL_SELECTION.lower()
    if mode == "rules":
        return RuleToolSelector(customer_tool_rules(store.distinct_values("type")))
    if mode == "model":
        return ModelToolSelector(backend)
    raise ValueError(f"Unknown TOOL_SELECTION '{config.TOOL_SELECTION}'")


def build_assistant(
    config: Settings = default_settings,
    engine: Optional[Engine] = None,
    backend: Optional[GenerationBackend] = None,
    embedder: Optional[Embedder] = None,
) -> Assistant:
    engine = engine or create_db_engine(config.DATABASE_URL)
    init_db(engine)
    audit = AuditLog(engine)

    store = RecordStore(engine, Customer)
    if config.SEED_CUSTOMERS:
        seeded = seed_customers(store)
        if seeded:
            logger.info(f"Seeded {len(seeded)} customers")

    embedder = embedder or build_embedder(config)
    index = DocumentIndex()
    index_records(store, index, embedder)

    registry = register_customer_tools(ToolRegistry(), store)

    if backend is None:
        from assistant.llm.openai_client import OpenAIBackend
        backend = OpenAIBackend(model=config.OPENAI_MODEL_AGENT, audit=audit)

    memory = SessionMemoryManager(max_turns=config.MEMORY_MAX_TURNS)
    policy = OrchestratorPolicy(
        retrieval=config.RETRIEVAL_POLICY,
        top_k=config.RETRIEVAL_TOP_K,
        min_score=config.RETRIEVAL_MIN_SCORE,
        min_margin=config.RETRIEVAL_MIN_MARGIN,
        tool_timeout=config.TOOL_TIMEOUT_SECONDS,
    )
    orchestrator = Orchestrator(
        registry=registry,
        index=index,
        embedder=embedder,
        backend=backend,
        memory=memory,
        selector=build_selector(config, backend, store),
        policy=policy,
        audit=audit,
        idle_ttl_seconds=config.SESSION_IDLE_TTL_SECONDS,
    )
    return Assistant(
        engine=engine,
        store=store,
        index=index,
        embedder=embedder,
        registry=registry,
        memory=memory,
        audit=audit,
        orchestrator=orchestrator,
    )
