from typing import List, Sequence
from assistant.models.customer import Customer
from assistant.models.document import IndexedDocument
from assistant.search.embeddings import Embedder
from assistant.search.vector_search import DocumentIndex
from assistant.store.records import RecordStore
from assistant.logging import logger


def customer_doc_id(customer: Customer) -> str:
    return f"customer-{customer.id}"


def customer_text(customer: Customer) -> str:
    return f"Customer {customer.name} is a {customer.type} type of customer in {customer.location}."


def customer_document(customer: Customer, embedding: Sequence[float]) -> IndexedDocument:
    return IndexedDocument(
        id=customer_doc_id(customer),
        text=customer_text(customer),
        metadata={
            "customer-id": customer.id,
            "customer-name": customer.name,
            "customer-location": customer.location,
            "customer-type": customer.type,
        },
        embedding=tuple(float(x) for x in embedding),
    )


def index_records(store: RecordStore, index: DocumentIndex, embedder: Embedder) -> int:
    """Embed and index every stored customer not yet in the index.

    Returns the number of documents added.
    """
    pending: List[Customer] = [c for c in store.list_all() if customer_doc_id(c) not in index]
    if not pending:
        return 0

    vectors = embedder.embed_many([customer_text(c) for c in pending])
    documents = [customer_document(c, vec) for c, vec in zip(pending, vectors)]
    added = index.add(documents)
    logger.info(f"Ingested {added} customer records into the document index")
    return added
