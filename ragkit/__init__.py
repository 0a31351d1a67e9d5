"""ragkit: chunking, extraction, embedding, retrieval, reranking and evaluation for RAG."""

__version__ = "0.1.0"
