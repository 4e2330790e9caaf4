"""
SheetSearch Search Engine

Modules:
    embeddings  — Embedding provider contract, OpenAI provider, cosine similarity
    labels      — Label provider chain (heuristic → LLM → basic)
    indexer     — In-memory index store and ingestion
    scoring     — Ranking signals and the weighted blend
    search      — Semantic and keyword ranking, mode comparison
    results     — Result formatting and explanations
    evaluation  — precision@k / recall@k / F1 over labelled queries
"""
