"""Search: rank fusion, hybrid retrieval, embeddings and backfill."""
