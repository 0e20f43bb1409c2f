"""
Lemma matching and result presentation.

This package provides the pure-Python read path helpers:
- analyzers: Tokenizers and filters (lowercase, stop, Snowball stemming)
- html: Title and body text extraction
- intersection: AND matching of query lemmas per site
- ranking: Normalized relevance ranking
- pagination: Offset/limit windows
- snippet: Title truncation and highlighted excerpts
"""
