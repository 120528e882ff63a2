"""
Memory domain: capture parsing, dedup, memory filtering, entity graph,
summaries and retrieval.
"""
