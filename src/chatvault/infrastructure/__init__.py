"""
Infrastructure layer: LLM providers, embeddings, storage and event sinks.
"""
