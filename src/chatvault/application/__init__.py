"""
Application layer: capture pipeline, bulk reprocessing and startup wiring.
"""
