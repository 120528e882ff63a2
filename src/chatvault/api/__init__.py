"""
ChatVault HTTP API.
"""
