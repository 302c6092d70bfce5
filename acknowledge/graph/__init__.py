"""
acknowledge.graph — Dependency graph construction (NetworkX).
"""
