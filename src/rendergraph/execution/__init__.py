"""Execution layer: dependency resolution, memoization, node handlers.

Depends on the domain layer and on the generation service protocol.
"""
