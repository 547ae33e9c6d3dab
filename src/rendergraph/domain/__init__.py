"""Domain layer: graph model, results, node types, connection gate.

This layer depends only on stdlib and pydantic.
It must never import from execution, services, infrastructure, commands, or config.
"""
