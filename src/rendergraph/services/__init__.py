"""Service layer: operations returning ServiceResult.

Services may import from domain, execution, infrastructure and plugins.
They must never import from commands or output.
"""
