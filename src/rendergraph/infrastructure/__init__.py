"""Infrastructure layer: generation service client, graph file I/O.

This layer depends on stdlib, third-party libs (httpx, ruamel.yaml) and the
domain models it serializes.  It must never import from services, commands,
or output.
"""
