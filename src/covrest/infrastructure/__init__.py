"""Infrastructure layer — Hydra discovery, CoverageJSON reading, HTTP loading.

This layer depends on stdlib, the domain layer, and third-party libs
(rdflib, numpy, httpx). It must never import from services, commands,
or output.
"""
