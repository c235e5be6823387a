"""Service layer — planning, remote execution, and result composition.

Services may import from the domain, infrastructure, config and plugins
layers. They must never import from commands or output.
"""
