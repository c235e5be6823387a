"""Domain layer — axes, constraints, concept resolution, snapping, capabilities.

This layer depends only on stdlib, pydantic and uritemplate.
It must never import from services, infrastructure, commands, or config.
"""
