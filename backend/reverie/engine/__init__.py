# backend/reverie/engine/__init__.py
"""Simulation core: world data, creature registry, systems and the engine."""
