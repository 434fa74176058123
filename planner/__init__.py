"""Outcome Planner - Captura, agrupación en chunks y conversión a outcomes."""

__version__ = "0.1.0"
