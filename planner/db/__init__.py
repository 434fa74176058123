"""Capa de persistencia: engine, sesiones, modelos y repositorios."""
