"""Dominio: entidades y servicios de captura, chunks y conversión."""
