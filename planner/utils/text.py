"""
Utilidades de texto - Funciones comunes para manipulación de strings.
"""


def truncate_text(text: str, max_length: int = 50, ellipsis: str = "...") -> str:
    """
    Trunca texto respetando límites de palabras.

    Args:
        text: Texto a truncar
        max_length: Longitud máxima (default 50)
        ellipsis: String a agregar si se trunca (default "...")

    Returns:
        Texto truncado si excede max_length
    """
    if not text or len(text) <= max_length:
        return text or ""

    # Intentar cortar en espacio para no cortar palabras
    cut_point = text.rfind(" ", 0, max_length - len(ellipsis))
    if cut_point == -1:
        cut_point = max_length - len(ellipsis)

    return text[:cut_point] + ellipsis


def clean_text(value: str | None) -> str:
    """Normaliza espacios al inicio y final. None se trata como vacío."""
    return (value or "").strip()


def clean_optional(value: str | None) -> str | None:
    """Como clean_text, pero retorna None si queda vacío."""
    cleaned = clean_text(value)
    return cleaned or None
