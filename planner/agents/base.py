"""Configuración base de DSPy con Gemini."""

import logging
import time
from typing import Any

import dspy

from planner.config import get_settings

logger = logging.getLogger(__name__)

# Flag para saber si DSPy está configurado
_dspy_configured = False


def setup_dspy() -> None:
    """Configura DSPy con el modelo de sugerencias."""
    global _dspy_configured

    if _dspy_configured:
        return

    settings = get_settings()
    lm = dspy.LM(
        model=settings.suggestion_model,
        api_key=settings.gemini_api_key,
        temperature=0.7,
        max_tokens=2048,
    )
    dspy.configure(lm=lm)

    _dspy_configured = True
    logger.info(f"DSPy configurado con {settings.suggestion_model}")


class BaseAgent:
    """Clase base para todos los agents."""

    name: str = "BaseAgent"

    def __init__(self):
        setup_dspy()
        self.logger = logging.getLogger(f"agents.{self.name}")

    async def execute(self, *args, **kwargs) -> Any:
        """Ejecuta el agent y retorna el resultado."""
        raise NotImplementedError("Subclases deben implementar execute()")

    async def execute_with_metrics(self, *args, **kwargs) -> tuple[Any, dict]:
        """Ejecuta el agent y retorna resultado + métricas."""
        start_time = time.time()
        error_message = None
        result = None

        try:
            result = await self.execute(*args, **kwargs)
            success = True
        except Exception as e:
            success = False
            error_message = str(e)
            self.logger.error(f"Error en {self.name}: {e}")
            raise

        finally:
            execution_time = int((time.time() - start_time) * 1000)

            metrics = {
                "agent_name": self.name,
                "execution_time_ms": execution_time,
                "success": success,
                "error_message": error_message,
            }

        return result, metrics
