"""Owner - Usuario y organización dueños de una entidad."""

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class Owner:
    """
    Dueño de los datos.

    La autorización y el aislamiento entre organizaciones los aplica
    quien llama; aquí solo se usa para filtrar y para sellar entidades.
    """

    user_id: UUID
    organization_id: UUID
