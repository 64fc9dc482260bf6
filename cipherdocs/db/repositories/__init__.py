from cipherdocs.db.repositories.registry_repository import RegistryRepository, RegistryPersistence

__all__ = [
    "RegistryRepository",
    "RegistryPersistence"
]
