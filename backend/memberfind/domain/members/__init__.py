"""Member autocomplete domain exports."""

from .memory import reset_memory_state, seed_memory_store
from .service import AutocompleteService

__all__ = [
	"AutocompleteService",
	"seed_memory_store",
	"reset_memory_state",
]
