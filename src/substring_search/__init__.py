"""Case-insensitive substring search over document fields."""

from substring_search.domain.model import DocId, Document
from substring_search.search.engine import SubstringSearchEngine


__version__ = "0.1.0"

__all__ = ["DocId", "Document", "SubstringSearchEngine", "__version__"]
