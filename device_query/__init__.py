"""Device Query - structured filter expressions over a device fleet."""

__version__ = "1.0.0"

from .filters import from_persisted, summarize, to_persisted
from .models import FilterBlock, FilterGroup, QueryTemplate

__all__ = [
    "FilterBlock",
    "FilterGroup",
    "QueryTemplate",
    "from_persisted",
    "summarize",
    "to_persisted",
    "__version__"
]
