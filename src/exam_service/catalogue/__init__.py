from exam_service.catalogue.loader import (
    ObjectiveCatalogue,
    ObjectiveMeta,
    coerce_core,
    get_default_catalogue,
)
from exam_service.catalogue.pbq_templates import (
    MatchTemplate,
    OrderTemplate,
    templates_for,
)

__all__ = [
    "MatchTemplate",
    "ObjectiveCatalogue",
    "ObjectiveMeta",
    "OrderTemplate",
    "coerce_core",
    "get_default_catalogue",
    "templates_for",
]
