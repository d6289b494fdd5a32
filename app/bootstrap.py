import logging

from control_assurance.catalog import load_catalog
from control_assurance.errors import DomainError

logger = logging.getLogger(__name__)


def ensure_catalog_loaded() -> None:
    """Fail startup early when the packaged template library is missing or malformed."""
    catalog = load_catalog()
    templates = catalog.active_templates()
    if not templates:
        raise DomainError("The PCI template library is empty.", code="invalid_catalog")
    control_count = sum(len(catalog.secondary_templates_for(t.id)) for t in templates)
    logger.info(
        "Loaded PCI template library v%s: %s templates, %s secondary controls",
        catalog.version,
        len(templates),
        control_count,
    )
