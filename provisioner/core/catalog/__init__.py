"""
Application catalog — ``__init__.py`` re-exports the registry API.
"""

from provisioner.core.catalog.registry import (  # noqa: F401
    ApplicationCatalog,
    default_catalog,
    descriptor_from_recipe,
    task_from_dict,
)
from provisioner.core.catalog.system_tasks import (  # noqa: F401
    system_finalization_tasks,
    system_preparation_tasks,
)
