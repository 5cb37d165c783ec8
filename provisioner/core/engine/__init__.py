"""
Execution engine — ``__init__.py`` re-exports the public API.
"""

from provisioner.core.engine.executor import (  # noqa: F401
    ExecutionEngine,
    generate_deployment_id,
    validate_deployment_id,
)
