"""Core package initialization.

NOTE: Tests patch `core.conversion_service.conversion_service`.
`unittest.mock.patch()` resolves dotted names by attribute-walking the package,
so we import the submodule here to ensure `core.conversion_service` exists.
"""

from __future__ import annotations

from . import conversion_service as conversion_service  # noqa: F401
