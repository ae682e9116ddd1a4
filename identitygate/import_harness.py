"""
Minimal import harness for host compatibility checks.

This module must not open a database connection.
"""

import identitygate.models  # noqa: F401
import identitygate.dialects  # noqa: F401
import identitygate.services.identity  # noqa: F401
import identitygate.hooks  # noqa: F401
