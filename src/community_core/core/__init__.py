# CommunityCore - Community Association Platform Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Core infrastructure components: configuration, database and token security."""

from .config import get_settings
from .database import ConnectionManager
from .security import TokenVerifier

__all__ = ["get_settings", "ConnectionManager", "TokenVerifier"]
