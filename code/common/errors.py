# =============================================================================
#  Tickets Dashboard
#  Copyright (C) 2025 Tickets Dashboard contributors
#
#  This source code is released under the GNU Affero General Public License
#  version 3.0. A copy of the license is available at:
#  https://www.gnu.org/licenses/agpl-3.0.en.html
# =============================================================================

from __future__ import annotations


class AuthorizationError(Exception):
    """
    The caller does not own the resource it asked for.
    Raised before any data is fetched.
    """


class DataFetchError(Exception):
    """
    A lookup against the store or a remote service failed.
    """
