"""snaptracker - minimal BitTorrent HTTP tracker.

Records peer announces in an ordered key-value store and answers with the
current swarm, bencoded or as JSON.
"""

from __future__ import annotations

__version__ = "0.1.0"
