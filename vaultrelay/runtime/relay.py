"""
Relay — forwards a winning searcher's authorization to the engine.

Choosing the winning bid happens elsewhere. The relay only pre-screens
what it is about to forward, so obviously dead authorizations never
cost a settlement attempt, then calls settle() with its own identity.
"""

import logging
from typing import Optional

from vaultrelay.core.models import Authorization, Observation
from vaultrelay.settlement.engine import SettlementEngine, UpdateData

logger = logging.getLogger(__name__)


class Relay:

    def __init__(self, engine: SettlementEngine, address: Optional[str] = None):
        self.engine  = engine
        self.address = address or engine.relay_address

    def precheck(self, authorization: Authorization) -> None:
        """Raise the error settle() would raise for this authorization's checks."""
        self.engine.check_authorization(
            authorization.vault_id,
            authorization.bid,
            authorization.valid_until,
            authorization.signature,
        )

    def submit(
        self,
        authorization: Authorization,
        update_data:   Optional[UpdateData] = None,
        value:         int = 0,
    ) -> Observation:
        """Pre-screen, then forward. Errors from either step propagate."""
        self.precheck(authorization)
        logger.info(
            "forwarding authorization: vault=%s bid=%s valid_until=%s",
            authorization.vault_id, authorization.bid, authorization.valid_until,
        )
        return self.engine.settle_authorization(
            authorization, update_data, caller=self.address, value=value
        )
