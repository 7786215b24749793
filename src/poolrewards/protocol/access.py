"""
poolrewards/protocol/access.py

Access control for operator-only ledger entry points.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

logger = logging.getLogger("poolrewards.protocol.access")


class AccessControl(ABC):
    """Decides who may act as a pool's operator."""

    @abstractmethod
    def is_pool_operator(self, pool_id: str, caller: str) -> bool:
        """True if caller is the operator of pool_id."""
        pass


class PoolOperatorRegistry(AccessControl):
    """Pool -> operator mapping kept in memory."""

    def __init__(self, operators: Optional[Dict[str, str]] = None):
        self._operators: Dict[str, str] = dict(operators or {})

    def set_operator(self, pool_id: str, operator: str) -> None:
        previous = self._operators.get(pool_id)
        self._operators[pool_id] = operator
        if previous and previous != operator:
            logger.info(f"Operator of {pool_id} changed: {previous} -> {operator}")

    def get_operator(self, pool_id: str) -> Optional[str]:
        return self._operators.get(pool_id)

    def is_pool_operator(self, pool_id: str, caller: str) -> bool:
        operator = self._operators.get(pool_id)
        return operator is not None and operator == caller
