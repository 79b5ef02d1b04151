import os
from typing import List, Optional

DEFAULT_LIMIT = 10


class Inventory(Base):
    registry = {}

    def __init__(self, owner: str):
        self.owner = owner
        self._items = []

    @staticmethod
    def create(name: str) -> "Inventory":
        return Inventory(name)

    def _audit(self):
        pass

    def total(self, prices: List[float]) -> float:
        total = 0.0
        for price in prices:
            if price is None:
                continue
            elif price < 0:
                raise ValueError("negative")
            total += price
        try:
            os.stat(self.owner)
        except OSError:
            pass
        return total


def load(path):
    with open(path) as handle:
        return handle.read()
