# -*- coding: utf-8 -*-

"""Load-level failures. Everything row-level degrades to None instead."""


class StructuralMismatchError(ValueError):
    """Required sheets or columns are absent; the whole load is rejected."""

    def __init__(self, missing):
        self.missing = sorted(missing)
        super().__init__(f"Missing required input: {self.missing}")
