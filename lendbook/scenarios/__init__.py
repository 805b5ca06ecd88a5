"""Scenarios for generating realistic lending books."""

from lendbook.scenarios.portfolio import LendingPortfolioScenario

__all__ = ["LendingPortfolioScenario"]
