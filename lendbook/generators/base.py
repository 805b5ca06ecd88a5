"""Base generator class for sample data generators."""

from __future__ import annotations

import random
from abc import ABC
from datetime import date

from faker import Faker


class BaseGenerator(ABC):
    """Base class for all sample data generators.

    Provides common initialization: Faker instance creation,
    seed-based reproducibility and the reference date that generated
    instrument and payment dates are measured back from.

    Parameters
    ----------
    seed : int | None
        Random seed for reproducibility.
    locale : str
        Faker locale (default ``en_IN``).
    as_of : date | None
        Reference "today" for generated dates (default: ``date.today()``).
    """

    def __init__(
        self,
        seed: int | None = None,
        locale: str = "en_IN",
        as_of: date | None = None,
    ) -> None:
        self.fake = Faker(locale)
        self.as_of = as_of or date.today()
        self.rng = random.Random(seed)
        if seed is not None:
            self.fake.seed_instance(seed)
