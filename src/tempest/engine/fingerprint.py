"""Randomized per-request header fingerprinting."""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tempest.transport.base import Request

DEFAULT_USER_AGENTS: tuple[str, ...] = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/89.0.4389.82 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/14.0.3 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) Gecko/20100101 Firefox/86.0",
)


class RequestFingerprinter:
    """Sets one header to a value picked uniformly from a fixed pool.

    Each instance owns its own ``random.Random``, so workers never contend
    on (or perturb) the module-level generator.

    Attributes:
        header: Name of the header that is set.
        values: The pool of candidate values.
    """

    def __init__(
        self,
        values: Sequence[str] = DEFAULT_USER_AGENTS,
        *,
        header: str = "User-Agent",
        seed: int | None = None,
    ) -> None:
        """Initialize the fingerprinter.

        Args:
            values: Candidate header values. Must not be empty.
            header: Header name to set. Defaults to ``User-Agent``.
            seed: Optional seed for reproducible selection in tests.

        Raises:
            ValueError: If ``values`` is empty.
        """
        if not values:
            msg = "fingerprint value pool must not be empty"
            raise ValueError(msg)
        self.header = header
        self.values: tuple[str, ...] = tuple(values)
        self._rng = random.Random(seed)  # noqa: S311

    def pick(self) -> str:
        """Return one value chosen uniformly at random from the pool."""
        return self.values[self._rng.randrange(len(self.values))]

    def apply(self, request: Request) -> Request:
        """Return a copy of ``request`` carrying a randomly chosen header value."""
        return request.with_header(self.header, self.pick())
