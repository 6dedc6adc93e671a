"""
ID generator for the billing pipeline.

Generates invoice UUIDs and human-readable invoice numbers.
"""

from datetime import datetime
from uuid import UUID

import numpy as np
from numpy.random import Generator as RNG


class IDGenerator:
    """
    Generates unique identifiers for invoices.

    Production code constructs this without a seed so every process draws
    from OS entropy; tests pass a seeded RNG for reproducible output.

    Usage:
        id_gen = IDGenerator()
        invoice_id = id_gen.generate_uuid()
        invoice_number = id_gen.generate_invoice_number(issued_at)
    """

    def __init__(self, rng: RNG | None = None):
        """
        Initialize the ID generator.

        Args:
            rng: NumPy random number generator (defaults to an unseeded one)
        """
        self.rng = rng if rng is not None else np.random.default_rng()

    @classmethod
    def from_seed(cls, seed: int | None) -> "IDGenerator":
        """Create a generator, seeded only when a seed is given."""
        return cls(np.random.default_rng(seed))

    def generate_uuid(self) -> UUID:
        """
        Generate a random version 4 UUID.

        Returns:
            Random UUID
        """
        random_bytes = bytearray(self.rng.bytes(16))
        # Set version 4 (random) UUID bits
        random_bytes[6] = (random_bytes[6] & 0x0F) | 0x40
        random_bytes[8] = (random_bytes[8] & 0x3F) | 0x80
        return UUID(bytes=bytes(random_bytes))

    def generate_token(self, length: int = 8) -> str:
        """
        Generate an uppercase hexadecimal token.

        Args:
            length: Number of hex characters

        Returns:
            Token such as "3FA85F64"
        """
        return self.rng.bytes((length + 1) // 2).hex().upper()[:length]

    def generate_invoice_number(self, issued_at: datetime) -> str:
        """
        Generate an invoice number.

        Format: INV-YYYYMMDD-XXXXXXXX (X = uppercase hex)

        Args:
            issued_at: Issue timestamp supplying the date part

        Returns:
            Invoice number string
        """
        return f"INV-{issued_at:%Y%m%d}-{self.generate_token(8)}"
