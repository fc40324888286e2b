"""Domain models and accounting core of the multisend ledger.

The ledger types are pydantic models; the balance table, whitelist, fee policy,
disbursement engine and administration are plain classes composed by
``multisend.Multisend``. Nothing here depends on persistence, so business logic
and tests evolve without DB coupling.
"""

__all__ = [
    "administration",
    "balance_ledger",
    "disbursement",
    "errors",
    "fees",
    "ledger",
    "multisend",
    "substrate",
    "transaction",
    "whitelist",
]
