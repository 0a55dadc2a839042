"""Domain layer for haulbook: balances, fusion and the ledger write path.

Services are imported from their modules (``haulbook.domain.balance`` and so on);
``haulbook.database.base`` imports the entities from this package.
"""
