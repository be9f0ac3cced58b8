"""
Shared test constants.

Account names and balances used across ledger tests. Names stay within the
36-character limit of the ``money.name`` column.
"""

ALICE = "alice"
BOB = "bob"
CAROL = "carol"

ALICE_BALANCE = 100
BOB_BALANCE = 50

# Exactly at the column limit.
LONGEST_NAME = "n" * 36
