"""
Credit accounts feature package.

Balances for signed-in users live in Postgres; guest balances live in
Redis. Both are consumed one credit per completed analysis and topped up
only by confirmed payments.
"""

from .domain import AccountIdentity, CreditAccount, GrantResult  # noqa: F401
