"""End-to-end scenarios for the withdrawals service and client.

Each scenario drives the FastAPI application (and, where relevant, the
client request state machine) through one aspect of the idempotent
withdrawal protocol.
"""
