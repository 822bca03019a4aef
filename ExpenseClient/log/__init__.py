"""
Logging subsystem for ExpenseClient.

Modules:

- :mod:`ExpenseClient.log.log` – Root logger setup, the in-memory TankHandler and the Qt message bridge.
"""
