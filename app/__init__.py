"""Business notification engine and scheduler.

The package re-exports nothing; its presence keeps ``app`` a regular package
so namespace resolution cannot pick up an unrelated ``app`` module.
"""
