"""
Data package — lifecycle of the process's store connections.

Modules:
    guard      — ordered release stack
    data       — production container (engine + Redis, cleanup)
    testsuite  — integration-test variant with safety guard and resets
"""
