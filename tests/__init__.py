"""Test suite layout and markers.

Use ``pytest -m smoke`` to check that every alignbucket module imports.
Use ``pytest -m unit`` for the fast, in-process tests.
Use ``pytest -m e2e`` for tests that start real child processes through ``sys.executable``.
Use ``pytest`` to run everything.
"""
