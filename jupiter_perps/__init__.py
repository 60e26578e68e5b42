"""Jupiter Perpetuals open/close client.

Derives the program's PDAs, builds market increase/decrease requests, sizes
the compute budget from one simulation, signs with a local key and sends.

Run the CLI with ``python -m jupiter_perps``.
"""

__all__ = ["cli", "compute", "config", "constants", "errors", "flows", "instructions", "layouts", "pdas"]
