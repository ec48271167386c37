"""Core reading, normalization, and placement modules.

WHY: The core package holds the format-specific heart of the converter:
the archive reader, the timestamp heuristics, the transcript builder,
and the output placer. The batch driver and CLI only orchestrate them.

HOW: archive.py extracts the payloads, timestamps.py resolves offsets
and ambiguous dates, builder.py produces the IR defined in ir.py,
placement.py decides file names and writes them, errors.py defines
the exception hierarchy.

RULES:
- IR dataclasses are the contract; change with care
- Nothing here prints; diagnostics go through logging
"""
