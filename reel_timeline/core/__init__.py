"""Core intermediate representation and segment building.

WHY: The core package is the stable heart of the pipeline — the IR
dataclasses and the word-to-segment builder. Everything downstream
(candidate parsing, the editor timeline) consumes these types.

HOW: ir.py defines the data structures, segmenter.py builds sentence
segments from word timestamps and normalizes ready-made segments.

RULES:
- IR dataclasses are the contract — change with care
- Segment building is service-agnostic beyond accepting the known
  word/segment field spellings
"""
