"""
Tree ensemble interpretation

Decomposes the raw score of a gradient-boosted tree ensemble into
per-feature contributions by walking each tree's decision path from the
predicted leaf back to the root.

See README.md for the expected topology and leaf-index inputs.
"""
