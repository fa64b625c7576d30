"""
DramaForge - Agent orchestration and stage-gating engine for narrative production.

Guides a project through world -> characters -> outline -> production,
gating every save behind an Aligner/AutoFixer loop.
"""

__version__ = "0.1.0"
