"""
Particle Life Evolution

A deterministic, headless simulator where populations of typed particles move
under pairwise attraction/repulsion rules, and a genetic algorithm evolves
those rules across epochs.

Architecture: the core (kernel + evolution loop) is the source of truth.
Renderers, UIs and save files are consumers.
"""

__version__ = "0.1.0"
