"""Evolutionary search for taping schedules.

Modules:
    - population: PopulationMember, grid initialisation, speed conversions
    - fitness: parallel fitness evaluation (one simulator + buffers per worker)
    - selection: elitism, lerp crossover, multiplicative mutation, reinjection
    - driver: EvolutionSimulation generation loop and best-result persistence

Invariants:
    - Population size is fixed for the whole search
    - Only fitness evaluation runs concurrently
    - Elite members are carried over unchanged
    - Bred arm angles lie in [minShellArmAngle, 90]
"""

from .driver import EvolutionSimulation, EvolutionState, GenerationStats
from .fitness import FitnessJob, PopulationFitnessEvaluator
from .population import PopulationMember, initialize_population
from .selection import breed_members, natural_selection

__all__ = [
    'EvolutionSimulation',
    'EvolutionState',
    'GenerationStats',
    'FitnessJob',
    'PopulationFitnessEvaluator',
    'PopulationMember',
    'initialize_population',
    'breed_members',
    'natural_selection',
]
