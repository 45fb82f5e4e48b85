"""Energy flow classification between consecutive tracks."""

from .models import AudioAnalysis, EnergyDirection, EnergyFlow

# Energy change smaller than this counts as steady
ENERGY_MARGIN = 0.1

HIGH_ENERGY = 0.7
LOW_ENERGY = 0.3


def energy_direction(current: float, target: float) -> EnergyDirection:
    if target > current + ENERGY_MARGIN:
        return EnergyDirection.RISING
    if target < current - ENERGY_MARGIN:
        return EnergyDirection.FALLING
    return EnergyDirection.STEADY


def energy_hint(current: float, target: float, direction: EnergyDirection) -> str:
    """Coarse archetype for an energy move: buildup, breakdown, peak or cooldown."""
    if direction == EnergyDirection.RISING:
        return "buildup"
    if direction == EnergyDirection.FALLING:
        if current > HIGH_ENERGY and target < LOW_ENERGY:
            return "breakdown"
        return "cooldown"
    return "peak" if current > HIGH_ENERGY else "cooldown"


def analyze_energy_flow(current: AudioAnalysis, target: AudioAnalysis) -> EnergyFlow:
    """Classify the energy trajectory from the current track into the target."""
    direction = energy_direction(current.energy, target.energy)
    return EnergyFlow(
        current_energy=current.energy,
        target_energy=target.energy,
        energy_direction=direction,
        transition_type=energy_hint(current.energy, target.energy, direction),
    )
