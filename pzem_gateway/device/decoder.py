"""
Measurement Decoder

Turns the raw 9-word measurement block into physical quantities.
"""

from dataclasses import dataclass, asdict

from .register_map import (
    CURRENT_SCALE,
    FREQUENCY_SCALE,
    MEASUREMENT_WORDS,
    POWER_FACTOR_SCALE,
    POWER_SCALE,
    REG_CURRENT,
    REG_ENERGY,
    REG_FREQUENCY,
    REG_POWER,
    REG_POWER_FACTOR,
    REG_VOLTAGE,
    VOLTAGE_SCALE,
)


@dataclass
class PzemReading:
    """One measurement snapshot from a meter"""
    volts: float = 0.0
    amps: float = 0.0
    watts: float = 0.0
    watt_hours: float = 0.0
    frequency: float = 0.0
    power_factor: float = 0.0

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


def combine_words(lo: int, hi: int) -> int:
    """32-bit value from two registers, low word first"""
    return (hi << 16) | lo


def decode_reading(words: list[int]) -> PzemReading:
    """
    Decode the measurement block read from register 0.

    Raises:
        ValueError: fewer than 9 words supplied
    """
    if len(words) < MEASUREMENT_WORDS:
        raise ValueError(
            f"Measurement block needs {MEASUREMENT_WORDS} words, got {len(words)}"
        )

    return PzemReading(
        volts=words[REG_VOLTAGE] / VOLTAGE_SCALE,
        amps=combine_words(words[REG_CURRENT], words[REG_CURRENT + 1]) / CURRENT_SCALE,
        watts=combine_words(words[REG_POWER], words[REG_POWER + 1]) / POWER_SCALE,
        watt_hours=float(combine_words(words[REG_ENERGY], words[REG_ENERGY + 1])),
        frequency=words[REG_FREQUENCY] / FREQUENCY_SCALE,
        power_factor=words[REG_POWER_FACTOR] / POWER_FACTOR_SCALE,
    )
