"""Tests for measurement block decoding."""

import pytest

from pzem_gateway.device.decoder import PzemReading, combine_words, decode_reading

from tests.conftest import SAMPLE_BLOCK


class TestCombineWords:
    """32-bit values are sent low word first."""

    @pytest.mark.parametrize(
        "lo,hi,expected",
        [
            (0, 0, 0),
            (0xFFFF, 0xFFFF, 0xFFFFFFFF),
            (0x0001, 0x0000, 0x00000001),
            (0x0000, 0x0001, 0x00010000),
            (0x5678, 0x1234, 0x12345678),
        ],
    )
    def test_high_word_second(self, lo, hi, expected):
        assert combine_words(lo, hi) == expected


class TestDecodeReading:
    def test_sample_block(self):
        reading = decode_reading(SAMPLE_BLOCK)

        assert reading.volts == pytest.approx(230.0)
        assert reading.amps == pytest.approx(1.0)
        assert reading.watts == pytest.approx(50.0)
        assert reading.watt_hours == pytest.approx(12000.0)
        assert reading.frequency == pytest.approx(50.0)
        assert reading.power_factor == pytest.approx(0.95)

    def test_two_word_fields_use_high_word(self):
        # 0x0001_86A0 mA = 100 A, 0x0001_0000 dW = 6553.6 W, 0x0002_0003 Wh
        reading = decode_reading([2200, 0x86A0, 0x0001, 0x0000, 0x0001, 3, 2, 600, 100])

        assert reading.amps == pytest.approx(100.0)
        assert reading.watts == pytest.approx(6553.6)
        assert reading.watt_hours == float(0x00020003)
        assert reading.frequency == pytest.approx(60.0)
        assert reading.power_factor == pytest.approx(1.0)

    def test_energy_is_not_scaled(self):
        reading = decode_reading([0, 0, 0, 0, 0, 7, 0, 0, 0])

        assert reading.watt_hours == 7.0
        assert isinstance(reading.watt_hours, float)

    def test_extra_words_are_ignored(self):
        assert decode_reading(SAMPLE_BLOCK + [1, 2]) == decode_reading(SAMPLE_BLOCK)

    def test_short_block_rejected(self):
        with pytest.raises(ValueError, match="9 words"):
            decode_reading(SAMPLE_BLOCK[:8])

    def test_as_dict(self):
        data = decode_reading(SAMPLE_BLOCK).as_dict()

        assert set(data) == {"volts", "amps", "watts", "watt_hours", "frequency", "power_factor"}
        assert data["volts"] == pytest.approx(230.0)

    def test_default_reading_is_zero(self):
        assert PzemReading().as_dict() == {
            "volts": 0.0,
            "amps": 0.0,
            "watts": 0.0,
            "watt_hours": 0.0,
            "frequency": 0.0,
            "power_factor": 0.0,
        }
