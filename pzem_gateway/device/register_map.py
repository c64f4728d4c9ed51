"""
PZEM Register Map

Register layout of a PZEM-016 style energy meter and the exact error texts
the read path classifies.

Measurement block (input registers, 9 words from 0x0000):
    0x0000       voltage        / 10   -> V
    0x0001-0x02  current  (lo,hi) / 1000 -> A
    0x0003-0x04  power    (lo,hi) / 10   -> W
    0x0005-0x06  energy   (lo,hi)        -> Wh
    0x0007       frequency      / 10   -> Hz
    0x0008       power factor   / 100

32-bit values are sent low word first: value = (word[n+1] << 16) | word[n].

Holding register 0x0002 holds the meter's bus address (1-255).
"""

MEASUREMENT_START = 0x0
MEASUREMENT_WORDS = 9

REG_VOLTAGE = 0x0
REG_CURRENT = 0x1
REG_POWER = 0x3
REG_ENERGY = 0x5
REG_FREQUENCY = 0x7
REG_POWER_FACTOR = 0x8

REG_SLAVE_ADDRESS = 0x2

VOLTAGE_SCALE = 10.0
CURRENT_SCALE = 1000.0
POWER_SCALE = 10.0
FREQUENCY_SCALE = 10.0
POWER_FACTOR_SCALE = 100.0

MIN_SLAVE_ID = 1
MAX_SLAVE_ID = 255

DEFAULT_READ_TIMEOUT_MS = 500
DEFAULT_BACKOFF_BASE_MS = 100
DEFAULT_MAX_RETRIES = 1

# Transport error texts, matched verbatim
ERROR_ILLEGAL_DATA_VALUE = "Modbus function 3: Illegal data value"
ERROR_GATEWAY_DEVICE_FAILED_TO_RESPOND = (
    "Modbus function 3: Gateway target device failed to respond"
)
ERROR_INVALID_RESPONSE_HEADER = "Invalid response header: expected/request"
ERROR_OUT_OF_ORDER_RESPONSE = "out of order response"

# errno of a write to a socket the peer already closed
OS_ERROR_BROKEN_PIPE = 32
