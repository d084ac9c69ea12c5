"""Constants and default values for audiometry testing."""

# Standard audiometric test frequencies (Hz), low to high
AIR_CONDUCTION_FREQUENCIES = [250, 500, 750, 1000, 1500, 2000, 3000, 4000, 6000, 8000]
BONE_CONDUCTION_FREQUENCIES = [500, 1000, 2000, 4000]

# Every sequence starts here, goes up, re-tests here, then goes down
REFERENCE_FREQUENCY = 1000

# Maximum output levels for different conduction types
AIR_CONDUCTION_MAX_LEVELS = {
    250: 105, 500: 110, 750: 110,
    1000: 120, 1500: 120, 2000: 120, 3000: 120,
    4000: 120, 6000: 110, 8000: 105
}

BONE_CONDUCTION_MAX_LEVELS = {
    250: 25, 500: 55, 750: 55,
    1000: 70, 1500: 70, 2000: 70,
    3000: 70, 4000: 70
}

# Hearing level bounds (dB HL)
MIN_TEST_LEVEL = -10
MAX_TEST_LEVEL = 120

# Hughson-Westlake step sizes (dB)
DEFAULT_STARTING_LEVEL = 40
INITIAL_STEP_SIZE = 10
ASCENDING_STEP_SIZE = 5
DESCENDING_STEP_SIZE = 10

# Threshold confirmation rule: 2 of 2, or at least 2 of 3+
MIN_CONFIRMING_RESPONSES = 2

# Technical error limits used when scoring a session
HIGH_STARTING_LEVEL = 60
MIN_RESPONSES_PER_POSITION = 3
RETEST_TOLERANCE_DB = 5

# Progress denominator when every position is counted (20 air + 8 bone)
FULL_PROTOCOL_POSITIONS = 2 * len(AIR_CONDUCTION_FREQUENCIES) + 2 * len(BONE_CONDUCTION_FREQUENCIES)

# Autopilot safety net
MAX_PRESENTATIONS_PER_POSITION = 50
MAX_LEVEL_NO_RESPONSE_LIMIT = 2

# Response model default parameters
DEFAULT_SLOPE = 0.2
DEFAULT_GUESS_RATE = 0.01
DEFAULT_LAPSE_RATE = 0.01
