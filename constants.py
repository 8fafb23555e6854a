from enum import IntEnum


class CECOpcode(IntEnum):
    """CEC opcodes seen in cec-client traffic lines"""
    ACTIVE_SOURCE = 0x82
    USER_CONTROL_PRESSED = 0x44
    VENDOR_REMOTE_BUTTON_UP = 0x8B


class UserControlCode(IntEnum):
    """CEC user control codes"""
    SELECT = 0x00
    UP = 0x01
    DOWN = 0x02
    LEFT = 0x03
    RIGHT = 0x04
    RIGHT_UP = 0x05
    RIGHT_DOWN = 0x06
    LEFT_UP = 0x07
    LEFT_DOWN = 0x08
    ROOT_MENU = 0x09
    SETUP_MENU = 0x0A
    CONTENTS_MENU = 0x0B
    FAVORITE_MENU = 0x0C
    EXIT = 0x0D
    NUMBER_0 = 0x20
    NUMBER_1 = 0x21
    NUMBER_2 = 0x22
    NUMBER_3 = 0x23
    NUMBER_4 = 0x24
    NUMBER_5 = 0x25
    NUMBER_6 = 0x26
    NUMBER_7 = 0x27
    NUMBER_8 = 0x28
    NUMBER_9 = 0x29
    DOT = 0x2A
    ENTER = 0x2B
    CLEAR = 0x2C
    NEXT_FAVORITE = 0x2F
    CHANNEL_UP = 0x30
    CHANNEL_DOWN = 0x31
    PREVIOUS_CHANNEL = 0x32
    SOUND_SELECT = 0x33
    INPUT_SELECT = 0x34
    DISPLAY_INFORMATION = 0x35
    HELP = 0x36
    PAGE_UP = 0x37
    PAGE_DOWN = 0x38
    POWER = 0x40
    VOLUME_UP = 0x41
    VOLUME_DOWN = 0x42
    MUTE = 0x43
    PLAY = 0x44
    STOP = 0x45
    PAUSE = 0x46
    RECORD = 0x47
    REWIND = 0x48
    FAST_FORWARD = 0x49
    EJECT = 0x4A
    FORWARD = 0x4B
    BACKWARD = 0x4C
    STOP_RECORD = 0x4D
    PAUSE_RECORD = 0x4E
    ANGLE = 0x50
    SUB_PICTURE = 0x51
    VIDEO_ON_DEMAND = 0x52
    ELECTRONIC_PROGRAM_GUIDE = 0x53
    TIMER_PROGRAMMING = 0x54
    INITIAL_CONFIGURATION = 0x55
    PLAY_FUNCTION = 0x60
    PAUSE_PLAY_FUNCTION = 0x61
    RECORD_FUNCTION = 0x62
    PAUSE_RECORD_FUNCTION = 0x63
    STOP_FUNCTION = 0x64
    MUTE_FUNCTION = 0x65
    RESTORE_VOLUME_FUNCTION = 0x66
    TUNE_FUNCTION = 0x67
    SELECT_MEDIA_FUNCTION = 0x68
    SELECT_AV_INPUT_FUNCTION = 0x69
    SELECT_AUDIO_INPUT_FUNCTION = 0x6A
    POWER_TOGGLE_FUNCTION = 0x6B
    POWER_OFF_FUNCTION = 0x6C
    POWER_ON_FUNCTION = 0x6D
    F1_BLUE = 0x71
    F2_RED = 0x72
    F3_GREEN = 0x73
    F4_YELLOW = 0x74
    F5 = 0x75
    DATA = 0x76


# Power status values reported by cec-client ("power status: <value>")
POWER_ON = 'on'
POWER_STANDBY = 'standby'

# Active source values
ACTIVE_YES = 'yes'
ACTIVE_NO = 'no'

# Stored on a device record when a query deadline expires
STATUS_UNKNOWN = 'Unknown'

BROADCAST_ADDRESS = 'F'

# cec-client prints this once it accepts commands on stdin
READY_MARKER = 'waiting for input'

# Timeouts in seconds
STATUS_TIMEOUT = 10.0
POWER_CHANGE_TIMEOUT = 40.0
ACTIVE_CHANGE_TIMEOUT = 15.0
KEY_RELEASE_TIMEOUT = 0.6


def get_key_name(code: str) -> str:
    """
    Translate a hex user control code into a key name.

    Args:
        code: Hex string as printed in traffic lines, e.g. "41"

    Returns:
        Lower case key name (e.g. "volume_up"), or the code itself
        when it is not a known user control code
    """
    try:
        return UserControlCode(int(code, 16)).name.lower()
    except ValueError:
        return code
