"""Wire constants for the ZKTeco terminal protocol."""

USHRT_MAX = 0xFFFF

# TCP envelope
MACHINE_PREPARE_DATA_1 = 0x5050
MACHINE_PREPARE_DATA_2 = 0x7D82
TCP_ENVELOPE_SIZE = 8
HEADER_SIZE = 8

# Requests
CMD_CONNECT = 1000
CMD_EXIT = 1001
CMD_AUTH = 1102
CMD_GET_VERSION = 1100
CMD_OPTIONS_RRQ = 11
CMD_GET_FREE_SIZES = 50
CMD_USERTEMP_RRQ = 9
CMD_ATTLOG_RRQ = 13

# Bulk transfer
CMD_PREPARE_DATA = 1500
CMD_DATA = 1501
CMD_FREE_DATA = 1502
CMD_PREPARE_BUFFER = 1503
CMD_READ_BUFFER = 1504

# Replies
CMD_ACK_OK = 2000
CMD_ACK_ERROR = 2001
CMD_ACK_DATA = 2002
CMD_ACK_RETRY = 2003
CMD_ACK_REPEAT = 2004
CMD_ACK_UNAUTH = 2005

# Function codes for PREPARE_BUFFER
FCT_ATTLOG = 1
FCT_USER = 5

# Largest chunk requested per READ_BUFFER
MAX_CHUNK_TCP = 0xFFC0
MAX_CHUNK_UDP = 16 * 1024

DEFAULT_PORT = 4370

COMMAND_NAMES = {
    CMD_CONNECT: "CONNECT",
    CMD_EXIT: "EXIT",
    CMD_AUTH: "AUTH",
    CMD_GET_VERSION: "GET_VERSION",
    CMD_OPTIONS_RRQ: "OPTIONS_RRQ",
    CMD_GET_FREE_SIZES: "GET_FREE_SIZES",
    CMD_USERTEMP_RRQ: "USERTEMP_RRQ",
    CMD_ATTLOG_RRQ: "ATTLOG_RRQ",
    CMD_PREPARE_DATA: "PREPARE_DATA",
    CMD_DATA: "DATA",
    CMD_FREE_DATA: "FREE_DATA",
    CMD_PREPARE_BUFFER: "PREPARE_BUFFER",
    CMD_READ_BUFFER: "READ_BUFFER",
    CMD_ACK_OK: "ACK_OK",
    CMD_ACK_ERROR: "ACK_ERROR",
    CMD_ACK_DATA: "ACK_DATA",
    CMD_ACK_RETRY: "ACK_RETRY",
    CMD_ACK_REPEAT: "ACK_REPEAT",
    CMD_ACK_UNAUTH: "ACK_UNAUTH",
}


def command_name(command: int) -> str:
    """Return a readable name for a command code."""
    return COMMAND_NAMES.get(command, str(command))
