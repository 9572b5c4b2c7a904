# Flow status constants

# A stage is current and waiting for (more) input
IN_PROGRESS = "IN_PROGRESS"

# Every stage in the flow definition has been satisfied
# Terminal: no further advancement
COMPLETED = "COMPLETED"

# The flow definition was misused (cursor out of bounds, bad state key,
# broken stage config at runtime)
# Terminal: no further advancement
FAILED = "FAILED"

TERMINAL = (COMPLETED, FAILED)
ALL = (IN_PROGRESS, COMPLETED, FAILED)


def is_terminal(status: str) -> bool:
    return status in TERMINAL
