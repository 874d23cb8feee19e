"""Mining cooldown math. All values are unix seconds."""


def asset_delay(asset):
    return float(asset["data"]["delay"])


def next_available(last_mine, land_delay, tool_delays=()):
    return float(last_mine) + float(land_delay) + sum(float(d) for d in tool_delays)


def evaluate(now, last_mine, land_delay, tool_delays=()):
    """Returns (eligible, next_available)"""
    available = next_available(last_mine, land_delay, tool_delays)
    return now >= available, available


def eligible(now, last_mine, land_delay, tool_delays=()):
    return evaluate(now, last_mine, land_delay, tool_delays)[0]


def remaining_ms(now, available):
    return max(0, round((available - now) * 1000))


def split_remaining(millis):
    diff = int(millis // 1000)
    hours = diff // 3600
    minutes = diff % 3600 // 60
    seconds = diff % 60
    return hours, minutes, seconds


def format_remaining(millis):
    hours, minutes, seconds = split_remaining(millis)
    parts = [
        hours > 0 and f"{hours:02d} hours",
        minutes > 0 and f"{minutes:02d} minutes",
        seconds > 0 and f"{seconds:02d} seconds",
    ]
    return ", ".join(p for p in parts if p)
