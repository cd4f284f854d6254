"""Message formatting helpers for chat transports."""

EMPTY_MESSAGE = "(empty)"


def split_long_message(text: str, max_length: int = 4000) -> list[str]:
    """Split ``text`` into chunks no longer than ``max_length``.

    Splits on line boundaries where possible; a single line longer than
    the limit is cut hard. Empty input gives one placeholder chunk.
    """
    if not text:
        return [EMPTY_MESSAGE]
    if max_length <= 0:
        raise ValueError("max_length must be positive")
    if len(text) <= max_length:
        return [text]

    chunks: list[str] = []
    current = ""
    for line in text.split("\n"):
        while len(line) > max_length:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(line[:max_length])
            line = line[max_length:]
        candidate = f"{current}\n{line}" if current else line
        if len(candidate) > max_length:
            chunks.append(current)
            current = line
        else:
            current = candidate
    if current:
        chunks.append(current)
    return chunks
