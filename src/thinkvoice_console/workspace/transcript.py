"""Split raw call transcripts into speaker turns."""

import re
from dataclasses import asdict, dataclass

_SPLIT = re.compile(r"\n|assistant:|user:")

# Phrases that only the agent side says in practice.
ASSISTANT_MARKERS = ("Support Agent", "मुझे खेद है", "धन्यवाद")


@dataclass
class Turn:
    speaker: str
    message: str


def format_transcript(transcript: str | None) -> list[Turn]:
    """The first non-empty line and any line with an agent marker is the assistant."""
    if not transcript:
        return []
    lines = [line.strip() for line in _SPLIT.split(transcript)]
    lines = [line for line in lines if line]
    turns = []
    for index, line in enumerate(lines):
        is_assistant = index == 0 or any(marker in line for marker in ASSISTANT_MARKERS)
        turns.append(Turn(speaker="assistant" if is_assistant else "user", message=line))
    return turns


def transcript_as_dicts(transcript: str | None) -> list[dict[str, str]]:
    return [asdict(turn) for turn in format_transcript(transcript)]
