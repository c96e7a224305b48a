"""Data models for page narration."""

from dataclasses import dataclass, field, asdict


NARRATION = "narration"
DIALOGUE = "dialogue"


@dataclass
class TextRegion:
    box: list                       # [yMin, xMin, yMax, xMax] on the 0-1000 canvas
    character_type: str             # "Hero", "Narrator", "Villain", ...
    text: str
    voice_archetype: str | None = None
    emotion: str | None = None
    speaker: str | None = None      # character name, when the classifier knows it
    role: str | None = None         # "narration" or "dialogue", set by the engine
    panel_number: int | None = None
    reading_order: int | None = None

    @property
    def voice_key(self) -> str:
        """Identity used for voice lookup: character name, else character type."""
        return self.speaker or self.character_type

    @classmethod
    def from_dict(cls, data: dict) -> "TextRegion":
        """Build a region from classifier JSON (snake_case or camelCase keys)."""
        def pick(*names, default=None):
            for name in names:
                if name in data and data[name] is not None:
                    return data[name]
            return default

        box = pick("box_2d", "box", "box2d")
        return cls(
            box=list(box) if isinstance(box, (list, tuple)) else box,
            character_type=str(pick("character_type", "characterType", default="")),
            text=str(pick("text", default="")),
            voice_archetype=pick("voice_archetype", "voiceArchetype"),
            emotion=pick("emotion"),
            speaker=pick("speaker", "character_name", "characterName"),
            panel_number=pick("panel_number", "panelNumber"),
            reading_order=pick("reading_order", "readingOrder"),
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["box_2d"] = data.pop("box")
        return data


@dataclass
class VoiceBinding:
    character_key: str
    voice_id: str
    personality: str = "other"      # "hero", "villain", "narrator", "mob" or "other"
    source_label: str = ""          # manga title, "Auto: <archetype>", "User override"
    timestamp: float = 0.0


@dataclass
class DeliveryParams:
    stability: float
    style: float
    speed: float
    emotion: str


@dataclass
class PronunciationEntry:
    original: str
    phonetic: str


@dataclass
class NarrationSettings:
    speed: float = 1.0
    dictionary: list[PronunciationEntry] = field(default_factory=list)
