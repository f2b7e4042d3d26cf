from __future__ import annotations

from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class TTSVoice(str, Enum):
    """Symbolic voices understood by the OpenAI speech endpoint."""

    ALLOY = "alloy"
    ECHO = "echo"
    FABLE = "fable"
    ONYX = "onyx"
    NOVA = "nova"
    SHIMMER = "shimmer"


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CharacterInput(CamelModel):
    name: str
    role: str = ""
    description: str = ""
    voice_type: str = ""


class PlanningInput(CamelModel):
    """User intent submitted once to plan generation."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    concept: str
    genre: str = ""
    target_audience: str = ""
    tone: str = ""
    style_ref: str = ""
    scene_count: int = Field(default=5, ge=1)
    language: str = "en"
    characters: List[CharacterInput] = Field(default_factory=list)
    constraints: List[str] = Field(default_factory=list)
    additional_notes: str = ""


class VoiceCasting(CamelModel):
    gender: Literal["male", "female", "neutral"] = "neutral"
    tone: str = ""
    accent: str = ""
    suggested_tts_voice: TTSVoice = Field(default=TTSVoice.ALLOY, alias="suggestedTTSVoice")
    eleven_labs_voice_id: Optional[str] = None
    voice_description: str = ""

    @field_validator("gender", mode="before")
    @classmethod
    def _normalize_gender(cls, value: object) -> object:
        if isinstance(value, str):
            lowered = value.strip().lower()
            return lowered if lowered in {"male", "female", "neutral"} else "neutral"
        return value

    @field_validator("suggested_tts_voice", mode="before")
    @classmethod
    def _normalize_voice(cls, value: object) -> object:
        # Unknown voice names degrade to the default voice instead of failing the plan.
        if isinstance(value, str):
            lowered = value.strip().lower()
            return lowered if lowered in {voice.value for voice in TTSVoice} else TTSVoice.ALLOY
        return value


class Character(CamelModel):
    id: str
    name: str
    role: str = ""
    description: str = ""
    visual_description: str = ""
    personality: str = ""
    voice: VoiceCasting = Field(default_factory=VoiceCasting)


class ProjectInfo(CamelModel):
    title: str
    logline: str = ""
    genre: str = ""
    tone: str = ""
    visual_style: str = ""
    target_audience: str = ""
    total_duration: str = ""


class Act(CamelModel):
    act: int
    title: str = ""
    description: str = ""


class Scenario(CamelModel):
    outline: str = ""
    acts: List[Act] = Field(default_factory=list)


class ImagePromptSet(CamelModel):
    main: str = ""
    character_ref: str = ""
    style: str = ""
    technical: str = ""
    negative: str = ""
    full: str = ""


class VideoPromptSet(CamelModel):
    motion: str = ""
    camera: str = ""
    atmosphere: str = ""
    negative: str = ""
    full: str = ""


class Dialogue(CamelModel):
    character_id: str = ""
    character_name: str = ""
    line: str = ""
    emotion: str = ""
    action: str = ""
    audio_url: Optional[str] = None


class Scene(CamelModel):
    """One ordered unit of production."""

    id: str
    title: str = ""
    act: int = 1
    order: int
    duration_seconds: float = 5
    setting: str = ""
    mood: str = ""
    description: str = ""
    narration: str = ""
    dialogues: List[Dialogue] = Field(default_factory=list)
    image_prompt: ImagePromptSet = Field(default_factory=ImagePromptSet)
    video_prompt: VideoPromptSet = Field(default_factory=VideoPromptSet)
    generated_image_url: Optional[str] = None
    generated_video_url: Optional[str] = None
    generated_narration_url: Optional[str] = None

    @property
    def image_prompt_text(self) -> str:
        return self.image_prompt.full or self.image_prompt.main

    @property
    def video_prompt_text(self) -> str:
        return self.video_prompt.full or self.video_prompt.motion


class ProductionNotes(CamelModel):
    color_palette: List[str] = Field(default_factory=list)
    lighting_style: str = ""
    music_mood: str = ""
    editing_style: str = ""
    voice_notes: str = ""
    brand_guidelines: str = ""


class ContentPlan(CamelModel):
    project: ProjectInfo
    characters: List[Character] = Field(default_factory=list)
    scenario: Scenario = Field(default_factory=Scenario)
    scenes: List[Scene]
    global_constraints: List[str] = Field(default_factory=list)
    production_notes: ProductionNotes = Field(default_factory=ProductionNotes)

    def scene(self, scene_id: str) -> Optional[Scene]:
        for scene in self.scenes:
            if scene.id == scene_id:
                return scene
        return None

    def character(self, character_id: str) -> Optional[Character]:
        for character in self.characters:
            if character.id == character_id:
                return character
        return None

    def narrator(self) -> Optional[Character]:
        for character in self.characters:
            if "narrator" in character.role.lower():
                return character
        return None
