from __future__ import annotations

from textwrap import dedent

from .model import PlanningInput

LANGUAGE_NAMES = {"ko": "Korean", "en": "English", "ja": "Japanese"}

PLAN_SYSTEM_PROMPT = dedent(
    """
    You are an AI content director with expertise in narrative structure, visual direction for image
    generation models, prompt writing for image-to-video models, and voice casting for text-to-speech.

    Transform a brief project concept into a complete, production-ready content plan.

    Rules:
    1. Output only valid JSON, with no markdown and no commentary outside the JSON.
    2. Image and video prompts must be in English.
    3. Dialogue and narration use the requested language.
    4. Every scene carries a negative prompt for both image and video.
    5. Character visual descriptions are detailed and identical across all scenes.
    6. Every scene has narration, dialogue, or both.
    7. The global constraints are absolute rules.
    """
).strip()

PLAN_SCHEMA = dedent(
    """
    {{
      "project": {{"title": string, "logline": string, "genre": string, "tone": string,
                   "visualStyle": string, "targetAudience": string, "totalDuration": string}},
      "characters": [
        {{"id": "char_01", "name": string, "role": "protagonist | supporting | narrator",
          "description": string, "visualDescription": string, "personality": string,
          "voice": {{"gender": "male | female | neutral", "tone": string, "accent": string,
                    "suggestedTTSVoice": "alloy | echo | fable | onyx | nova | shimmer",
                    "voiceDescription": string}}}}
      ],
      "scenario": {{"outline": string, "acts": [{{"act": integer, "title": string, "description": string}}]}},
      "scenes": [
        {{"id": "scene_01", "title": string, "act": integer, "order": integer, "durationSeconds": number,
          "setting": string, "mood": string, "description": string, "narration": string,
          "dialogues": [{{"characterId": string, "characterName": string, "line": string,
                         "emotion": string, "action": string}}],
          "imagePrompt": {{"main": string, "characterRef": string, "style": string, "technical": string,
                          "negative": string, "full": string}},
          "videoPrompt": {{"motion": string, "camera": string, "atmosphere": string, "negative": string,
                          "full": string}}}}
      ],
      "globalConstraints": [string],
      "productionNotes": {{"colorPalette": [string], "lightingStyle": string, "musicMood": string,
                          "editingStyle": string, "voiceNotes": string, "brandGuidelines": string}}
    }}
    """
).strip()

PLAN_USER_PROMPT = dedent(
    """
    Create a complete content production plan for this project.

    Concept     : {concept}
    Genre       : {genre}
    Audience    : {audience}
    Tone        : {tone}
    Style ref   : {style_ref}
    Scene count : {scene_count}
    Language    : {language}
    Notes       : {notes}

    Characters:
    {characters}

    Absolute constraints:
    {constraints}

    Respond with a single JSON object using this schema:
    {schema}

    Generate exactly {scene_count} scenes. Keep character visual descriptions identical across scenes.
    """
).strip()

IMAGE_REWRITE_SYSTEM_PROMPT = (
    "You are an image prompt engineer for Flux and GPT image models. "
    "Output only the optimized prompt, with no explanation."
)

VIDEO_REWRITE_SYSTEM_PROMPT = (
    "You are a prompt engineer for image-to-video models such as Kling and Luma. "
    "Output only the optimized prompt, with no explanation."
)

TEXT_REWRITE_SYSTEM_PROMPT = "You are a script editor for voiced video content. Output only the rewritten text."

SCENE_REWRITE_SYSTEM_PROMPT = "You revise scenes of a content plan. Output only the scene JSON object."


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code, code)


def render_plan_prompt(planning: PlanningInput) -> str:
    characters = "\n".join(
        f"  Character {index}: {c.name} ({c.role}) - {c.description}, voice: {c.voice_type}"
        for index, c in enumerate(planning.characters, start=1)
    )
    constraints = ", ".join(item for item in planning.constraints if item) or "None specified"
    return PLAN_USER_PROMPT.format(
        concept=planning.concept,
        genre=planning.genre,
        audience=planning.target_audience,
        tone=planning.tone,
        style_ref=planning.style_ref or "Cinematic, high quality",
        scene_count=planning.scene_count,
        language=language_name(planning.language),
        notes=planning.additional_notes or "None",
        characters=characters or "  No characters defined; create appropriate ones",
        constraints=constraints,
        schema=PLAN_SCHEMA.format(),
    )


def render_image_rewrite_prompt(raw_prompt: str, style: str, model: str) -> str:
    return dedent(
        f"""
        Optimize this image generation prompt for {model}.

        Raw: "{raw_prompt}"
        Style: "{style}"

        Use comma-separated descriptors with the most important elements first. Name the lighting,
        the camera angle and shot type, and explicit character features. Keep it under 300 words.
        """
    ).strip()


def render_video_rewrite_prompt(raw_prompt: str, model: str, duration_seconds: float) -> str:
    return dedent(
        f"""
        Optimize this video generation prompt for {model} ({duration_seconds:g}s clip).

        Raw: "{raw_prompt}"

        Describe one continuous motion without cuts, the exact camera movement and the subject's
        action. Keep it under 200 words.
        """
    ).strip()


def render_dialogue_rewrite_prompt(scene: str, character: str, line: str, instruction: str, language: str) -> str:
    return dedent(
        f"""
        Rewrite this dialogue line.

        Scene: {scene}
        Character: {character}
        Current line: "{line}"
        Instruction: "{instruction}"
        Language: {language_name(language)}

        Stay in character, match the scene's mood, keep a natural speech rhythm for text-to-speech,
        leave out stage directions and stay under three sentences.
        """
    ).strip()


def render_narration_rewrite_prompt(narration: str, tone: str, duration_seconds: float, language: str) -> str:
    target_words = round(duration_seconds * (4 if language == "ko" else 2.5))
    return dedent(
        f"""
        Optimize this narration for a text-to-speech voice-over.

        Original: "{narration}"
        Tone: {tone}
        Duration: {duration_seconds:g} seconds (about {target_words} words)
        Language: {language_name(language)}

        Use punctuation to pace the voice and avoid hard-to-pronounce sequences.
        """
    ).strip()


def render_scene_rewrite_prompt(scene_json: str, instruction: str) -> str:
    return dedent(
        f"""
        Regenerate one scene of a content plan according to this revision instruction.

        Current scene JSON:
        {{scene_json}}

        Revision instruction: "{instruction}"

        Output only the updated scene JSON object with the same structure. Keep every field and change only
        what the instruction asks for.
        """
    ).strip().replace("{scene_json}", scene_json)
