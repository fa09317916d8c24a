"""Prompts sent to the text providers and the offline prompt template.

The template is what ``generate_structured_prompt`` returns when no provider
answers, so it must always produce a usable Veo prompt from the raw fields.
"""

from typing import List

from veo_studio_client.models import ChatMessage, PromptFields, Role

AUDIO_NOTE = "✅ Note that output audio must be in burmese language."

TRANSLATION_SYSTEM_PROMPT = """You are a Myanmar to English translator. Your task is to translate Myanmar text to natural English.
- Translate accurately while maintaining the natural flow and meaning
- Keep the conversational tone appropriate for video dialogue
- Return only the English translation, nothing else"""

AUTHORING_SYSTEM_PROMPT = """You are an expert at creating video generation prompts for Google Veo 2 and Veo 3.
Your task is to create professional prompts for Myanmar/Burmese language videos following this specific template:

TEMPLATE STRUCTURE:
✅ At [LOCATION]
✅ [CHARACTER DESCRIPTION(S)]
✅ Translate dialog to myanmar language and Speak with Burmese language and Burmese voice. Translation to Myanmar language:
✅ [CHARACTER] asks/speaks *in a clear Burmese language* "[DIALOGUE IN ENGLISH]"
✅ (If second character) [CHARACTER] replies *in clear Burmese language* "[DIALOGUE IN ENGLISH]"

IMPORTANT RULES:
- Always include "in a clear Burmese language" or "in clear Burmese language"
- Always end with "Note that output audio must be in burmese language."
- Dialogue must be in English (not Myanmar script) because Veo doesn't support Myanmar text yet
- Make the prompt professional and detailed
- Focus on visual descriptions for characters and setting"""


def translation_messages(source_text: str) -> List[ChatMessage]:
    return [
        ChatMessage(role=Role.system, content=TRANSLATION_SYSTEM_PROMPT),
        ChatMessage(
            role=Role.user,
            content=f'Translate this Myanmar text to English: "{source_text}"',
        ),
    ]


def authoring_messages(fields: PromptFields) -> List[ChatMessage]:
    user_prompt = (
        "Create a Veo 3 prompt with these details:\n"
        f"Location: {fields.location}\n"
        f"Character 1: {fields.character1}\n"
        f"Character 2: {fields.character2 or 'None'}\n"
        f"Dialogue 1: {fields.dialogue1}\n"
        f"Dialogue 2: {fields.dialogue2 or 'None'}\n"
        f"Prompt Type: {fields.prompt_type}\n\n"
        "Follow the exact template structure and include all the required "
        "elements for Myanmar language video generation."
    )
    return [
        ChatMessage(role=Role.system, content=AUTHORING_SYSTEM_PROMPT),
        ChatMessage(role=Role.user, content=user_prompt),
    ]


def first_name(description: str) -> str:
    words = description.split()
    return words[0] if words else description


def build_fallback_prompt(fields: PromptFields) -> str:
    """Assemble a Veo prompt locally from the form fields"""
    lines = [f"✅ At {fields.location}"]

    if fields.character2:
        lines.append(f"✅ {fields.character1} interviews {fields.character2}.")
    else:
        lines.append(f"✅ {fields.character1}")

    lines.append(
        f"✅ {first_name(fields.character1)} asks *in a clear Burmese language* "
        f'"{fields.dialogue1}"'
    )

    # a reply needs someone to say it
    if fields.character2 and fields.dialogue2:
        lines.append(
            f"✅ {first_name(fields.character2)} replies *in clear Burmese language* "
            f'"{fields.dialogue2}"'
        )

    lines.append(AUDIO_NOTE)
    return "\n\n".join(lines)
