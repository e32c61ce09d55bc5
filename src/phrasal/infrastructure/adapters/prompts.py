"""
Prompt templates for LLM-generated study content.
"""

from phrasal.domain.constants import NARRATIVE_WORD_COUNT
from phrasal.domain.models import LanguageContext, Phrase


def format_phrase_list(phrases: list[Phrase]) -> str:
    lines = []
    for index, phrase in enumerate(phrases, start=1):
        line = f'{index}. "{phrase.text}"'
        if phrase.translation:
            line += f" ({phrase.translation})"
        lines.append(line)
    return "\n".join(lines)


def language_note(context: LanguageContext) -> str:
    if context.native_language == context.target_language:
        return (
            f"Note: The user's native language ({context.native_language}) is the same "
            "as the target language. Provide explanations and context rather than translations."
        )
    return (
        f"Note: User's native language is {context.native_language}, "
        f"target language is {context.target_language}."
    )


def story_prompt(
    phrases: list[Phrase],
    context: LanguageContext,
    word_count: int = NARRATIVE_WORD_COUNT,
) -> str:
    return f"""You are an expert language learning tutor. Create a coherent, engaging story in {context.target_language} that naturally incorporates all the provided phrases.

**Requirements:**
- Story should be about {word_count} words (80-150 word range)
- Include ALL {len(phrases)} phrases naturally in the story
- Story should be appropriate for {context.proficiency} level
- Make the story engaging and memorable

**Phrases to include:**
{format_phrase_list(phrases)}

{language_note(context)}

**Output format:**
Return a JSON object with this exact structure:
{{
  "story": "Your story text here...",
  "usedPhrases": [
    {{"phrase": "exact phrase text", "position": 42, "gloss": "brief explanation or translation"}}
  ],
  "metadata": {{"wordCount": 125, "difficulty": "{context.proficiency}", "topics": ["topic1"]}}
}}

Generate the story now:"""


def cloze_prompt(phrases: list[Phrase], context: LanguageContext, count: int) -> str:
    return f"""You are an expert language learning tutor. Create {count} cloze (fill-in-the-blank) exercises in {context.target_language} using the provided phrases.

**Requirements:**
- Create exactly {count} exercises
- Each exercise should have 1-2 blanks
- Use the provided phrases as the answers
- Make exercises appropriate for {context.proficiency} level
- Ensure only one correct answer per blank

**Phrases to use:**
{format_phrase_list(phrases)}

**Output format:**
Return a JSON array with this exact structure:
[
  {{
    "id": "exercise_1",
    "text": "Complete the sentence: The weather is very _____ today.",
    "blanks": [{{"position": 4, "answer": "sunny", "alternatives": ["bright", "warm"]}}],
    "difficulty": 2,
    "explanation": "This exercise tests weather vocabulary."
  }}
]

Generate the exercises now:"""
