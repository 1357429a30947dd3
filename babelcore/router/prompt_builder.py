# router/prompt_builder.py

_TRANSLATE_SYSTEM = """\
    You are a professional document translator.
    Translate the user's message from {source} into {target_lang}.

    --- RULES ---
    - Do not omit, summarize or add content.
    - Keep paragraph structure, line breaks, lists and inline markup as they are.
    - Keep numbers, code, URLs and proper nouns unchanged unless they have an established translation.
    {format_rules}
    --- OUTPUT FORMAT (STRICT) ---
    Return EXACTLY one valid JSON object and nothing else. No markdown, no ```json.
    {{
      "notes": "1-3 short sentences about notable translation decisions.",
      "confidence": 0.0,
      "translation": "The complete translated fragment."
    }}
    confidence is a float between 0.0 and 1.0.
    """

# Reglas extra por tipo de archivo: nunca dejan la sección vacía
_FORMAT_RULES = {
    "md":  "- The text is Markdown: keep headings, emphasis and link targets intact.",
    "srt": "- The text is SRT subtitles: keep cue numbers and timestamps exactly; translate only the dialogue lines.",
    "vtt": "- The text is WebVTT subtitles: keep the header, cue timings and settings exactly; translate only the dialogue lines.",
}
_FORMAT_RULES_DEFAULT = "- The text is plain text."


def build_translate_prompt(
    source_lang: str | None,
    target_lang: str,
    file_type:   str = "txt",
) -> str:
    """
    Construye el system prompt de traducción.

    El fragmento a traducir NO va aquí: viaja como mensaje de usuario.
    Si el idioma origen sigue en "auto", se le pide al modelo que lo detecte.
    """
    if not source_lang or source_lang == "auto":
        source = "the detected source language"
    else:
        source = f"'{source_lang}'"

    return _TRANSLATE_SYSTEM.format(
        source       = source,
        target_lang  = f"'{target_lang}'",
        format_rules = _FORMAT_RULES.get((file_type or "").lower(), _FORMAT_RULES_DEFAULT),
    )
