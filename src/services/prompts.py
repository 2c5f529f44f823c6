"""Prompt text, output schemas and option tables.

These are immutable configuration values. Request builders receive them as
arguments; the streaming engine never reads them.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Final


STATUS_ANALYZING: Final = "Analizando texto..."
STATUS_TRANSLATING: Final = "Traduciendo texto..."
STATUS_PARAPHRASING: Final = "Parafraseando texto..."

EMPTY_RESULT_MESSAGE: Final = "No se pudo interpretar la respuesta del modelo"

CORRECTION_INSTRUCTIONS: Final = """Eres un corrector estricto de español.
Detecta errores de:
- ortografía (incluye tildes y diacríticos faltantes o incorrectos),
- puntuación (comas, puntos, signos de interrogación y exclamación, mayúscula tras punto),
- gramática.

Responde SOLO con JSON válido, sin texto adicional.
Para cada error:
- errorText DEBE ser una subcadena exacta del texto de entrada.
- suggestion debe ser corta y directa.
- type solo puede ser: spelling, punctuation o grammar.

Devuelve como máximo {max_errors} errores.

Ejemplo:
Entrada: "el dijo como estas"
Salida:
{{
  "errors": [
    {{ "errorText": "el", "suggestion": "Él", "type": "spelling" }},
    {{ "errorText": "como", "suggestion": "cómo", "type": "spelling" }},
    {{ "errorText": "estas", "suggestion": "estás", "type": "spelling" }}
  ]
}}"""

CORRECTION_SCHEMA: Final[MappingProxyType[str, Any]] = MappingProxyType(
    {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "errors": {
                "type": "array",
                "items": {
                    "type": "object",
                    "additionalProperties": False,
                    "properties": {
                        "errorText": {"type": "string"},
                        "suggestion": {"type": "string"},
                        "type": {
                            "type": "string",
                            "enum": ["spelling", "punctuation", "grammar"],
                        },
                    },
                    "required": ["errorText", "suggestion", "type"],
                },
            }
        },
        "required": ["errors"],
    }
)

TRANSLATION_SYSTEM: Final = (
    "Eres un traductor profesional. Traduce fielmente, sin añadir información, "
    "preservando nombres propios, números, URLs y saltos de línea. "
    "Devuelve SOLO el texto traducido."
)

TRANSLATION_TARGETS: Final = MappingProxyType(
    {"en": "English", "fr": "French", "de": "German", "pt": "Portuguese"}
)
DEFAULT_TRANSLATION_TARGET: Final = "en"

PARAPHRASE_MODES: Final = MappingProxyType(
    {
        "Standard": "Parafrasea el texto manteniendo el significado original.",
        "Fluency": "Mejora la fluidez y naturalidad del texto.",
        "Humanizer": "Haz que el texto suene humano y natural.",
        "Simplify": "Simplifica el texto usando lenguaje sencillo.",
        "Creative": "Parafrasea el texto de forma creativa.",
        "Academic": "Parafrasea el texto con estilo académico.",
        "Shorten": "Parafrasea el texto haciéndolo más corto.",
        "Expand": "Parafrasea el texto ampliándolo.",
        "Rephraser": "Reformula el texto usando estructuras distintas.",
    }
)
CUSTOM_MODE: Final = "Custom"
CUSTOM_MODE_FALLBACK: Final = "Parafrasea el texto."

PARAPHRASE_TONES: Final = MappingProxyType(
    {
        "Formal": "Usa un tono formal.",
        "Casual": "Usa un tono casual.",
        "Professional": "Usa un tono profesional.",
        "Witty": "Usa un tono ingenioso.",
    }
)

PARAPHRASE_SYSTEM: Final = """Eres un asistente experto en parafrasear textos en español.

{mode_instruction}
{tone_instruction}

REGLAS:
- Responde únicamente en español.
- Mantén el sentido original.
- No agregues explicaciones, comentarios ni formato extra.
- Devuelve SOLO texto plano parafraseado (sin etiquetas HTML)."""

SYNONYMS_SYSTEM: Final = (
    "Eres un editor experto en español. Devuelve 3 o 4 sinónimos que ENCAJEN en "
    "el contexto y mantengan el mismo significado. Si no hay sinónimos seguros, "
    "devuelve lista vacía."
)

SYNONYMS_USER: Final = (
    'palabra: "{word}"\ncontexto: "{context}"\nmodo: "{mode}"\n'
    'Formato de salida OBLIGATORIO: JSON estricto:\n{{"synonyms":["...","...","..."]}}'
)

STYLEBRUSH_EFFECTS: Final = MappingProxyType(
    {
        "simplify": "Reescribe el texto de forma más simple y clara.",
        "professional": "Reescribe el texto con un tono más profesional.",
    }
)

STYLEBRUSH_SYSTEM: Final = '''Eres un editor profesional en español.

REGLAS ABSOLUTAS:
- Mantén exactamente el mismo significado
- NO agregues información
- Devuelve SOLO el texto reescrito, sin comillas ni listas

Contexto (NO modificar):
ANTES: """{before}"""
DESPUÉS: """{after}"""'''
