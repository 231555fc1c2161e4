"""Gemini model factory for SpaceMatch agents.

The factory takes an explicit ``Settings`` instance so credentials can be
swapped per deployment (or per test) without touching module state.
"""

import copy

import google.generativeai as genai
from google.ai import generativelanguage as glm

from spacematch.app.config import Settings


# Fields that Pydantic v2 adds to JSON Schema but Gemini's API rejects
_UNSUPPORTED_KEYS = {
    "$defs", "definitions", "title", "default", "examples",
    "additionalProperties", "maximum", "minimum", "exclusiveMaximum",
    "exclusiveMinimum", "maxLength", "minLength", "pattern",
    "maxItems", "minItems", "uniqueItems", "anyOf",
}


def clean_schema(schema: dict) -> dict:
    """Clean a Pydantic JSON Schema for Gemini consumption.

    Inlines ``$defs``/``$ref`` references, collapses ``Optional[X]``
    (``anyOf: [X, null]``) into ``X`` and strips keys the SDK rejects.
    """
    schema = copy.deepcopy(schema)
    defs = schema.pop("$defs", None) or schema.pop("definitions", None)

    def _resolve(node):
        if isinstance(node, dict):
            if "$ref" in node:
                ref_name = node["$ref"].rsplit("/", 1)[-1]
                if defs and ref_name in defs:
                    return _resolve(copy.deepcopy(defs[ref_name]))
                return node
            if "anyOf" in node:
                variants = [v for v in node["anyOf"] if v.get("type") != "null"]
                if len(variants) == 1:
                    merged = {k: v for k, v in node.items() if k != "anyOf"}
                    merged.update(variants[0])
                    return _resolve(merged)
            for key in _UNSUPPORTED_KEYS:
                node.pop(key, None)
            for key, value in list(node.items()):
                node[key] = _resolve(value)
        elif isinstance(node, list):
            for i, item in enumerate(node):
                node[i] = _resolve(item)
        return node

    return _resolve(schema)


def get_model(
    settings: Settings,
    model_name: str | None = None,
    temperature: float | None = None,
    json_mode: bool = False,
    response_schema: dict | None = None,
    system_instruction: str | None = None,
):
    """Return a Gemini GenerativeModel bound to ``settings.gemini_api_key``.

    The model gets its own async service client, so nothing is written to
    the SDK's process-wide default client and two ``Settings`` with
    different keys never share credentials.

    Args:
        settings: Settings carrying the API key and model defaults.
        model_name: Gemini model identifier (defaults to ``settings.extraction_model``).
        temperature: Generation temperature (defaults to ``settings.extraction_temperature``).
        json_mode: If True, constrain output to valid JSON.
        response_schema: Optional JSON Schema dict for structured output.
        system_instruction: Optional system-level instruction.

    Returns:
        A ``google.generativeai.GenerativeModel`` ready for generation.
    """
    generation_config = {
        "temperature": settings.extraction_temperature if temperature is None else temperature,
    }
    if json_mode:
        generation_config["response_mime_type"] = "application/json"
        if response_schema:
            generation_config["response_schema"] = clean_schema(response_schema)

    model = genai.GenerativeModel(
        model_name=model_name or settings.extraction_model,
        generation_config=generation_config,
        system_instruction=system_instruction,
    )
    # generate_content_async only falls back to the default client when this is unset
    model._async_client = glm.GenerativeServiceAsyncClient(
        client_options={"api_key": settings.gemini_api_key},
    )
    return model
