"""
Text prompts for the image provider, built from a project's brand context.
"""
from typing import Any

ASSET_TYPE_DIRECTIVES = {
    "logo": "Design a professional logo",
    "icon": "Create a simple, recognizable icon",
    "pattern": "Design a seamless repeating pattern",
    "social_post": "Create a social media post graphic",
    "stationery": "Design a stationery mockup",
    "favicon": "Create a simple favicon icon",
    "wordmark": "Design a typographic wordmark logo",
}
DEFAULT_DIRECTIVE = "Design a brand asset"


def _field(project: Any, name: str) -> Any:
    if isinstance(project, dict):
        return project.get(name)
    return getattr(project, name, None)


def build_prompt_from_project(project: Any, asset_type: str, additional_prompt: str | None = None) -> str:
    """
    Deterministic prompt: directive, brand, Arabic name, industry, mood,
    keywords, brand context, additional requirements. Empty parts are skipped.
    Accepts a Project row or a plain dict with the same keys.
    """
    parts: list[str] = [ASSET_TYPE_DIRECTIVES.get(asset_type, DEFAULT_DIRECTIVE)]

    parts.append(f'for "{_field(project, "brand_name")}"')
    brand_name_ar = _field(project, "brand_name_ar")
    if brand_name_ar:
        parts.append(f'(Arabic: "{brand_name_ar}")')

    industry = _field(project, "industry")
    if industry:
        parts.append(f"in the {industry} industry")

    style = _field(project, "style") or {}
    if style.get("mood"):
        parts.append(f"with a {style['mood']} aesthetic")

    keywords = _field(project, "keywords") or []
    if keywords:
        parts.append(f"incorporating themes of {', '.join(keywords)}")

    description = _field(project, "description")
    if description:
        parts.append(f". Brand context: {description}")

    if additional_prompt:
        parts.append(f". Additional requirements: {additional_prompt}")

    return " ".join(parts)


def enhance_prompt_for_arabic(prompt: str, brand_name_ar: str | None = None) -> str:
    if brand_name_ar:
        arabic_context = f'Include Arabic text "{brand_name_ar}" with proper Arabic calligraphy styling.'
    else:
        arabic_context = "Design should complement Arabic typography aesthetics."
    return (
        f"{prompt}. {arabic_context} Ensure the design works well with RTL layouts and Arabic scripts. "
        "Use geometric patterns inspired by Islamic art if appropriate."
    )


def build_variation_prompt(base_prompt: str, prompt_delta: str | None = None) -> str:
    """Variation of an existing asset: keep the parent prompt, add the requested change."""
    base = (base_prompt or "").strip()
    delta = (prompt_delta or "").strip()
    if not delta:
        return f"{base}. Create an alternative variation with the same brand identity"
    return f"{base}. Variation: {delta}"
