# -*- coding: utf-8 -*-
"""Prompt builders for the analysis, recommendation and translation calls."""

from __future__ import annotations

from typing import Optional

from ..accounts.models import UserProfile
from ..history.models import FoodImpact

LANGUAGE_NAMES = {
    "ko": "Korean",
    "en": "English",
    "zh": "Chinese (Simplified)",
    "ja": "Japanese",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "ar": "Arabic",
}

SYSTEM_PROMPT = (
    "You are a clinical nutrition assistant for people managing blood glucose. "
    "Return STRICT JSON only. Do NOT wrap in markdown or code fences. "
    "Use double quotes for all keys/strings and no trailing commas."
)

_IMPACT_SCHEMA = (
    "{\n"
    '  "name": "string",\n'
    '  "portion": "string",\n'
    '  "calories": number,\n'
    '  "carbs": number,\n'
    '  "gi": number,\n'
    '  "estimatedSpike": number,\n'
    '  "riskLevel": "Low" | "Medium" | "High",\n'
    '  "summary": "string",\n'
    '  "glucoseCurve": [{"time": number, "value": number}]\n'
    "}\n"
)

_RECOMMENDATION_SCHEMA = (
    "[\n"
    "  {\n"
    '    "type": "Breakfast" | "Lunch" | "Dinner" | "Snack",\n'
    '    "name": "string",\n'
    '    "description": "string",\n'
    '    "whyGood": "string",\n'
    '    "nutrients": {"carbs": number, "protein": number, "fat": number, "calories": number}\n'
    "  }\n"
    "]\n"
)


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code, "English")


def profile_context(profile: UserProfile, current_glucose: Optional[float] = None) -> str:
    lines = [
        f"- HbA1c: {profile.hba1c_percent}%",
        f"- Fasting Blood Sugar: {profile.fasting_glucose_mg_dl} mg/dL",
        f"- Post-meal Target: <{profile.post_meal_target_mg_dl} mg/dL",
    ]
    if current_glucose is not None:
        lines.append(f"- Current Blood Sugar Level: {current_glucose} mg/dL (take this value into account)")
    lines.append(f"- Conditions: {', '.join(profile.conditions) or 'None reported'}")
    return "\n".join(lines)


def analysis_prompt(*, mode: str, profile: Optional[UserProfile], language: str) -> str:
    context = f"User Health Context:\n{profile_context(profile)}" if profile else "User Profile: Normal"
    if mode == "recipe":
        task = (
            "Analyze this cooking recipe or list of ingredients. "
            "Extract the ingredients and cooking methods to estimate its blood sugar impact per serving "
            "specifically for this user's profile. Identify the recipe name, standard portion size, "
            "total carbs (g), glycemic index (GI), and the predicted peak blood glucose rise in mg/dL for this user."
        )
    else:
        task = (
            "Analyze this food and estimate its blood sugar impact. Identify the food, estimated portion size, "
            "total carbs (g), glycemic index (GI), and the predicted peak blood glucose rise in mg/dL "
            "tailored to this user's health metrics."
        )
    return (
        f"{task}\n{context}\n"
        "Generate a simulated glucose curve (value vs time in minutes) for the next 120 minutes.\n"
        f"All text fields, especially 'name', 'portion' and 'summary', MUST be written in {language_name(language)}.\n"
        f"Output JSON schema (STRICT):\n{_IMPACT_SCHEMA}"
    )


def recommendation_prompt(*, profile: UserProfile, language: str, current_glucose: Optional[float]) -> str:
    reading = current_glucose if current_glucose is not None else profile.fasting_glucose_mg_dl
    return (
        "Based on this user's health profile and CURRENT blood sugar level:\n"
        f"{profile_context(profile, reading)}\n"
        "provide 4 personalized meal recommendations (Breakfast, Lunch, Dinner, Snack) to maintain or "
        "stabilize blood sugar. If the current blood sugar is high, suggest meals with very low glycemic index. "
        "If it is low, suggest balanced complex carbohydrates. For each meal, explain why it is good for the "
        "user's current status.\n"
        f"All text MUST be written in {language_name(language)}.\n"
        f"Output JSON schema (STRICT, an array):\n{_RECOMMENDATION_SCHEMA}"
    )


def translation_prompt(*, impact: FoodImpact, language: str) -> str:
    return (
        f"Translate the following fields into {language_name(language)}:\n"
        f'Name: "{impact.name}"\n'
        f'Portion: "{impact.portion}"\n'
        f'Summary: "{impact.summary}"\n'
        'Return JSON with exactly the keys "name", "portion" and "summary".'
    )
