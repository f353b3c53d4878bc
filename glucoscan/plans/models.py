# -*- coding: utf-8 -*-
"""Plan models."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

MealType = Literal["Breakfast", "Lunch", "Dinner", "Snack"]


class Nutrients(BaseModel):
    carbs: float = Field(0.0, ge=0)
    protein: float = Field(0.0, ge=0)
    fat: float = Field(0.0, ge=0)
    calories: float = Field(0.0, ge=0)


class MealRecommendation(BaseModel):
    type: MealType
    name: str
    description: str
    why_good: str
    nutrients: Nutrients = Field(default_factory=Nutrients)


class PlanRefreshRequest(BaseModel):
    current_glucose: Optional[float] = Field(None, ge=20, le=600, description="mg/dL")


class PlanResponse(BaseModel):
    items: List[MealRecommendation]
